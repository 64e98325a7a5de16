"""Catalog fetch-filter core: pure filtering, category derivation and the loader."""

import asyncio

import pytest

from storefront.errors import GatewayError
from storefront.schemas import CatalogItem
from storefront.services.catalog import (
    ALL_CATEGORIES,
    CATALOG_COLUMNS,
    CATALOG_ORDER,
    TIMEOUT_MESSAGE,
    CatalogLoader,
    CatalogPhase,
    CatalogState,
    catalog_view,
    derive_categories,
    filter_items,
)


def item(id, name, category=None, **kw):
    return CatalogItem(id=id, name=name, category=category, **kw)


def row(id, name, category=None, sort_order=0):
    return {"id": id, "name": name, "category": category, "item_type": "product", "price": None,
            "images": [], "is_active": True, "sort_order": sort_order}


class ScriptedTable:
    def __init__(self, steps, calls):
        self._steps = steps
        self._calls = calls

    async def select(self, columns, **kw):
        self._calls.append((columns, kw))
        step = self._steps.pop(0)
        return await step()


class ScriptedGateway:
    """Each select() awaits the next scripted coroutine function."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.calls = []

    def table(self, name):
        assert name == "products"
        return ScriptedTable(self.steps, self.calls)


def returns(rows):
    async def _step():
        return rows
    return _step


def raises(exc):
    async def _step():
        raise exc
    return _step


ITEMS = [
    item(1, "GPS X200", "GPS e Monitores"),
    item(2, "Monitor MP-7", "pulverização"),
    item(3, "Antena RTK", "GPS e Monitores"),
    item(4, "Calibração", "Serviços", item_type="service"),
    item(5, "Sem categoria", None),
]


class TestFilterItems:
    """Test the pure filter."""

    def test_no_filter_returns_items_unchanged(self):
        assert filter_items(ITEMS, "", ALL_CATEGORIES) == ITEMS
        assert filter_items(ITEMS, "   ", ALL_CATEGORIES) == ITEMS

    @pytest.mark.parametrize("category", [None, "", "ALL"])
    def test_missing_category_means_all(self, category):
        assert filter_items(ITEMS, "", category) == ITEMS

    def test_category_is_exact_and_case_insensitive(self):
        out = filter_items(ITEMS, "", "gps e monitores")
        assert [x.id for x in out] == [1, 3]
        assert [x.id for x in filter_items(ITEMS, "", "PULVERIZAÇÃO")] == [2]

    def test_category_is_not_a_substring_match(self):
        assert filter_items(ITEMS, "", "GPS") == []

    def test_search_is_trimmed_case_insensitive_substring_on_name(self):
        assert [x.id for x in filter_items(ITEMS, "  gps ", ALL_CATEGORIES)] == [1]
        assert [x.id for x in filter_items(ITEMS, "MO", ALL_CATEGORIES)] == [2]
        assert [x.id for x in filter_items(ITEMS, "a", ALL_CATEGORIES)] == [3, 4, 5]

    def test_search_does_not_look_at_category(self):
        assert filter_items(ITEMS, "monitores", ALL_CATEGORIES) == []

    def test_search_and_category_are_anded(self):
        assert [x.id for x in filter_items(ITEMS, "x", "GPS e Monitores")] == [1]
        assert filter_items(ITEMS, "calibração", "GPS e Monitores") == []

    def test_preserves_input_order(self):
        reversed_items = list(reversed(ITEMS))
        out = filter_items(reversed_items, "", "GPS e Monitores")
        assert [x.id for x in out] == [3, 1]


class TestDeriveCategories:
    """Test the derived category set."""

    def test_distinct_trimmed_non_empty(self):
        items = [item(1, "a", " Pulverização "), item(2, "b", "Pulverização"), item(3, "c", "   "),
                 item(4, "d", None), item(5, "e", "")]
        assert derive_categories(items) == ["Pulverização"]

    def test_sorted_accent_and_case_insensitively(self):
        items = [item(1, "a", "Serviços"), item(2, "b", "Óleos"), item(3, "c", "antenas"), item(4, "d", "GPS")]
        assert derive_categories(items) == ["antenas", "GPS", "Óleos", "Serviços"]

    def test_empty(self):
        assert derive_categories([]) == []


class TestCatalogView:
    """Test the presentation states."""

    def test_initial_loading(self):
        assert catalog_view(CatalogState()).phase is CatalogPhase.INITIAL_LOADING

    def test_error_on_first_load_hides_everything(self):
        view = catalog_view(CatalogState(loading=False, error="boom"))
        assert view.phase is CatalogPhase.ERROR
        assert view.error == "boom"
        assert view.items == ()

    def test_background_refresh_keeps_items(self):
        view = catalog_view(CatalogState(items=tuple(ITEMS), loading=True))
        assert view.phase is CatalogPhase.READY
        assert view.refreshing is True
        assert len(view.items) == len(ITEMS)

    def test_error_after_items_keeps_them_visible(self):
        view = catalog_view(CatalogState(items=tuple(ITEMS), loading=False, error="boom"))
        assert view.phase is CatalogPhase.READY
        assert view.error == "boom"
        assert len(view.items) == len(ITEMS)

    def test_empty_after_filter(self):
        view = catalog_view(CatalogState(items=tuple(ITEMS), loading=False), "inexistente")
        assert view.phase is CatalogPhase.EMPTY

    def test_empty_store(self):
        assert catalog_view(CatalogState(loading=False)).phase is CatalogPhase.EMPTY


class TestCatalogLoader:
    """Test CatalogLoader against a scripted gateway."""

    def test_issues_one_active_ordered_read(self):
        gw = ScriptedGateway(returns([row(1, "GPS X200", "GPS")]))
        asyncio.run(CatalogLoader(gw, timeout=1).load())
        assert gw.calls == [(CATALOG_COLUMNS, {"eq": {"is_active": True}, "order": CATALOG_ORDER})]
        assert CATALOG_ORDER == ("sort_order", "category", "name")

    def test_success_replaces_items_and_derives_categories(self):
        gw = ScriptedGateway(returns([row(1, "GPS X200", "GPS"), row(2, "Bico", "Pulverização"), row(3, "Kit", "GPS")]))
        seen = []
        state = asyncio.run(CatalogLoader(gw, timeout=1).load(on_categories=seen.append))
        assert [x.id for x in state.items] == [1, 2, 3]
        assert state.categories == ("GPS", "Pulverização")
        assert state.loading is False
        assert state.error is None
        assert seen == [["GPS", "Pulverização"]]

    def test_zero_rows_is_empty_not_an_error(self):
        state = asyncio.run(CatalogLoader(ScriptedGateway(returns([])), timeout=1).load())
        assert state.items == ()
        assert state.categories == ()
        assert state.error is None
        assert catalog_view(state).phase is CatalogPhase.EMPTY

    def test_gateway_error_message_is_surfaced_verbatim(self):
        gw = ScriptedGateway(raises(GatewayError('relation "products" does not exist')))
        state = asyncio.run(CatalogLoader(gw, timeout=1).load())
        assert state.error == 'relation "products" does not exist'
        assert state.error_kind == "gateway"
        assert state.items == ()
        assert catalog_view(state).phase is CatalogPhase.ERROR

    def test_unexpected_error_is_reported(self):
        state = asyncio.run(CatalogLoader(ScriptedGateway(raises(RuntimeError("kaput"))), timeout=1).load())
        assert state.error == "kaput"
        assert state.error_kind == "unexpected"

    def test_failed_reload_keeps_previous_items(self):
        gw = ScriptedGateway(returns([row(1, "GPS X200", "GPS")]), raises(GatewayError("offline")))

        async def scenario():
            loader = CatalogLoader(gw, timeout=1)
            await loader.load()
            return await loader.load()

        state = asyncio.run(scenario())
        assert [x.id for x in state.items] == [1]
        assert state.error == "offline"
        assert catalog_view(state).phase is CatalogPhase.READY

    def test_timeout_then_stale_result_is_ignored_after_reload(self):
        async def scenario():
            release = asyncio.Event()

            async def slow():
                await release.wait()
                return [row(1, "Antigo", "A")]

            loader = CatalogLoader(ScriptedGateway(slow, returns([row(2, "Novo", "B")])), timeout=0.01)
            first = await loader.load()
            assert first.loading is False
            assert first.error == TIMEOUT_MESSAGE
            assert first.error_kind == "timeout"

            second = await loader.load()
            assert [x.name for x in second.items] == ["Novo"]

            release.set()
            await asyncio.sleep(0.05)
            return loader.state

        state = asyncio.run(scenario())
        assert [x.name for x in state.items] == ["Novo"]
        assert state.categories == ("B",)
        assert state.error is None

    def test_late_result_of_current_load_is_committed(self):
        async def scenario():
            release = asyncio.Event()

            async def slow():
                await release.wait()
                return [row(1, "Tardio", "A")]

            seen = []
            loader = CatalogLoader(ScriptedGateway(slow), timeout=0.01)
            state = await loader.load(on_categories=seen.append)
            assert state.error == TIMEOUT_MESSAGE
            release.set()
            await asyncio.sleep(0.05)
            return loader.state, seen

        state, seen = asyncio.run(scenario())
        assert [x.name for x in state.items] == ["Tardio"]
        assert state.error is None
        assert seen == [["A"]]

    def test_nothing_is_committed_after_close(self):
        async def scenario():
            release = asyncio.Event()

            async def slow():
                await release.wait()
                return [row(1, "Tardio", "A")]

            seen = []
            loader = CatalogLoader(ScriptedGateway(slow), timeout=0.01)
            await loader.load(on_categories=seen.append)
            loader.close()
            release.set()
            await asyncio.sleep(0.05)
            return loader, seen

        loader, seen = asyncio.run(scenario())
        assert loader.alive is False
        assert loader.state.items == ()
        assert loader.state.error == TIMEOUT_MESSAGE
        assert seen == []

    def test_load_after_close_is_a_no_op(self):
        gw = ScriptedGateway(returns([row(1, "GPS", "GPS")]))
        loader = CatalogLoader(gw, timeout=1)
        loader.close()
        asyncio.run(loader.load())
        assert gw.calls == []


class TestCatalogLoaderWithStore:
    """Test the loader against the SQLite-backed gateway."""

    def test_only_active_items_in_public_order(self, gateway, add_product):
        add_product("Zeta", "B", sort_order=1)
        add_product("Alfa", "B", sort_order=1)
        add_product("Beta", "A", sort_order=1)
        add_product("Primeiro", "Z", sort_order=0)
        add_product("Oculto", "A", is_active=False)

        state = asyncio.run(CatalogLoader(gateway, timeout=5).load())
        assert [x.name for x in state.items] == ["Primeiro", "Beta", "Alfa", "Zeta"]
        assert state.categories == ("A", "B", "Z")

    @pytest.mark.parametrize("price, expected", [(None, None), (1999.9, "1999.90")])
    def test_price_round_trips_through_store(self, gateway, add_product, price, expected):
        add_product("GPS X200", "GPS", price=price)
        state = asyncio.run(CatalogLoader(gateway, timeout=5).load())
        got = state.items[0].price
        assert (None if got is None else str(got)) == expected
