import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from functools import partial
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from storefront.core.config import settings
from storefront.errors import GatewayError
from storefront.schemas import CatalogItem
from storefront.services.formatting import collation_key

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"
CATALOG_COLUMNS = "id,name,category,item_type,price,images,is_active,sort_order"
CATALOG_ORDER = ("sort_order", "category", "name")

TIMEOUT_MESSAGE = "Tempo excedido ao carregar o catálogo. Tente recarregar a página."
UNEXPECTED_MESSAGE = "Erro inesperado ao carregar o catálogo."

CategoriesCallback = Callable[[List[str]], None]


def derive_categories(items: Iterable[CatalogItem]) -> List[str]:
    """Distinct non-empty trimmed categories in collation order."""
    found = {(x.category or "").strip() for x in items}
    found.discard("")
    return sorted(found, key=collation_key)


def filter_items(items: Sequence[CatalogItem], search: str = "", category: str = ALL_CATEGORIES) -> List[CatalogItem]:
    """Category (exact, case-insensitive, or "all") AND name substring; keeps input order."""
    q = (search or "").strip().lower()
    wanted = (category or ALL_CATEGORIES).lower()

    def keep(x: CatalogItem) -> bool:
        match_category = wanted == ALL_CATEGORIES or (x.category is not None and x.category.lower() == wanted)
        match_search = not q or q in (x.name or "").lower()
        return match_category and match_search

    return [x for x in items if keep(x)]


@dataclass(frozen=True)
class CatalogState:
    items: Tuple[CatalogItem, ...] = ()
    categories: Tuple[str, ...] = ()
    loading: bool = True
    error: Optional[str] = None
    error_kind: Optional[str] = None  # "timeout" | "gateway" | "unexpected"


class CatalogPhase(str, Enum):
    INITIAL_LOADING = "initial-loading"
    ERROR = "error"
    EMPTY = "empty"
    READY = "ready"


@dataclass(frozen=True)
class CatalogView:
    phase: CatalogPhase
    items: Tuple[CatalogItem, ...] = ()
    refreshing: bool = False
    error: Optional[str] = None


def catalog_view(state: CatalogState, search: str = "", category: str = ALL_CATEGORIES) -> CatalogView:
    """What the catalog section shows for a given state and filter."""
    if state.loading and not state.items:
        return CatalogView(CatalogPhase.INITIAL_LOADING)
    if state.error and not state.items:
        return CatalogView(CatalogPhase.ERROR, error=state.error)
    filtered = tuple(filter_items(state.items, search, category))
    if not filtered:
        return CatalogView(CatalogPhase.EMPTY, refreshing=state.loading, error=state.error)
    return CatalogView(CatalogPhase.READY, items=filtered, refreshing=state.loading, error=state.error)


class CatalogLoader:
    """Loads the active items once. The watchdog stops waiting for a slow read
    without cancelling it; a late result is committed only while its load is
    still current and the loader has not been closed."""

    def __init__(self, gateway, *, timeout: Optional[float] = None):
        self._gateway = gateway
        self.timeout = settings.CATALOG_TIMEOUT_SECONDS if timeout is None else timeout
        self.state = CatalogState()
        self._alive = True
        self._generation = 0

    @property
    def alive(self) -> bool:
        return self._alive

    def close(self) -> None:
        """Teardown: nothing in flight may touch the state afterwards."""
        self._alive = False

    def _is_current(self, generation: int) -> bool:
        return self._alive and generation == self._generation

    async def _fetch(self) -> List[CatalogItem]:
        rows = await self._gateway.table("products").select(
            CATALOG_COLUMNS, eq={"is_active": True}, order=CATALOG_ORDER
        )
        return [CatalogItem.model_validate(r) for r in rows]

    async def load(self, on_categories: Optional[CategoriesCallback] = None) -> CatalogState:
        if not self._alive:
            return self.state
        self._generation += 1
        generation = self._generation
        # items stay in place while refreshing
        self.state = replace(self.state, loading=True, error=None, error_kind=None)

        task = asyncio.ensure_future(self._fetch())
        done, _ = await asyncio.wait({task}, timeout=self.timeout)
        if done:
            self._settle(generation, on_categories, task)
            return self.state

        if self._is_current(generation):
            logger.warning("catalog load #%d still pending after %.1fs", generation, self.timeout)
            self.state = replace(self.state, loading=False, error=TIMEOUT_MESSAGE, error_kind="timeout")
        task.add_done_callback(partial(self._settle, generation, on_categories))
        return self.state

    def _settle(self, generation: int, on_categories: Optional[CategoriesCallback], task: "asyncio.Future") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if not self._is_current(generation):
            logger.debug("discarding stale catalog load #%d", generation)
            return

        if exc is not None:
            if isinstance(exc, GatewayError):
                message, kind = exc.message, "gateway"
            else:
                logger.error("catalog load #%d crashed", generation, exc_info=exc)
                message, kind = str(exc) or UNEXPECTED_MESSAGE, "unexpected"
            self.state = replace(self.state, loading=False, error=message, error_kind=kind)
            return

        items = task.result()
        categories = derive_categories(items)
        self.state = CatalogState(items=tuple(items), categories=tuple(categories), loading=False)
        logger.info("catalog load #%d: %d items, %d categories", generation, len(items), len(categories))
        if on_categories is not None:
            on_categories(list(categories))
