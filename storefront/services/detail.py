import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from storefront.core.config import settings
from storefront.errors import GatewayError, InvalidIdentifier
from storefront.schemas import CatalogItem, ProductRow

logger = logging.getLogger(__name__)

DETAIL_COLUMNS = "id,name,description,category,item_type,price,images,is_active"
RELATED_COLUMNS = "id,name,category,item_type,price,images,is_active,sort_order"

INVALID_MESSAGE = "Produto inválido."
NOT_FOUND_MESSAGE = "Produto não encontrado."
UNEXPECTED_MESSAGE = "Não foi possível carregar o produto."
RELATED_UNEXPECTED_MESSAGE = "Não foi possível carregar produtos relacionados."

ITEM_ID_RE = re.compile(r"-?[0-9]+")
ITEM_ID_MIN = -2**31
ITEM_ID_MAX = 2**31 - 1


class DetailStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class DetailState:
    status: DetailStatus = DetailStatus.LOADING
    item: Optional[ProductRow] = None
    error: Optional[str] = None


@dataclass
class RelatedState:
    loading: bool = True
    items: List[CatalogItem] = field(default_factory=list)
    error: Optional[str] = None


def parse_item_id(raw) -> int:
    """Route parameter -> store key. Raises InvalidIdentifier, never hits the store."""
    if isinstance(raw, bool):
        raise InvalidIdentifier(INVALID_MESSAGE)
    if isinstance(raw, int):
        item_id = raw
    else:
        text = str(raw if raw is not None else "").strip()
        if not ITEM_ID_RE.fullmatch(text):
            raise InvalidIdentifier(INVALID_MESSAGE)
        item_id = int(text)
    # products.id is a signed 32-bit column
    if not ITEM_ID_MIN <= item_id <= ITEM_ID_MAX:
        raise InvalidIdentifier(INVALID_MESSAGE)
    return item_id


class DetailLoader:
    """Two independent slots: the item and its related list. A failure in one
    never touches the other. ``close()`` stops all later commits."""

    def __init__(self, gateway):
        self._gateway = gateway
        self.item = DetailState()
        self.related = RelatedState()
        self._alive = True

    def close(self) -> None:
        self._alive = False

    async def load_item(self, raw_id) -> DetailState:
        try:
            item_id = parse_item_id(raw_id)
        except InvalidIdentifier as exc:
            self.item = DetailState(DetailStatus.INVALID, error=str(exc))
            return self.item

        self.item = DetailState(DetailStatus.LOADING)
        try:
            row = await self._gateway.table("products").maybe_single(DETAIL_COLUMNS, eq={"id": item_id})
        except GatewayError as exc:
            state = DetailState(DetailStatus.ERROR, error=exc.message)
        except Exception:
            logger.exception("detail load for id=%s crashed", item_id)
            state = DetailState(DetailStatus.ERROR, error=UNEXPECTED_MESSAGE)
        else:
            if row is None:
                state = DetailState(DetailStatus.NOT_FOUND, error=NOT_FOUND_MESSAGE)
            else:
                state = DetailState(DetailStatus.READY, item=ProductRow.model_validate(row))

        if self._alive:
            self.item = state
        return state

    async def load_related(self, exclude_id: int, limit: Optional[int] = None) -> RelatedState:
        limit = settings.RELATED_LIMIT if limit is None else limit
        self.related = RelatedState(loading=True)
        try:
            rows = await self._gateway.table("products").select(
                RELATED_COLUMNS,
                eq={"is_active": True},
                neq={"id": exclude_id},
                order=("name",),
                limit=limit,
            )
            state = RelatedState(loading=False, items=[CatalogItem.model_validate(r) for r in rows])
        except GatewayError as exc:
            logger.warning("related items for id=%s failed: %s", exclude_id, exc.message)
            state = RelatedState(loading=False, error=exc.message)
        except Exception:
            logger.exception("related items for id=%s crashed", exclude_id)
            state = RelatedState(loading=False, error=RELATED_UNEXPECTED_MESSAGE)

        if self._alive:
            self.related = state
        return state
