from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional, List, Literal, Union
from datetime import datetime
from decimal import Decimal
import json

ItemType = Literal['product', 'service']

class ProductImage(BaseModel):
    url: str
    path: str
    alt: Optional[str] = None

def normalize_images(raw: Any) -> List[ProductImage]:
    """Parse the untyped ``images`` payload from the store.

    Entries that are not objects, or lack a string ``url`` and ``path``, are
    dropped. Never raises, and is idempotent on its own output.
    """
    if not raw or not isinstance(raw, (list, tuple)):
        return []
    out: List[ProductImage] = []
    for entry in raw:
        if isinstance(entry, ProductImage):
            out.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        url, path, alt = entry.get('url'), entry.get('path'), entry.get('alt')
        if not isinstance(url, str) or not isinstance(path, str):
            continue
        out.append(ProductImage(url=url, path=path, alt=alt if isinstance(alt, str) else None))
    return out

def normalize_specifications(raw: Any) -> Optional[dict]:
    return raw if isinstance(raw, dict) else None

class CatalogItem(BaseModel):
    id: Union[int, str]
    name: str = ''
    category: Optional[str] = None
    item_type: ItemType = 'product'
    price: Optional[Decimal] = None
    images: List[ProductImage] = []
    is_active: bool = True
    sort_order: int = 0

    @field_validator('images', mode='before')
    @classmethod
    def _images(cls, v): return normalize_images(v)

    @field_validator('item_type', mode='before')
    @classmethod
    def _item_type(cls, v): return 'service' if v == 'service' else 'product'

    @field_validator('name', mode='before')
    @classmethod
    def _name(cls, v): return '' if v is None else v

    @field_validator('is_active', mode='before')
    @classmethod
    def _is_active(cls, v): return True if v is None else v

    @field_validator('sort_order', mode='before')
    @classmethod
    def _sort_order(cls, v): return 0 if v is None else v

    @property
    def cover(self) -> Optional[ProductImage]:
        return self.images[0] if self.images else None

class ProductRow(CatalogItem):
    description: Optional[str] = None
    stock: Optional[int] = None
    specifications: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('specifications', mode='before')
    @classmethod
    def _specifications(cls, v): return normalize_specifications(v)

class ProductDraft(BaseModel):
    """Editable form state of a catalog item; ``id`` is None until created."""
    id: Optional[int] = None
    name: str = ''
    description: Optional[str] = ''
    category: Optional[str] = ''
    item_type: ItemType = 'product'
    price: Optional[float] = None
    stock: Optional[float] = 0
    is_active: bool = True
    sort_order: Optional[float] = 0
    images: List[ProductImage] = []
    specifications_text: str = '{}'

    @field_validator('images', mode='before')
    @classmethod
    def _images(cls, v): return normalize_images(v)

    @classmethod
    def from_row(cls, row: Optional[ProductRow] = None) -> 'ProductDraft':
        if row is None:
            return cls()
        return cls(
            id=row.id,
            name=row.name or '',
            description=row.description or '',
            category=row.category or '',
            item_type=row.item_type,
            price=None if row.price is None else float(row.price),
            stock=row.stock if row.stock is not None else 0,
            is_active=bool(row.is_active),
            sort_order=row.sort_order,
            images=row.images,
            specifications_text=json.dumps(row.specifications or {}, indent=2, ensure_ascii=False),
        )

class AuthUser(BaseModel):
    id: str
    email: str

class AuthSession(BaseModel):
    access_token: str
    user: AuthUser
    expires_at: datetime
    token_type: str = 'bearer'

class Notice(BaseModel):
    title: str
    description: Optional[str] = None
    variant: Literal['default', 'destructive'] = 'default'

class ImageUpload(BaseModel):
    filename: str
    content: bytes = Field(repr=False)
    content_type: Optional[str] = None
