from pydantic import BaseModel, EmailStr, Field
from typing import List, Literal, Optional

from storefront.gateway.auth import MIN_PASSWORD_LENGTH
from storefront.schemas import ProductImage, Notice

class LoginPayload(BaseModel):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    mode: Literal['login', 'register'] = 'login'

class LoginResult(BaseModel):
    mode: Literal['login', 'register']
    notice: Notice
    redirect: Optional[str] = None

class ItemCard(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    item_type: str
    type_label: str
    price_label: str
    cover: Optional[ProductImage] = None
    href: str

class ImagesResult(BaseModel):
    id: int
    images: List[ProductImage]
    notices: List[Notice] = []
