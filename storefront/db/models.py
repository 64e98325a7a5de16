from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer,String,Text,Boolean,ForeignKey,Numeric,DateTime,JSON,UniqueConstraint,CheckConstraint,Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import uuid
from storefront.db.session import Base

JSONType = JSON().with_variant(JSONB(), 'postgresql')

def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Product(Base):
    __tablename__='products'
    __table_args__ = (
        CheckConstraint("item_type in ('product', 'service')", name='ck_products_item_type'),
        Index('ix_products_active_order', 'is_active', 'sort_order'),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(240), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, index=True)
    item_type: Mapped[str] = mapped_column(String(16), nullable=False, default='product')
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    stock: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, default=0)
    images: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    specifications: Mapped[Optional[dict]] = mapped_column(JSONType, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(), default=_utcnow, onupdate=_utcnow)

class User(Base):
    __tablename__='users'
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(), default=_utcnow)
    roles = relationship('UserRole', back_populates='user', cascade='all, delete-orphan')

class UserRole(Base):
    __tablename__='user_roles'
    __table_args__ = (UniqueConstraint('user_id', 'role', name='uq_user_roles_user_role'),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    user = relationship('User', back_populates='roles')
