"""
Database Schemas for the coffee shop ordering backend

Each Pydantic model represents a MongoDB collection. The collection name is
the lowercased class name (e.g., Order -> "order", PointsHistory ->
"pointshistory"). Documents are stored with snake_case keys; the API speaks
camelCase through the field aliases.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Category(str, Enum):
    COFFEE = "coffee"
    TEA = "tea"
    SNACKS = "snacks"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PointsType(str, Enum):
    EARNED = "earned"
    REDEEMED = "redeemed"


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


class Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, use_enum_values=True,
                              validate_default=True)

    @classmethod
    def from_document(cls, doc: dict):
        data = {k: v for k, v in doc.items() if k != "_id"}
        return cls(id=str(doc["_id"]), **data)

    def to_document(self) -> dict:
        return self.model_dump(exclude={"id"})

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ProductSize(Schema):
    name: str
    price: int = Field(..., ge=0, description="Price in minor currency units")


class Product(Schema):
    """
    Catalog collection schema (read-only to the ordering core)
    """
    id: Optional[str] = None
    name: str = Field(..., description="Product name")
    description: str = Field("", description="Short description")
    category: Category
    base_price: int = Field(..., ge=0, description="Price in minor currency units")
    image: Optional[str] = Field(None, description="Hosted image URL")
    featured: bool = False
    sizes: List[ProductSize] = []

    def price_for(self, size: Optional[str]) -> Optional[int]:
        """Unit price for a size label, base price when no size; None if the label is unknown."""
        if size is None:
            return self.base_price
        for s in self.sizes:
            if s.name == size:
                return s.price
        return None


class User(Schema):
    """
    Users collection schema. Authentication lives elsewhere; the core only
    owns the loyalty_points counter.
    """
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = Field(None, description="As stored by the auth service, not re-validated")
    phone: Optional[str] = None
    role: Role = Role.USER
    loyalty_points: int = Field(0, description="Running balance, changed only via $inc")


class OrderItemInput(Schema):
    product_id: str
    quantity: int = Field(1, ge=1)
    size: Optional[str] = None


class OrderItem(Schema):
    """Embedded line item with the product data captured at order time."""
    product_id: str
    name: str
    category: Category
    image: Optional[str] = None
    unit_price: int = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    size: Optional[str] = None
    total: int = Field(..., ge=0)


class Order(Schema):
    id: Optional[str] = None
    items: List[OrderItem]
    total: int = Field(..., ge=0)
    status: OrderStatus = OrderStatus.PENDING
    customer_name: str
    notes: Optional[str] = None
    user_id: Optional[str] = Field(None, description="Owning user; None for guest orders")
    points_pending: bool = Field(False, description="Set while a completion award is still settling")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PointsHistory(Schema):
    id: Optional[str] = None
    user_id: str
    type: PointsType = PointsType.EARNED
    points: int = Field(..., ge=0)
    description: str
    order_id: Optional[str] = None
    award_key: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude={"award_key"})

    @property
    def delta(self) -> int:
        return self.points if self.type == PointsType.EARNED else -self.points


class PointsAudit(Schema):
    user_id: str
    balance: int
    ledger_total: int
    drift: int
