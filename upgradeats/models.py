"""
Record shapes for the five Upgradeats tables.

The data service stores untyped rows; each model below is the shape the
application expects. Money columns are stored as pre-formatted strings
("Rp 15.000") by the service but held here as integer rupiah, parsed once when
a row is validated and formatted again when the record is written back.
"""
from datetime import datetime
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .money import format_currency, parse_currency


class OrderStatus(str, Enum):
    PENDING = "Pending"
    SELESAI = "Selesai"
    DIBATALKAN = "Dibatalkan"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


class FeatureIcon(str, Enum):
    SHIELD_CHECK = "ShieldCheck"
    LEAF = "Leaf"
    CLOCK = "Clock"
    ZAP = "Zap"
    STAR = "Star"
    HEART = "Heart"

    @classmethod
    def lookup(cls, key) -> "FeatureIcon":
        if isinstance(key, cls):
            return key
        for icon in cls:
            if icon.value == key:
                return icon
        return cls.STAR


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore")

    table: ClassVar[str]
    # Column and direction used when the whole table is loaded.
    order_by: ClassVar[Tuple[str, bool]] = ("id", False)

    id: Optional[int] = None

    @classmethod
    def required_fields(cls) -> List[str]:
        return [name for name, info in cls.model_fields.items() if info.is_required()]

    def to_row(self) -> dict:
        """Row to send to the gateway; server-assigned columns are left out."""
        return self.model_dump(mode="json", exclude={"id", "created_at"}, exclude_none=True)


class Product(Record):
    table: ClassVar[str] = "products"

    name: str
    price: int
    category: str
    image_url: str
    description: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def _parse_price(cls, value):
        return parse_currency(value)

    @field_serializer("price")
    def _format_price(self, value: int) -> str:
        return format_currency(value)


class Order(Record):
    table: ClassVar[str] = "orders"
    order_by: ClassVar[Tuple[str, bool]] = ("created_at", True)

    customer_name: str
    product_name: str = ""
    qty: int = Field(1, ge=1)
    total_price: int = 0
    status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[datetime] = None

    @field_validator("total_price", mode="before")
    @classmethod
    def _parse_total(cls, value):
        return parse_currency(value)

    @field_serializer("total_price")
    def _format_total(self, value: int) -> str:
        return format_currency(value)

    @classmethod
    def place(cls, customer_name: str, product: Product, qty: int) -> "Order":
        """A new storefront order; the status is always Pending at creation."""
        return cls(
            customer_name=customer_name,
            product_name=product.name,
            qty=qty,
            total_price=product.price * qty,
            status=OrderStatus.PENDING,
        )


class TeamMember(Record):
    table: ClassVar[str] = "team_members"

    name: str
    role: str
    image_url: str
    quote: str = ""


class Feature(Record):
    table: ClassVar[str] = "features"

    title: str
    text: str
    icon: FeatureIcon = FeatureIcon.STAR

    @field_validator("icon", mode="before")
    @classmethod
    def _lookup_icon(cls, value):
        return FeatureIcon.lookup(value)


class Feedback(Record):
    table: ClassVar[str] = "feedbacks"
    order_by: ClassVar[Tuple[str, bool]] = ("created_at", True)

    message: str
    created_at: Optional[datetime] = None


MODELS: Dict[str, Type[Record]] = {
    model.table: model for model in (Product, Order, TeamMember, Feature, Feedback)
}

TABLES: Tuple[str, ...] = tuple(MODELS)
