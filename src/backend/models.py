# provide dataclass models shared by the service boundary and the client

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from backend.errors import ValidationError

_PRINCIPAL_RE = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$")
_ANONYMOUS_TEXT = "2vxsx-fae"


class ProductStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DRAFT = "draft"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


@dataclass(frozen=True)
class Principal:
    """
    Textual identifier of an identity.

    Lowercase alphanumeric groups separated by single dashes, at most 63 chars.
    """

    text: str

    @classmethod
    def from_text(cls, text: str) -> "Principal":
        value = (text or "").strip()
        if not value or len(value) > 63 or not _PRINCIPAL_RE.match(value):
            raise ValidationError(f"Invalid principal: {text!r}")
        return cls(value)

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(_ANONYMOUS_TEXT)

    @property
    def is_anonymous(self) -> bool:
        return self.text == _ANONYMOUS_TEXT

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Identity:
    principal: Principal


@dataclass(frozen=True)
class Category:
    id: int
    name: str


@dataclass(frozen=True)
class Product:
    id: int
    title: str
    description: str
    price: int  # minor currency units
    stock: int
    category: str
    image: str = ""
    status: ProductStatus = ProductStatus.APPROVED


@dataclass(frozen=True)
class CartItem:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class Cart:
    items: List[CartItem] = field(default_factory=list)


@dataclass(frozen=True)
class OrderItem:
    product_id: int
    quantity: int
    price: int  # unit price at time of order


@dataclass(frozen=True)
class OrderData:
    order_id: int
    buyer: Principal
    items: List[OrderItem]
    total: int


@dataclass(frozen=True)
class UserProfile:
    name: str
    email: str
    role: str = UserRole.USER.value


@dataclass(frozen=True)
class ShippingAddress:
    full_name: str
    address_line1: str
    city: str
    address_line2: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""

    def missing_fields(self) -> List[str]:
        required = {
            "full name": self.full_name,
            "address line 1": self.address_line1,
            "city": self.city,
        }
        return [k for k, v in required.items() if not v.strip()]


def find_product(products: List[Product], product_id: int) -> Optional[Product]:
    for p in products:
        if p.id == product_id:
            return p
    return None
