# named reads and writes over the market service, with cache invalidation
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Tuple

from backend.errors import ValidationError
from backend.models import (
    Cart,
    Category,
    OrderData,
    Principal,
    Product,
    UserProfile,
    UserRole,
)
from client.cache import QueryCache, QueryKey
from utils.state import Session

# Which cached reads each write makes stale. A successful write drops every
# entry whose key starts with one of its prefixes.
INVALIDATIONS: Dict[str, Tuple[QueryKey, ...]] = {
    "save_caller_profile": (("profile",), ("all_profiles",)),
    "assign_user_role": (("role",), ("is_admin",), ("profile",), ("all_profiles",)),
    "add_admin_by_principal": (("role",), ("is_admin",), ("profile",), ("all_profiles",)),
    "add_admin_by_email": (("role",), ("is_admin",), ("profile",), ("all_profiles",)),
    "create_category": (("categories",),),
    "update_category": (("categories",), ("category",)),
    "delete_category": (("categories",), ("category",)),
    "create_product": (("products",),),
    "update_product": (("products",), ("product",)),
    "delete_product": (("products",), ("product",), ("cart",)),
    "approve_product": (("products",), ("product",)),
    "reject_product": (("products",), ("product",)),
    "add_to_cart": (("cart",),),
    "update_cart_item": (("cart",),),
    "remove_from_cart": (("cart",),),
    "clear_cart": (("cart",),),
    "checkout": (
        ("cart",),
        ("orders",),
        ("order",),
        ("all_orders",),
        ("products",),
        ("product",),
    ),
}


def _require_positive(quantity: int) -> int:
    if not isinstance(quantity, int) or quantity < 1:
        raise ValidationError(f"Invalid quantity: {quantity!r}", field="quantity")
    return quantity


class MarketQueries:
    """
    Data access layer used by every screen.

    Reads are cached by (entity, identity or id) keys and deduplicated while in
    flight. Writes call the service, then invalidate per INVALIDATIONS; a failed
    write raises and leaves the cache as it was.
    """

    def __init__(self, session: Session, cache: Optional[QueryCache] = None) -> None:
        self.session = session
        self.cache = cache or QueryCache()
        self._cart_lock = asyncio.Lock()

    @property
    def _service(self):
        return self.session.service

    @property
    def _caller(self) -> Principal:
        return self.session.principal

    def _who(self) -> str:
        return self._caller.text

    async def _mutate(self, op: str, call, *args):
        result = await call(self._caller, *args)
        for prefix in INVALIDATIONS[op]:
            self.cache.invalidate(prefix)
        return result

    def reset(self) -> None:
        """Forget everything; used when the identity changes."""
        self.cache.clear()

    # ---------------------------
    # Profile & roles
    # ---------------------------

    async def get_caller_profile(self) -> Optional[UserProfile]:
        if not self.session.is_authenticated:
            return None
        return await self.cache.fetch(
            ("profile", self._who()),
            lambda: self._service.get_caller_user_profile(self._caller),
        )

    async def save_caller_profile(self, name: str, email: str) -> None:
        name, email = (name or "").strip(), (email or "").strip()
        if not name:
            raise ValidationError("Name is required.", field="name")
        if not email or "@" not in email:
            raise ValidationError("A valid email is required.", field="email")
        await self._mutate(
            "save_caller_profile",
            self._service.save_caller_user_profile,
            UserProfile(name=name, email=email, role=UserRole.USER.value),
        )

    async def get_caller_role(self) -> UserRole:
        if not self.session.is_authenticated:
            return UserRole.GUEST
        return await self.cache.fetch(
            ("role", self._who()),
            lambda: self._service.get_caller_user_role(self._caller),
        )

    async def is_caller_admin(self) -> bool:
        if not self.session.is_authenticated:
            return False
        return await self.cache.fetch(
            ("is_admin", self._who()),
            lambda: self._service.is_caller_admin(self._caller),
        )

    async def is_admin(self, principal_text: str) -> bool:
        user = Principal.from_text(principal_text)
        return await self.cache.fetch(
            ("is_admin", user.text), lambda: self._service.is_admin(self._caller, user)
        )

    async def get_user_profile(self, principal_text: str) -> Optional[UserProfile]:
        user = Principal.from_text(principal_text)
        return await self.cache.fetch(
            ("profile", user.text),
            lambda: self._service.get_user_profile(self._caller, user),
        )

    async def get_all_user_profiles(self) -> List[Tuple[Principal, UserProfile]]:
        """Admin only."""
        return await self.cache.fetch(
            ("all_profiles",), lambda: self._service.get_all_user_profiles(self._caller)
        )

    async def assign_user_role(self, principal_text: str, role: UserRole) -> None:
        user = Principal.from_text(principal_text)
        await self._mutate(
            "assign_user_role", self._service.assign_caller_user_role, user, role
        )

    async def add_admin_by_principal(self, principal_text: str) -> None:
        if not (principal_text or "").strip():
            raise ValidationError("Please enter a principal ID.", field="principal")
        new_admin = Principal.from_text(principal_text)
        await self._mutate(
            "add_admin_by_principal", self._service.add_admin_by_principal, new_admin
        )

    async def add_admin_by_email(self, email: str) -> None:
        email = (email or "").strip()
        if not email:
            raise ValidationError("Please enter an email address.", field="email")
        await self._mutate("add_admin_by_email", self._service.add_admin_by_email, email)

    # ---------------------------
    # Categories
    # ---------------------------

    async def get_categories(self) -> List[Category]:
        return await self.cache.fetch(
            ("categories",), lambda: self._service.get_categories(self._caller)
        )

    async def get_category(self, category_id: int) -> Optional[Category]:
        return await self.cache.fetch(
            ("category", category_id),
            lambda: self._service.get_category(self._caller, category_id),
        )

    async def create_category(self, name: str) -> int:
        if not (name or "").strip():
            raise ValidationError("Category name is required.", field="name")
        return await self._mutate(
            "create_category", self._service.create_category, name.strip()
        )

    async def update_category(self, category_id: int, name: str) -> None:
        if not (name or "").strip():
            raise ValidationError("Category name is required.", field="name")
        await self._mutate(
            "update_category", self._service.update_category, category_id, name.strip()
        )

    async def delete_category(self, category_id: int) -> None:
        await self._mutate("delete_category", self._service.delete_category, category_id)

    # ---------------------------
    # Products
    # ---------------------------

    async def get_products(self) -> List[Product]:
        return await self.cache.fetch(
            ("products",), lambda: self._service.get_products(self._caller)
        )

    async def get_product(self, product_id: int) -> Optional[Product]:
        return await self.cache.fetch(
            ("product", product_id),
            lambda: self._service.get_product(self._caller, product_id),
        )

    async def create_product(self, product: Product) -> int:
        return await self._mutate("create_product", self._service.create_product, product)

    async def update_product(self, product_id: int, product: Product) -> None:
        await self._mutate(
            "update_product", self._service.update_product, product_id, product
        )

    async def delete_product(self, product_id: int) -> None:
        await self._mutate("delete_product", self._service.delete_product, product_id)

    async def approve_product(self, product_id: int) -> None:
        await self._mutate("approve_product", self._service.approve_product, product_id)

    async def reject_product(self, product_id: int) -> None:
        await self._mutate("reject_product", self._service.reject_product, product_id)

    # ---------------------------
    # Cart
    # ---------------------------

    async def get_cart(self) -> Optional[Cart]:
        """The caller's cart; None when signed out or empty."""
        if not self.session.is_authenticated:
            return None
        return await self.cache.fetch(
            ("cart", self._who()), lambda: self._service.get_cart(self._caller)
        )

    async def add_to_cart(self, product_id: int, quantity: int = 1) -> None:
        if not self.session.is_authenticated:
            raise ValidationError("Please sign in to add items to cart.")
        await self._mutate(
            "add_to_cart", self._service.add_to_cart, product_id, _require_positive(quantity)
        )

    async def update_cart_item(self, product_id: int, quantity: int) -> None:
        await self._mutate(
            "update_cart_item",
            self._service.update_cart_item,
            product_id,
            _require_positive(quantity),
        )

    async def adjust_cart_item(self, product_id: int, delta: int) -> int:
        """
        Step a cart line by delta, starting from the latest cart rather than
        what a screen last rendered. Adjustments run one at a time, so quick
        repeated presses all count. Returns the new quantity.
        """
        async with self._cart_lock:
            cart = await self.get_cart()
            current = next(
                (i.quantity for i in (cart.items if cart else []) if i.product_id == product_id),
                None,
            )
            if current is None:
                raise ValidationError(
                    f"Item not found in cart: {product_id}", field="product_id"
                )
            quantity = _require_positive(current + delta)
            await self._mutate(
                "update_cart_item", self._service.update_cart_item, product_id, quantity
            )
            return quantity

    async def remove_from_cart(self, product_id: int) -> None:
        await self._mutate("remove_from_cart", self._service.remove_from_cart, product_id)

    async def clear_cart(self) -> None:
        await self._mutate("clear_cart", self._service.clear_cart)

    # ---------------------------
    # Orders
    # ---------------------------

    async def checkout(self) -> int:
        """Place an order from the current cart; returns the new order id."""
        return await self._mutate("checkout", self._service.checkout)

    async def get_order(self, order_id: int) -> Optional[OrderData]:
        if not self.session.is_authenticated:
            return None
        return await self.cache.fetch(
            ("order", order_id), lambda: self._service.get_order(self._caller, order_id)
        )

    async def get_orders(self) -> List[OrderData]:
        if not self.session.is_authenticated:
            return []
        return await self.cache.fetch(
            ("orders", self._who()), lambda: self._service.get_orders(self._caller)
        )

    async def get_all_orders(self) -> List[OrderData]:
        return await self.cache.fetch(
            ("all_orders",), lambda: self._service.get_all_orders(self._caller)
        )
