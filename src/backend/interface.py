# the remote service boundary, as seen by the client

from __future__ import annotations

from typing import List, Optional, Protocol, Tuple

from backend.models import (
    Cart,
    Category,
    OrderData,
    Principal,
    Product,
    UserProfile,
    UserRole,
)


class MarketService(Protocol):
    """
    Every backend capability the client may call.

    All methods are async, take the calling principal first and raise
    BackendError on failure. Authorization is enforced here, never client-side.
    """

    # products
    async def get_products(self, caller: Principal) -> List[Product]: ...

    async def get_product(self, caller: Principal, product_id: int) -> Optional[Product]: ...

    async def create_product(self, caller: Principal, product: Product) -> int: ...

    async def update_product(
        self, caller: Principal, product_id: int, product: Product
    ) -> None: ...

    async def delete_product(self, caller: Principal, product_id: int) -> None: ...

    async def approve_product(self, caller: Principal, product_id: int) -> None: ...

    async def reject_product(self, caller: Principal, product_id: int) -> None: ...

    # categories
    async def get_categories(self, caller: Principal) -> List[Category]: ...

    async def get_category(
        self, caller: Principal, category_id: int
    ) -> Optional[Category]: ...

    async def create_category(self, caller: Principal, name: str) -> int: ...

    async def update_category(
        self, caller: Principal, category_id: int, name: str
    ) -> None: ...

    async def delete_category(self, caller: Principal, category_id: int) -> None: ...

    # cart
    async def get_cart(self, caller: Principal) -> Optional[Cart]: ...

    async def add_to_cart(
        self, caller: Principal, product_id: int, quantity: int
    ) -> None: ...

    async def update_cart_item(
        self, caller: Principal, product_id: int, quantity: int
    ) -> None: ...

    async def remove_from_cart(self, caller: Principal, product_id: int) -> None: ...

    async def clear_cart(self, caller: Principal) -> None: ...

    # orders
    async def checkout(self, caller: Principal) -> int: ...

    async def get_order(self, caller: Principal, order_id: int) -> Optional[OrderData]: ...

    async def get_orders(self, caller: Principal) -> List[OrderData]: ...

    async def get_all_orders(self, caller: Principal) -> List[OrderData]: ...

    # identity and roles
    async def get_caller_user_role(self, caller: Principal) -> UserRole: ...

    async def get_caller_user_profile(self, caller: Principal) -> Optional[UserProfile]: ...

    async def save_caller_user_profile(
        self, caller: Principal, profile: UserProfile
    ) -> None: ...

    async def get_user_profile(
        self, caller: Principal, user: Principal
    ) -> Optional[UserProfile]: ...

    async def get_all_user_profiles(
        self, caller: Principal
    ) -> List[Tuple[Principal, UserProfile]]: ...

    async def is_caller_admin(self, caller: Principal) -> bool: ...

    async def is_admin(self, caller: Principal, user: Optional[Principal]) -> bool: ...

    async def assign_caller_user_role(
        self, caller: Principal, user: Principal, role: UserRole
    ) -> None: ...

    async def add_admin_by_principal(
        self, caller: Principal, new_admin: Principal
    ) -> None: ...

    async def add_admin_by_email(self, caller: Principal, email: str) -> None: ...
