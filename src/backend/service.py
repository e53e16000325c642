# src/backend/service.py
"""
Local implementation of the market service on top of aiosqlite.

Stands in for the remote backend when the client runs standalone, and in the
test-suite. Every rule the client relies on (admin gating, caller-scoped cart
and orders, atomic checkout) is enforced here and reported as BackendError with
the same wording the remote service uses.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

import aiosqlite

from backend.database import connect
from backend.errors import BackendError
from backend.models import (
    Cart,
    CartItem,
    Category,
    OrderData,
    OrderItem,
    Principal,
    Product,
    ProductStatus,
    UserProfile,
    UserRole,
)
from utils.logger import get_logger

_logger = get_logger(__name__)

_PRODUCT_COLUMNS = "id, title, description, price, stock, category, image, status"


def _row_to_product(row) -> Product:
    return Product(
        id=int(row[0]),
        title=row[1],
        description=row[2],
        price=int(row[3]),
        stock=int(row[4]),
        category=row[5],
        image=row[6],
        status=ProductStatus(row[7]),
    )


def _validate_product(product: Product) -> None:
    if not product.title.strip():
        raise BackendError("Invalid product: title is required")
    if product.price < 0:
        raise BackendError("Invalid product: price cannot be negative")
    if product.stock < 0:
        raise BackendError("Invalid product: stock cannot be negative")


class LocalMarketService:
    """
    aiosqlite-backed MarketService.

    owner_emails: profile emails allowed to claim admin access for themselves
    even when an admin already exists (see DESIGN.md, owner bootstrap).
    """

    def __init__(self, owner_emails: Iterable[str] = ()) -> None:
        self.owner_emails = frozenset(e.strip().lower() for e in owner_emails if e)

    # ---------------------------
    # Authorization helpers
    # ---------------------------

    async def _role_of(
        self, conn: aiosqlite.Connection, principal: Principal
    ) -> UserRole:
        if principal.is_anonymous:
            return UserRole.GUEST
        cur = await conn.execute(
            "SELECT role FROM roles WHERE principal = ?;", (principal.text,)
        )
        row = await cur.fetchone()
        await cur.close()
        return UserRole(row[0]) if row else UserRole.USER

    async def _admin_exists(self, conn: aiosqlite.Connection) -> bool:
        cur = await conn.execute("SELECT 1 FROM roles WHERE role = 'admin' LIMIT 1;")
        row = await cur.fetchone()
        await cur.close()
        return row is not None

    async def _require_admin(
        self, conn: aiosqlite.Connection, caller: Principal, action: str
    ) -> None:
        if await self._role_of(conn, caller) != UserRole.ADMIN:
            raise BackendError(f"Unauthorized: Only admins can {action}")

    @staticmethod
    def _require_user(caller: Principal, action: str) -> None:
        if caller.is_anonymous:
            raise BackendError(f"Unauthorized: Only users can {action}")

    @staticmethod
    async def _begin_write(conn: aiosqlite.Connection) -> None:
        # hold the write lock from the first read, so concurrent writers queue up
        await conn.execute("BEGIN IMMEDIATE;")

    async def _set_role(
        self, conn: aiosqlite.Connection, principal: Principal, role: UserRole
    ) -> None:
        await conn.execute(
            "INSERT INTO roles(principal, role) VALUES (?, ?) "
            "ON CONFLICT(principal) DO UPDATE SET role = excluded.role;",
            (principal.text, role.value),
        )
        await conn.execute(
            "UPDATE profiles SET role = ? WHERE principal = ?;",
            (role.value, principal.text),
        )

    # ---------------------------
    # Products
    # ---------------------------

    async def get_products(self, caller: Principal) -> List[Product]:
        """All products regardless of status; listings filter client-side."""
        async with connect() as conn:
            cur = await conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products ORDER BY id;"
            )
            rows = await cur.fetchall()
            await cur.close()
        return [_row_to_product(row) for row in rows]

    async def get_product(self, caller: Principal, product_id: int) -> Optional[Product]:
        async with connect() as conn:
            cur = await conn.execute(
                f"SELECT {_PRODUCT_COLUMNS} FROM products WHERE id = ?;", (product_id,)
            )
            row = await cur.fetchone()
            await cur.close()
        return _row_to_product(row) if row else None

    async def create_product(self, caller: Principal, product: Product) -> int:
        async with connect() as conn:
            await self._require_admin(conn, caller, "create products")
            _validate_product(product)
            cur = await conn.execute(
                "INSERT INTO products(title, description, price, stock, category, image, status) "
                "VALUES (?, ?, ?, ?, ?, ?, ?);",
                (
                    product.title.strip(),
                    product.description,
                    product.price,
                    product.stock,
                    product.category,
                    product.image,
                    ProductStatus(product.status).value,
                ),
            )
            new_id = cur.lastrowid
            await cur.close()
            await conn.commit()
        _logger.info(f"Product {new_id} created by {caller}")
        return int(new_id)

    async def update_product(
        self, caller: Principal, product_id: int, product: Product
    ) -> None:
        async with connect() as conn:
            await self._require_admin(conn, caller, "update products")
            _validate_product(product)
            res = await conn.execute(
                "UPDATE products SET title = ?, description = ?, price = ?, stock = ?, "
                "category = ?, image = ?, status = ? WHERE id = ?;",
                (
                    product.title.strip(),
                    product.description,
                    product.price,
                    product.stock,
                    product.category,
                    product.image,
                    ProductStatus(product.status).value,
                    product_id,
                ),
            )
            if res.rowcount == 0:
                raise BackendError(f"Product not found: {product_id}")
            await conn.commit()

    async def delete_product(self, caller: Principal, product_id: int) -> None:
        async with connect() as conn:
            await self._require_admin(conn, caller, "delete products")
            res = await conn.execute("DELETE FROM products WHERE id = ?;", (product_id,))
            if res.rowcount == 0:
                raise BackendError(f"Product not found: {product_id}")
            await conn.execute("DELETE FROM cart WHERE product_id = ?;", (product_id,))
            await conn.commit()
        _logger.info(f"Product {product_id} deleted by {caller}")

    async def _set_status(
        self, caller: Principal, product_id: int, status: ProductStatus, action: str
    ) -> None:
        async with connect() as conn:
            await self._require_admin(conn, caller, action)
            res = await conn.execute(
                "UPDATE products SET status = ? WHERE id = ?;", (status.value, product_id)
            )
            if res.rowcount == 0:
                raise BackendError(f"Product not found: {product_id}")
            await conn.commit()

    async def approve_product(self, caller: Principal, product_id: int) -> None:
        await self._set_status(caller, product_id, ProductStatus.APPROVED, "approve products")

    async def reject_product(self, caller: Principal, product_id: int) -> None:
        await self._set_status(caller, product_id, ProductStatus.REJECTED, "reject products")

    # ---------------------------
    # Categories
    # ---------------------------

    async def get_categories(self, caller: Principal) -> List[Category]:
        async with connect() as conn:
            cur = await conn.execute("SELECT id, name FROM categories ORDER BY id;")
            rows = await cur.fetchall()
            await cur.close()
        return [Category(id=int(row[0]), name=row[1]) for row in rows]

    async def get_category(self, caller: Principal, category_id: int) -> Optional[Category]:
        async with connect() as conn:
            cur = await conn.execute(
                "SELECT id, name FROM categories WHERE id = ?;", (category_id,)
            )
            row = await cur.fetchone()
            await cur.close()
        return Category(id=int(row[0]), name=row[1]) if row else None

    async def _category_name_taken(
        self, conn: aiosqlite.Connection, name: str, exclude_id: Optional[int] = None
    ) -> bool:
        cur = await conn.execute(
            "SELECT id FROM categories WHERE LOWER(name) = LOWER(?);", (name,)
        )
        rows = await cur.fetchall()
        await cur.close()
        return any(int(r[0]) != exclude_id for r in rows)

    async def create_category(self, caller: Principal, name: str) -> int:
        name = (name or "").strip()
        async with connect() as conn:
            await self._require_admin(conn, caller, "create categories")
            if not name:
                raise BackendError("Invalid category: name is required")
            await self._begin_write(conn)
            if await self._category_name_taken(conn, name):
                raise BackendError(f"Category already exists: {name}")
            try:
                cur = await conn.execute("INSERT INTO categories(name) VALUES (?);", (name,))
            except aiosqlite.IntegrityError as exc:
                raise BackendError(f"Category already exists: {name}") from exc
            new_id = cur.lastrowid
            await cur.close()
            await conn.commit()
        return int(new_id)

    async def update_category(self, caller: Principal, category_id: int, name: str) -> None:
        name = (name or "").strip()
        async with connect() as conn:
            await self._require_admin(conn, caller, "update categories")
            if not name:
                raise BackendError("Invalid category: name is required")
            await self._begin_write(conn)
            if await self._category_name_taken(conn, name, exclude_id=category_id):
                raise BackendError(f"Category already exists: {name}")
            try:
                res = await conn.execute(
                    "UPDATE categories SET name = ? WHERE id = ?;", (name, category_id)
                )
            except aiosqlite.IntegrityError as exc:
                raise BackendError(f"Category already exists: {name}") from exc
            if res.rowcount == 0:
                raise BackendError(f"Category not found: {category_id}")
            await conn.commit()

    async def delete_category(self, caller: Principal, category_id: int) -> None:
        async with connect() as conn:
            await self._require_admin(conn, caller, "delete categories")
            res = await conn.execute("DELETE FROM categories WHERE id = ?;", (category_id,))
            if res.rowcount == 0:
                raise BackendError(f"Category not found: {category_id}")
            await conn.commit()

    # ---------------------------
    # Cart Management
    # ---------------------------

    async def get_cart(self, caller: Principal) -> Optional[Cart]:
        """Return the caller's cart in insertion order, or None when empty."""
        if caller.is_anonymous:
            return None
        async with connect() as conn:
            cur = await conn.execute(
                "SELECT product_id, quantity FROM cart WHERE principal = ? ORDER BY position;",
                (caller.text,),
            )
            rows = await cur.fetchall()
            await cur.close()
        if not rows:
            return None
        return Cart(items=[CartItem(product_id=int(r[0]), quantity=int(r[1])) for r in rows])

    async def _product_stock(
        self, conn: aiosqlite.Connection, product_id: int
    ) -> Optional[int]:
        cur = await conn.execute("SELECT stock FROM products WHERE id = ?;", (product_id,))
        row = await cur.fetchone()
        await cur.close()
        return int(row[0]) if row else None

    async def _cart_qty(
        self, conn: aiosqlite.Connection, caller: Principal, product_id: int
    ) -> Optional[int]:
        cur = await conn.execute(
            "SELECT quantity FROM cart WHERE principal = ? AND product_id = ?;",
            (caller.text, product_id),
        )
        row = await cur.fetchone()
        await cur.close()
        return int(row[0]) if row else None

    async def add_to_cart(self, caller: Principal, product_id: int, quantity: int) -> None:
        """Add quantity of a product; increments the line if already present."""
        self._require_user(caller, "manage a cart")
        if quantity < 1:
            raise BackendError("Invalid quantity: must be at least 1")
        async with connect() as conn:
            stock = await self._product_stock(conn, product_id)
            if stock is None:
                raise BackendError(f"Product not found: {product_id}")
            existing = await self._cart_qty(conn, caller, product_id)
            new_qty = (existing or 0) + quantity
            if new_qty > stock:
                raise BackendError(f"Insufficient stock for product {product_id}")
            if existing is None:
                await conn.execute(
                    "INSERT INTO cart(principal, position, product_id, quantity) "
                    "VALUES (?, (SELECT COALESCE(MAX(position), 0) + 1 FROM cart WHERE principal = ?), ?, ?);",
                    (caller.text, caller.text, product_id, new_qty),
                )
            else:
                await conn.execute(
                    "UPDATE cart SET quantity = ? WHERE principal = ? AND product_id = ?;",
                    (new_qty, caller.text, product_id),
                )
            await conn.commit()

    async def update_cart_item(
        self, caller: Principal, product_id: int, quantity: int
    ) -> None:
        """Set the quantity of an existing cart line."""
        self._require_user(caller, "manage a cart")
        if quantity < 1:
            raise BackendError("Invalid quantity: must be at least 1")
        async with connect() as conn:
            stock = await self._product_stock(conn, product_id)
            if stock is None:
                raise BackendError(f"Product not found: {product_id}")
            if quantity > stock:
                raise BackendError(f"Insufficient stock for product {product_id}")
            res = await conn.execute(
                "UPDATE cart SET quantity = ? WHERE principal = ? AND product_id = ?;",
                (quantity, caller.text, product_id),
            )
            if res.rowcount == 0:
                raise BackendError(f"Item not found in cart: {product_id}")
            await conn.commit()

    async def remove_from_cart(self, caller: Principal, product_id: int) -> None:
        self._require_user(caller, "manage a cart")
        async with connect() as conn:
            await conn.execute(
                "DELETE FROM cart WHERE principal = ? AND product_id = ?;",
                (caller.text, product_id),
            )
            await conn.commit()

    async def clear_cart(self, caller: Principal) -> None:
        self._require_user(caller, "manage a cart")
        async with connect() as conn:
            await conn.execute("DELETE FROM cart WHERE principal = ?;", (caller.text,))
            await conn.commit()

    # ---------------------------
    # Checkout & Orders
    # ---------------------------

    async def checkout(self, caller: Principal) -> int:
        """
        Convert the caller's cart into an order and return the new order id.

        All lines are validated before anything is written; the order, its
        items, the stock decrements and the cart removal commit together.
        """
        self._require_user(caller, "checkout")
        async with connect() as conn:
            await self._begin_write(conn)
            cur = await conn.execute(
                "SELECT c.product_id, c.quantity, p.price, p.stock, p.title "
                "FROM cart c LEFT JOIN products p ON p.id = c.product_id "
                "WHERE c.principal = ? ORDER BY c.position;",
                (caller.text,),
            )
            rows = await cur.fetchall()
            await cur.close()
            if not rows:
                raise BackendError("Cart is empty")

            items: List[OrderItem] = []
            for pid, qty, price, stock, title in rows:
                if price is None:
                    raise BackendError(f"Product not found: {pid}")
                if int(qty) > int(stock):
                    raise BackendError(f"Insufficient stock for {title}")
                items.append(OrderItem(product_id=int(pid), quantity=int(qty), price=int(price)))
            total = sum(i.price * i.quantity for i in items)
            titles = {int(r[0]): r[4] for r in rows}

            cur = await conn.execute(
                "INSERT INTO orders(buyer, total) VALUES (?, ?);", (caller.text, total)
            )
            order_id = int(cur.lastrowid)
            await cur.close()
            for line_no, item in enumerate(items, start=1):
                await conn.execute(
                    "INSERT INTO orderitems(order_id, line_no, product_id, quantity, price) "
                    "VALUES (?, ?, ?, ?, ?);",
                    (order_id, line_no, item.product_id, item.quantity, item.price),
                )
                # closing the connection without commit rolls the order back
                try:
                    res = await conn.execute(
                        "UPDATE products SET stock = stock - ? WHERE id = ? AND stock >= ?;",
                        (item.quantity, item.product_id, item.quantity),
                    )
                except aiosqlite.IntegrityError as exc:
                    raise BackendError(
                        f"Insufficient stock for {titles[item.product_id]}"
                    ) from exc
                if res.rowcount == 0:
                    raise BackendError(f"Insufficient stock for {titles[item.product_id]}")
            await conn.execute("DELETE FROM cart WHERE principal = ?;", (caller.text,))
            await conn.commit()

        _logger.info(f"Order {order_id} placed by {caller} ({len(items)} lines, total {total})")
        return order_id

    async def _load_orders(
        self, conn: aiosqlite.Connection, where: str = "", params: Tuple = ()
    ) -> List[OrderData]:
        cur = await conn.execute(
            f"SELECT id, buyer, total FROM orders {where} ORDER BY id DESC;", params
        )
        order_rows = await cur.fetchall()
        await cur.close()
        orders = []
        for order_row in order_rows:
            cur = await conn.execute(
                "SELECT product_id, quantity, price FROM orderitems "
                "WHERE order_id = ? ORDER BY line_no;",
                (order_row[0],),
            )
            item_rows = await cur.fetchall()
            await cur.close()
            orders.append(
                OrderData(
                    order_id=int(order_row[0]),
                    buyer=Principal(order_row[1]),
                    items=[
                        OrderItem(product_id=int(r[0]), quantity=int(r[1]), price=int(r[2]))
                        for r in item_rows
                    ],
                    total=int(order_row[2]),
                )
            )
        return orders

    async def get_order(self, caller: Principal, order_id: int) -> Optional[OrderData]:
        async with connect() as conn:
            orders = await self._load_orders(conn, "WHERE id = ?", (order_id,))
            if not orders:
                return None
            order = orders[0]
            if order.buyer != caller and await self._role_of(conn, caller) != UserRole.ADMIN:
                raise BackendError("Unauthorized: Can only view your own orders")
        return order

    async def get_orders(self, caller: Principal) -> List[OrderData]:
        """The caller's orders, newest first."""
        if caller.is_anonymous:
            return []
        async with connect() as conn:
            return await self._load_orders(conn, "WHERE buyer = ?", (caller.text,))

    async def get_all_orders(self, caller: Principal) -> List[OrderData]:
        async with connect() as conn:
            await self._require_admin(conn, caller, "view all orders")
            return await self._load_orders(conn)

    # ---------------------------
    # Profiles & Roles
    # ---------------------------

    async def get_caller_user_role(self, caller: Principal) -> UserRole:
        async with connect() as conn:
            return await self._role_of(conn, caller)

    async def _profile_of(
        self, conn: aiosqlite.Connection, principal: Principal
    ) -> Optional[UserProfile]:
        cur = await conn.execute(
            "SELECT name, email, role FROM profiles WHERE principal = ?;", (principal.text,)
        )
        row = await cur.fetchone()
        await cur.close()
        return UserProfile(name=row[0], email=row[1], role=row[2]) if row else None

    async def get_caller_user_profile(self, caller: Principal) -> Optional[UserProfile]:
        if caller.is_anonymous:
            return None
        async with connect() as conn:
            return await self._profile_of(conn, caller)

    async def save_caller_user_profile(self, caller: Principal, profile: UserProfile) -> None:
        self._require_user(caller, "save a profile")
        name, email = profile.name.strip(), profile.email.strip()
        if not name or not email:
            raise BackendError("Invalid profile: name and email are required")
        async with connect() as conn:
            role = await self._role_of(conn, caller)
            await conn.execute(
                "INSERT INTO profiles(principal, name, email, role) VALUES (?, ?, ?, ?) "
                "ON CONFLICT(principal) DO UPDATE SET name = excluded.name, "
                "email = excluded.email, role = excluded.role;",
                (caller.text, name, email, role.value),
            )
            await conn.commit()

    async def get_user_profile(
        self, caller: Principal, user: Principal
    ) -> Optional[UserProfile]:
        async with connect() as conn:
            if caller != user:
                await self._require_admin(conn, caller, "view other profiles")
            return await self._profile_of(conn, user)

    async def get_all_user_profiles(
        self, caller: Principal
    ) -> List[Tuple[Principal, UserProfile]]:
        async with connect() as conn:
            await self._require_admin(conn, caller, "list user profiles")
            cur = await conn.execute(
                "SELECT principal, name, email, role FROM profiles ORDER BY principal;"
            )
            rows = await cur.fetchall()
            await cur.close()
        return [
            (Principal(r[0]), UserProfile(name=r[1], email=r[2], role=r[3])) for r in rows
        ]

    async def is_caller_admin(self, caller: Principal) -> bool:
        return await self.get_caller_user_role(caller) == UserRole.ADMIN

    async def is_admin(self, caller: Principal, user: Optional[Principal]) -> bool:
        return await self.get_caller_user_role(user or caller) == UserRole.ADMIN

    async def assign_caller_user_role(
        self, caller: Principal, user: Principal, role: UserRole
    ) -> None:
        async with connect() as conn:
            await self._require_admin(conn, caller, "assign roles")
            await self._set_role(conn, user, UserRole(role))
            await conn.commit()
        _logger.info(f"Role {UserRole(role).value} assigned to {user} by {caller}")

    async def add_admin_by_principal(self, caller: Principal, new_admin: Principal) -> None:
        """Grant admin. Requires an admin caller unless no admin exists yet."""
        self._require_user(caller, "assign admin privileges")
        if new_admin.is_anonymous:
            raise BackendError("Invalid principal: anonymous cannot be an admin")
        async with connect() as conn:
            bootstrap = not await self._admin_exists(conn)
            if not bootstrap:
                await self._require_admin(conn, caller, "assign admin privileges")
            await self._set_role(conn, new_admin, UserRole.ADMIN)
            await conn.commit()
        if bootstrap:
            _logger.warning(f"First admin bootstrapped: {new_admin} (by {caller})")
        else:
            _logger.info(f"Admin granted to {new_admin} by {caller}")

    async def add_admin_by_email(self, caller: Principal, email: str) -> None:
        """
        Grant admin to the principal whose profile carries `email`.

        Allowed for admins, for anyone while no admin exists, and for a caller
        claiming admin for their own profile email when that email is in the
        configured owner allowlist.
        """
        self._require_user(caller, "assign admin privileges")
        email = (email or "").strip().lower()
        if not email:
            raise BackendError("Invalid email: email is required")
        async with connect() as conn:
            is_admin = await self._role_of(conn, caller) == UserRole.ADMIN
            bootstrap = not await self._admin_exists(conn)
            own = await self._profile_of(conn, caller)
            owner_claim = (
                own is not None
                and own.email.strip().lower() == email
                and email in self.owner_emails
            )
            if not (is_admin or bootstrap or owner_claim):
                raise BackendError("Unauthorized: Only admins can assign admin privileges")

            cur = await conn.execute(
                "SELECT principal FROM profiles WHERE LOWER(email) = ? ORDER BY principal LIMIT 1;",
                (email,),
            )
            row = await cur.fetchone()
            await cur.close()
            if not row:
                raise BackendError(f"No user profile found for email {email}")
            target = Principal(row[0])
            await self._set_role(conn, target, UserRole.ADMIN)
            await conn.commit()

        if owner_claim and not (is_admin or bootstrap):
            _logger.warning(f"Admin claimed through owner allowlist: {email} ({target})")
        elif bootstrap:
            _logger.warning(f"First admin bootstrapped by email: {email} ({target})")
        else:
            _logger.info(f"Admin granted to {email} ({target}) by {caller}")
