import asyncio
import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from backend.errors import BackendError, ValidationError  # noqa: E402
from backend.models import (  # noqa: E402
    Cart,
    CartItem,
    Category,
    Identity,
    Principal,
    Product,
    UserProfile,
    UserRole,
)
from client.queries import INVALIDATIONS, MarketQueries  # noqa: E402
from utils.state import Session  # noqa: E402


class FakeService:
    """In-memory stand-in that records every call."""

    def __init__(self):
        self.calls = []
        self.carts = {}
        self.roles = {}
        self.fail_next = None
        self.products = [
            Product(1, "Wireless Mouse", "mouse", 1999, 40, "Electronics"),
            Product(2, "USB-C Cable", "cable", 999, 5, "Electronics"),
        ]

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_next:
            exc, self.fail_next = self.fail_next, None
            raise exc

    async def get_products(self, caller):
        self._record("get_products", caller)
        return list(self.products)

    async def get_categories(self, caller):
        self._record("get_categories", caller)
        return [Category(1, "Electronics")]

    async def create_category(self, caller, name):
        self._record("create_category", caller, name)
        return 2

    async def approve_product(self, caller, product_id):
        self._record("approve_product", caller, product_id)

    async def get_cart(self, caller):
        self._record("get_cart", caller)
        items = self.carts.get(caller.text)
        return Cart(items=list(items)) if items else None

    async def add_to_cart(self, caller, product_id, quantity):
        self._record("add_to_cart", caller, product_id, quantity)
        self.carts.setdefault(caller.text, []).append(CartItem(product_id, quantity))

    async def update_cart_item(self, caller, product_id, quantity):
        self._record("update_cart_item", caller, product_id, quantity)
        # let other tasks run, as a remote call would
        await asyncio.sleep(0)
        self.carts[caller.text] = [
            CartItem(i.product_id, quantity) if i.product_id == product_id else i
            for i in self.carts.get(caller.text, [])
        ]

    async def checkout(self, caller):
        self._record("checkout", caller)
        self.carts.pop(caller.text, None)
        return 7

    async def get_orders(self, caller):
        self._record("get_orders", caller)
        return []

    async def get_caller_user_role(self, caller):
        self._record("get_caller_user_role", caller)
        return self.roles.get(caller.text, UserRole.USER)

    async def get_caller_user_profile(self, caller):
        self._record("get_caller_user_profile", caller)
        return None

    async def save_caller_user_profile(self, caller, profile):
        self._record("save_caller_user_profile", caller, profile)

    async def add_admin_by_principal(self, caller, new_admin):
        self._record("add_admin_by_principal", caller, new_admin)
        self.roles[new_admin.text] = UserRole.ADMIN

    async def add_admin_by_email(self, caller, email):
        self._record("add_admin_by_email", caller, email)

    async def get_all_user_profiles(self, caller):
        self._record("get_all_user_profiles", caller)
        return [(Principal("bob"), UserProfile("Bob", "bob@example.com"))]


class MarketQueriesTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.service = FakeService()
        self.session = Session(self.service)
        self.session.restore(Identity(Principal("alice")))
        self.queries = MarketQueries(self.session)

    def count(self, name):
        return sum(1 for c in self.service.calls if c[0] == name)

    async def test_reads_are_cached(self):
        await self.queries.get_products()
        await self.queries.get_products()
        self.assertEqual(self.count("get_products"), 1)

    async def test_cart_read_after_add_reflects_mutation(self):
        self.assertIsNone(await self.queries.get_cart())
        await self.queries.add_to_cart(1, 2)
        cart = await self.queries.get_cart()
        self.assertEqual(cart.items, [CartItem(1, 2)])
        self.assertEqual(self.count("get_cart"), 2)

    async def test_quick_quantity_steps_all_count(self):
        await self.queries.add_to_cart(1, 1)
        await self.queries.get_cart()
        results = await asyncio.gather(
            self.queries.adjust_cart_item(1, 1),
            self.queries.adjust_cart_item(1, 1),
        )
        self.assertEqual(sorted(results), [2, 3])
        cart = await self.queries.get_cart()
        self.assertEqual(cart.items, [CartItem(1, 3)])

    async def test_quantity_step_bounds(self):
        await self.queries.add_to_cart(1, 1)
        with self.assertRaises(ValidationError):
            await self.queries.adjust_cart_item(1, -1)
        with self.assertRaises(ValidationError) as ctx:
            await self.queries.adjust_cart_item(2, 1)
        self.assertEqual(ctx.exception.field, "product_id")
        self.assertEqual(self.count("update_cart_item"), 0)

    async def test_failed_write_leaves_cache(self):
        await self.queries.get_cart()
        self.service.fail_next = BackendError("Insufficient stock for product 2")
        with self.assertRaises(BackendError):
            await self.queries.add_to_cart(2, 99)
        self.assertIn(("cart", "alice"), self.queries.cache)
        await self.queries.get_cart()
        self.assertEqual(self.count("get_cart"), 1)

    async def test_checkout_invalidates_cart_orders_and_products(self):
        await self.queries.get_cart()
        await self.queries.get_orders()
        await self.queries.get_products()
        await self.queries.get_categories()

        self.assertEqual(await self.queries.checkout(), 7)

        cache = self.queries.cache
        self.assertNotIn(("cart", "alice"), cache)
        self.assertNotIn(("orders", "alice"), cache)
        self.assertNotIn(("products",), cache)
        # unrelated reads survive
        self.assertIn(("categories",), cache)

    async def test_approve_product_refreshes_listing(self):
        await self.queries.get_products()
        await self.queries.approve_product(1)
        await self.queries.get_products()
        self.assertEqual(self.count("get_products"), 2)

    async def test_grant_admin_refreshes_role(self):
        self.assertIs(await self.queries.get_caller_role(), UserRole.USER)
        await self.queries.add_admin_by_principal("alice")
        self.assertIs(await self.queries.get_caller_role(), UserRole.ADMIN)

    async def test_email_grant_refreshes_user_list(self):
        await self.queries.get_all_user_profiles()
        await self.queries.add_admin_by_email("bob@example.com")
        await self.queries.get_all_user_profiles()
        self.assertEqual(self.count("get_all_user_profiles"), 2)

    async def test_calls_are_made_as_session_principal(self):
        await self.queries.create_category("  Books ")
        self.assertEqual(
            self.service.calls[-1], ("create_category", Principal("alice"), "Books")
        )

    async def test_client_side_validation_skips_service(self):
        with self.assertRaises(ValidationError):
            await self.queries.add_to_cart(1, 0)
        with self.assertRaises(ValidationError):
            await self.queries.update_cart_item(1, -3)
        with self.assertRaises(ValidationError):
            await self.queries.create_category("   ")
        with self.assertRaises(ValidationError):
            await self.queries.add_admin_by_principal("")
        with self.assertRaises(ValidationError):
            await self.queries.add_admin_by_principal("Not A Principal!")
        with self.assertRaises(ValidationError):
            await self.queries.add_admin_by_email("  ")
        with self.assertRaises(ValidationError) as ctx:
            await self.queries.save_caller_profile("Alice", "not-an-email")
        self.assertEqual(ctx.exception.field, "email")
        self.assertEqual(self.service.calls, [])

    async def test_save_profile(self):
        await self.queries.save_caller_profile(" Alice ", "alice@example.com")
        name, caller, profile = self.service.calls[-1]
        self.assertEqual(name, "save_caller_user_profile")
        self.assertEqual(profile, UserProfile("Alice", "alice@example.com", "user"))

    async def test_signed_out(self):
        self.session.sign_out()
        self.queries.reset()
        self.assertIs(await self.queries.get_caller_role(), UserRole.GUEST)
        self.assertIsNone(await self.queries.get_cart())
        self.assertEqual(await self.queries.get_orders(), [])
        self.assertIsNone(await self.queries.get_caller_profile())
        with self.assertRaises(ValidationError):
            await self.queries.add_to_cart(1, 1)
        self.assertEqual(self.service.calls, [])

    async def test_identity_change_does_not_leak_cart(self):
        await self.queries.add_to_cart(1, 1)
        self.assertIsNotNone(await self.queries.get_cart())

        self.session.sign_out()
        self.session.sign_in("bob")
        self.queries.reset()
        self.assertIsNone(await self.queries.get_cart())

    def test_every_write_has_an_invalidation_entry(self):
        writes = [
            "save_caller_profile",
            "assign_user_role",
            "add_admin_by_principal",
            "add_admin_by_email",
            "create_category",
            "update_category",
            "delete_category",
            "create_product",
            "update_product",
            "delete_product",
            "approve_product",
            "reject_product",
            "add_to_cart",
            "update_cart_item",
            "remove_from_cart",
            "clear_cart",
            "checkout",
        ]
        self.assertEqual(sorted(INVALIDATIONS), sorted(writes))
        for op in writes:
            self.assertTrue(hasattr(MarketQueries, op), op)


if __name__ == "__main__":
    unittest.main()
