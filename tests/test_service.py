import asyncio
import os
import sys
import tempfile
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from backend import database as db_database  # noqa: E402
from backend.errors import BackendError  # noqa: E402
from backend.models import (  # noqa: E402
    CartItem,
    Principal,
    Product,
    ProductStatus,
    UserProfile,
    UserRole,
)
from backend.service import LocalMarketService  # noqa: E402

ANON = Principal.anonymous()
ALICE = Principal("alice")
BOB = Principal("bob")
OWNER = Principal("owner")

# seeded ids, see backend/seed.sql
MOUSE, KEYBOARD, CABLE, SPEAKER = 1, 2, 3, 4


class ServiceTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False
        db_database._init_lock = asyncio.Lock()
        self.svc = LocalMarketService(owner_emails=["owner@example.com"])

    async def asyncSetUp(self):
        # Touch initialization by opening a connection
        async with db_database.connect() as conn:
            cur = await conn.execute("SELECT name FROM sqlite_master WHERE type='table';")
            await cur.fetchall()
            await cur.close()

    def tearDown(self):
        self.temp_dir.cleanup()

    async def make_admin(self, principal=ALICE):
        # no admin in the seed data, so the first grant bootstraps
        await self.svc.add_admin_by_principal(principal, principal)

    # ---------- Products ----------

    async def test_seeded_catalog(self):
        products = await self.svc.get_products(ANON)
        self.assertEqual(len(products), 8)
        statuses = {p.status for p in products}
        self.assertIn(ProductStatus.PENDING, statuses)
        mouse = await self.svc.get_product(ANON, MOUSE)
        self.assertEqual((mouse.title, mouse.price, mouse.stock), ("Wireless Mouse", 1999, 40))
        self.assertIsNone(await self.svc.get_product(ANON, 999))

    async def test_product_writes_require_admin(self):
        lamp = Product(0, "Desk Lamp", "LED", 2499, 3, "Home & Kitchen")
        with self.assertRaisesRegex(BackendError, "Unauthorized: Only admins can create products"):
            await self.svc.create_product(BOB, lamp)
        with self.assertRaisesRegex(BackendError, "Unauthorized"):
            await self.svc.approve_product(BOB, 7)
        with self.assertRaisesRegex(BackendError, "Unauthorized"):
            await self.svc.delete_product(ANON, MOUSE)

    async def test_product_lifecycle(self):
        await self.make_admin()
        lamp = Product(0, "Desk Lamp", "LED", 2499, 3, "Home & Kitchen", status=ProductStatus.PENDING)
        pid = await self.svc.create_product(ALICE, lamp)
        self.assertEqual((await self.svc.get_product(ANON, pid)).status, ProductStatus.PENDING)

        await self.svc.approve_product(ALICE, pid)
        self.assertEqual((await self.svc.get_product(ANON, pid)).status, ProductStatus.APPROVED)
        await self.svc.reject_product(ALICE, pid)
        self.assertEqual((await self.svc.get_product(ANON, pid)).status, ProductStatus.REJECTED)

        await self.svc.update_product(ALICE, pid, Product(pid, "Desk Lamp XL", "LED", 2999, 4, "Home & Kitchen"))
        updated = await self.svc.get_product(ANON, pid)
        self.assertEqual((updated.title, updated.price, updated.stock), ("Desk Lamp XL", 2999, 4))

        await self.svc.delete_product(ALICE, pid)
        self.assertIsNone(await self.svc.get_product(ANON, pid))
        with self.assertRaisesRegex(BackendError, f"Product not found: {pid}"):
            await self.svc.delete_product(ALICE, pid)
        with self.assertRaisesRegex(BackendError, "Invalid product: title is required"):
            await self.svc.create_product(ALICE, Product(0, "  ", "", 100, 1, "Books"))

    async def test_delete_product_removes_it_from_carts(self):
        await self.make_admin()
        await self.svc.add_to_cart(BOB, MOUSE, 1)
        await self.svc.add_to_cart(BOB, CABLE, 1)
        await self.svc.delete_product(ALICE, MOUSE)
        cart = await self.svc.get_cart(BOB)
        self.assertEqual(cart.items, [CartItem(CABLE, 1)])

    # ---------- Categories ----------

    async def test_categories(self):
        self.assertEqual(len(await self.svc.get_categories(ANON)), 4)
        with self.assertRaisesRegex(BackendError, "Unauthorized"):
            await self.svc.create_category(BOB, "Garden")

        await self.make_admin()
        cid = await self.svc.create_category(ALICE, "Garden")
        self.assertEqual((await self.svc.get_category(ANON, cid)).name, "Garden")
        with self.assertRaisesRegex(BackendError, "Category already exists: books"):
            await self.svc.create_category(ALICE, "books")

        await self.svc.update_category(ALICE, cid, "Garden & Outdoor")
        self.assertEqual((await self.svc.get_category(ANON, cid)).name, "Garden & Outdoor")
        # renaming to its own name is fine
        await self.svc.update_category(ALICE, cid, "Garden & Outdoor")

        await self.svc.delete_category(ALICE, cid)
        self.assertIsNone(await self.svc.get_category(ANON, cid))
        with self.assertRaisesRegex(BackendError, f"Category not found: {cid}"):
            await self.svc.delete_category(ALICE, cid)

    async def test_concurrent_category_creation(self):
        await self.make_admin()
        results = await asyncio.gather(
            self.svc.create_category(ALICE, "Garden"),
            self.svc.create_category(ALICE, "Garden"),
            return_exceptions=True,
        )
        self.assertEqual(sum(isinstance(r, int) for r in results), 1)
        errors = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(errors[0], BackendError)
        self.assertIn("Category already exists: Garden", str(errors[0]))
        names = [c.name for c in await self.svc.get_categories(ANON)]
        self.assertEqual(names.count("Garden"), 1)

    # ---------- Cart ----------

    async def test_cart_add_update_remove_clear(self):
        self.assertIsNone(await self.svc.get_cart(BOB))
        await self.svc.add_to_cart(BOB, KEYBOARD, 1)
        await self.svc.add_to_cart(BOB, MOUSE, 2)
        await self.svc.add_to_cart(BOB, KEYBOARD, 2)
        cart = await self.svc.get_cart(BOB)
        # insertion order, repeated adds merge
        self.assertEqual(cart.items, [CartItem(KEYBOARD, 3), CartItem(MOUSE, 2)])

        await self.svc.update_cart_item(BOB, MOUSE, 5)
        await self.svc.remove_from_cart(BOB, KEYBOARD)
        self.assertEqual((await self.svc.get_cart(BOB)).items, [CartItem(MOUSE, 5)])

        # carts are per caller
        self.assertIsNone(await self.svc.get_cart(ALICE))

        await self.svc.clear_cart(BOB)
        self.assertIsNone(await self.svc.get_cart(BOB))

    async def test_cart_rules(self):
        with self.assertRaisesRegex(BackendError, "Unauthorized: Only users can manage a cart"):
            await self.svc.add_to_cart(ANON, MOUSE, 1)
        self.assertIsNone(await self.svc.get_cart(ANON))
        with self.assertRaisesRegex(BackendError, "Invalid quantity"):
            await self.svc.add_to_cart(BOB, MOUSE, 0)
        with self.assertRaisesRegex(BackendError, "Insufficient stock for product 3"):
            await self.svc.add_to_cart(BOB, CABLE, 6)
        with self.assertRaisesRegex(BackendError, "Insufficient stock"):
            await self.svc.add_to_cart(BOB, SPEAKER, 1)
        with self.assertRaisesRegex(BackendError, "Product not found: 999"):
            await self.svc.add_to_cart(BOB, 999, 1)
        with self.assertRaisesRegex(BackendError, "Item not found in cart"):
            await self.svc.update_cart_item(BOB, MOUSE, 1)

    # ---------- Checkout & Orders ----------

    async def test_checkout(self):
        await self.svc.add_to_cart(BOB, MOUSE, 2)
        await self.svc.add_to_cart(BOB, CABLE, 1)
        order_id = await self.svc.checkout(BOB)

        order = await self.svc.get_order(BOB, order_id)
        self.assertEqual(order.buyer, BOB)
        self.assertEqual(order.total, 2 * 1999 + 999)
        self.assertEqual([(i.product_id, i.quantity, i.price) for i in order.items], [(MOUSE, 2, 1999), (CABLE, 1, 999)])

        # stock decremented, cart cleared
        self.assertEqual((await self.svc.get_product(ANON, MOUSE)).stock, 38)
        self.assertEqual((await self.svc.get_product(ANON, CABLE)).stock, 4)
        self.assertIsNone(await self.svc.get_cart(BOB))

        self.assertEqual([o.order_id for o in await self.svc.get_orders(BOB)], [order_id])
        self.assertEqual(await self.svc.get_orders(ALICE), [])
        self.assertEqual(await self.svc.get_orders(ANON), [])

    async def test_checkout_is_all_or_nothing(self):
        await self.make_admin()
        await self.svc.add_to_cart(BOB, MOUSE, 1)
        await self.svc.add_to_cart(BOB, CABLE, 5)
        # stock drops under the cart quantity before checkout
        cable = await self.svc.get_product(ANON, CABLE)
        await self.svc.update_product(
            ALICE, CABLE, Product(CABLE, cable.title, cable.description, cable.price, 2, cable.category)
        )
        with self.assertRaisesRegex(BackendError, "Insufficient stock for USB-C Cable"):
            await self.svc.checkout(BOB)
        self.assertEqual((await self.svc.get_product(ANON, MOUSE)).stock, 40)
        self.assertEqual(len((await self.svc.get_cart(BOB)).items), 2)
        self.assertEqual(await self.svc.get_orders(BOB), [])

        await self.svc.clear_cart(BOB)
        with self.assertRaisesRegex(BackendError, "Cart is empty"):
            await self.svc.checkout(BOB)

    async def test_concurrent_checkouts_cannot_oversell(self):
        # both carts hold the whole cable stock
        await self.svc.add_to_cart(ALICE, CABLE, 5)
        await self.svc.add_to_cart(BOB, CABLE, 5)
        results = await asyncio.gather(
            self.svc.checkout(ALICE), self.svc.checkout(BOB), return_exceptions=True
        )

        placed = [r for r in results if isinstance(r, int)]
        failed = [r for r in results if isinstance(r, Exception)]
        self.assertEqual(len(placed), 1)
        self.assertEqual(len(failed), 1)
        self.assertIsInstance(failed[0], BackendError)
        self.assertIn("Insufficient stock for USB-C Cable", str(failed[0]))
        self.assertEqual((await self.svc.get_product(ANON, CABLE)).stock, 0)
        self.assertEqual(len(await self.svc.get_orders(ALICE)) + len(await self.svc.get_orders(BOB)), 1)

    async def test_order_visibility(self):
        await self.svc.add_to_cart(BOB, MOUSE, 1)
        order_id = await self.svc.checkout(BOB)
        with self.assertRaisesRegex(BackendError, "Unauthorized: Can only view your own orders"):
            await self.svc.get_order(ALICE, order_id)
        with self.assertRaisesRegex(BackendError, "Unauthorized"):
            await self.svc.get_all_orders(ALICE)

        await self.make_admin()
        self.assertEqual((await self.svc.get_order(ALICE, order_id)).order_id, order_id)
        self.assertEqual(len(await self.svc.get_all_orders(ALICE)), 1)
        self.assertIsNone(await self.svc.get_order(ALICE, 424242))

    # ---------- Profiles & roles ----------

    async def test_roles_and_profiles(self):
        self.assertIs(await self.svc.get_caller_user_role(ANON), UserRole.GUEST)
        self.assertIs(await self.svc.get_caller_user_role(BOB), UserRole.USER)
        self.assertFalse(await self.svc.is_caller_admin(BOB))

        self.assertIsNone(await self.svc.get_caller_user_profile(BOB))
        await self.svc.save_caller_user_profile(BOB, UserProfile("Bob", "bob@example.com"))
        self.assertEqual((await self.svc.get_caller_user_profile(BOB)).email, "bob@example.com")
        with self.assertRaisesRegex(BackendError, "Invalid profile"):
            await self.svc.save_caller_user_profile(BOB, UserProfile("Bob", " "))
        with self.assertRaisesRegex(BackendError, "Unauthorized"):
            await self.svc.save_caller_user_profile(ANON, UserProfile("Anon", "a@b.c"))

        # other profiles are admin only
        with self.assertRaisesRegex(BackendError, "Unauthorized"):
            await self.svc.get_user_profile(ALICE, BOB)
        self.assertEqual((await self.svc.get_user_profile(BOB, BOB)).name, "Bob")
        await self.make_admin()
        self.assertEqual((await self.svc.get_user_profile(ALICE, BOB)).name, "Bob")
        profiles = await self.svc.get_all_user_profiles(ALICE)
        self.assertEqual([p.text for p, _ in profiles], ["bob"])

    async def test_admin_bootstrap_then_gated(self):
        await self.svc.add_admin_by_principal(ALICE, ALICE)
        self.assertTrue(await self.svc.is_caller_admin(ALICE))
        self.assertTrue(await self.svc.is_admin(BOB, ALICE))

        # once an admin exists, non-admins cannot grant
        with self.assertRaisesRegex(BackendError, "Unauthorized: Only admins can assign admin privileges"):
            await self.svc.add_admin_by_principal(BOB, BOB)
        with self.assertRaisesRegex(BackendError, "Unauthorized"):
            await self.svc.assign_caller_user_role(BOB, BOB, UserRole.ADMIN)

        await self.svc.add_admin_by_principal(ALICE, BOB)
        self.assertIs(await self.svc.get_caller_user_role(BOB), UserRole.ADMIN)
        await self.svc.assign_caller_user_role(ALICE, BOB, UserRole.USER)
        self.assertIs(await self.svc.get_caller_user_role(BOB), UserRole.USER)

    async def test_add_admin_by_email(self):
        await self.make_admin()
        with self.assertRaisesRegex(BackendError, "No user profile found for email bob@example.com"):
            await self.svc.add_admin_by_email(ALICE, "bob@example.com")

        await self.svc.save_caller_user_profile(BOB, UserProfile("Bob", "Bob@Example.com"))
        await self.svc.add_admin_by_email(ALICE, " bob@example.com ")
        self.assertTrue(await self.svc.is_caller_admin(BOB))
        self.assertEqual((await self.svc.get_caller_user_profile(BOB)).role, "admin")

    async def test_owner_allowlist_claim(self):
        await self.make_admin()
        await self.svc.save_caller_user_profile(OWNER, UserProfile("Owner", "owner@example.com"))
        await self.svc.save_caller_user_profile(BOB, UserProfile("Bob", "bob@example.com"))

        # bob is not on the allowlist and cannot claim for anyone
        with self.assertRaisesRegex(BackendError, "Unauthorized"):
            await self.svc.add_admin_by_email(BOB, "bob@example.com")
        with self.assertRaisesRegex(BackendError, "Unauthorized"):
            await self.svc.add_admin_by_email(BOB, "owner@example.com")

        # the owner can only claim for their own profile email
        await self.svc.add_admin_by_email(OWNER, "owner@example.com")
        self.assertTrue(await self.svc.is_caller_admin(OWNER))


if __name__ == "__main__":
    unittest.main()
