import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from backend.errors import BackendError, ValidationError  # noqa: E402
from client.errors import GENERIC_FAILURE, ErrorKind, classify, user_message  # noqa: E402


class ClassifyTestCase(unittest.TestCase):
    def test_kinds(self):
        cases = {
            "Unauthorized: Only admins can create products": ErrorKind.UNAUTHORIZED,
            "Caller is not authorized": ErrorKind.UNAUTHORIZED,
            "No user profile found for email a@b.c": ErrorKind.NOT_FOUND,
            "Product not found: 42": ErrorKind.NOT_FOUND,
            "Invalid quantity: must be at least 1": ErrorKind.VALIDATION,
            "Insufficient stock for USB-C Cable": ErrorKind.UNEXPECTED,
            "": ErrorKind.UNEXPECTED,
        }
        for message, kind in cases.items():
            with self.subTest(message=message):
                self.assertIs(classify(BackendError(message)), kind)

    def test_validation_error_type_wins(self):
        self.assertIs(classify(ValidationError("Name is required.")), ErrorKind.VALIDATION)

    def test_plain_exceptions(self):
        self.assertIs(classify(RuntimeError("connection reset")), ErrorKind.UNEXPECTED)


class UserMessageTestCase(unittest.TestCase):
    def test_permission_notice(self):
        self.assertEqual(
            user_message(BackendError("Unauthorized: Only admins can delete products")),
            "You do not have permission to perform this action.",
        )

    def test_missing_profile_guidance(self):
        msg = user_message(BackendError("No user profile found for email x@y.z"))
        self.assertIn("must sign in and complete profile setup", msg)

    def test_verbatim_and_fallback(self):
        self.assertEqual(user_message(BackendError("Cart is empty")), "Cart is empty")
        self.assertEqual(user_message(BackendError(""), "Failed to load cart."), "Failed to load cart.")
        self.assertEqual(user_message(BackendError()), GENERIC_FAILURE)


if __name__ == "__main__":
    unittest.main()
