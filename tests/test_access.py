import os
import sys
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from backend.models import Identity, Principal, UserRole  # noqa: E402
from utils.access import (  # noqa: E402
    AccessGate,
    AccessState,
    denied_message,
    has_permission,
)

ALICE = Identity(Principal("alice-7f3k2"))


class HasPermissionTestCase(unittest.TestCase):
    def test_admin_route(self):
        self.assertTrue(has_permission(UserRole.ADMIN, UserRole.ADMIN))
        self.assertFalse(has_permission(UserRole.USER, UserRole.ADMIN))
        self.assertFalse(has_permission(UserRole.GUEST, UserRole.ADMIN))

    def test_user_route(self):
        self.assertTrue(has_permission(UserRole.ADMIN, UserRole.USER))
        self.assertTrue(has_permission(UserRole.USER, UserRole.USER))
        self.assertFalse(has_permission(UserRole.GUEST, UserRole.USER))

    def test_missing_role_and_plain_strings(self):
        self.assertFalse(has_permission(None, UserRole.USER))
        self.assertTrue(has_permission("admin", "user"))


class AccessGateTestCase(unittest.TestCase):
    def test_initializing_until_identity_resolves(self):
        gate = AccessGate(UserRole.ADMIN)
        self.assertIs(gate.state, AccessState.INITIALIZING)
        # role first, identity still pending
        gate.role_resolved(UserRole.ADMIN)
        self.assertIs(gate.state, AccessState.INITIALIZING)
        gate.identity_resolved(ALICE)
        self.assertIs(gate.state, AccessState.AUTHORIZED)

    def test_initializing_until_role_resolves(self):
        gate = AccessGate(UserRole.USER)
        gate.identity_resolved(ALICE)
        self.assertIs(gate.state, AccessState.INITIALIZING)
        gate.role_resolved(UserRole.USER)
        self.assertIs(gate.state, AccessState.AUTHORIZED)

    def test_user_on_admin_route_is_denied(self):
        gate = AccessGate(UserRole.ADMIN)
        gate.identity_resolved(ALICE)
        gate.role_resolved(UserRole.USER)
        self.assertIs(gate.state, AccessState.UNAUTHORIZED)

    def test_no_identity_is_denied_regardless_of_role(self):
        gate = AccessGate(UserRole.USER)
        gate.role_resolved(UserRole.ADMIN)
        gate.identity_resolved(None)
        self.assertIs(gate.state, AccessState.UNAUTHENTICATED)

    def test_role_failure_denies(self):
        gate = AccessGate(UserRole.USER)
        gate.identity_resolved(ALICE)
        gate.role_failed()
        self.assertIs(gate.state, AccessState.UNAUTHORIZED)

    def test_reset(self):
        gate = AccessGate("admin")
        gate.identity_resolved(ALICE)
        gate.role_resolved("admin")
        self.assertIs(gate.state, AccessState.AUTHORIZED)
        gate.reset()
        self.assertIs(gate.state, AccessState.INITIALIZING)

    def test_denied_message_names_role(self):
        self.assertIn("restricted to admins only", denied_message(UserRole.ADMIN))
        self.assertIn("restricted to users only", denied_message("user"))
        self.assertEqual(
            denied_message(None), "You don't have permission to access this page."
        )


if __name__ == "__main__":
    unittest.main()
