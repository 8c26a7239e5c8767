"""
Tests for the access guard.
"""
import pytest

from boat_fuel_tracker.core.access import ADMIN_ROLE, USER_ROLE, Identity, authorize
from boat_fuel_tracker.core.errors import ForbiddenError
from boat_fuel_tracker.storage.models import User


class TestAuthorize:
    """Test ownership-based authorization."""

    def test_owner_is_allowed(self):
        authorize(Identity("alice", frozenset({USER_ROLE})), "alice")

    def test_other_user_is_forbidden(self):
        """alice may not touch bob's data."""
        with pytest.raises(ForbiddenError) as excinfo:
            authorize(Identity("alice", frozenset({USER_ROLE})), "bob")
        assert excinfo.value.user_id == "alice"
        assert excinfo.value.target_user_id == "bob"

    def test_admin_may_access_anyone(self):
        authorize(Identity("alice", frozenset({USER_ROLE, ADMIN_ROLE})), "bob")

    def test_identity_without_roles(self):
        """Roles are optional for self access."""
        authorize(Identity("alice"), "alice")
        with pytest.raises(ForbiddenError):
            authorize(Identity("alice"), "bob")


class TestIdentity:
    """Test identity construction."""

    def test_has_role(self):
        identity = Identity("alice", frozenset({"admin"}))
        assert identity.has_role("admin")
        assert not identity.has_role("auditor")

    def test_for_regular_user(self):
        identity = Identity.for_user(User(user_id="alice", email="alice@example.com"))
        assert identity.user_id == "alice"
        assert identity.has_role(USER_ROLE)
        assert not identity.has_role(ADMIN_ROLE)

    def test_for_admin_user(self):
        identity = Identity.for_user(User(user_id="root", email="root@example.com", is_admin=True))
        assert identity.has_role(ADMIN_ROLE)
