"""
Tests for the fuel-up service facade.
"""
import os
import shutil
import tempfile
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from boat_fuel_tracker.core.access import ADMIN_ROLE, USER_ROLE, Identity
from boat_fuel_tracker.core.errors import ForbiddenError, NotFoundError, StorageError, ValidationError
from boat_fuel_tracker.core.service import FuelUpService
from boat_fuel_tracker.core.statistics import FuelUpStatistics
from boat_fuel_tracker.storage.models import FuelUp, User
from boat_fuel_tracker.storage.repository import FuelUpRepository, UserRepository, initialize_schema

ALICE = Identity("alice", frozenset({USER_ROLE}))
BOB = Identity("bob", frozenset({USER_ROLE}))
ADMIN = Identity("root", frozenset({USER_ROLE, ADMIN_ROLE}))


class TestFuelUpService:
    """Test service operations against a real database."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        db_path = os.path.join(self.temp_dir, "test.db")
        initialize_schema(db_path)
        self.service = FuelUpService(FuelUpRepository(db_path), UserRepository(db_path))
        for user_id in ("alice", "bob"):
            self.service.register_user(User(user_id=user_id, email=f"{user_id}@example.com"))
        self.service.register_user(User(user_id="root", email="root@example.com", is_admin=True))

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def add(self, identity, gallons, price, day=1, owner="alice"):
        return self.service.create_fuel_up(identity, FuelUp(
            user_id=owner,
            date=date(2024, 6, day),
            gallons=Decimal(gallons),
            price_per_gallon=Decimal(price)
        ))

    def test_create_and_list_own(self):
        self.add(ALICE, "15.5", "3.89", day=1)
        self.add(ALICE, "20.0", "3.95", day=2)
        fuel_ups = self.service.list_fuel_ups(ALICE, "alice")
        assert [f.date.day for f in fuel_ups] == [2, 1]

    def test_statistics(self):
        """Statistics over 15.5 @ 3.89 and 20.0 @ 3.95."""
        self.add(ALICE, "15.5", "3.89", day=1)
        self.add(ALICE, "20.0", "3.95", day=2)

        stats = self.service.get_statistics(ALICE, "alice")
        assert stats.count == 2
        assert stats.total_gallons == Decimal("35.5")
        assert stats.total_spent == Decimal("139.295")
        assert stats.average_price_per_gallon == Decimal("3.92")

    def test_statistics_after_rejected_huge_quantities(self):
        self.add(ALICE, "15.5", "3.89")
        for _ in range(2):
            with pytest.raises(ValidationError):
                self.add(ALICE, "9E+999999", "1")

        stats = self.service.get_statistics(ALICE, "alice")
        assert stats.count == 1
        assert stats.total_spent == Decimal("60.295")

    def test_statistics_without_fuel_ups(self):
        assert self.service.get_statistics(BOB, "bob") == FuelUpStatistics.empty()

    def test_statistics_follow_updates(self):
        created = self.add(ALICE, "10", "4.00")
        self.service.update_fuel_up(ALICE, created.id, {"gallons": Decimal("5")})
        assert self.service.get_statistics(ALICE, "alice").total_spent == Decimal("20.00")

    def test_create_for_other_user_forbidden(self):
        with pytest.raises(ForbiddenError):
            self.add(ALICE, "15.5", "3.89", owner="bob")
        assert self.service.list_fuel_ups(BOB, "bob") == []

    def test_admin_creates_for_other_user(self):
        created = self.add(ADMIN, "15.5", "3.89", owner="bob")
        assert created.user_id == "bob"

    def test_list_other_user_forbidden(self):
        with pytest.raises(ForbiddenError):
            self.service.list_fuel_ups(ALICE, "bob")

    def test_list_range_other_user_forbidden(self):
        with pytest.raises(ForbiddenError):
            self.service.list_fuel_ups_in_range(ALICE, "bob", "2024-01-01", "2024-12-31")

    def test_admin_lists_other_user(self):
        self.add(ALICE, "15.5", "3.89")
        assert len(self.service.list_fuel_ups(ADMIN, "alice")) == 1

    def test_list_range(self):
        for day in (1, 15, 30):
            self.add(ALICE, "10", "4.00", day=day)
        fuel_ups = self.service.list_fuel_ups_in_range(ALICE, "alice", "2024-06-15", "2024-06-30")
        assert [f.date.day for f in fuel_ups] == [30, 15]

    def test_list_range_inverted(self):
        with pytest.raises(ValidationError):
            self.service.list_fuel_ups_in_range(ALICE, "alice", "2024-06-30", "2024-06-01")

    def test_statistics_of_other_user_forbidden(self):
        with pytest.raises(ForbiddenError):
            self.service.get_statistics(BOB, "alice")

    def test_update_by_other_user_forbidden(self):
        created = self.add(ALICE, "15.5", "3.89")
        with pytest.raises(ForbiddenError):
            self.service.update_fuel_up(BOB, created.id, {"gallons": Decimal("1")})
        assert self.service.list_fuel_ups(ALICE, "alice")[0].gallons == Decimal("15.5")

    def test_update_unknown_id(self):
        with pytest.raises(NotFoundError):
            self.service.update_fuel_up(ALICE, 4242, {"gallons": Decimal("1")})

    def test_delete_own(self):
        created = self.add(ALICE, "15.5", "3.89")
        self.service.delete_fuel_up(ALICE, created.id)
        assert self.service.list_fuel_ups(ALICE, "alice") == []

    def test_delete_unknown_id_is_noop(self):
        self.service.delete_fuel_up(ALICE, 4242)

    def test_delete_by_other_user_forbidden(self):
        created = self.add(ALICE, "15.5", "3.89")
        with pytest.raises(ForbiddenError):
            self.service.delete_fuel_up(BOB, created.id)
        assert len(self.service.list_fuel_ups(ALICE, "alice")) == 1

    def test_admin_deletes_any(self):
        created = self.add(ALICE, "15.5", "3.89")
        self.service.delete_fuel_up(ADMIN, created.id)
        assert self.service.list_fuel_ups(ALICE, "alice") == []

    def test_delete_user_removes_fuel_ups(self):
        self.add(ALICE, "15.5", "3.89")
        assert self.service.delete_user(ADMIN, "alice") is True
        assert self.service.list_fuel_ups(ADMIN, "alice") == []

    def test_delete_other_user_forbidden(self):
        with pytest.raises(ForbiddenError):
            self.service.delete_user(BOB, "alice")


class TestFuelUpServiceDelegation:
    """Test the facade against mocked repositories."""

    def test_statistics_read_through_repository(self):
        fuel_ups = MagicMock(spec=FuelUpRepository)
        fuel_ups.get_by_user.return_value = []
        service = FuelUpService(fuel_ups, MagicMock(spec=UserRepository))

        service.get_statistics(ALICE, "alice")

        fuel_ups.get_by_user.assert_called_once_with("alice")

    def test_forbidden_never_reaches_repository(self):
        fuel_ups = MagicMock(spec=FuelUpRepository)
        service = FuelUpService(fuel_ups, MagicMock(spec=UserRepository))

        with pytest.raises(ForbiddenError):
            service.list_fuel_ups(ALICE, "bob")

        fuel_ups.get_by_user.assert_not_called()

    def test_storage_errors_propagate(self):
        fuel_ups = MagicMock(spec=FuelUpRepository)
        fuel_ups.create.side_effect = StorageError("disk full")
        service = FuelUpService(fuel_ups, MagicMock(spec=UserRepository))

        with pytest.raises(StorageError):
            service.create_fuel_up(ALICE, FuelUp(
                user_id="alice",
                date=date(2024, 6, 1),
                gallons=Decimal("1"),
                price_per_gallon=Decimal("1")
            ))
