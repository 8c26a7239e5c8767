"""
Fuel-up operations exposed to front ends.

Each operation takes the acting identity, checks it against the owner of
the data through :func:`authorize`, then delegates to the repositories.
Transports (CLI, HTTP) call only this facade.
"""

import logging
from datetime import date
from typing import Any, List, Mapping, Union

from .access import Identity, authorize
from .errors import NotFoundError
from .statistics import FuelUpStatistics, compute_statistics
from ..storage.models import FuelUp, User
from ..storage.repository import FuelUpRepository, UserRepository

logger = logging.getLogger(__name__)

DateInput = Union[date, str]


class FuelUpService:
    """Authorized access to fuel-ups and their statistics."""

    def __init__(self, fuel_ups: FuelUpRepository, users: UserRepository):
        self.fuel_ups = fuel_ups
        self.users = users

    def create_fuel_up(self, identity: Identity, fuel_up: FuelUp) -> FuelUp:
        authorize(identity, fuel_up.user_id)
        logger.info("Creating new fuel-up for user: %s", fuel_up.user_id)
        return self.fuel_ups.create(fuel_up)

    def update_fuel_up(
        self,
        identity: Identity,
        fuel_up_id: int,
        mutations: Mapping[str, Any]
    ) -> FuelUp:
        """Update a fuel-up owned by (or administered for) the identity.

        Raises:
            NotFoundError: If ``fuel_up_id`` is unknown
            ForbiddenError: If the identity may not touch the owner's data
        """
        existing = self.fuel_ups.get(fuel_up_id)
        if existing is None:
            raise NotFoundError(f"Fuel-up not found: {fuel_up_id}")
        authorize(identity, existing.user_id)
        return self.fuel_ups.update(fuel_up_id, mutations)

    def list_fuel_ups(self, identity: Identity, user_id: str) -> List[FuelUp]:
        authorize(identity, user_id)
        return self.fuel_ups.get_by_user(user_id)

    def list_fuel_ups_in_range(
        self,
        identity: Identity,
        user_id: str,
        start: DateInput,
        end: DateInput
    ) -> List[FuelUp]:
        authorize(identity, user_id)
        return self.fuel_ups.get_by_user_in_range(user_id, start, end)

    def delete_fuel_up(self, identity: Identity, fuel_up_id: int) -> None:
        """Delete a fuel-up; unknown ids are a no-op."""
        existing = self.fuel_ups.get(fuel_up_id)
        if existing is None:
            logger.info("Fuel-up %s not found, nothing to delete", fuel_up_id)
            return
        authorize(identity, existing.user_id)
        self.fuel_ups.delete_by_id(fuel_up_id)

    def get_statistics(self, identity: Identity, user_id: str) -> FuelUpStatistics:
        """Statistics over all of a user's fuel-ups, read from one snapshot."""
        authorize(identity, user_id)
        logger.debug("Calculating statistics for user: %s", user_id)
        return compute_statistics(self.fuel_ups.get_by_user(user_id))

    def register_user(self, user: User) -> User:
        return self.users.create(user)

    def delete_user(self, identity: Identity, user_id: str) -> bool:
        """Delete a user together with all of their fuel-ups."""
        authorize(identity, user_id)
        return self.users.delete(user_id)
