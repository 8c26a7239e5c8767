# boat_fuel_tracker/demo/seed_demo_data.py

from datetime import date
from decimal import Decimal
from typing import List

from boat_fuel_tracker.storage.db import DEFAULT_DB_PATH
from boat_fuel_tracker.storage.models import FuelUp, User
from boat_fuel_tracker.storage.repository import (
    FuelUpRepository,
    UserRepository,
    initialize_schema,
)

DEMO_USER_ID = "demo"


def seed_demo_data(db_path: str = DEFAULT_DB_PATH) -> List[FuelUp]:
    """Create the demo user if missing and add a few fuel-ups for them."""
    initialize_schema(db_path)
    users = UserRepository(db_path)
    if users.get(DEMO_USER_ID) is None:
        users.create(User(
            user_id=DEMO_USER_ID,
            email="demo@example.com",
            display_name="Demo Skipper"
        ))

    fuel_ups = [
        FuelUp(
            user_id=DEMO_USER_ID,
            date=date(2024, 5, 18),
            gallons=Decimal("15.5"),
            price_per_gallon=Decimal("3.89"),
            engine_hours=Decimal("412.5"),
            location="Harbor Marina"
        ),
        FuelUp(
            user_id=DEMO_USER_ID,
            date=date(2024, 6, 2),
            gallons=Decimal("20.0"),
            price_per_gallon=Decimal("3.95"),
            engine_hours=Decimal("431.0"),
            location="Lakeside Fuel Dock",
            notes="Topped off before the long weekend"
        ),
    ]

    repository = FuelUpRepository(db_path)
    return [repository.create(f) for f in fuel_ups]


if __name__ == "__main__":
    created = seed_demo_data()
    print(f"Demo fuel-ups inserted: {len(created)}")
