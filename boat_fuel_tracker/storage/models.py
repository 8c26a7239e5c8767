"""
Data models for storage layer.

Plain data structures for users and fuel-ups. Persistence lives in the
repositories, never on the entities themselves.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional


@dataclass
class User:
    """A registered boat owner.
    
    Owns zero or more fuel-ups; deleting the user deletes them all.
    """
    user_id: str
    email: str
    display_name: Optional[str] = None
    password_hash: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


@dataclass
class FuelUp:
    """One fuel purchase.
    
    ``total_cost`` is derived from ``gallons`` and ``price_per_gallon``.
    A value assigned here directly is only a transient convenience: the
    repository rederives it on every write.
    """
    user_id: str
    date: date
    gallons: Decimal
    price_per_gallon: Decimal
    total_cost: Optional[Decimal] = None
    engine_hours: Optional[Decimal] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


# Columns the caller may change after creation
UPDATABLE_FIELDS = frozenset({
    "date",
    "gallons",
    "price_per_gallon",
    "total_cost",
    "engine_hours",
    "location",
    "notes",
})

MAX_LOCATION_LENGTH = 500
MAX_NOTES_LENGTH = 2000
MAX_USER_ID_LENGTH = 50
MAX_USER_TEXT_LENGTH = 255
