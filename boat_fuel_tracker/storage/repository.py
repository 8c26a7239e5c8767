"""
Repository pattern for data access.

Handles database operations for users and fuel-ups. Every write runs in
one transaction and goes through the cost invariant before it is stored.
"""

import logging
import sqlite3
from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from ..core.cost import derive_total_cost, require_positive, to_date, to_decimal
from ..core.errors import NotFoundError, StorageError, ValidationError
from .db import DEFAULT_DB_PATH, DEFAULT_TIMEOUT_SECONDS, get_connection, transaction
from .models import (
    FuelUp,
    MAX_LOCATION_LENGTH,
    MAX_NOTES_LENGTH,
    MAX_USER_ID_LENGTH,
    MAX_USER_TEXT_LENGTH,
    UPDATABLE_FIELDS,
    User,
)

logger = logging.getLogger(__name__)

_FUEL_UP_COLUMNS = """
    id, user_id, fuel_date, gallons, price_per_gallon, total_cost,
    engine_hours, location, notes, created_at
"""

_USER_COLUMNS = """
    user_id, email, display_name, password_hash, is_admin, created_at, last_login
"""


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the users and fuel_ups tables if they don't exist.

    Decimals are stored as TEXT so no precision is lost. Fuel-ups reference
    their owner with ON DELETE CASCADE: removing a user removes every one of
    their records.

    Args:
        db_path: Path to SQLite database file

    Raises:
        StorageError: If the schema cannot be created
    """
    try:
        conn = get_connection(db_path)
    except sqlite3.Error as e:
        raise StorageError(f"Cannot open database {db_path}: {e}") from e
    try:
        with transaction(conn):
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    user_id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    display_name TEXT,
                    password_hash TEXT,
                    is_admin INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    last_login TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS fuel_ups (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL
                        REFERENCES users(user_id) ON DELETE CASCADE,
                    fuel_date TEXT NOT NULL,
                    gallons TEXT NOT NULL,
                    price_per_gallon TEXT NOT NULL,
                    total_cost TEXT,
                    engine_hours TEXT,
                    location TEXT,
                    notes TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_fuel_date ON fuel_ups (fuel_date)")
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_fuel_user_date ON fuel_ups (user_id, fuel_date)"
            )
    except sqlite3.Error as e:
        logger.error("Failed to initialize schema at %s", db_path, exc_info=True)
        raise StorageError(f"Failed to initialize schema: {e}") from e
    finally:
        conn.close()


class _SqliteRepository:
    """Shared connection handling for SQLite-backed repositories."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.db_path = db_path
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path, self.timeout)
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self.db_path}: {e}") from e


class FuelUpRepository(_SqliteRepository):
    """Transactional store for fuel-up records, scoped by owning user.

    The repository is the only writer of ``total_cost``: create and update
    both rederive it with :func:`derive_total_cost` inside the transaction
    that persists the record.
    """

    def create(self, fuel_up: FuelUp) -> FuelUp:
        """Validate and persist a new fuel-up.

        Assigns ``created_at`` if absent and derives ``total_cost``. The
        identifier is always assigned by the store.

        Args:
            fuel_up: Record to store; not modified

        Returns:
            The stored record including id and derived fields

        Raises:
            ValidationError: If quantity, price, date or text fields are invalid
            NotFoundError: If the owning user does not exist
            StorageError: If the database write fails
        """
        record = _validated(fuel_up)
        if record.created_at is None:
            record.created_at = datetime.now()
        record.total_cost = derive_total_cost(record.gallons, record.price_per_gallon)

        conn = self._connect()
        try:
            with transaction(conn):
                owner = conn.execute(
                    "SELECT 1 FROM users WHERE user_id = ?", (record.user_id,)
                ).fetchone()
                if owner is None:
                    raise NotFoundError(f"User not found: {record.user_id}")
                cursor = conn.execute("""
                    INSERT INTO fuel_ups (
                        user_id, fuel_date, gallons, price_per_gallon, total_cost,
                        engine_hours, location, notes, created_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.user_id,
                    record.date.isoformat(),
                    str(record.gallons),
                    str(record.price_per_gallon),
                    _text(record.total_cost),
                    _text(record.engine_hours),
                    record.location,
                    record.notes,
                    record.created_at.isoformat(),
                ))
                record.id = cursor.lastrowid
        except sqlite3.Error as e:
            logger.error("Error creating fuel-up for user %s", record.user_id, exc_info=True)
            raise StorageError(f"Failed to create fuel-up: {e}") from e
        finally:
            conn.close()

        logger.info("Created fuel-up %d for user %s", record.id, record.user_id)
        return record

    def update(self, fuel_up_id: int, mutations: Mapping[str, Any]) -> FuelUp:
        """Apply field changes to an existing fuel-up in one transaction.

        The stored row is read under the write lock, merged with
        ``mutations``, revalidated and given a freshly derived
        ``total_cost``. A ``total_cost`` in ``mutations`` never survives
        when both inputs are present.

        Args:
            fuel_up_id: Identifier of the record to change
            mutations: Field name to new value

        Returns:
            The record as committed

        Raises:
            ValidationError: If a field is unknown, immutable or invalid
            NotFoundError: If ``fuel_up_id`` is unknown
            StorageError: If the database write fails
        """
        unknown = set(mutations) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {sorted(unknown)}")

        conn = self._connect()
        try:
            with transaction(conn):
                row = conn.execute(
                    f"SELECT {_FUEL_UP_COLUMNS} FROM fuel_ups WHERE id = ?", (fuel_up_id,)
                ).fetchone()
                if row is None:
                    raise NotFoundError(f"Fuel-up not found: {fuel_up_id}")
                record = _validated(replace(_row_to_fuel_up(row), **mutations))
                record.total_cost = derive_total_cost(record.gallons, record.price_per_gallon)
                conn.execute("""
                    UPDATE fuel_ups
                    SET fuel_date = ?, gallons = ?, price_per_gallon = ?, total_cost = ?,
                        engine_hours = ?, location = ?, notes = ?
                    WHERE id = ?
                """, (
                    record.date.isoformat(),
                    str(record.gallons),
                    str(record.price_per_gallon),
                    _text(record.total_cost),
                    _text(record.engine_hours),
                    record.location,
                    record.notes,
                    fuel_up_id,
                ))
        except sqlite3.Error as e:
            logger.error("Error updating fuel-up %s", fuel_up_id, exc_info=True)
            raise StorageError(f"Failed to update fuel-up: {e}") from e
        finally:
            conn.close()

        logger.info("Updated fuel-up %d fields %s", fuel_up_id, sorted(mutations))
        return record

    def get(self, fuel_up_id: int) -> Optional[FuelUp]:
        """Point lookup by identifier; None if absent."""
        rows = self._query(
            f"SELECT {_FUEL_UP_COLUMNS} FROM fuel_ups WHERE id = ?", (fuel_up_id,)
        )
        return rows[0] if rows else None

    def get_by_user(self, user_id: str) -> List[FuelUp]:
        """Get all fuel-ups owned by a user.

        Args:
            user_id: Owning user

        Returns:
            Fuel-ups ordered by date (newest first), ties by id (newest first).
            Empty if the user has none.
        """
        logger.debug("Getting fuel-ups for user: %s", user_id)
        return self._query(f"""
            SELECT {_FUEL_UP_COLUMNS} FROM fuel_ups
            WHERE user_id = ?
            ORDER BY fuel_date DESC, id DESC
        """, (user_id,))

    def get_by_user_in_range(self, user_id: str, start: date, end: date) -> List[FuelUp]:
        """Get a user's fuel-ups with ``start <= date <= end``.

        Args:
            user_id: Owning user
            start: First date included (date or ISO string)
            end: Last date included (date or ISO string)

        Returns:
            Fuel-ups in the same order as :meth:`get_by_user`

        Raises:
            ValidationError: If a date is malformed or ``start > end``
        """
        start = to_date(start, "start")
        end = to_date(end, "end")
        if start > end:
            raise ValidationError(f"start {start} is after end {end}")
        logger.debug("Getting fuel-ups for user %s between %s and %s", user_id, start, end)
        return self._query(f"""
            SELECT {_FUEL_UP_COLUMNS} FROM fuel_ups
            WHERE user_id = ? AND fuel_date BETWEEN ? AND ?
            ORDER BY fuel_date DESC, id DESC
        """, (user_id, start.isoformat(), end.isoformat()))

    def delete_by_id(self, fuel_up_id: int) -> bool:
        """Delete a fuel-up if present.

        Deleting an unknown id is not an error.

        Returns:
            True if a record was removed
        """
        conn = self._connect()
        try:
            with transaction(conn):
                cursor = conn.execute("DELETE FROM fuel_ups WHERE id = ?", (fuel_up_id,))
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error("Error deleting fuel-up %s", fuel_up_id, exc_info=True)
            raise StorageError(f"Failed to delete fuel-up: {e}") from e
        finally:
            conn.close()

        if deleted:
            logger.info("Deleted fuel-up: %s", fuel_up_id)
        else:
            logger.info("Fuel-up %s not found, nothing to delete", fuel_up_id)
        return deleted

    def _query(self, sql: str, params: tuple) -> List[FuelUp]:
        conn = self._connect()
        try:
            with transaction(conn, write=False):
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error("Error retrieving fuel-ups", exc_info=True)
            raise StorageError(f"Failed to retrieve fuel-ups: {e}") from e
        finally:
            conn.close()
        return [_row_to_fuel_up(row) for row in rows]


class UserRepository(_SqliteRepository):
    """Store for registered users."""

    def create(self, user: User) -> User:
        """Persist a new user, assigning ``created_at`` once.

        Raises:
            ValidationError: If id or email is empty or already taken, or a
                field is too long
            StorageError: If the database write fails
        """
        _check_text(user.user_id, "user_id", MAX_USER_ID_LENGTH)
        _check_text(user.email, "email", MAX_USER_TEXT_LENGTH)
        _check_text(user.display_name, "display_name", MAX_USER_TEXT_LENGTH)
        _check_text(user.password_hash, "password_hash", MAX_USER_TEXT_LENGTH)
        if not user.user_id or not user.user_id.strip():
            raise ValidationError("user_id is required")
        if not user.email or not user.email.strip():
            raise ValidationError("email is required")
        stored = replace(user, created_at=user.created_at or datetime.now())

        conn = self._connect()
        try:
            with transaction(conn):
                conn.execute(f"""
                    INSERT INTO users ({_USER_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    stored.user_id,
                    stored.email,
                    stored.display_name,
                    stored.password_hash,
                    int(stored.is_admin),
                    stored.created_at.isoformat(),
                    _iso(stored.last_login),
                ))
        except sqlite3.IntegrityError as e:
            raise ValidationError(
                f"User id or email already registered: {stored.user_id} / {stored.email}"
            ) from e
        except sqlite3.Error as e:
            logger.error("Error creating user %s", stored.user_id, exc_info=True)
            raise StorageError(f"Failed to create user: {e}") from e
        finally:
            conn.close()

        logger.info("Registered user: %s", stored.user_id)
        return stored

    def get(self, user_id: str) -> Optional[User]:
        rows = self._query(f"SELECT {_USER_COLUMNS} FROM users WHERE user_id = ?", (user_id,))
        return rows[0] if rows else None

    def get_by_email(self, email: str) -> Optional[User]:
        rows = self._query(f"SELECT {_USER_COLUMNS} FROM users WHERE email = ?", (email,))
        return rows[0] if rows else None

    def find_admins(self) -> List[User]:
        return self._query(
            f"SELECT {_USER_COLUMNS} FROM users WHERE is_admin = 1 ORDER BY user_id", ()
        )

    def record_login(self, user_id: str, at: Optional[datetime] = None) -> User:
        """Set the user's last-login timestamp.

        Raises:
            NotFoundError: If the user does not exist
        """
        at = at or datetime.now()
        conn = self._connect()
        try:
            with transaction(conn):
                cursor = conn.execute(
                    "UPDATE users SET last_login = ? WHERE user_id = ?",
                    (at.isoformat(), user_id),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"User not found: {user_id}")
                row = conn.execute(
                    f"SELECT {_USER_COLUMNS} FROM users WHERE user_id = ?", (user_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to record login: {e}") from e
        finally:
            conn.close()
        return _row_to_user(row)

    def delete(self, user_id: str) -> bool:
        """Delete a user and, by cascade, all of their fuel-ups.

        Returns:
            True if the user existed
        """
        conn = self._connect()
        try:
            with transaction(conn):
                cursor = conn.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error("Error deleting user %s", user_id, exc_info=True)
            raise StorageError(f"Failed to delete user: {e}") from e
        finally:
            conn.close()

        if deleted:
            logger.info("Deleted user %s and their fuel-ups", user_id)
        return deleted

    def _query(self, sql: str, params: tuple) -> List[User]:
        conn = self._connect()
        try:
            rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to retrieve users: {e}") from e
        finally:
            conn.close()
        return [_row_to_user(row) for row in rows]


def _validated(fuel_up: FuelUp) -> FuelUp:
    """Return a normalized copy of ``fuel_up`` or raise ValidationError."""
    gallons = require_positive(to_decimal(fuel_up.gallons, "gallons"), "gallons")
    price = require_positive(
        to_decimal(fuel_up.price_per_gallon, "price_per_gallon"), "price_per_gallon"
    )
    engine_hours = to_decimal(fuel_up.engine_hours, "engine_hours")
    if engine_hours is not None and engine_hours < 0:
        raise ValidationError(f"engine_hours must be >= 0, got {engine_hours}")
    _check_text(fuel_up.location, "location", MAX_LOCATION_LENGTH)
    _check_text(fuel_up.notes, "notes", MAX_NOTES_LENGTH)
    if not fuel_up.user_id:
        raise ValidationError("user_id is required")
    return replace(
        fuel_up,
        date=to_date(fuel_up.date),
        gallons=gallons,
        price_per_gallon=price,
        total_cost=to_decimal(fuel_up.total_cost, "total_cost"),
        engine_hours=engine_hours,
    )


def _check_text(value: Any, field_name: str, max_length: int) -> None:
    """Raise ValidationError unless ``value`` is None or a short enough string."""
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be text, got {type(value).__name__}")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} exceeds {max_length} characters")


def _row_to_fuel_up(row: tuple) -> FuelUp:
    return FuelUp(
        id=row[0],
        user_id=row[1],
        date=date.fromisoformat(row[2]),
        gallons=Decimal(row[3]),
        price_per_gallon=Decimal(row[4]),
        total_cost=_decimal(row[5]),
        engine_hours=_decimal(row[6]),
        location=row[7],
        notes=row[8],
        created_at=datetime.fromisoformat(row[9]),
    )


def _row_to_user(row: tuple) -> User:
    return User(
        user_id=row[0],
        email=row[1],
        display_name=row[2],
        password_hash=row[3],
        is_admin=bool(row[4]),
        created_at=datetime.fromisoformat(row[5]),
        last_login=datetime.fromisoformat(row[6]) if row[6] else None,
    )


def _text(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _decimal(value: Optional[str]) -> Optional[Decimal]:
    return None if value is None else Decimal(value)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else value.isoformat()
