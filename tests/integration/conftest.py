"""
Integration test fixtures.

These tests run against the PostgreSQL database at DATABASE_URL and are
skipped when it cannot be reached. Every test starts from empty tables.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cinema.data_access import DataAccess, create_data_access
from database.models import Base
from shared.config import get_settings

ALL_TABLES = ", ".join(table.name for table in reversed(Base.metadata.sorted_tables))


@pytest.fixture
async def data_access():
    data = create_data_access(get_settings())
    health = await data.check_health()
    if not health["ok"]:
        await data.close()
        pytest.skip(f"PostgreSQL not available: {health['details']}")

    await data.schema.ensure_all()
    await data.execute(f"TRUNCATE {ALL_TABLES} RESTART IDENTITY CASCADE")

    yield data

    await data.close()


@pytest.fixture
async def showtime(data_access: DataAccess) -> dict[str, int]:
    """A user plus a showtime (movie, theater, screen) to book against."""
    user = await data_access.execute(
        """
            INSERT INTO users (first_name, last_name, email, password_hash)
            VALUES ('Rita', 'Costa', 'rita@example.com', 'salt:hash')
            RETURNING id
        """
    )
    movie = await data_access.execute(
        "INSERT INTO movies (title, duration_min, status) VALUES ('Dune', 155, 'NOW_SHOWING') RETURNING id"
    )
    theater = await data_access.execute(
        "INSERT INTO theaters (name, city) VALUES ('Lux', 'Lisbon') RETURNING id"
    )
    screen = await data_access.execute(
        "INSERT INTO screens (theater_id, name, total_seats) VALUES (:theater_id, 'Screen 1', 120) RETURNING id",
        {"theater_id": theater.rows[0]["id"]},
    )
    start = datetime(2026, 11, 20, 19, 30, tzinfo=timezone.utc)
    show = await data_access.execute(
        """
            INSERT INTO showtimes (movie_id, screen_id, start_time, end_time, price)
            VALUES (:movie_id, :screen_id, :start_time, :end_time, :price)
            RETURNING id
        """,
        {
            "movie_id": movie.rows[0]["id"],
            "screen_id": screen.rows[0]["id"],
            "start_time": start,
            "end_time": start + timedelta(minutes=155),
            "price": Decimal("12.50"),
        },
    )
    return {
        "user_id": user.rows[0]["id"],
        "showtime_id": show.rows[0]["id"],
        "theater_id": theater.rows[0]["id"],
    }
