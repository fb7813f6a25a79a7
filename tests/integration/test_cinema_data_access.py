"""
Integration tests for the data-access core against PostgreSQL.

Tests cover:
- Concurrent schema bootstrap on a fresh registry
- Transaction visibility on commit and rollback
- Atomic booking creation (duplicate seat, two seats, cascade delete)
- Payment idempotency by transaction reference
- Connection release after every transaction
- Team member onboarding with linked user account
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from cinema.transactions import SeatInput, TeamMemberInput
from database.errors import ConstraintKind, classify_integrity_error
from database.models import BookingStatus, PaymentMethod, PaymentStatus, TeamMemberRole
from database.schema import SchemaRegistry


class Abort(Exception):
    pass


async def count(data_access, sql, params=None) -> int:
    result = await data_access.execute(sql, params)
    return result.rows[0]["n"]


@pytest.mark.asyncio
async def test_concurrent_bootstrap_on_existing_database(data_access):
    registry = SchemaRegistry(data_access.pool)

    await asyncio.gather(*(registry.ensure_bookings() for _ in range(10)))

    assert registry.attempts("bookings") == 1
    assert registry.attempts("showtimes") == 1
    assert registry.is_ready("bookings")


@pytest.mark.asyncio
async def test_rolled_back_writes_not_visible(data_access):
    async def work(conn):
        await conn.execute("INSERT INTO theaters (name, city) VALUES ('Nova', 'Porto')")
        raise Abort()

    with pytest.raises(Abort):
        await data_access.with_transaction(work)

    assert await count(data_access, "SELECT COUNT(*) AS n FROM theaters WHERE name = 'Nova'") == 0


@pytest.mark.asyncio
async def test_committed_writes_visible(data_access):
    async def work(conn):
        await conn.execute("INSERT INTO theaters (name, city) VALUES ('Nova', 'Porto')")
        await conn.execute("INSERT INTO theaters (name, city) VALUES ('Sol', 'Faro')")

    await data_access.with_transaction(work)

    assert await count(data_access, "SELECT COUNT(*) AS n FROM theaters") == 2


@pytest.mark.asyncio
async def test_duplicate_seat_leaves_no_booking(data_access, showtime):
    seats = [
        SeatInput(seat_label="A1", price=Decimal("12.5")),
        SeatInput(seat_label="A1", price=Decimal("12.5")),
    ]

    with pytest.raises(IntegrityError) as exc_info:
        await data_access.create_booking_with_seats(
            showtime["user_id"], showtime["showtime_id"], BookingStatus.CONFIRMED,
            Decimal("25.00"), seats,
        )

    violation = classify_integrity_error(exc_info.value)
    assert violation.kind == ConstraintKind.UNIQUE
    assert violation.constraint_name == "uq_booking_seats_booking_label"
    assert await count(data_access, "SELECT COUNT(*) AS n FROM bookings") == 0
    assert await count(data_access, "SELECT COUNT(*) AS n FROM booking_seats") == 0


@pytest.mark.asyncio
async def test_booking_with_two_seats(data_access, showtime):
    seats = [
        SeatInput(seat_label="A1", price=Decimal("12.5")),
        SeatInput(seat_label="A2", price=Decimal("12.5")),
    ]

    booking_id = await data_access.create_booking_with_seats(
        showtime["user_id"], showtime["showtime_id"], BookingStatus.CONFIRMED,
        Decimal("25.00"), seats,
    )

    assert await count(
        data_access,
        "SELECT COUNT(*) AS n FROM booking_seats WHERE booking_id = :booking_id",
        {"booking_id": booking_id},
    ) == 2


@pytest.mark.asyncio
async def test_booking_for_unknown_showtime_fails(data_access, showtime):
    with pytest.raises(IntegrityError) as exc_info:
        await data_access.create_booking_with_seats(
            showtime["user_id"], 999_999, "CONFIRMED", Decimal("10"), []
        )

    assert classify_integrity_error(exc_info.value).kind == ConstraintKind.FOREIGN_KEY


@pytest.mark.asyncio
async def test_deleting_booking_cascades(data_access, showtime):
    booking_id = await data_access.create_booking_with_seats(
        showtime["user_id"], showtime["showtime_id"], "CONFIRMED", Decimal("12.5"),
        [SeatInput(seat_label="B4", price=Decimal("12.5"))],
    )
    await data_access.record_payment(booking_id, "CARD", Decimal("12.5"), "PAID", "tx-cascade")

    await data_access.execute("DELETE FROM bookings WHERE id = :id", {"id": booking_id})

    assert await count(data_access, "SELECT COUNT(*) AS n FROM booking_seats") == 0
    assert await count(data_access, "SELECT COUNT(*) AS n FROM payments") == 0


@pytest.mark.asyncio
async def test_payment_reference_deduplicated(data_access, showtime):
    booking_id = await data_access.create_booking_with_seats(
        showtime["user_id"], showtime["showtime_id"], "CONFIRMED", Decimal("25"), []
    )

    first = await data_access.record_payment(
        booking_id, PaymentMethod.CARD, Decimal("25.00"), PaymentStatus.PAID, "tx-100"
    )
    second = await data_access.record_payment(
        booking_id, PaymentMethod.CARD, Decimal("25.00"), PaymentStatus.PAID, "tx-100"
    )

    assert first.existed is False
    assert second.existed is True
    assert first.id == second.id
    assert await count(
        data_access, "SELECT COUNT(*) AS n FROM payments WHERE transaction_ref = 'tx-100'"
    ) == 1


@pytest.mark.asyncio
async def test_payments_without_reference_not_deduplicated(data_access, showtime):
    booking_id = await data_access.create_booking_with_seats(
        showtime["user_id"], showtime["showtime_id"], "CONFIRMED", Decimal("25"), []
    )

    first = await data_access.record_payment(booking_id, "CASH", Decimal("10"), "PAID")
    second = await data_access.record_payment(booking_id, "CASH", Decimal("10"), "PAID")

    assert first.id != second.id
    assert not first.existed and not second.existed
    assert await count(data_access, "SELECT COUNT(*) AS n FROM payments") == 2


@pytest.mark.asyncio
async def test_paid_at_only_for_paid(data_access, showtime):
    booking_id = await data_access.create_booking_with_seats(
        showtime["user_id"], showtime["showtime_id"], "PENDING", Decimal("25"), []
    )

    paid = await data_access.record_payment(booking_id, "CARD", Decimal("25"), "PAID", "tx-paid")
    pending = await data_access.record_payment(booking_id, "CARD", Decimal("25"), "PENDING", "tx-pending")

    rows = await data_access.execute("SELECT id, paid_at FROM payments ORDER BY id")
    paid_at = {row["id"]: row["paid_at"] for row in rows.rows}
    assert paid_at[paid.id] is not None
    assert paid_at[pending.id] is None


@pytest.mark.asyncio
async def test_payment_for_unknown_booking_propagates(data_access):
    with pytest.raises(IntegrityError):
        await data_access.record_payment(999_999, "CARD", Decimal("5"), "PAID", "tx-missing")


@pytest.mark.asyncio
async def test_pool_connections_restored(data_access, showtime):
    before = data_access.pool.checked_out()

    async def ok(conn):
        await conn.execute("SELECT 1")

    async def fail(conn):
        await conn.execute("SELECT 1")
        raise Abort()

    await data_access.with_transaction(ok)
    with pytest.raises(Abort):
        await data_access.with_transaction(fail)
    with pytest.raises(IntegrityError):
        await data_access.create_booking_with_seats(
            showtime["user_id"], showtime["showtime_id"], "CONFIRMED", Decimal("2"),
            [SeatInput(seat_label="Z9", price=1), SeatInput(seat_label="Z9", price=1)],
        )

    assert data_access.pool.checked_out() == before


@pytest.mark.asyncio
async def test_team_member_onboarding(data_access, showtime):
    team_member_id = await data_access.create_team_member(
        TeamMemberInput(
            first_name="Joao",
            last_name="Pires",
            email="joao@example.com",
            role=TeamMemberRole.ADMIN,
            theater_id=showtime["theater_id"],
        )
    )

    account = await data_access.execute(
        "SELECT role, password_hash FROM users WHERE email = 'joao@example.com'"
    )
    assert team_member_id > 0
    assert account.rows[0]["role"] == "ADMIN"

    with pytest.raises(IntegrityError):
        await data_access.create_team_member(
            TeamMemberInput(
                first_name="Joao", last_name="Pires", email="joao@example.com",
                role=TeamMemberRole.STAFF,
            )
        )

    assert await count(data_access, "SELECT COUNT(*) AS n FROM team_members") == 1
