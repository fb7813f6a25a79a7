"""
Data-access facade.

Bundles the pool, schema registry, transaction coordinator and write
helpers behind one object for the HTTP layer:

    data = create_data_access()
    await data.schema.ensure_bookings()
    booking_id = await data.create_booking_with_seats(
        user_id=1, showtime_id=7, status="CONFIRMED",
        total_amount=Decimal("25.00"),
        seats=[SeatInput(seat_label="A1", price=Decimal("12.50"))],
    )
    payment = await data.record_payment(booking_id, "CARD", Decimal("25.00"), "PAID", "tx-100")
"""

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from cinema.transactions import (
    BookingTransaction,
    PaymentResult,
    PaymentTransaction,
    SeatInput,
    TeamMemberInput,
    TeamMemberTransaction,
)
from database.connection import ConnectionPool, QueryResult, Statement, create_pool
from database.models import BookingStatus, PaymentMethod, PaymentStatus
from database.schema import SchemaRegistry
from database.transactions import TransactionCoordinator, TransactionWork
from shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DataAccess:
    """Entry point to the data-access layer for one connection pool."""

    def __init__(self, pool: ConnectionPool, default_staff_password_hash: str):
        self.pool = pool
        self.transactions = TransactionCoordinator(pool)
        self.schema = SchemaRegistry(pool, transactions=self.transactions)
        self.bookings = BookingTransaction(self.transactions)
        self.payments = PaymentTransaction(pool)
        self.team_members = TeamMemberTransaction(self.transactions, default_staff_password_hash)

    async def execute(self, statement: Statement, params: dict[str, Any] | None = None) -> QueryResult:
        """Run one statement outside any transaction."""
        return await self.pool.execute(statement, params)

    async def with_transaction(self, work: TransactionWork[T]) -> T:
        return await self.transactions.with_transaction(work)

    async def create_booking_with_seats(
        self,
        user_id: int,
        showtime_id: int,
        status: BookingStatus | str,
        total_amount: Decimal,
        seats: Sequence[SeatInput],
    ) -> int:
        return await self.bookings.create_booking_with_seats(
            user_id, showtime_id, status, total_amount, seats
        )

    async def record_payment(
        self,
        booking_id: int,
        method: PaymentMethod | str,
        amount: Decimal,
        status: PaymentStatus | str,
        transaction_ref: str | None = None,
    ) -> PaymentResult:
        return await self.payments.record_payment(
            booking_id, method, amount, status, transaction_ref
        )

    async def create_team_member(self, member: TeamMemberInput) -> int:
        return await self.team_members.create_team_member(member)

    async def check_health(self) -> dict[str, Any]:
        """
        Probe the store with SELECT 1.

        Returns:
            {"ok": True, "database": "connected"} or
            {"ok": False, "database": "unavailable", "details": str}
        """
        try:
            await self.pool.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database health check failed: {e}")
            return {"ok": False, "database": "unavailable", "details": str(e)}
        return {"ok": True, "database": "connected"}

    async def close(self) -> None:
        await self.pool.dispose()


def create_data_access(settings: Settings | None = None) -> DataAccess:
    """Build a DataAccess with a new pool configured from settings."""
    settings = settings or get_settings()
    return DataAccess(
        create_pool(settings),
        default_staff_password_hash=settings.DEFAULT_STAFF_PASSWORD_HASH,
    )
