"""
Booking creation with seats.

A booking and all of its seat rows are inserted in one transaction: either
the booking exists with every requested seat, or nothing was written and
the generated booking id was never visible to another reader.
"""

import logging
from collections.abc import Sequence
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import insert

from database.connection import BoundConnection
from database.models import Booking, BookingSeat, BookingStatus, enum_value
from database.transactions import TransactionCoordinator

logger = logging.getLogger(__name__)


class SeatInput(BaseModel):
    """A seat requested for a booking."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    seat_label: str = Field(min_length=1)
    price: Decimal = Field(ge=0)


class BookingTransaction:
    """Atomic booking + seats writer."""

    def __init__(self, transactions: TransactionCoordinator):
        self._transactions = transactions

    async def create_booking_with_seats(
        self,
        user_id: int,
        showtime_id: int,
        status: BookingStatus | str,
        total_amount: Decimal,
        seats: Sequence[SeatInput],
    ) -> int:
        """
        Create a booking and its seats atomically.

        Requires the bookings table group (SchemaRegistry.ensure_bookings()).

        Args:
            user_id: Booking owner
            showtime_id: Showtime being booked
            status: Initial booking status
            total_amount: Total charged for the booking
            seats: Seats to reserve; may be empty

        Returns:
            The new booking id

        Raises:
            IntegrityError: Duplicate seat label, unknown user/showtime or a
                failed CHECK; nothing is written
        """

        async def work(conn: BoundConnection) -> int:
            result = await conn.execute(
                insert(Booking)
                .values(
                    user_id=user_id,
                    showtime_id=showtime_id,
                    status=enum_value(status),
                    total_amount=total_amount,
                )
                .returning(Booking.id)
            )
            booking_id = result.rows[0]["id"]

            for seat in seats:
                await conn.execute(
                    insert(BookingSeat).values(
                        booking_id=booking_id,
                        seat_label=seat.seat_label,
                        price=seat.price,
                    )
                )

            return booking_id

        booking_id = await self._transactions.with_transaction(work)

        logger.info(
            f"Booking {booking_id} created with {len(seats)} seat(s)",
            extra={"booking_id": booking_id},
        )
        return booking_id
