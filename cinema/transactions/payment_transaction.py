"""
Idempotent payment recording.

Payment providers retry; a retried request carries the same external
transaction reference. The payments table has a unique constraint on that
reference, so the second insert fails with a unique violation and the
existing payment is returned instead of a duplicate row.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, insert, select
from sqlalchemy.exc import IntegrityError

from database.connection import ConnectionPool
from database.errors import ConstraintKind, classify_integrity_error
from database.models import (
    PAYMENT_TRANSACTION_REF_CONSTRAINT,
    Payment,
    PaymentMethod,
    PaymentStatus,
    enum_value,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of record_payment()."""

    id: int
    existed: bool


class PaymentTransaction:
    """Payment writer deduplicated by transaction reference."""

    def __init__(self, pool: ConnectionPool):
        self._pool = pool

    async def record_payment(
        self,
        booking_id: int,
        method: PaymentMethod | str,
        amount: Decimal,
        status: PaymentStatus | str,
        transaction_ref: str | None = None,
    ) -> PaymentResult:
        """
        Record a payment against a booking.

        paid_at is stamped with the store's NOW() when status is PAID.
        Status transitions are not checked here.

        Requires the bookings table group (SchemaRegistry.ensure_bookings()).

        Args:
            booking_id: Booking being paid
            method: Payment method
            amount: Amount paid
            status: Payment status
            transaction_ref: External reference used as idempotency key

        Returns:
            PaymentResult(id, existed=False) for a new row, or the existing
            row's id with existed=True when transaction_ref was already recorded

        Raises:
            IntegrityError: Any violation other than a duplicate transaction_ref
        """
        status = enum_value(status)
        statement = (
            insert(Payment)
            .values(
                booking_id=booking_id,
                method=enum_value(method),
                amount=amount,
                status=status,
                paid_at=func.now() if status == PaymentStatus.PAID.value else None,
                transaction_ref=transaction_ref,
            )
            .returning(Payment.id)
        )

        try:
            result = await self._pool.execute(statement)
        except IntegrityError as e:
            if transaction_ref is None or not self._is_duplicate_reference(e):
                raise

            existing = await self._pool.execute(
                select(Payment.id).where(Payment.transaction_ref == transaction_ref).limit(1)
            )
            if existing.row_count == 0:
                raise

            payment_id = existing.rows[0]["id"]
            logger.info(
                f"Payment for transaction_ref already recorded: {payment_id}",
                extra={
                    "payment_id": payment_id,
                    "booking_id": booking_id,
                    "transaction_ref": transaction_ref,
                },
            )
            return PaymentResult(id=payment_id, existed=True)

        payment_id = result.rows[0]["id"]
        logger.info(
            f"Payment {payment_id} recorded for booking {booking_id} ({status})",
            extra={
                "payment_id": payment_id,
                "booking_id": booking_id,
                "transaction_ref": transaction_ref,
            },
        )
        return PaymentResult(id=payment_id, existed=False)

    @staticmethod
    def _is_duplicate_reference(error: IntegrityError) -> bool:
        violation = classify_integrity_error(error)
        return violation is not None and violation.matches(
            ConstraintKind.UNIQUE, PAYMENT_TRANSACTION_REF_CONSTRAINT
        )
