"""
Atomic write helpers built on the transaction coordinator.

- BookingTransaction: booking row plus its seat rows, visible as one unit
- PaymentTransaction: payment recording deduplicated by external transaction reference
- TeamMemberTransaction: team member plus its linked staff user account
"""

from cinema.transactions.booking_transaction import BookingTransaction, SeatInput
from cinema.transactions.payment_transaction import PaymentResult, PaymentTransaction
from cinema.transactions.team_member_transaction import TeamMemberInput, TeamMemberTransaction

__all__ = [
    "BookingTransaction",
    "PaymentResult",
    "PaymentTransaction",
    "SeatInput",
    "TeamMemberInput",
    "TeamMemberTransaction",
]
