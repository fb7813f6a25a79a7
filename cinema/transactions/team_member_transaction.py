"""
Team-member onboarding.

Every team member gets a user account with the same email so they can
sign in to the staff area. The team_members insert and the users upsert
run in one transaction; a duplicate team-member email leaves both tables
untouched.
"""

import logging
from datetime import date

from pydantic import BaseModel, ConfigDict
from sqlalchemy import func, insert
from sqlalchemy.dialects.postgresql import insert as pg_insert

from database.connection import BoundConnection
from database.models import TeamMember, TeamMemberRole, TeamMemberStatus, User, UserRole
from database.transactions import TransactionCoordinator

logger = logging.getLogger(__name__)


class TeamMemberInput(BaseModel):
    """Validated team member fields."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    first_name: str
    last_name: str
    email: str
    role: TeamMemberRole
    phone: str | None = None
    department: str | None = None
    status: TeamMemberStatus = TeamMemberStatus.ACTIVE
    theater_id: int | None = None
    hired_at: date | None = None


def user_role_for(role: TeamMemberRole) -> UserRole:
    """Account role granted to a team member."""
    return UserRole.ADMIN if role == TeamMemberRole.ADMIN else UserRole.STAFF


class TeamMemberTransaction:
    """Creates a team member together with its linked user account."""

    def __init__(self, transactions: TransactionCoordinator, default_password_hash: str):
        self._transactions = transactions
        self._default_password_hash = default_password_hash

    async def create_team_member(self, member: TeamMemberInput) -> int:
        """
        Insert a team member and upsert its user account.

        An existing user with the same email keeps its credential hash but
        has name, phone and role refreshed.

        Requires the team_members and users table groups.

        Returns:
            The new team member id
        """
        email = member.email.lower()
        user_role = user_role_for(member.role)

        async def work(conn: BoundConnection) -> int:
            result = await conn.execute(
                insert(TeamMember)
                .values(
                    first_name=member.first_name,
                    last_name=member.last_name,
                    email=email,
                    phone=member.phone or None,
                    role=member.role.value,
                    department=member.department or None,
                    status=member.status.value,
                    theater_id=member.theater_id,
                    hired_at=member.hired_at,
                )
                .returning(TeamMember.id)
            )

            account = pg_insert(User).values(
                first_name=member.first_name,
                last_name=member.last_name,
                email=email,
                phone=member.phone or None,
                password_hash=self._default_password_hash,
                role=user_role.value,
            )
            await conn.execute(
                account.on_conflict_do_update(
                    index_elements=[User.email],
                    set_={
                        "first_name": account.excluded.first_name,
                        "last_name": account.excluded.last_name,
                        "phone": account.excluded.phone,
                        "role": account.excluded.role,
                        "updated_at": func.now(),
                    },
                )
            )

            return result.rows[0]["id"]

        team_member_id = await self._transactions.with_transaction(work)

        logger.info(
            f"Team member {team_member_id} created with {user_role.value} account",
            extra={"team_member_id": team_member_id},
        )
        return team_member_id
