"""
Schema registry - lazy, dependency-ordered table bootstrap.

Each table group is created at most once per registry, on first use:

    registry = SchemaRegistry(pool)
    await registry.ensure_bookings()   # users, movies, theaters, screens,
                                       # showtimes, then bookings/seats/payments

Groups and their dependencies (dependencies are ensured first, in order):

    users
    movies
    theaters
    screens             -> theaters
    showtimes           -> movies, screens
    bookings            -> users, showtimes       (bookings, booking_seats, payments)
    watchlist           -> users, movies
    team_members        -> theaters
    staff_schedules     -> team_members           (staff_schedules, staff_time_off_requests)
    staff_tasks         -> team_members
    staff_time_records  -> team_members

Every statement is CREATE ... IF NOT EXISTS, so re-running against an
existing database (process restarts, several processes) is harmless. A
group's statements run in one transaction, so when ensure_<group>()
returns the tables are committed.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import Table
from sqlalchemy.schema import CreateIndex, CreateTable

from database.connection import BoundConnection, ConnectionPool
from database.models import (
    Booking,
    BookingSeat,
    Movie,
    Payment,
    Screen,
    Showtime,
    StaffSchedule,
    StaffTask,
    StaffTimeOffRequest,
    StaffTimeRecord,
    TeamMember,
    Theater,
    User,
    WatchlistEntry,
)
from database.single_flight import SingleFlight
from database.transactions import TransactionCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableGroup:
    """Tables created together, after the groups they depend on."""

    name: str
    tables: tuple[Table, ...]
    depends_on: tuple[str, ...] = ()

    def ddl(self) -> list:
        """CREATE TABLE / CREATE INDEX statements in creation order."""
        statements: list = []
        for table in self.tables:
            statements.append(CreateTable(table, if_not_exists=True))
            for index in sorted(table.indexes, key=lambda i: i.name):
                statements.append(CreateIndex(index, if_not_exists=True))
        return statements


TABLE_GROUPS: tuple[TableGroup, ...] = (
    TableGroup("users", (User.__table__,)),
    TableGroup("movies", (Movie.__table__,)),
    TableGroup("theaters", (Theater.__table__,)),
    TableGroup("screens", (Screen.__table__,), depends_on=("theaters",)),
    TableGroup("showtimes", (Showtime.__table__,), depends_on=("movies", "screens")),
    TableGroup(
        "bookings",
        (Booking.__table__, BookingSeat.__table__, Payment.__table__),
        depends_on=("users", "showtimes"),
    ),
    TableGroup("watchlist", (WatchlistEntry.__table__,), depends_on=("users", "movies")),
    TableGroup("team_members", (TeamMember.__table__,), depends_on=("theaters",)),
    TableGroup(
        "staff_schedules",
        (StaffSchedule.__table__, StaffTimeOffRequest.__table__),
        depends_on=("team_members",),
    ),
    TableGroup("staff_tasks", (StaffTask.__table__,), depends_on=("team_members",)),
    TableGroup("staff_time_records", (StaffTimeRecord.__table__,), depends_on=("team_members",)),
)


class UnknownTableGroupError(LookupError):
    """Raised when ensure() is asked for a group that is not declared."""

    pass


class SchemaRegistry:
    """
    Per-process bootstrap state for every table group.

    Holds one SingleFlight cell per group. Concurrent ensure calls for the
    same group share one DDL execution; a failed execution is reported to
    all of its waiters and retried by the next call.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        groups: tuple[TableGroup, ...] = TABLE_GROUPS,
        transactions: TransactionCoordinator | None = None,
    ):
        self._transactions = transactions or TransactionCoordinator(pool)
        self._groups = {group.name: group for group in groups}
        for group in groups:
            for dependency in group.depends_on:
                if dependency not in self._groups:
                    raise UnknownTableGroupError(
                        f"Group '{group.name}' depends on undeclared group '{dependency}'"
                    )
        self._cells = {
            name: SingleFlight(name, self._bootstrap_operation(group))
            for name, group in self._groups.items()
        }

    @property
    def groups(self) -> list[str]:
        return list(self._groups)

    def is_ready(self, group_name: str) -> bool:
        return self._cell(group_name).done

    def attempts(self, group_name: str) -> int:
        """How many DDL attempts have been started for a group."""
        return self._cell(group_name).attempts

    def tables_for(self, group_names: Iterable[str] | None = None) -> list[Table]:
        """
        Tables created by ensuring the given groups, dependencies first.

        Args:
            group_names: Groups to resolve (default: every declared group)

        Raises:
            UnknownTableGroupError: If a group is not declared
        """
        names = list(self._groups) if group_names is None else list(group_names)
        seen: set[str] = set()
        tables: list[Table] = []

        def visit(name: str) -> None:
            if name in seen:
                return
            group = self._group(name)
            seen.add(name)
            for dependency in group.depends_on:
                visit(dependency)
            tables.extend(group.tables)

        for name in names:
            visit(name)
        return tables

    async def ensure(self, group_name: str) -> None:
        """
        Make sure a table group (and its dependencies) exists.

        Args:
            group_name: One of the declared group names

        Raises:
            UnknownTableGroupError: If the group is not declared
            SQLAlchemyError: If the DDL failed (the next call retries)
        """
        await self._cell(group_name).run()

    async def ensure_all(self) -> None:
        """Bootstrap every declared group, in declaration order."""
        for name in self._groups:
            await self.ensure(name)

    async def ensure_users(self) -> None:
        await self.ensure("users")

    async def ensure_movies(self) -> None:
        await self.ensure("movies")

    async def ensure_theaters(self) -> None:
        await self.ensure("theaters")

    async def ensure_screens(self) -> None:
        await self.ensure("screens")

    async def ensure_showtimes(self) -> None:
        await self.ensure("showtimes")

    async def ensure_bookings(self) -> None:
        """Bookings, booking seats and payments."""
        await self.ensure("bookings")

    async def ensure_watchlist(self) -> None:
        await self.ensure("watchlist")

    async def ensure_team_members(self) -> None:
        await self.ensure("team_members")

    async def ensure_staff_schedules(self) -> None:
        """Staff schedules and time-off requests."""
        await self.ensure("staff_schedules")

    async def ensure_staff_tasks(self) -> None:
        await self.ensure("staff_tasks")

    async def ensure_staff_time_records(self) -> None:
        await self.ensure("staff_time_records")

    def _group(self, group_name: str) -> TableGroup:
        try:
            return self._groups[group_name]
        except KeyError:
            raise UnknownTableGroupError(f"Unknown table group: '{group_name}'") from None

    def _cell(self, group_name: str) -> SingleFlight:
        self._group(group_name)
        return self._cells[group_name]

    def _bootstrap_operation(self, group: TableGroup):
        async def bootstrap() -> None:
            for dependency in group.depends_on:
                await self.ensure(dependency)

            logger.info(
                f"Creating table group '{group.name}'",
                extra={"table_group": group.name},
            )

            async def create_tables(conn: BoundConnection) -> None:
                for statement in group.ddl():
                    await conn.execute(statement)

            try:
                await self._transactions.with_transaction(create_tables)
            except Exception as e:
                logger.error(
                    f"Failed to create table group '{group.name}': {e}",
                    extra={"table_group": group.name},
                    exc_info=True,
                )
                raise

            logger.info(
                f"Table group '{group.name}' ready",
                extra={"table_group": group.name},
            )

        return bootstrap
