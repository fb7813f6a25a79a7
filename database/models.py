"""
SQLAlchemy ORM models for the cinema platform tables.

This module defines the tables created by the schema registry:
- Catalog: users, movies, theaters, screens, showtimes, watchlist
- Sales: bookings, booking_seats, payments
- Workforce: team_members, staff_schedules, staff_time_off_requests,
  staff_tasks, staff_time_records

All models use:
- BIGSERIAL primary keys
- TIMESTAMP WITH TIME ZONE audit columns defaulting to NOW()
- NUMERIC(10,2) for money
- Named CHECK constraints for enumerated values (no database enum types,
  so every CREATE statement stays re-runnable)
- ON DELETE CASCADE from every owned child row to its parent
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    TIMESTAMP,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

# Name of the unique constraint used as the payment idempotency key
PAYMENT_TRANSACTION_REF_CONSTRAINT = "uq_payments_transaction_ref"

# ============================================================================
# Base Class
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# ============================================================================
# Enums
# ============================================================================


class UserRole(str, PyEnum):
    CUSTOMER = "CUSTOMER"
    STAFF = "STAFF"
    ADMIN = "ADMIN"


class MovieStatus(str, PyEnum):
    NOW_SHOWING = "NOW_SHOWING"
    COMING_SOON = "COMING_SOON"
    ARCHIVED = "ARCHIVED"


class BookingStatus(str, PyEnum):
    """Booking lifecycle status."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, PyEnum):
    CARD = "CARD"
    CASH = "CASH"
    WALLET = "WALLET"
    ONLINE_BANKING = "ONLINE_BANKING"


class PaymentStatus(str, PyEnum):
    """
    Payment status.

    Valid transitions: PENDING -> PAID | FAILED, PAID -> REFUNDED.
    """

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class TeamMemberRole(str, PyEnum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"


class TeamMemberStatus(str, PyEnum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    ON_LEAVE = "ON_LEAVE"


class ScheduleStatus(str, PyEnum):
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    MISSED = "MISSED"
    CANCELLED = "CANCELLED"


class TimeOffType(str, PyEnum):
    VACATION = "VACATION"
    SICK = "SICK"
    PERSONAL = "PERSONAL"
    OTHER = "OTHER"


class TimeOffStatus(str, PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class TaskPriority(str, PyEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TaskStatus(str, PyEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TimeRecordStatus(str, PyEnum):
    CLOCKED_IN = "CLOCKED_IN"
    COMPLETED = "COMPLETED"
    MISSED = "MISSED"
    ABSENT = "ABSENT"


def enum_check(column: str, enum_cls: type[PyEnum], name: str) -> CheckConstraint:
    """Build a named CHECK constraint restricting a text column to an enum's values."""
    allowed = ", ".join(f"'{member.value}'" for member in enum_cls)
    return CheckConstraint(f"{column} IN ({allowed})", name=name)


def _created_at():
    return mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), nullable=False
    )


def _updated_at():
    return mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# ============================================================================
# Catalog Models
# ============================================================================


class User(Base):
    """
    User model - Customer, staff and admin accounts.

    Staff accounts are created alongside team members (see
    TeamMemberTransaction) and share the team member's email.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=UserRole.CUSTOMER.value
    )

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    bookings: Mapped[list["Booking"]] = relationship(
        "Booking", back_populates="user", passive_deletes=True
    )

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        enum_check("role", UserRole, "check_users_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"


class Movie(Base):
    """Movie model - Titles in the catalog."""

    __tablename__ = "movies"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_min: Mapped[int] = mapped_column(Integer, nullable=False)
    rating: Mapped[str | None] = mapped_column(Text, nullable=True)
    release_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    poster_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=MovieStatus.COMING_SOON.value
    )

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        CheckConstraint("duration_min > 0", name="check_movies_duration_positive"),
        enum_check("status", MovieStatus, "check_movies_status"),
        Index("idx_movies_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Movie(id={self.id}, title='{self.title}')>"


class Theater(Base):
    """Theater model - Physical cinema locations."""

    __tablename__ = "theaters"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    screens: Mapped[list["Screen"]] = relationship(
        "Screen", back_populates="theater", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Theater(id={self.id}, name='{self.name}', city='{self.city}')>"


class Screen(Base):
    """Screen model - Auditoriums inside a theater."""

    __tablename__ = "screens"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    theater_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("theaters.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)
    total_seats: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    theater: Mapped["Theater"] = relationship("Theater", back_populates="screens")

    __table_args__ = (
        UniqueConstraint("theater_id", "name", name="uq_screens_theater_name"),
        CheckConstraint("total_seats > 0", name="check_screens_seats_positive"),
    )

    def __repr__(self) -> str:
        return f"<Screen(id={self.id}, theater_id={self.theater_id}, name='{self.name}')>"


class Showtime(Base):
    """Showtime model - A movie scheduled on a screen."""

    __tablename__ = "showtimes"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    movie_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("movies.id", ondelete="CASCADE"), nullable=False
    )
    screen_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("screens.id", ondelete="CASCADE"), nullable=False
    )

    start_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    end_time: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    language: Mapped[str | None] = mapped_column(Text, nullable=True)
    format: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        CheckConstraint("price >= 0", name="check_showtimes_price_non_negative"),
        CheckConstraint("end_time > start_time", name="check_showtimes_end_after_start"),
        Index("idx_showtimes_movie_id", "movie_id"),
        Index("idx_showtimes_screen_start", "screen_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Showtime(id={self.id}, movie_id={self.movie_id}, start_time={self.start_time})>"


class WatchlistEntry(Base):
    """Watchlist entry - A movie saved by a user."""

    __tablename__ = "watchlist"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    movie_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("movies.id", ondelete="CASCADE"), nullable=False
    )

    created_at: Mapped[datetime] = _created_at()

    __table_args__ = (
        UniqueConstraint("user_id", "movie_id", name="uq_watchlist_user_movie"),
    )


# ============================================================================
# Sales Models
# ============================================================================


class Booking(Base):
    """
    Booking model - A user's reservation for one showtime.

    Created together with its seats by BookingTransaction; seats and
    payments are removed with the booking.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    showtime_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("showtimes.id", ondelete="CASCADE"), nullable=False
    )

    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=BookingStatus.PENDING.value
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    booked_at: Mapped[datetime] = _created_at()

    user: Mapped["User"] = relationship("User", back_populates="bookings")
    seats: Mapped[list["BookingSeat"]] = relationship(
        "BookingSeat", back_populates="booking", passive_deletes=True
    )
    payments: Mapped[list["Payment"]] = relationship(
        "Payment", back_populates="booking", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="check_bookings_amount_non_negative"),
        enum_check("status", BookingStatus, "check_bookings_status"),
        Index("idx_bookings_user_id", "user_id"),
        Index("idx_bookings_showtime_id", "showtime_id"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user_id={self.user_id}, status={self.status})>"


class BookingSeat(Base):
    """Booking seat - One labelled seat within a booking."""

    __tablename__ = "booking_seats"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )

    seat_label: Mapped[str] = mapped_column(Text, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    created_at: Mapped[datetime] = _created_at()

    booking: Mapped["Booking"] = relationship("Booking", back_populates="seats")

    __table_args__ = (
        UniqueConstraint("booking_id", "seat_label", name="uq_booking_seats_booking_label"),
        CheckConstraint("price >= 0", name="check_booking_seats_price_non_negative"),
    )


class Payment(Base):
    """
    Payment model - Money received (or attempted) for a booking.

    transaction_ref is the external reference supplied by the payment
    provider; it is unique when present and doubles as the idempotency
    key for PaymentTransaction.record_payment().
    """

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    booking_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )

    method: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=PaymentStatus.PENDING.value
    )
    paid_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    transaction_ref: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = _created_at()

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")

    __table_args__ = (
        UniqueConstraint("transaction_ref", name=PAYMENT_TRANSACTION_REF_CONSTRAINT),
        CheckConstraint("amount >= 0", name="check_payments_amount_non_negative"),
        enum_check("method", PaymentMethod, "check_payments_method"),
        enum_check("status", PaymentStatus, "check_payments_status"),
        Index("idx_payments_booking_id", "booking_id"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, booking_id={self.booking_id}, status={self.status})>"


# ============================================================================
# Workforce Models
# ============================================================================


class TeamMember(Base):
    """
    Team member model - Cinema staff records.

    Optionally assigned to a theater; all schedule, task and time rows are
    owned by the team member and removed with it.
    """

    __tablename__ = "team_members"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)

    first_name: Mapped[str] = mapped_column(Text, nullable=False)
    last_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    department: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=TeamMemberStatus.ACTIVE.value
    )
    theater_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("theaters.id", ondelete="SET NULL"), nullable=True
    )
    hired_at: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    theater: Mapped[Optional["Theater"]] = relationship("Theater")

    __table_args__ = (
        UniqueConstraint("email", name="uq_team_members_email"),
        enum_check("role", TeamMemberRole, "check_team_members_role"),
        enum_check("status", TeamMemberStatus, "check_team_members_status"),
        Index("idx_team_members_theater_id", "theater_id"),
    )

    def __repr__(self) -> str:
        return f"<TeamMember(id={self.id}, email='{self.email}', role={self.role})>"


class StaffSchedule(Base):
    """Staff schedule - One shift assigned to a team member."""

    __tablename__ = "staff_schedules"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    team_member_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False
    )

    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    role_on_shift: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=ScheduleStatus.SCHEDULED.value
    )

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        UniqueConstraint(
            "team_member_id", "shift_date", "start_time",
            name="uq_staff_schedules_member_date_start",
        ),
        CheckConstraint("end_time > start_time", name="check_staff_schedules_end_after_start"),
        enum_check("status", ScheduleStatus, "check_staff_schedules_status"),
    )


class StaffTimeOffRequest(Base):
    """Staff time-off request - Full or partial-day leave."""

    __tablename__ = "staff_time_off_requests"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    team_member_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False
    )

    request_type: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=TimeOffType.OTHER.value
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    partial_day: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    partial_start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    partial_end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=TimeOffStatus.PENDING.value
    )

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="check_time_off_end_after_start"),
        enum_check("request_type", TimeOffType, "check_time_off_request_type"),
        enum_check("status", TimeOffStatus, "check_time_off_status"),
        Index("idx_time_off_team_member_id", "team_member_id"),
    )


class StaffTask(Base):
    """Staff task - Work item assigned to a team member."""

    __tablename__ = "staff_tasks"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    team_member_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=TaskPriority.MEDIUM.value
    )
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=TaskStatus.PENDING.value
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        enum_check("priority", TaskPriority, "check_staff_tasks_priority"),
        enum_check("status", TaskStatus, "check_staff_tasks_status"),
        Index("idx_staff_tasks_member_status", "team_member_id", "status"),
    )


class StaffTimeRecord(Base):
    """Staff time record - Clock-in/clock-out for one work day."""

    __tablename__ = "staff_time_records"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    team_member_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("team_members.id", ondelete="CASCADE"), nullable=False
    )

    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    clock_in_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    clock_out_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=TimeRecordStatus.CLOCKED_IN.value
    )

    created_at: Mapped[datetime] = _created_at()
    updated_at: Mapped[datetime] = _updated_at()

    __table_args__ = (
        UniqueConstraint("team_member_id", "work_date", name="uq_staff_time_records_member_date"),
        CheckConstraint("break_minutes >= 0", name="check_staff_time_records_break_non_negative"),
        CheckConstraint(
            "clock_out_at IS NULL OR clock_out_at >= clock_in_at",
            name="check_staff_time_records_clock_out_after_in",
        ),
        enum_check("status", TimeRecordStatus, "check_staff_time_records_status"),
    )


def enum_value(value: PyEnum | str) -> str:
    """Plain string for an enum member or an already-plain value."""
    return value.value if isinstance(value, PyEnum) else value
