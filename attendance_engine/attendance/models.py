"""Attendance ORM models: EventAttendance, DailyAttendance."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from attendance_engine.common.constants import AttendanceStatus, UserRole, enum_values
from attendance_engine.database import Base


class EventAttendance(Base):
    """Attendance of one user at one calendar event (class session) on one date."""

    __tablename__ = "event_attendance"
    __table_args__ = (
        sa.UniqueConstraint(
            "event_id", "user_id", "attendance_date", name="uq_event_attendance_event_user_date"
        ),
        sa.Index("ix_event_attendance_user_date", "user_id", "attendance_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("calendar_events.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    attendance_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    attendance_status: Mapped[AttendanceStatus] = mapped_column(
        sa.Enum(AttendanceStatus, name="attendance_status", values_callable=enum_values),
        nullable=False,
    )
    actual_present_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    total_scheduled_hours: Mapped[Decimal] = mapped_column(
        sa.Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    academic_year_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("academic_years.id")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class DailyAttendance(Base):
    """Per-user daily summary; for students it is derived from ``EventAttendance``."""

    __tablename__ = "user_attendance"
    __table_args__ = (
        sa.UniqueConstraint("username", "attendance_date", name="uq_user_attendance_user_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False, index=True)
    attendance_date: Mapped[date] = mapped_column(sa.Date, nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        sa.Enum(AttendanceStatus, name="attendance_status", values_callable=enum_values),
        nullable=False,
    )
    duration: Mapped[timedelta] = mapped_column(sa.Interval, nullable=False)
    total_duration: Mapped[timedelta] = mapped_column(sa.Interval, nullable=False)
    login_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    logout_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    year_name: Mapped[Optional[str]] = mapped_column(sa.String(50))
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role", values_callable=enum_values),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
