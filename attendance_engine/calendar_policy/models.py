"""Calendar policy ORM models: WeekendPolicy, HolidayEvent, HolidayAcademicYear,
SpecialWorkingDay."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_engine.common.constants import DurationCategory, enum_values
from attendance_engine.database import Base


class WeekendPolicy(Base):
    __tablename__ = "weekend_policies"
    __table_args__ = (
        sa.UniqueConstraint(
            "campus_id", "academic_year_id", name="uq_weekend_policy_campus_year"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False, index=True)
    academic_year_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False
    )
    is_sunday_holiday: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    is_saturday_holiday: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    is_saturday_half_day: Mapped[bool] = mapped_column(sa.Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class HolidayEvent(Base):
    __tablename__ = "holiday_events"
    __table_args__ = (
        sa.CheckConstraint("start_date <= end_date", name="ck_holiday_event_dates"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False, index=True)
    holiday_name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    duration_category: Mapped[DurationCategory] = mapped_column(
        sa.Enum(DurationCategory, name="duration_category", values_callable=enum_values),
        nullable=False,
        default=DurationCategory.full_day,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    holiday_type: Mapped[str] = mapped_column(sa.String(50), default="General")
    is_paid: Mapped[bool] = mapped_column(sa.Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    academic_years: Mapped[list[HolidayAcademicYear]] = relationship(
        back_populates="holiday",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class HolidayAcademicYear(Base):
    """Maps a holiday event to the academic years it is restricted to."""

    __tablename__ = "holiday_academic_years"

    holiday_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("holiday_events.id", ondelete="CASCADE"), primary_key=True
    )
    academic_year_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("academic_years.id", ondelete="CASCADE"), primary_key=True
    )

    # Relationships
    holiday: Mapped[HolidayEvent] = relationship(back_populates="academic_years")


class SpecialWorkingDay(Base):
    """One row per academic-year scope, or a single row with no year for all years."""

    __tablename__ = "special_working_days"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False, index=True)
    work_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    description: Mapped[str] = mapped_column(sa.String(255), default="")
    academic_year_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("academic_years.id", ondelete="CASCADE")
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
