"""Directory ORM models: AcademicYear, User, StudentEnrollment, ClassSection,
SectionSubject, CalendarEvent.

These tables are owned by the tenant/campus/user CRUD and event scheduling
flows; the attendance engine only reads them.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from attendance_engine.common.constants import UserRole, UserStatus, enum_values
from attendance_engine.database import Base


class AcademicYear(Base):
    __tablename__ = "academic_years"
    __table_args__ = (
        sa.UniqueConstraint("campus_id", "year_name", name="uq_academic_year_campus_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False, index=True)
    year_name: Mapped[str] = mapped_column(sa.String(50), nullable=False)
    start_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False, index=True)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False, index=True)
    username: Mapped[str] = mapped_column(sa.String(100), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), default="")
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role", values_callable=enum_values),
        nullable=False,
    )
    status: Mapped[UserStatus] = mapped_column(
        sa.Enum(UserStatus, name="user_status", values_callable=enum_values),
        nullable=False,
        default=UserStatus.active,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class ClassSection(Base):
    __tablename__ = "class_sections"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False)
    class_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False)
    academic_year_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("academic_years.id"), nullable=False
    )
    section_name: Mapped[str] = mapped_column(sa.String(20), nullable=False)


class StudentEnrollment(Base):
    __tablename__ = "student_enrollments"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(sa.String(100), nullable=False, index=True)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False)
    academic_year_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("academic_years.id"), nullable=False
    )
    class_id: Mapped[Optional[uuid.UUID]] = mapped_column(sa.Uuid)
    section_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("class_sections.id")
    )

    # Relationships
    academic_year: Mapped[AcademicYear] = relationship()


class SectionSubject(Base):
    """A subject taught in a class section; links teachers to academic years."""

    __tablename__ = "section_subjects"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    section_id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid, sa.ForeignKey("class_sections.id"), nullable=False
    )
    subject_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    teacher_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("users.id")
    )


class CalendarEvent(Base):
    """A scheduled class/session occurrence; attendance is taken against it."""

    __tablename__ = "calendar_events"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False, index=True)
    academic_year_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("academic_years.id")
    )
    event_name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    event_type: Mapped[str] = mapped_column(sa.String(50), default="class")
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    start_time: Mapped[Optional[time]] = mapped_column(sa.Time)
    end_time: Mapped[Optional[time]] = mapped_column(sa.Time)
