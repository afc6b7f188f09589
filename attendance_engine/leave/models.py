"""Leave ORM model: LeaveRequest (one row per requested day)."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from attendance_engine.common.constants import LeaveStatus, enum_values
from attendance_engine.database import Base


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.Index("ix_leave_requests_user_date", "username", "leave_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    username: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    campus_id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, nullable=False)
    leave_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    leave_type: Mapped[Optional[str]] = mapped_column(sa.String(50))
    overall_status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", values_callable=enum_values),
        nullable=False,
        default=LeaveStatus.pending,
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
