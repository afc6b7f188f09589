"""Consolidated report builder — one row per (user, date) over a range.

Pipeline (each step is a single batched fetch):
  1. Re-sync student daily summaries from session attendance
  2. Resolve the user population and their academic-year contexts
  3. Load the campus calendar policies once
  4. Load daily summaries for all users over the range
  5. Load leave counts
  6. Join in memory, ordered by (date, username)

Any failed fetch aborts the whole report with ``ReportGenerationError``.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.attendance.models import DailyAttendance
from attendance_engine.attendance.service import AttendanceSyncEngine
from attendance_engine.calendar_policy.resolver import CalendarResolver
from attendance_engine.calendar_policy.store import PolicyStore
from attendance_engine.common.constants import (
    NO_ATTENDANCE,
    SESSION_DERIVED_ROLES,
    ZERO_DURATION,
    UserRole,
)
from attendance_engine.common.dates import format_duration, iter_dates, validate_date_range
from attendance_engine.common.exceptions import ReportGenerationError, ValidationException
from attendance_engine.config import settings
from attendance_engine.directory.service import DirectoryService
from attendance_engine.leave.service import LeaveCounter, LeaveCounts
from attendance_engine.reports.schemas import ConsolidatedAttendanceRow

logger = logging.getLogger(__name__)


class ConsolidatedReportBuilder:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.directory = DirectoryService(db)
        self.store = PolicyStore(db)
        self.leaves = LeaveCounter(db)
        self.sync_engine = AttendanceSyncEngine(db)

    async def build_report(
        self,
        campus_id: uuid.UUID,
        roles: Sequence[UserRole],
        academic_year_name: Optional[str],
        start_date: date,
        end_date: date,
        tenant_id: uuid.UUID,
        class_id: Optional[uuid.UUID] = None,
        section_id: Optional[uuid.UUID] = None,
    ) -> list[ConsolidatedAttendanceRow]:
        """Consolidated daily attendance for every matching user and date."""

        validate_date_range(start_date, end_date, max_days=settings.REPORT_MAX_RANGE_DAYS)
        roles = [UserRole(r) for r in dict.fromkeys(roles)]
        if not roles:
            raise ValidationException({"roles": ["At least one role is required."]})

        if any(r in SESSION_DERIVED_ROLES for r in roles):
            try:
                sync = await self.sync_engine.sync_range(
                    campus_id, start_date, end_date, academic_year_name,
                )
            except SQLAlchemyError as exc:
                logger.exception("Report aborted: attendance sync failed")
                raise ReportGenerationError("attendance sync") from exc
            logger.info("Pre-report sync: %d synced, %d failed", sync.synced, sync.failed)

        try:
            users = await self.directory.find_report_users(
                tenant_id=tenant_id,
                campus_id=campus_id,
                roles=roles,
                academic_year_name=academic_year_name,
                class_id=class_id,
                section_id=section_id,
            )
        except SQLAlchemyError as exc:
            logger.exception("Report aborted: user lookup failed")
            raise ReportGenerationError("users") from exc

        if not users:
            return []

        try:
            index = await self.store.load_index(campus_id, start_date, end_date)
        except SQLAlchemyError as exc:
            logger.exception("Report aborted: calendar policy load failed")
            raise ReportGenerationError("calendar policies") from exc

        usernames = [u.username for u in users]
        try:
            daily = await self._load_daily(usernames, start_date, end_date)
        except SQLAlchemyError as exc:
            logger.exception("Report aborted: daily attendance load failed")
            raise ReportGenerationError("daily attendance") from exc

        try:
            leave_counts = await self.leaves.counts(usernames, start_date, end_date)
        except SQLAlchemyError as exc:
            logger.exception("Report aborted: leave count failed")
            raise ReportGenerationError("leave counts") from exc

        resolver = CalendarResolver(index)
        rows: list[ConsolidatedAttendanceRow] = []
        for day in iter_dates(start_date, end_date):
            for user in users:
                day_status = resolver.resolve_day(day, user.role, user.academic_year_ids)
                summary = daily.get((user.username, day))
                leave = leave_counts.get(user.username, LeaveCounts())
                rows.append(
                    ConsolidatedAttendanceRow(
                        date=day,
                        user_id=user.user_id,
                        username=user.username,
                        first_name=user.first_name,
                        last_name=user.last_name,
                        role=user.role,
                        year_name=summary.year_name if summary else None,
                        status=summary.status.value if summary else NO_ATTENDANCE,
                        duration=format_duration(summary.duration) if summary else ZERO_DURATION,
                        total_duration=(
                            format_duration(summary.total_duration) if summary else ZERO_DURATION
                        ),
                        login_time=_clock(summary.login_time) if summary else None,
                        logout_time=_clock(summary.logout_time) if summary else None,
                        is_holiday=day_status.is_holiday,
                        is_half_day=day_status.is_half_day,
                        expected_hours=(
                            settings.HALF_DAY_EXPECTED_HOURS
                            if day_status.is_half_day
                            else settings.FULL_DAY_EXPECTED_HOURS
                        ),
                        leaves_pending=leave.pending,
                        leaves_approved=leave.approved,
                    )
                )

        logger.info(
            "Built consolidated report for campus %s (%s..%s): %d users, %d rows",
            campus_id, start_date, end_date, len(users), len(rows),
        )
        return rows

    async def _load_daily(
        self, usernames: list[str], start_date: date, end_date: date,
    ) -> dict[tuple[str, date], DailyAttendance]:
        result = await self.db.execute(
            select(DailyAttendance)
            .where(
                DailyAttendance.username.in_(usernames),
                DailyAttendance.attendance_date >= start_date,
                DailyAttendance.attendance_date <= end_date,
            )
            .execution_options(populate_existing=True)
        )
        return {(d.username, d.attendance_date): d for d in result.scalars().all()}


def _clock(value) -> Optional[str]:
    return value.strftime("%H:%M") if value is not None else None
