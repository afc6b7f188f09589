"""Attendance sync engine — keeps daily summaries consistent with session attendance.

Business logic:
  - Session attendance upsert keyed on (event, user, date); never duplicates
  - Daily summary recomputed from ALL of a user's sessions on that date:
      ratio = sum(actual_present_hours) / sum(total_scheduled_hours)
      Present iff sum(scheduled) > 0 and ratio >= PRESENCE_THRESHOLD
  - A session write and its recompute are one unit of work; any failure
    rolls both back
  - Range sync reads grouped sums in one query and commits each (user, date)
    summary on its own
  - Only session-derived roles (students) are aggregated
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.attendance.models import DailyAttendance, EventAttendance
from attendance_engine.attendance.schemas import (
    DailySummary,
    DeleteEventAttendanceResponse,
    EventAttendanceRecord,
    EventAttendanceResponse,
    SaveEventAttendanceResponse,
    SyncRangeResult,
)
from attendance_engine.common.constants import SESSION_DERIVED_ROLES, AttendanceStatus, UserRole
from attendance_engine.common.dates import (
    format_duration,
    hours_to_interval,
    validate_date_range,
)
from attendance_engine.common.exceptions import (
    AggregationError,
    AppException,
    NotFoundException,
)
from attendance_engine.config import settings
from attendance_engine.database import upsert
from attendance_engine.directory.models import User
from attendance_engine.directory.service import DirectoryService

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")

# login/logout written by a range sync, which has no clock data of its own
_RANGE_SYNC_CLOCK = time(0, 0)


def is_present(present_hours: Decimal, scheduled_hours: Decimal) -> bool:
    """Present iff something was scheduled and the attended share meets the threshold."""
    if scheduled_hours <= _ZERO:
        return False
    return present_hours / scheduled_hours >= settings.PRESENCE_THRESHOLD


class AttendanceSyncEngine:
    """Writes session attendance and recomputes the affected daily summaries."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.directory = DirectoryService(db)

    # ── Single session write ────────────────────────────────────────

    async def record_session_attendance(
        self,
        *,
        event_id: uuid.UUID,
        user_id: uuid.UUID,
        status: AttendanceStatus,
        present_hours: Decimal,
        scheduled_hours: Decimal,
        attendance_date: date,
        academic_year_id: Optional[uuid.UUID] = None,
    ) -> Optional[DailySummary]:
        """Upsert one session row and recompute the user's day.

        Returns the recomputed summary, or ``None`` for a role whose daily
        attendance is not derived from sessions.
        """

        async with self._unit_of_work(f"user {user_id} on {attendance_date}"):
            event = await self.directory.get_event(event_id)
            if event is None:
                raise NotFoundException("CalendarEvent", event_id)

            await self._upsert_event_row(
                event_id=event_id,
                record=EventAttendanceRecord(
                    user_id=user_id,
                    attendance_status=status,
                    actual_present_hours=present_hours,
                    total_scheduled_hours=scheduled_hours,
                ),
                attendance_date=attendance_date,
                academic_year_id=academic_year_id or event.academic_year_id,
            )
            return await self._aggregate(
                user_id, attendance_date,
                preferred_year_id=academic_year_id or event.academic_year_id,
            )

    # ── Batch register save ─────────────────────────────────────────

    async def save_event_attendance(
        self,
        event_id: uuid.UUID,
        records: list[EventAttendanceRecord],
        attendance_date: Optional[date] = None,
        academic_year_id: Optional[uuid.UUID] = None,
    ) -> SaveEventAttendanceResponse:
        """Save a whole register for one event in a single unit of work."""

        event = await self.directory.get_event(event_id)
        if event is None:
            raise NotFoundException("CalendarEvent", event_id)

        day = attendance_date or event.start_date
        year_id = academic_year_id or event.academic_year_id

        async with self._unit_of_work(f"event {event_id} on {day}"):
            for record in records:
                await self._upsert_event_row(
                    event_id=event_id,
                    record=record,
                    attendance_date=day,
                    academic_year_id=year_id,
                )

            summaries = []
            for user_id in dict.fromkeys(r.user_id for r in records):
                summary = await self._aggregate(user_id, day, preferred_year_id=year_id)
                if summary is not None:
                    summaries.append(summary)

        logger.info(
            "Saved %d attendance records for event %s on %s", len(records), event_id, day,
        )
        return SaveEventAttendanceResponse(
            event_id=event_id,
            attendance_date=day,
            saved=len(records),
            summaries=summaries,
        )

    async def get_event_attendance(self, event_id: uuid.UUID) -> list[EventAttendanceResponse]:
        result = await self.db.execute(
            select(EventAttendance, User)
            .join(User, EventAttendance.user_id == User.id)
            .where(EventAttendance.event_id == event_id)
            .order_by(EventAttendance.attendance_date, User.username)
            .execution_options(populate_existing=True)
        )
        return [
            EventAttendanceResponse(
                event_id=row.event_id,
                user_id=row.user_id,
                username=user.username,
                first_name=user.first_name,
                last_name=user.last_name or "",
                attendance_date=row.attendance_date,
                attendance_status=row.attendance_status,
                actual_present_hours=row.actual_present_hours,
                total_scheduled_hours=row.total_scheduled_hours,
                academic_year_id=row.academic_year_id,
            )
            for row, user in result.all()
        ]

    # ── Deletion ────────────────────────────────────────────────────

    async def delete_event_attendance(
        self,
        event_id: uuid.UUID,
        user_ids: Optional[Iterable[uuid.UUID]] = None,
    ) -> DeleteEventAttendanceResponse:
        """Delete session rows and recompute each affected (user, date).

        A day left with no sessions becomes Absent with zero durations; the
        summary row itself is kept.
        """

        conditions = [EventAttendance.event_id == event_id]
        if user_ids is not None:
            conditions.append(EventAttendance.user_id.in_(list(user_ids)))

        async with self._unit_of_work(f"event {event_id} deletion"):
            result = await self.db.execute(
                select(
                    EventAttendance.user_id,
                    EventAttendance.attendance_date,
                    EventAttendance.academic_year_id,
                )
                .where(*conditions)
                .order_by(EventAttendance.attendance_date, EventAttendance.user_id)
            )
            affected = result.all()
            if not affected:
                return DeleteEventAttendanceResponse(event_id=event_id, deleted=0)

            await self.db.execute(delete(EventAttendance).where(*conditions))

            summaries = []
            for row in affected:
                summary = await self._aggregate(
                    row.user_id, row.attendance_date,
                    preferred_year_id=row.academic_year_id,
                )
                if summary is not None:
                    summaries.append(summary)

        logger.info("Deleted %d attendance records for event %s", len(affected), event_id)
        return DeleteEventAttendanceResponse(
            event_id=event_id,
            deleted=len(affected),
            summaries=summaries,
        )

    # ── Range sync ──────────────────────────────────────────────────

    async def sync_range(
        self,
        campus_id: uuid.UUID,
        start_date: date,
        end_date: date,
        academic_year_name: Optional[str] = None,
    ) -> SyncRangeResult:
        """Recompute every student's daily summary in the range from their sessions.

        All session rows of the campus's students are aggregated, whatever
        academic year they carry; *academic_year_name* only labels summaries
        whose sessions name no year. Sums, year ids and year names are read
        with one query each, then each (user, date) group is upserted and
        committed on its own. A failing group is rolled back, logged and
        skipped. Idempotent; summaries are never deleted.
        """

        validate_date_range(start_date, end_date, max_days=settings.REPORT_MAX_RANGE_DAYS)

        in_range = (
            User.campus_id == campus_id,
            User.role.in_(list(SESSION_DERIVED_ROLES)),
            EventAttendance.attendance_date >= start_date,
            EventAttendance.attendance_date <= end_date,
        )

        totals = await self.db.execute(
            select(
                EventAttendance.user_id,
                EventAttendance.attendance_date,
                User.username,
                User.campus_id,
                User.role,
                func.sum(EventAttendance.actual_present_hours).label("present"),
                func.sum(EventAttendance.total_scheduled_hours).label("scheduled"),
            )
            .join(User, EventAttendance.user_id == User.id)
            .where(*in_range)
            .group_by(
                EventAttendance.user_id,
                EventAttendance.attendance_date,
                User.username,
                User.campus_id,
                User.role,
            )
            .order_by(EventAttendance.attendance_date, User.username)
        )
        groups = totals.all()
        logger.info(
            "Range sync for campus %s (%s..%s): %d user/date groups",
            campus_id, start_date, end_date, len(groups),
        )

        # first named year per group, in event order
        year_rows = await self.db.execute(
            select(
                EventAttendance.user_id,
                EventAttendance.attendance_date,
                EventAttendance.academic_year_id,
            )
            .join(User, EventAttendance.user_id == User.id)
            .where(*in_range, EventAttendance.academic_year_id.is_not(None))
            .order_by(EventAttendance.event_id)
        )
        year_of: dict[tuple[uuid.UUID, date], uuid.UUID] = {}
        for user_id, day, year_id in year_rows.all():
            year_of.setdefault((user_id, day), year_id)
        year_names = await self.directory.get_year_names(year_of.values())

        outcome = SyncRangeResult()
        for group in groups:
            year_id = year_of.get((group.user_id, group.attendance_date))
            try:
                await self._write_summary(
                    username=group.username,
                    campus_id=group.campus_id,
                    role=group.role,
                    day=group.attendance_date,
                    present=Decimal(group.present or 0),
                    scheduled=Decimal(group.scheduled or 0),
                    year_name=year_names.get(year_id) or academic_year_name,
                    login_time=_RANGE_SYNC_CLOCK,
                    logout_time=_RANGE_SYNC_CLOCK,
                )
                await self.db.commit()
            except (AppException, SQLAlchemyError):
                await self.db.rollback()
                logger.exception(
                    "Skipping attendance sync for %s on %s", group.username, group.attendance_date,
                )
                outcome.failed += 1
            else:
                outcome.synced += 1

        if outcome.failed:
            logger.warning(
                "Range sync for campus %s finished with %d failed groups",
                campus_id, outcome.failed,
            )
        return outcome

    # ── Internals ───────────────────────────────────────────────────

    def _unit_of_work(self, what: str) -> _UnitOfWork:
        return _UnitOfWork(self.db, what)

    async def _upsert_event_row(
        self,
        *,
        event_id: uuid.UUID,
        record: EventAttendanceRecord,
        attendance_date: date,
        academic_year_id: Optional[uuid.UUID],
    ) -> None:
        table = EventAttendance.__table__
        stmt = upsert(self.db, table).values(
            id=uuid.uuid4(),
            event_id=event_id,
            user_id=record.user_id,
            attendance_date=attendance_date,
            attendance_status=record.attendance_status,
            actual_present_hours=record.actual_present_hours,
            total_scheduled_hours=record.total_scheduled_hours,
            academic_year_id=academic_year_id,
            created_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.event_id, table.c.user_id, table.c.attendance_date],
            set_={
                "attendance_status": stmt.excluded.attendance_status,
                "actual_present_hours": stmt.excluded.actual_present_hours,
                "total_scheduled_hours": stmt.excluded.total_scheduled_hours,
                "academic_year_id": func.coalesce(
                    stmt.excluded.academic_year_id, table.c.academic_year_id
                ),
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.db.execute(stmt)

    async def _aggregate(
        self,
        user_id: uuid.UUID,
        day: date,
        *,
        preferred_year_id: Optional[uuid.UUID] = None,
    ) -> Optional[DailySummary]:
        """Recompute and upsert the daily summary of one (user, date)."""

        user = await self.directory.get_user(user_id)
        if user is None:
            raise NotFoundException("User", user_id)
        if user.role not in SESSION_DERIVED_ROLES:
            logger.debug("Role %s is not session-derived; skipping %s", user.role, user.username)
            return None

        result = await self.db.execute(
            select(
                EventAttendance.actual_present_hours,
                EventAttendance.total_scheduled_hours,
                EventAttendance.academic_year_id,
            )
            .where(
                EventAttendance.user_id == user_id,
                EventAttendance.attendance_date == day,
            )
            .order_by(EventAttendance.event_id)
        )
        rows = result.all()

        year_id = preferred_year_id or next(
            (r.academic_year_id for r in rows if r.academic_year_id is not None), None
        )
        return await self._write_summary(
            username=user.username,
            campus_id=user.campus_id,
            role=user.role,
            day=day,
            present=sum((Decimal(r.actual_present_hours or 0) for r in rows), _ZERO),
            scheduled=sum((Decimal(r.total_scheduled_hours or 0) for r in rows), _ZERO),
            year_name=await self.directory.get_year_name(year_id),
        )

    async def _write_summary(
        self,
        *,
        username: str,
        campus_id: uuid.UUID,
        role: UserRole,
        day: date,
        present: Decimal,
        scheduled: Decimal,
        year_name: Optional[str],
        login_time: Optional[time] = None,
        logout_time: Optional[time] = None,
    ) -> DailySummary:
        """Upsert the daily summary row for already-summed session hours."""

        status = AttendanceStatus.present if is_present(present, scheduled) else AttendanceStatus.absent

        table = DailyAttendance.__table__
        now = datetime.now(timezone.utc)
        stmt = upsert(self.db, table).values(
            id=uuid.uuid4(),
            username=username,
            campus_id=campus_id,
            attendance_date=day,
            status=status,
            duration=hours_to_interval(present),
            total_duration=hours_to_interval(scheduled),
            login_time=login_time,
            logout_time=logout_time,
            year_name=year_name,
            role=role,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.username, table.c.attendance_date],
            set_={
                "campus_id": stmt.excluded.campus_id,
                "status": stmt.excluded.status,
                "duration": stmt.excluded.duration,
                "total_duration": stmt.excluded.total_duration,
                "login_time": func.coalesce(stmt.excluded.login_time, table.c.login_time),
                "logout_time": func.coalesce(stmt.excluded.logout_time, table.c.logout_time),
                "year_name": func.coalesce(stmt.excluded.year_name, table.c.year_name),
                "role": stmt.excluded.role,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self.db.execute(stmt)

        logger.info(
            "Daily attendance for %s on %s: %s (%s/%s h)",
            username, day, status.value, present, scheduled,
        )
        return DailySummary(
            username=username,
            attendance_date=day,
            status=status,
            present_hours=present,
            scheduled_hours=scheduled,
            duration=format_duration(hours_to_interval(present)),
            total_duration=format_duration(hours_to_interval(scheduled)),
            year_name=year_name,
            role=role,
        )


class _UnitOfWork:
    """Flush on success; on failure roll back the session and surface the error.

    Database errors become ``AggregationError``; application errors propagate
    unchanged. Committing is left to the caller (``get_db``).
    """

    def __init__(self, db: AsyncSession, what: str) -> None:
        self.db = db
        self.what = what

    async def __aenter__(self) -> _UnitOfWork:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            await self.db.flush()
            return False

        await self.db.rollback()
        if isinstance(exc, SQLAlchemyError):
            logger.error(
                "Attendance aggregation failed for %s; rolled back", self.what, exc_info=exc,
            )
            raise AggregationError(
                f"Daily attendance could not be recomputed for {self.what}."
            ) from exc
        logger.warning("Attendance write for %s rolled back: %s", self.what, exc)
        return False
