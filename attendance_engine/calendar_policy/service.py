"""Calendar policy service layer — date status, holiday calculation, policy admin.

Business logic:
  - Single-date classification for UI display (resolver + raw source flags)
  - Holiday weight per date over a range
  - Weekend policy upsert, holiday event and special working day maintenance
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.calendar_policy.models import (
    HolidayAcademicYear,
    HolidayEvent,
    SpecialWorkingDay,
    WeekendPolicy,
)
from attendance_engine.calendar_policy.resolver import CalendarResolver, SpecificYears
from attendance_engine.calendar_policy.schemas import (
    CalculatedHolidayItem,
    CalculatedHolidaysResponse,
    DateStatusDetails,
    DateStatusResponse,
    HolidayEventCreate,
    HolidayEventResponse,
    SpecialWorkingDayCreate,
    SpecialWorkingDayResponse,
    WeekendPolicyResponse,
    WeekendPolicyUpsert,
)
from attendance_engine.calendar_policy.store import PolicyStore
from attendance_engine.common.constants import UserRole
from attendance_engine.common.dates import iter_dates, validate_date_range
from attendance_engine.common.exceptions import NotFoundException, ValidationException
from attendance_engine.config import settings

logger = logging.getLogger(__name__)


class CalendarService:
    """Async calendar operations built on ``PolicyStore`` and ``CalendarResolver``."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.store = PolicyStore(db)

    # ── Date status ─────────────────────────────────────────────────

    async def check_date_status(
        self,
        campus_id: Optional[uuid.UUID],
        day: Optional[date],
        academic_year_id: Optional[uuid.UUID],
    ) -> DateStatusResponse:
        """Classify one date for one academic year of a campus."""

        if campus_id is None or day is None or academic_year_id is None:
            raise ValidationException(
                {"date": ["Date resolution requires campus, date and academic year."]}
            )

        index = await self.store.load_index(campus_id, day, day)
        resolution = CalendarResolver(index).explain_day(
            day, UserRole.student, [academic_year_id],
        )
        return DateStatusResponse(
            date=day,
            is_holiday=resolution.is_holiday,
            details=DateStatusDetails(
                is_weekend_holiday=resolution.is_weekend_holiday,
                is_holiday_event=resolution.is_holiday_event,
                is_special_working_day=resolution.is_special_working_day,
                is_half_day=resolution.is_half_day,
                source=resolution.source,
                holiday_name=resolution.holiday_name,
                special_day_description=resolution.special_day_description,
            ),
        )

    async def calculate_holidays(
        self,
        campus_id: uuid.UUID,
        start_date: date,
        end_date: date,
        academic_year_id: Optional[uuid.UUID] = None,
    ) -> CalculatedHolidaysResponse:
        """Holiday weight per non-working date: 1 for a full holiday, 0.5 for a half day.

        With an academic year the dates are resolved for that year; without
        one they are resolved campus-wide.
        """

        validate_date_range(start_date, end_date, max_days=settings.REPORT_MAX_RANGE_DAYS)

        index = await self.store.load_index(campus_id, start_date, end_date)
        resolver = CalendarResolver(index)
        role = UserRole.student if academic_year_id else UserRole.admin
        year_ids = [academic_year_id] if academic_year_id else []

        items: list[CalculatedHolidayItem] = []
        for day in iter_dates(start_date, end_date):
            status = resolver.resolve_day(day, role, year_ids)
            if status.is_half_day:
                items.append(CalculatedHolidayItem(date=day, weight=0.5))
            elif status.is_holiday:
                items.append(CalculatedHolidayItem(date=day, weight=1.0))

        return CalculatedHolidaysResponse(
            total=sum(i.weight for i in items),
            items=items,
        )

    # ── Weekend policies ────────────────────────────────────────────

    async def upsert_weekend_policy(
        self,
        campus_id: uuid.UUID,
        data: WeekendPolicyUpsert,
    ) -> WeekendPolicyResponse:
        """Create or replace the weekend policy of one (campus, academic year)."""

        if data.is_saturday_holiday and data.is_saturday_half_day:
            raise ValidationException(
                {"is_saturday_half_day": ["Saturday cannot be both a full holiday and a half day."]}
            )

        result = await self.db.execute(
            select(WeekendPolicy).where(
                WeekendPolicy.campus_id == campus_id,
                WeekendPolicy.academic_year_id == data.academic_year_id,
            )
        )
        policy = result.scalars().first()
        if policy is None:
            policy = WeekendPolicy(campus_id=campus_id, academic_year_id=data.academic_year_id)
            self.db.add(policy)

        policy.is_sunday_holiday = data.is_sunday_holiday
        policy.is_saturday_holiday = data.is_saturday_holiday
        policy.is_saturday_half_day = data.is_saturday_half_day
        policy.updated_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(
            "Weekend policy saved for campus %s, academic year %s",
            campus_id, data.academic_year_id,
        )
        return WeekendPolicyResponse.model_validate(policy)

    async def list_weekend_policies(self, campus_id: uuid.UUID) -> list[WeekendPolicyResponse]:
        result = await self.db.execute(
            select(WeekendPolicy)
            .where(WeekendPolicy.campus_id == campus_id)
            .order_by(WeekendPolicy.academic_year_id)
        )
        return [WeekendPolicyResponse.model_validate(p) for p in result.scalars().all()]

    # ── Holiday events ──────────────────────────────────────────────

    @staticmethod
    def _holiday_response(holiday: HolidayEvent) -> HolidayEventResponse:
        return HolidayEventResponse(
            id=holiday.id,
            campus_id=holiday.campus_id,
            holiday_name=holiday.holiday_name,
            start_date=holiday.start_date,
            end_date=holiday.end_date,
            duration_category=holiday.duration_category,
            holiday_type=holiday.holiday_type,
            is_paid=holiday.is_paid,
            academic_year_ids=sorted(
                (m.academic_year_id for m in holiday.academic_years), key=str
            ),
        )

    async def create_holiday(
        self,
        campus_id: uuid.UUID,
        data: HolidayEventCreate,
    ) -> HolidayEventResponse:
        holiday = HolidayEvent(
            campus_id=campus_id,
            holiday_name=data.holiday_name,
            start_date=data.start_date,
            end_date=data.end_date or data.start_date,
            duration_category=data.duration_category,
            holiday_type=data.holiday_type,
            is_paid=data.is_paid,
            academic_years=[
                HolidayAcademicYear(academic_year_id=year_id)
                for year_id in dict.fromkeys(data.academic_year_ids)
            ],
        )
        self.db.add(holiday)
        await self.db.flush()

        logger.info("Holiday '%s' created for campus %s", holiday.holiday_name, campus_id)
        return self._holiday_response(holiday)

    async def list_holidays(
        self,
        campus_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[HolidayEventResponse]:
        query = select(HolidayEvent).where(HolidayEvent.campus_id == campus_id)
        if start_date is not None:
            query = query.where(HolidayEvent.end_date >= start_date)
        if end_date is not None:
            query = query.where(HolidayEvent.start_date <= end_date)
        result = await self.db.execute(query.order_by(HolidayEvent.start_date.desc()))
        return [self._holiday_response(h) for h in result.scalars().all()]

    async def delete_holiday(self, campus_id: uuid.UUID, holiday_id: uuid.UUID) -> None:
        result = await self.db.execute(
            select(HolidayEvent).where(
                HolidayEvent.id == holiday_id,
                HolidayEvent.campus_id == campus_id,
            )
        )
        holiday = result.scalars().first()
        if holiday is None:
            raise NotFoundException("HolidayEvent", holiday_id)
        await self.db.delete(holiday)
        await self.db.flush()

    # ── Special working days ────────────────────────────────────────

    async def create_special_working_day(
        self,
        campus_id: uuid.UUID,
        data: SpecialWorkingDayCreate,
    ) -> SpecialWorkingDayResponse:
        """One row per academic year, or a single unscoped row for all years."""

        year_ids = list(dict.fromkeys(data.academic_year_ids)) or [None]
        rows = [
            SpecialWorkingDay(
                campus_id=campus_id,
                work_date=data.work_date,
                description=data.description,
                academic_year_id=year_id,
            )
            for year_id in year_ids
        ]
        self.db.add_all(rows)
        await self.db.flush()

        logger.info("Special working day %s created for campus %s", data.work_date, campus_id)
        return SpecialWorkingDayResponse(
            ids=[r.id for r in rows],
            work_date=data.work_date,
            description=data.description,
            academic_year_ids=[y for y in year_ids if y is not None],
        )

    async def list_special_working_days(
        self,
        campus_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[SpecialWorkingDayResponse]:
        snapshots = await self.store.get_special_working_days(campus_id, start_date, end_date)
        return [
            SpecialWorkingDayResponse(
                ids=list(s.ids),
                work_date=s.work_date,
                description=s.description,
                academic_year_ids=(
                    sorted(s.scope.year_ids, key=str)
                    if isinstance(s.scope, SpecificYears)
                    else []
                ),
            )
            for s in snapshots
        ]

    async def delete_special_working_day(
        self,
        campus_id: uuid.UUID,
        special_day_id: uuid.UUID,
    ) -> int:
        """Delete the whole logical day (every scoped row sharing its date and description)."""

        result = await self.db.execute(
            select(SpecialWorkingDay).where(
                SpecialWorkingDay.id == special_day_id,
                SpecialWorkingDay.campus_id == campus_id,
            )
        )
        row = result.scalars().first()
        if row is None:
            raise NotFoundException("SpecialWorkingDay", special_day_id)

        deleted = await self.db.execute(
            delete(SpecialWorkingDay).where(
                SpecialWorkingDay.campus_id == campus_id,
                SpecialWorkingDay.work_date == row.work_date,
                SpecialWorkingDay.description == row.description,
            )
        )
        await self.db.flush()
        return deleted.rowcount or 0
