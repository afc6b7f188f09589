"""Policy store — read-only retrieval of a campus's calendar policies.

One query per artifact class; rows are converted to the resolver's immutable
snapshots so nothing downstream depends on a live session.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.calendar_policy.models import (
    HolidayEvent,
    SpecialWorkingDay,
    WeekendPolicy,
)
from attendance_engine.calendar_policy.resolver import (
    HolidayEventSnapshot,
    PolicyIndex,
    SpecialWorkingDaySnapshot,
    WeekendPolicySnapshot,
    scope_from_year_ids,
)

logger = logging.getLogger(__name__)


class PolicyStore:
    """Loads weekend policies, holiday events and special working days for a campus."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_weekend_policies(self, campus_id: uuid.UUID) -> list[WeekendPolicySnapshot]:
        result = await self.db.execute(
            select(WeekendPolicy)
            .where(WeekendPolicy.campus_id == campus_id)
            .order_by(WeekendPolicy.academic_year_id)
        )
        return [
            WeekendPolicySnapshot.model_validate(p) for p in result.scalars().all()
        ]

    async def get_holiday_events(
        self,
        campus_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[HolidayEventSnapshot]:
        """Holiday events overlapping ``[start_date, end_date]`` (all of them when unbounded)."""

        query = select(HolidayEvent).where(HolidayEvent.campus_id == campus_id)
        if start_date is not None:
            query = query.where(HolidayEvent.end_date >= start_date)
        if end_date is not None:
            query = query.where(HolidayEvent.start_date <= end_date)
        result = await self.db.execute(query.order_by(HolidayEvent.start_date))

        return [
            HolidayEventSnapshot(
                id=h.id,
                holiday_name=h.holiday_name,
                start_date=h.start_date,
                end_date=h.end_date,
                duration_category=h.duration_category,
                scope=scope_from_year_ids(m.academic_year_id for m in h.academic_years),
            )
            for h in result.scalars().all()
        ]

    async def get_special_working_days(
        self,
        campus_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[SpecialWorkingDaySnapshot]:
        """Special working days in range, one per ``(work_date, description)``.

        Rows sharing a date and description are a single logical day scoped to
        the union of their academic years; any unscoped row makes it all-years.
        """

        query = select(SpecialWorkingDay).where(SpecialWorkingDay.campus_id == campus_id)
        if start_date is not None:
            query = query.where(SpecialWorkingDay.work_date >= start_date)
        if end_date is not None:
            query = query.where(SpecialWorkingDay.work_date <= end_date)
        result = await self.db.execute(
            query.order_by(SpecialWorkingDay.work_date, SpecialWorkingDay.description)
        )

        grouped: dict[tuple[date, str], list[SpecialWorkingDay]] = defaultdict(list)
        for row in result.scalars().all():
            grouped[(row.work_date, row.description or "")].append(row)

        snapshots = []
        for (work_date, description), rows in grouped.items():
            unscoped = any(r.academic_year_id is None for r in rows)
            snapshots.append(
                SpecialWorkingDaySnapshot(
                    work_date=work_date,
                    description=description,
                    scope=scope_from_year_ids(
                        [] if unscoped else [r.academic_year_id for r in rows]
                    ),
                    ids=tuple(r.id for r in rows),
                )
            )
        return snapshots

    async def load_index(
        self,
        campus_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PolicyIndex:
        """Fetch every policy artifact for the campus/range once and index it by date."""

        policies = await self.get_weekend_policies(campus_id)
        holidays = await self.get_holiday_events(campus_id, start_date, end_date)
        specials = await self.get_special_working_days(campus_id, start_date, end_date)

        logger.info(
            "Loaded calendar policies for campus %s (%s..%s): %d weekend, %d holiday, %d special",
            campus_id, start_date, end_date, len(policies), len(holidays), len(specials),
        )
        return PolicyIndex(
            weekend_policies=policies,
            holiday_events=holidays,
            special_working_days=specials,
            start_date=start_date,
            end_date=end_date,
        )
