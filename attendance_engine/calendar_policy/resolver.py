"""Calendar resolver — classifies a date as working, half-day or holiday.

Pure decision logic over pre-fetched policy data (see ``store.PolicyStore``):

  1. Special working day   → working, full day (overrides everything)
  2. Holiday event         → holiday (half-day when every covering event is half-day)
  3. Weekend policy        → most-favourable-to-working across academic-year contexts
  4. Nothing applicable    → working, full day

Students and teachers are resolved against their own academic-year contexts;
every other role is campus-wide.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import date
from typing import Iterable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from attendance_engine.common.constants import (
    CONTEXT_SCOPED_ROLES,
    SATURDAY,
    SUNDAY,
    DayType,
    DurationCategory,
    ResolutionSource,
    UserRole,
)
from attendance_engine.common.dates import iter_dates


# ═════════════════════════════════════════════════════════════════════
# Scope
# ═════════════════════════════════════════════════════════════════════


class AllYears(BaseModel):
    """Applies to every academic year of the campus."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["all"] = "all"


class SpecificYears(BaseModel):
    """Applies only to the listed academic years."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["specific"] = "specific"
    year_ids: frozenset[uuid.UUID]


Scope = Union[AllYears, SpecificYears]


def scope_from_year_ids(year_ids: Iterable[Optional[uuid.UUID]]) -> Scope:
    """Build a scope from stored year ids; no ids (or only NULLs) means all years."""
    ids = frozenset(i for i in year_ids if i is not None)
    return SpecificYears(year_ids=ids) if ids else AllYears()


def scope_applies(scope: Scope, year_ids: frozenset[uuid.UUID], *, campus_wide: bool) -> bool:
    if campus_wide or isinstance(scope, AllYears):
        return True
    return not scope.year_ids.isdisjoint(year_ids)


# ═════════════════════════════════════════════════════════════════════
# Policy snapshots
# ═════════════════════════════════════════════════════════════════════


class WeekendPolicySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    academic_year_id: uuid.UUID
    is_sunday_holiday: bool = False
    is_saturday_holiday: bool = False
    is_saturday_half_day: bool = False

    def classify(self, day: date) -> DayType:
        weekday = day.weekday()
        if weekday == SUNDAY:
            return DayType.holiday if self.is_sunday_holiday else DayType.working
        if weekday == SATURDAY:
            # Half-day is checked first: it wins when both flags are set.
            if self.is_saturday_half_day:
                return DayType.half_day
            if self.is_saturday_holiday:
                return DayType.holiday
        return DayType.working


class HolidayEventSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    holiday_name: str
    start_date: date
    end_date: date
    duration_category: DurationCategory = DurationCategory.full_day
    scope: Scope = Field(default_factory=AllYears, discriminator="kind")

    def dates(
        self, within_start: Optional[date] = None, within_end: Optional[date] = None,
    ) -> Iterable[date]:
        """Covered dates, clipped to ``[within_start, within_end]`` when given."""
        start = max(self.start_date, within_start) if within_start else self.start_date
        end = min(self.end_date, within_end) if within_end else self.end_date
        return iter_dates(start, end)


class SpecialWorkingDaySnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    work_date: date
    description: str = ""
    scope: Scope = Field(default_factory=AllYears, discriminator="kind")
    ids: tuple[uuid.UUID, ...] = ()


class PolicyIndex:
    """Date-keyed view of one campus's holidays, special working days and weekend policies.

    Holiday events are indexed only on the dates inside ``[start_date, end_date]``
    when a range is given.
    """

    def __init__(
        self,
        *,
        weekend_policies: Iterable[WeekendPolicySnapshot] = (),
        holiday_events: Iterable[HolidayEventSnapshot] = (),
        special_working_days: Iterable[SpecialWorkingDaySnapshot] = (),
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> None:
        self.weekend_policies: tuple[WeekendPolicySnapshot, ...] = tuple(
            sorted(weekend_policies, key=lambda p: str(p.academic_year_id))
        )
        self._policy_by_year = {p.academic_year_id: p for p in self.weekend_policies}

        self.holiday_events: tuple[HolidayEventSnapshot, ...] = tuple(
            sorted(holiday_events, key=lambda h: (h.start_date, h.holiday_name, str(h.id)))
        )
        self._holidays_by_date: dict[date, list[HolidayEventSnapshot]] = defaultdict(list)
        for event in self.holiday_events:
            for day in event.dates(start_date, end_date):
                self._holidays_by_date[day].append(event)

        self.special_working_days: tuple[SpecialWorkingDaySnapshot, ...] = tuple(
            sorted(special_working_days, key=lambda s: (s.work_date, s.description))
        )
        self._special_by_date: dict[date, list[SpecialWorkingDaySnapshot]] = defaultdict(list)
        for special in self.special_working_days:
            self._special_by_date[special.work_date].append(special)

    def policy_for(self, academic_year_id: uuid.UUID) -> Optional[WeekendPolicySnapshot]:
        return self._policy_by_year.get(academic_year_id)

    def holidays_on(self, day: date) -> list[HolidayEventSnapshot]:
        return self._holidays_by_date.get(day, [])

    def special_days_on(self, day: date) -> list[SpecialWorkingDaySnapshot]:
        return self._special_by_date.get(day, [])


# ═════════════════════════════════════════════════════════════════════
# Results
# ═════════════════════════════════════════════════════════════════════


class DayStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_holiday: bool = False
    is_half_day: bool = False

    @classmethod
    def from_day_type(cls, day_type: DayType) -> DayStatus:
        return cls(
            is_holiday=day_type == DayType.holiday,
            is_half_day=day_type == DayType.half_day,
        )


class DayResolution(DayStatus):
    """A ``DayStatus`` plus which source decided it and the raw per-source flags."""

    source: ResolutionSource = ResolutionSource.default
    is_weekend_holiday: bool = False
    is_holiday_event: bool = False
    is_special_working_day: bool = False
    holiday_name: Optional[str] = None
    special_day_description: Optional[str] = None

    def as_status(self) -> DayStatus:
        return DayStatus(is_holiday=self.is_holiday, is_half_day=self.is_half_day)


def most_favourable(day_types: Iterable[DayType]) -> DayType:
    """Working beats half-day beats holiday; nothing to combine means working."""
    seen = set(day_types)
    if not seen or DayType.working in seen:
        return DayType.working
    if DayType.half_day in seen:
        return DayType.half_day
    return DayType.holiday


# ═════════════════════════════════════════════════════════════════════
# CalendarResolver
# ═════════════════════════════════════════════════════════════════════


class CalendarResolver:
    """Pure day classification over a ``PolicyIndex``; never touches storage."""

    def __init__(self, index: PolicyIndex) -> None:
        self.index = index

    def resolve_day(
        self,
        day: date,
        role: UserRole | str,
        applicable_year_ids: Iterable[uuid.UUID] = (),
    ) -> DayStatus:
        return self.explain_day(day, role, applicable_year_ids).as_status()

    def explain_day(
        self,
        day: date,
        role: UserRole | str,
        applicable_year_ids: Iterable[uuid.UUID] = (),
    ) -> DayResolution:
        year_ids = frozenset(applicable_year_ids)
        campus_wide = UserRole(role) not in CONTEXT_SCOPED_ROLES

        specials = [
            s for s in self.index.special_days_on(day)
            if scope_applies(s.scope, year_ids, campus_wide=campus_wide)
        ]
        events = [
            h for h in self.index.holidays_on(day)
            if scope_applies(h.scope, year_ids, campus_wide=campus_wide)
        ]
        weekend = self._weekend_day_type(day, year_ids)

        flags = dict(
            is_weekend_holiday=weekend == DayType.holiday,
            is_holiday_event=bool(events),
            is_special_working_day=bool(specials),
            holiday_name=events[0].holiday_name if events else None,
            special_day_description=specials[0].description if specials else None,
        )

        if specials:
            return DayResolution(source=ResolutionSource.special_working_day, **flags)

        if events:
            half_only = all(
                e.duration_category == DurationCategory.half_day for e in events
            )
            return DayResolution(
                is_holiday=True,
                is_half_day=half_only,
                source=ResolutionSource.holiday_event,
                **flags,
            )

        if weekend is None:
            return DayResolution(source=ResolutionSource.default, **flags)

        status = DayStatus.from_day_type(weekend)
        return DayResolution(
            is_holiday=status.is_holiday,
            is_half_day=status.is_half_day,
            source=ResolutionSource.weekend_policy,
            **flags,
        )

    def _weekend_day_type(
        self, day: date, year_ids: frozenset[uuid.UUID],
    ) -> Optional[DayType]:
        """Combined weekend classification, or ``None`` when no policy applies at all."""

        if year_ids:
            # A context without a policy counts as working.
            classifications = []
            any_policy = False
            for year_id in sorted(year_ids, key=str):
                policy = self.index.policy_for(year_id)
                if policy is None:
                    classifications.append(DayType.working)
                else:
                    any_policy = True
                    classifications.append(policy.classify(day))
            if not any_policy:
                return None
            return most_favourable(classifications)

        if not self.index.weekend_policies:
            return None
        return most_favourable(p.classify(day) for p in self.index.weekend_policies)
