"""Calendar router — date status, calculated holidays, policy administration.

Reads are open to any authenticated user of the campus; writes need Principal
or Admin.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.auth.dependencies import (
    CurrentUser,
    campus_of,
    get_current_user,
    require_role,
)
from attendance_engine.calendar_policy.schemas import (
    CalculatedHolidaysResponse,
    DateStatusResponse,
    HolidayEventCreate,
    HolidayEventResponse,
    SpecialWorkingDayCreate,
    SpecialWorkingDayResponse,
    WeekendPolicyResponse,
    WeekendPolicyUpsert,
)
from attendance_engine.calendar_policy.service import CalendarService
from attendance_engine.common.constants import UserRole
from attendance_engine.common.rate_limit import limiter
from attendance_engine.database import get_db

router = APIRouter(prefix="", tags=["calendar"])

_policy_admin = require_role(UserRole.principal, UserRole.admin)


# ── GET /check-date ─────────────────────────────────────────────────

@router.get("/check-date", response_model=DateStatusResponse)
async def check_date(
    day: date = Query(..., alias="date"),
    academic_year_id: uuid.UUID = Query(...),
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Is this date a holiday for the given academic year?"""
    return await CalendarService(db).check_date_status(
        campus_of(user, campus_id), day, academic_year_id,
    )


# ── GET /calculated-holidays ────────────────────────────────────────

@router.get("/calculated-holidays", response_model=CalculatedHolidaysResponse)
@limiter.limit("30/minute")
async def calculated_holidays(
    request: Request,
    start_date: date = Query(...),
    end_date: date = Query(...),
    academic_year_id: Optional[uuid.UUID] = Query(None),
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CalendarService(db).calculate_holidays(
        campus_of(user, campus_id), start_date, end_date, academic_year_id,
    )


# ── Weekend policies ────────────────────────────────────────────────

@router.get("/weekend-policies", response_model=list[WeekendPolicyResponse])
async def list_weekend_policies(
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CalendarService(db).list_weekend_policies(campus_of(user, campus_id))


@router.put("/weekend-policies", response_model=WeekendPolicyResponse)
async def upsert_weekend_policy(
    body: WeekendPolicyUpsert,
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(_policy_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create or replace the weekend rules of one academic year."""
    return await CalendarService(db).upsert_weekend_policy(campus_of(user, campus_id), body)


# ── Holiday events ──────────────────────────────────────────────────

@router.get("/holidays", response_model=list[HolidayEventResponse])
async def list_holidays(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CalendarService(db).list_holidays(
        campus_of(user, campus_id), start_date, end_date,
    )


@router.post("/holidays", response_model=HolidayEventResponse, status_code=status.HTTP_201_CREATED)
async def create_holiday(
    body: HolidayEventCreate,
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(_policy_admin),
    db: AsyncSession = Depends(get_db),
):
    return await CalendarService(db).create_holiday(campus_of(user, campus_id), body)


@router.delete("/holidays/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holiday(
    holiday_id: uuid.UUID,
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(_policy_admin),
    db: AsyncSession = Depends(get_db),
):
    await CalendarService(db).delete_holiday(campus_of(user, campus_id), holiday_id)


# ── Special working days ────────────────────────────────────────────

@router.get("/special-working-days", response_model=list[SpecialWorkingDayResponse])
async def list_special_working_days(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await CalendarService(db).list_special_working_days(
        campus_of(user, campus_id), start_date, end_date,
    )


@router.post(
    "/special-working-days",
    response_model=SpecialWorkingDayResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_special_working_day(
    body: SpecialWorkingDayCreate,
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(_policy_admin),
    db: AsyncSession = Depends(get_db),
):
    return await CalendarService(db).create_special_working_day(
        campus_of(user, campus_id), body,
    )


@router.delete("/special-working-days/{special_day_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_special_working_day(
    special_day_id: uuid.UUID,
    campus_id: Optional[uuid.UUID] = Query(None),
    user: CurrentUser = Depends(_policy_admin),
    db: AsyncSession = Depends(get_db),
):
    """Removes every academic-year row of the logical special working day."""
    await CalendarService(db).delete_special_working_day(
        campus_of(user, campus_id), special_day_id,
    )
