"""Reports router — consolidated daily attendance."""


from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.auth.dependencies import CurrentUser, campus_of, require_role
from attendance_engine.common.constants import UserRole
from attendance_engine.common.rate_limit import HEAVY_OPERATION_LIMIT, limiter
from attendance_engine.database import get_db
from attendance_engine.reports.schemas import ConsolidatedReportResponse, ReportRequest
from attendance_engine.reports.service import ConsolidatedReportBuilder

router = APIRouter(prefix="", tags=["reports"])


# ── POST /daily ─────────────────────────────────────────────────────

@router.post("/daily", response_model=ConsolidatedReportResponse)
@limiter.limit(HEAVY_OPERATION_LIMIT)
async def daily_report(
    request: Request,
    body: ReportRequest,
    user: CurrentUser = Depends(
        require_role(UserRole.staff, UserRole.principal, UserRole.admin)
    ),
    db: AsyncSession = Depends(get_db),
):
    """Consolidated attendance (status, durations, calendar, leaves) per user and date."""
    rows = await ConsolidatedReportBuilder(db).build_report(
        campus_of(user, body.campus_id),
        body.roles,
        body.academic_year_name,
        body.start_date,
        body.end_date,
        user.tenant_id,
        class_id=body.class_id,
        section_id=body.section_id,
    )
    return ConsolidatedReportResponse(
        start_date=body.start_date,
        end_date=body.end_date,
        total=len(rows),
        rows=rows,
    )
