"""Auth dependencies — JWT validation, RBAC enforcement.

Tokens are issued elsewhere; this module only verifies them and maps the
claims onto an active directory user.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional

from fastapi import Depends, Request
from fastapi.exceptions import HTTPException
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from attendance_engine.common.constants import UserRole, UserStatus
from attendance_engine.common.exceptions import ForbiddenException
from attendance_engine.config import settings
from attendance_engine.database import get_db
from attendance_engine.directory.models import User

# Role hierarchy — each role implicitly includes the roles it supervises
_ROLE_HIERARCHY: dict[UserRole, set[UserRole]] = {
    UserRole.admin: {UserRole.admin, UserRole.principal, UserRole.staff, UserRole.teacher},
    UserRole.principal: {UserRole.principal, UserRole.staff, UserRole.teacher},
    UserRole.staff: {UserRole.staff},
    UserRole.teacher: {UserRole.teacher},
    UserRole.student: {UserRole.student},
}


class CurrentUser(BaseModel):
    """The authenticated caller, as seen by the engine."""

    model_config = ConfigDict(frozen=True)

    user_id: uuid.UUID
    username: str
    role: UserRole
    tenant_id: uuid.UUID
    campus_id: Optional[uuid.UUID] = None


def _extract_bearer(request: Request) -> str:
    """Extract Bearer token from Authorization header."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing or invalid Authorization header.")
    return auth_header[7:]


# ── Core dependency ─────────────────────────────────────────────────

async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Validate JWT, return the authenticated directory user."""
    token = _extract_bearer(request)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired.")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token.")

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type.")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token subject.")

    result = await db.execute(
        select(User).where(User.id == user_id, User.status == UserStatus.active)
    )
    user = result.scalars().first()
    if user is None:
        raise HTTPException(status_code=401, detail="User account is inactive or not found.")

    current = CurrentUser(
        user_id=user.id,
        username=user.username,
        role=user.role,
        tenant_id=user.tenant_id,
        campus_id=user.campus_id,
    )
    request.state.user_role = current.role
    return current


# ── Role-based dependency ───────────────────────────────────────────

def require_role(*allowed_roles: UserRole) -> Callable:
    """Return a FastAPI dependency that enforces role membership.

    Respects hierarchy — e.g. Admin can access Principal endpoints.
    """

    async def _check(
        user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        effective_roles = _ROLE_HIERARCHY.get(user.role, {user.role})
        if not effective_roles.intersection(set(allowed_roles)):
            raise ForbiddenException(
                detail=f"Role '{user.role.value}' is not permitted. Required: {[r.value for r in allowed_roles]}.",
            )
        return user

    return _check


def campus_of(user: CurrentUser, campus_id: Optional[uuid.UUID]) -> uuid.UUID:
    """The campus a request targets: explicit for admins, otherwise the caller's own."""
    if campus_id is None:
        if user.campus_id is None:
            raise HTTPException(status_code=400, detail="campus_id is required.")
        return user.campus_id
    if user.role != UserRole.admin and user.campus_id not in (None, campus_id):
        raise ForbiddenException(detail="Access to another campus is not permitted.")
    return campus_id
