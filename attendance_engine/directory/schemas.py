"""Directory read models."""

import uuid

from pydantic import BaseModel, ConfigDict

from attendance_engine.common.constants import UserRole


class DirectoryUser(BaseModel):
    """A report subject with its applicable academic-year contexts."""

    model_config = ConfigDict(frozen=True)

    user_id: uuid.UUID
    username: str
    first_name: str
    last_name: str = ""
    role: UserRole
    academic_year_ids: frozenset[uuid.UUID] = frozenset()
