"""Profile schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import computed_field

from speacy.schemas.base import BaseSchema

RoleType = Literal["student", "professor"]


class ProfileRead(BaseSchema):
    """Schema for reading the signed-in profile."""

    id: UUID
    email: str
    first_name: str
    last_name: str
    role: RoleType
    created_at: datetime

    @computed_field
    @property
    def dashboard_path(self) -> str:
        """Where the frontend should send this user after sign-in."""
        return "/dashboard/professor" if self.role == "professor" else "/dashboard"
