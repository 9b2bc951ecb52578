"""Requester profile model owned by the identity collaborator.

The core only reads these documents. Decisions work from a
``RequesterSnapshot`` copied at request time so later profile edits never
change a past decision.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from accessgate.models.common import PyObjectId


class RequesterProfile(BaseModel):
    """User document from the ``users`` collection."""

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
    )

    id: Optional[PyObjectId] = Field(
        default=None,
        alias="_id",
        description="MongoDB document ID",
    )
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Unique email address")
    department: str = Field(..., description="Department")
    user_role: str = Field(..., description="Job role")
    employee_status: str = Field(..., description="Employment status, e.g. active")
    employee_join_date: Optional[datetime] = Field(
        default=None,
        description="Date the employee joined",
    )
    time_in_position: str = Field(
        default="",
        description="Tenure in current position",
    )
    past_violations: int = Field(
        default=0,
        ge=0,
        description="Count of past policy violations",
    )
    last_security_training: str = Field(
        default="Never",
        description="ISO date of last security training, or 'Never'",
    )
    is_admin: bool = Field(
        default=False,
        description="Whether this user may review tickets",
    )

    def snapshot(self) -> "RequesterSnapshot":
        """Copy decision-relevant fields into an immutable snapshot."""
        return RequesterSnapshot(
            department=self.department,
            user_role=self.user_role,
            employee_status=self.employee_status,
            employee_join_date=self.employee_join_date,
            time_in_position=self.time_in_position,
            past_violations=self.past_violations,
            last_security_training=self.last_security_training,
        )


class RequesterSnapshot(BaseModel):
    """Requester fields as they were when a decision was made."""

    model_config = ConfigDict(frozen=True)

    department: str
    user_role: str
    employee_status: str
    employee_join_date: Optional[datetime] = None
    time_in_position: str = ""
    past_violations: int = Field(default=0, ge=0)
    last_security_training: str = "Never"


class RequesterResponse(BaseModel):
    """API response for a requester profile."""

    id: str
    name: str
    email: str
    department: str
    user_role: str
    employee_status: str
    employee_join_date: Optional[datetime] = None
    time_in_position: str
    past_violations: int
    last_security_training: str
    is_admin: bool

    @classmethod
    def from_profile(cls, profile: RequesterProfile) -> "RequesterResponse":
        """Create response from RequesterProfile model."""
        return cls(
            id=str(profile.id),
            name=profile.name,
            email=profile.email,
            department=profile.department,
            user_role=profile.user_role,
            employee_status=profile.employee_status,
            employee_join_date=profile.employee_join_date,
            time_in_position=profile.time_in_position,
            past_violations=profile.past_violations,
            last_security_training=profile.last_security_training,
            is_admin=profile.is_admin,
        )
