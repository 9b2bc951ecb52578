"""Audit log model for immutable administrator action history."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from accessgate.models.common import PyObjectId


class AuditActionType(str, Enum):
    """Action types for audit log entries."""

    # Ticket actions
    TICKET_REVIEW = "ticket.review"
    TICKET_REVIEW_REJECTED = "ticket.review_rejected"

    # Knowledge base actions
    KNOWLEDGE_BASE_INDEX = "knowledge_base.index"


class AuditTargetType(str, Enum):
    """Target entity types for audit log entries."""

    ACCESS_REQUEST = "access_request"
    REVIEW_TICKET = "review_ticket"


class AuditChanges(BaseModel):
    """Change tracking for audit entries."""

    before: Optional[dict[str, Any]] = Field(
        default=None,
        description="State before action (for updates)",
    )
    after: Optional[dict[str, Any]] = Field(
        default=None,
        description="State after action (for updates/creates)",
    )


class AuditLogCreate(BaseModel):
    """Schema for creating a new audit log entry."""

    model_config = ConfigDict(arbitrary_types_allowed=True, use_enum_values=True)

    actor_id: str = Field(
        ...,
        description="Administrator who performed action",
    )
    action_type: AuditActionType = Field(
        ...,
        description="Type of action performed",
    )
    target_entity_type: AuditTargetType = Field(
        ...,
        description="Type of entity affected",
    )
    target_entity_id: PyObjectId = Field(
        ...,
        description="ID of affected entity",
    )
    changes: AuditChanges = Field(
        default_factory=AuditChanges,
        description="Before/after state changes",
    )
    justification: Optional[str] = Field(
        default=None,
        description="Administrator notes",
    )
    system_context: Optional[dict[str, Any]] = Field(
        default=None,
        description="System state snapshot",
    )


class AuditLogEntry(BaseModel):
    """Audit log entry model.

    Audit log entries are immutable after creation.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        populate_by_name=True,
        use_enum_values=True,
    )

    id: Optional[PyObjectId] = Field(
        default=None,
        alias="_id",
        description="MongoDB document ID",
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When action occurred",
    )
    actor_id: str = Field(
        ...,
        description="Administrator who performed action",
    )
    action_type: AuditActionType = Field(
        ...,
        description="Type of action performed",
    )
    target_entity_type: AuditTargetType = Field(
        ...,
        description="Type of entity affected",
    )
    target_entity_id: PyObjectId = Field(
        ...,
        description="ID of affected entity",
    )
    changes: AuditChanges = Field(
        default_factory=AuditChanges,
        description="Before/after state changes",
    )
    justification: Optional[str] = Field(
        default=None,
        description="Administrator notes",
    )
    system_context: Optional[dict[str, Any]] = Field(
        default=None,
        description="System state snapshot",
    )


class AuditLogResponse(BaseModel):
    """API response for audit log entry."""

    id: str
    timestamp: datetime
    actor_id: str
    action_type: str
    target_entity_type: str
    target_entity_id: str
    changes: AuditChanges
    justification: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: AuditLogEntry) -> "AuditLogResponse":
        """Create response from AuditLogEntry model."""
        return cls(
            id=str(entry.id),
            timestamp=entry.timestamp,
            actor_id=entry.actor_id,
            action_type=entry.action_type,
            target_entity_type=entry.target_entity_type,
            target_entity_id=str(entry.target_entity_id),
            changes=entry.changes,
            justification=entry.justification,
        )
