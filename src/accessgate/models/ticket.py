"""Review ticket model for administrator adjudication of access requests.

A ticket is created in ``pending`` alongside its access request and moves to
``approved`` or ``denied`` exactly once. Only the ticket lifecycle manager
writes the review fields.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from accessgate.models.access_request import AccessRequest
from accessgate.models.common import PyObjectId


class TicketStatus(str, Enum):
    """Review ticket lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"

    @property
    def is_terminal(self) -> bool:
        return self is not TicketStatus.PENDING


class ReviewTicket(BaseModel):
    """Workflow object tracking administrator review of one access request."""

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
    access_request_id: PyObjectId = Field(
        ...,
        description="Originating access request (one ticket per request)",
    )
    requester_id: str = Field(..., description="Requester of the access request")
    query_text: str = Field(..., description="Query under review")
    decision_outcome: str = Field(..., description="Automated decision outcome")
    decision_reason: str = Field(..., description="Automated decision reason")
    risk_tier: Optional[str] = Field(default=None, description="Classified risk tier")
    severity: Optional[float] = Field(default=None, description="Ranking severity")
    status: TicketStatus = Field(
        default=TicketStatus.PENDING,
        description="Lifecycle state",
    )
    admin_notes: Optional[str] = Field(default=None, description="Reviewer notes")
    reviewed_by: Optional[str] = Field(default=None, description="Reviewing admin")
    reviewed_at: Optional[datetime] = Field(default=None, description="Review time")
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Creation timestamp",
    )

    @property
    def is_pending(self) -> bool:
        return self.status == TicketStatus.PENDING

    @classmethod
    def for_request(cls, request: AccessRequest) -> "ReviewTicket":
        """Build the initial pending ticket for an access request."""
        return cls(
            access_request_id=request.id,
            requester_id=request.requester_id,
            query_text=request.query_text,
            decision_outcome=request.decision.outcome,
            decision_reason=request.decision.reason_text,
            risk_tier=request.risk_tier,
            severity=request.severity,
            status=TicketStatus.PENDING,
            created_at=request.created_at,
        )


class TicketReviewRequest(BaseModel):
    """Request body for reviewing a ticket."""

    model_config = ConfigDict(use_enum_values=True)

    outcome: TicketStatus = Field(..., description="approved or denied")
    notes: Optional[str] = Field(default=None, max_length=2000)


class ReviewTicketResponse(BaseModel):
    """API response for a review ticket."""

    id: str
    access_request_id: str
    requester_id: str
    query_text: str
    decision_outcome: str
    decision_reason: str
    risk_tier: Optional[str] = None
    severity: Optional[float] = None
    status: str
    admin_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_ticket(cls, ticket: ReviewTicket) -> "ReviewTicketResponse":
        """Create response from ReviewTicket model."""
        return cls(
            id=str(ticket.id),
            access_request_id=str(ticket.access_request_id),
            requester_id=ticket.requester_id,
            query_text=ticket.query_text,
            decision_outcome=ticket.decision_outcome,
            decision_reason=ticket.decision_reason,
            risk_tier=ticket.risk_tier,
            severity=ticket.severity,
            status=ticket.status,
            admin_notes=ticket.admin_notes,
            reviewed_by=ticket.reviewed_by,
            reviewed_at=ticket.reviewed_at,
            created_at=ticket.created_at,
        )
