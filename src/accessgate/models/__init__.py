"""Pydantic models for AccessGate domain objects."""

from accessgate.models.access_request import (
    AccessRequest,
    Decision,
    DecisionOutcome,
    ReasonCode,
    ResourceContext,
    ResourceSensitivity,
    RiskSignals,
    RiskTier,
)
from accessgate.models.common import PyObjectId
from accessgate.models.requester import RequesterProfile, RequesterSnapshot
from accessgate.models.ticket import ReviewTicket, TicketStatus
from accessgate.models.verdict import ApprovedVerdict, DeniedVerdict, Verdict

__all__ = [
    "AccessRequest",
    "ApprovedVerdict",
    "Decision",
    "DecisionOutcome",
    "DeniedVerdict",
    "PyObjectId",
    "ReasonCode",
    "RequesterProfile",
    "RequesterSnapshot",
    "ResourceContext",
    "ResourceSensitivity",
    "ReviewTicket",
    "RiskSignals",
    "RiskTier",
    "TicketStatus",
    "Verdict",
]
