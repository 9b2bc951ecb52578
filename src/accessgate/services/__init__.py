"""Services for AccessGate business logic."""

from accessgate.services.database import (
    AccessRequestRepository,
    ReviewTicketRepository,
    get_database,
)
from accessgate.services.decision_policy import DecisionPolicy
from accessgate.services.identity import IdentityService
from accessgate.services.query_gate import QueryGate
from accessgate.services.risk_classification import RiskClassifier
from accessgate.services.scorer import ModelScorerClient
from accessgate.services.ticket_lifecycle import TicketLifecycleManager

__all__ = [
    "AccessRequestRepository",
    "DecisionPolicy",
    "IdentityService",
    "ModelScorerClient",
    "QueryGate",
    "ReviewTicketRepository",
    "RiskClassifier",
    "TicketLifecycleManager",
    "get_database",
]
