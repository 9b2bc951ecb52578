"""Access request model: the immutable record of one query-time decision.

An AccessRequest, its RiskSignals and its Decision are historical facts.
They are validated once on construction, frozen, and only ever inserted.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from accessgate.models.common import PyObjectId
from accessgate.models.requester import RequesterSnapshot


class RiskTier(str, Enum):
    """Discretized anomaly risk."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ResourceSensitivity(str, Enum):
    """Sensitivity of the data a query targets."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DecisionOutcome(str, Enum):
    """Final outcome of the decision policy."""

    APPROVED = "approved"
    DENIED = "denied"


class ReasonCode(str, Enum):
    """Machine-readable reason attached to every decision."""

    INACTIVE_EMPLOYMENT = "inactive_employment"
    HIGH_RISK_SENSITIVE_RESOURCE = "high_risk_sensitive_resource"
    VIOLATION_HISTORY = "violation_history"
    TRAINING_NOT_CURRENT = "training_not_current"
    MODEL_RISK_PROBABILITY = "model_risk_probability"
    NO_DISQUALIFYING_SIGNAL = "no_disqualifying_signal"
    RISK_ASSESSMENT_UNAVAILABLE = "risk_assessment_unavailable"
    PROFILE_NOT_FOUND = "profile_not_found"


class RiskSignals(BaseModel):
    """Model outputs for one query.

    Accepts the legacy ``xgb_*`` field names emitted by older scorers.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    anomaly_score: float = Field(
        ...,
        allow_inf_nan=False,
        description="Unsupervised anomaly score (lower is more anomalous)",
    )
    anomaly_prediction: Literal[-1, 0, 1] = Field(
        ...,
        description="Unsupervised anomaly flag (-1 anomalous, 1 normal)",
    )
    classifier_probability: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        allow_inf_nan=False,
        validation_alias=AliasChoices("classifier_probability", "xgb_probability"),
        description="Supervised probability of risk",
    )
    classifier_prediction: Literal[0, 1] = Field(
        ...,
        validation_alias=AliasChoices("classifier_prediction", "xgb_prediction"),
        description="Supervised risk flag",
    )


class ResourceContext(BaseModel):
    """What the query is trying to reach."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    resource_sensitivity: ResourceSensitivity = Field(
        default=ResourceSensitivity.HIGH,
        description="Sensitivity of the requested data (unspecified is high)",
    )
    resource_type: Optional[str] = Field(
        default=None,
        description="Kind of resource, e.g. financial_report",
    )
    request_reason: Optional[str] = Field(
        default=None,
        description="Stated business reason",
    )


class Decision(BaseModel):
    """Outcome of the decision policy for one access request."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    outcome: DecisionOutcome
    reason_code: ReasonCode
    reason_text: str

    @property
    def approved(self) -> bool:
        return self.outcome == DecisionOutcome.APPROVED

    @model_validator(mode="after")
    def require_denial_reason(self) -> "Decision":
        if self.outcome == DecisionOutcome.DENIED and not self.reason_text.strip():
            raise ValueError("A denied decision requires a reason")
        return self


class AccessRequest(BaseModel):
    """Durable record of one query-time access decision."""

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        populate_by_name=True,
        use_enum_values=True,
    )

    id: Optional[PyObjectId] = Field(
        default=None,
        alias="_id",
        description="MongoDB document ID",
    )
    requester_id: str = Field(..., description="Identity of the requester")
    query_text: str = Field(..., description="Natural-language query")
    requester_snapshot: Optional[RequesterSnapshot] = Field(
        default=None,
        description="Profile copy at request time (absent if profile not found)",
    )
    resource_context: ResourceContext = Field(
        default_factory=ResourceContext,
        description="Requested resource",
    )
    risk_signals: Optional[RiskSignals] = Field(
        default=None,
        description="Model outputs (absent if scoring failed)",
    )
    risk_tier: Optional[RiskTier] = Field(
        default=None,
        description="Classified risk tier",
    )
    severity: Optional[float] = Field(
        default=None,
        description="Ranking severity in [0, 1], higher is riskier",
    )
    decision: Decision = Field(..., description="Final decision")
    failure_detail: Optional[str] = Field(
        default=None,
        description="Administrator-only diagnostic for fail-closed outcomes",
    )
    proceed_token: Optional[str] = Field(
        default=None,
        description="Capability to request an answer (approved requests only)",
    )
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Decision reference time",
    )

    @model_validator(mode="after")
    def check_token_matches_outcome(self) -> "AccessRequest":
        if self.proceed_token and not self.decision.approved:
            raise ValueError("Only approved requests carry a proceed token")
        return self


class AccessRequestResponse(BaseModel):
    """API response for an access request (administrator view)."""

    id: str
    requester_id: str
    query_text: str
    requester_snapshot: Optional[RequesterSnapshot] = None
    resource_context: ResourceContext
    risk_signals: Optional[RiskSignals] = None
    risk_tier: Optional[str] = None
    severity: Optional[float] = None
    decision: Decision
    failure_detail: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_request(cls, request: AccessRequest) -> "AccessRequestResponse":
        """Create response from AccessRequest model."""
        return cls(
            id=str(request.id),
            requester_id=request.requester_id,
            query_text=request.query_text,
            requester_snapshot=request.requester_snapshot,
            resource_context=request.resource_context,
            risk_signals=request.risk_signals,
            risk_tier=request.risk_tier,
            severity=request.severity,
            decision=request.decision,
            failure_detail=request.failure_detail,
            created_at=request.created_at,
        )
