"""Decision policy turning requester context and risk into approve/deny.

Rules are evaluated in a fixed order and the first match wins, so the
reason for any decision can be reproduced by re-running the same checks
against the same inputs:

1. Inactive employment status
2. High anomaly risk against a sensitive resource
3. Violation history above the configured limit
4. Security training not current (sensitive resources only)
5. Classifier risk probability above the configured ceiling
6. Otherwise approve

The only time input is ``now``, the access request's creation time.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Union

from accessgate.config import PolicyConfig
from accessgate.models.access_request import (
    Decision,
    DecisionOutcome,
    ReasonCode,
    ResourceSensitivity,
    RiskSignals,
    RiskTier,
)
from accessgate.models.requester import RequesterSnapshot

ACTIVE_STATUS = "active"
NEVER_TRAINED = "never"

REASON_TEXT: dict[ReasonCode, str] = {
    ReasonCode.INACTIVE_EMPLOYMENT: "inactive employment status",
    ReasonCode.HIGH_RISK_SENSITIVE_RESOURCE: "high anomaly risk against sensitive resource",
    ReasonCode.VIOLATION_HISTORY: "policy violation history exceeds limit",
    ReasonCode.TRAINING_NOT_CURRENT: "security training not current",
    ReasonCode.MODEL_RISK_PROBABILITY: "model risk probability exceeds threshold",
    ReasonCode.NO_DISQUALIFYING_SIGNAL: "no disqualifying signal",
    ReasonCode.RISK_ASSESSMENT_UNAVAILABLE: "risk assessment unavailable",
    ReasonCode.PROFILE_NOT_FOUND: "requester profile unavailable",
}


@dataclass(frozen=True)
class PolicyInput:
    """Everything a rule may look at."""

    snapshot: RequesterSnapshot
    tier: RiskTier
    sensitivity: ResourceSensitivity
    signals: RiskSignals
    now: datetime


def deny(reason_code: ReasonCode) -> Decision:
    """Build a denial with the canonical reason text."""
    return Decision(
        outcome=DecisionOutcome.DENIED,
        reason_code=reason_code,
        reason_text=REASON_TEXT[reason_code],
    )


def approve() -> Decision:
    """Build the approval decision."""
    return Decision(
        outcome=DecisionOutcome.APPROVED,
        reason_code=ReasonCode.NO_DISQUALIFYING_SIGNAL,
        reason_text=REASON_TEXT[ReasonCode.NO_DISQUALIFYING_SIGNAL],
    )


def parse_training_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored training date.

    Returns:
        The training datetime, or None for "Never", blanks, and unparseable values
    """
    if not value:
        return None
    text = value.strip()
    if not text or text.lower() == NEVER_TRAINED:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None


def is_training_current(
    last_security_training: Optional[str],
    now: datetime,
    recency_days: int,
) -> bool:
    """Check whether security training falls inside the recency window.

    Training dated after ``now`` does not count as current.
    """
    trained_at = parse_training_date(last_security_training)
    if trained_at is None:
        return False
    age_days = (now.date() - trained_at.date()).days
    return 0 <= age_days <= recency_days


class DecisionPolicy:
    """Ordered, deterministic access rules."""

    def __init__(self, config: Optional[PolicyConfig] = None):
        """Initialize DecisionPolicy.

        Args:
            config: Policy thresholds (defaults to built-in values)
        """
        self.config = config or PolicyConfig()
        self.rules: tuple[tuple[ReasonCode, Callable[[PolicyInput], bool]], ...] = (
            (ReasonCode.INACTIVE_EMPLOYMENT, self._is_inactive),
            (ReasonCode.HIGH_RISK_SENSITIVE_RESOURCE, self._is_high_risk_sensitive),
            (ReasonCode.VIOLATION_HISTORY, self._exceeds_violation_limit),
            (ReasonCode.TRAINING_NOT_CURRENT, self._training_lapsed_for_sensitive),
            (ReasonCode.MODEL_RISK_PROBABILITY, self._exceeds_probability_ceiling),
        )

    def evaluate(
        self,
        snapshot: RequesterSnapshot,
        tier: Union[RiskTier, str],
        sensitivity: Union[ResourceSensitivity, str],
        signals: RiskSignals,
        now: datetime,
    ) -> Decision:
        """Decide a request.

        Args:
            snapshot: Requester fields at request time
            tier: Classified risk tier
            sensitivity: Sensitivity of the requested resource
            signals: Raw model outputs
            now: Access request creation time

        Returns:
            Decision from the first matching rule, or approval
        """
        policy_input = PolicyInput(
            snapshot=snapshot,
            tier=RiskTier(tier),
            sensitivity=ResourceSensitivity(sensitivity),
            signals=signals,
            now=now,
        )
        for reason_code, rule in self.rules:
            if rule(policy_input):
                return deny(reason_code)
        return approve()

    def _is_inactive(self, p: PolicyInput) -> bool:
        return p.snapshot.employee_status.strip().lower() != ACTIVE_STATUS

    def _is_high_risk_sensitive(self, p: PolicyInput) -> bool:
        return p.tier == RiskTier.HIGH and p.sensitivity == ResourceSensitivity.HIGH

    def _exceeds_violation_limit(self, p: PolicyInput) -> bool:
        return p.snapshot.past_violations > self.config.violation_limit

    def _training_lapsed_for_sensitive(self, p: PolicyInput) -> bool:
        if p.sensitivity != ResourceSensitivity.HIGH:
            return False
        return not is_training_current(
            p.snapshot.last_security_training,
            p.now,
            self.config.training_recency_days,
        )

    def _exceeds_probability_ceiling(self, p: PolicyInput) -> bool:
        return p.signals.classifier_probability > self.config.probability_ceiling
