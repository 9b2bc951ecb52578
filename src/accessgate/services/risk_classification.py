"""Risk tier classification from model risk signals.

Risk tiers:
- HIGH: anomaly score below the high threshold
- MEDIUM: anomaly score below the medium threshold
- LOW: everything else

Severity blends the classifier probability with the anomaly score into a
value in [0, 1] (higher is riskier). It orders tickets for review and is never
consulted by the decision policy.
"""

import math
from dataclasses import dataclass
from typing import Optional

from accessgate.config import PolicyConfig
from accessgate.models.access_request import RiskSignals, RiskTier


@dataclass(frozen=True)
class RiskAssessment:
    """Result of classifying a set of risk signals."""

    tier: RiskTier
    severity: float


def classify_tier(anomaly_score: float, config: PolicyConfig) -> RiskTier:
    """Map an anomaly score onto a risk tier.

    Args:
        anomaly_score: Unsupervised anomaly score (lower is more anomalous)
        config: Policy thresholds

    Returns:
        Risk tier
    """
    if anomaly_score < config.high_threshold:
        return RiskTier.HIGH
    if anomaly_score < config.medium_threshold:
        return RiskTier.MEDIUM
    return RiskTier.LOW


def compute_severity(signals: RiskSignals, config: PolicyConfig) -> float:
    """Blend classifier probability and anomaly score into a severity.

    ``tanh`` squashes the unbounded anomaly score into (-1, 1) without
    overflowing for large magnitudes.

    Args:
        signals: Model outputs
        config: Policy configuration (probability weight)

    Returns:
        Severity in [0, 1]
    """
    weight = config.severity_probability_weight
    anomaly_component = (1.0 - math.tanh(signals.anomaly_score)) / 2.0
    return weight * signals.classifier_probability + (1.0 - weight) * anomaly_component


class RiskClassifier:
    """Pure classifier from risk signals to (tier, severity)."""

    def __init__(self, config: Optional[PolicyConfig] = None):
        """Initialize RiskClassifier.

        Args:
            config: Policy thresholds (defaults to built-in values)
        """
        self.config = config or PolicyConfig()

    def classify(self, signals: RiskSignals) -> RiskAssessment:
        """Classify risk signals.

        Args:
            signals: Validated model outputs

        Returns:
            RiskAssessment with tier and severity
        """
        return RiskAssessment(
            tier=classify_tier(signals.anomaly_score, self.config),
            severity=compute_severity(signals, self.config),
        )
