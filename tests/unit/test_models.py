"""Unit tests for Pydantic models: validation and immutability invariants."""

import math

import pytest
from bson import ObjectId
from pydantic import ValidationError

from accessgate.models.access_request import (
    AccessRequest,
    AccessRequestResponse,
    Decision,
    DecisionOutcome,
    ReasonCode,
    ResourceContext,
    ResourceSensitivity,
    RiskSignals,
)
from accessgate.models.requester import RequesterProfile
from accessgate.models.ticket import ReviewTicket, TicketReviewRequest, TicketStatus
from accessgate.models.verdict import AnswerPayload, DeniedVerdict
from accessgate.services.decision_policy import deny
from tests.factories import create_access_request, create_signals, create_user


@pytest.mark.unit
class TestRiskSignals:
    """Test RiskSignals validation."""

    def test_accepts_valid_signals(self):
        signals = RiskSignals(
            anomaly_score=-0.2,
            anomaly_prediction=-1,
            classifier_probability=0.4,
            classifier_prediction=1,
        )
        assert signals.anomaly_prediction == -1

    def test_accepts_legacy_field_names(self):
        signals = RiskSignals.model_validate(
            {
                "anomaly_score": 0.1,
                "anomaly_prediction": 1,
                "xgb_probability": 0.3,
                "xgb_prediction": 0,
            }
        )
        assert signals.classifier_probability == 0.3
        assert signals.classifier_prediction == 0

    @pytest.mark.parametrize("probability", [-0.01, 1.01, math.nan])
    def test_rejects_out_of_range_probability(self, probability):
        with pytest.raises(ValidationError):
            create_signals(classifier_probability=probability)

    @pytest.mark.parametrize("score", [math.inf, -math.inf, math.nan])
    def test_rejects_non_finite_anomaly_score(self, score):
        with pytest.raises(ValidationError):
            create_signals(anomaly_score=score)

    def test_rejects_unknown_prediction_labels(self):
        with pytest.raises(ValidationError):
            create_signals(classifier_prediction=2)

    def test_is_frozen(self):
        signals = create_signals()
        with pytest.raises(ValidationError):
            signals.anomaly_score = -5.0


@pytest.mark.unit
class TestResourceContext:
    """Test resource context defaults."""

    def test_unspecified_sensitivity_is_high(self):
        assert ResourceContext().resource_sensitivity == ResourceSensitivity.HIGH

    def test_rejects_unknown_sensitivity(self):
        with pytest.raises(ValidationError):
            ResourceContext(resource_sensitivity="secret")


@pytest.mark.unit
class TestDecision:
    """Test Decision invariants."""

    def test_denial_requires_reason(self):
        with pytest.raises(ValidationError):
            Decision(
                outcome=DecisionOutcome.DENIED,
                reason_code=ReasonCode.VIOLATION_HISTORY,
                reason_text="  ",
            )

    def test_approved_property(self):
        assert not deny(ReasonCode.VIOLATION_HISTORY).approved


@pytest.mark.unit
class TestAccessRequest:
    """Test AccessRequest invariants."""

    def test_is_frozen(self):
        request = create_access_request()
        with pytest.raises(ValidationError):
            request.query_text = "something else"

    def test_denied_request_cannot_carry_token(self):
        with pytest.raises(ValidationError):
            create_access_request(approved=False, proceed_token="tok-123")

    def test_round_trips_through_mongo_document(self):
        request = create_access_request().model_copy(update={"id": ObjectId()})
        doc = request.model_dump(by_alias=True)
        assert doc["_id"] == request.id
        assert AccessRequest(**doc).model_dump() == request.model_dump()

    def test_response_omits_proceed_token(self):
        request = create_access_request().model_copy(update={"id": ObjectId()})
        response = AccessRequestResponse.from_request(request)
        assert "proceed_token" not in response.model_dump()
        assert response.risk_signals == request.risk_signals


@pytest.mark.unit
class TestRequesterProfile:
    """Test profile documents and snapshots."""

    def test_snapshot_copies_decision_fields(self):
        profile = RequesterProfile(**create_user(past_violations=2))
        snapshot = profile.snapshot()
        assert snapshot.past_violations == 2
        assert snapshot.department == profile.department

    def test_missing_training_defaults_to_never(self):
        doc = create_user()
        del doc["last_security_training"]
        assert RequesterProfile(**doc).last_security_training == "Never"


@pytest.mark.unit
class TestReviewTicket:
    """Test ticket construction."""

    def test_for_request_starts_pending(self):
        request = create_access_request(approved=False).model_copy(
            update={"id": ObjectId()}
        )
        ticket = ReviewTicket.for_request(request)
        assert ticket.status == TicketStatus.PENDING
        assert ticket.is_pending
        assert ticket.access_request_id == request.id
        assert ticket.decision_reason == "policy violation history exceeds limit"
        assert ticket.reviewed_at is None

    def test_terminal_statuses(self):
        assert not TicketStatus.PENDING.is_terminal
        assert TicketStatus.APPROVED.is_terminal
        assert TicketStatus.DENIED.is_terminal

    def test_review_request_rejects_unknown_outcome(self):
        with pytest.raises(ValidationError):
            TicketReviewRequest(outcome="escalated")


@pytest.mark.unit
class TestVerdicts:
    """Test verdict and answer payloads."""

    def test_denied_verdict_has_no_signal_fields(self):
        fields = set(DeniedVerdict.model_fields)
        assert fields == {"outcome", "reason", "access_request_id", "ticket_id"}

    def test_answer_payload_visualizations(self):
        payload = AnswerPayload.model_validate(
            {
                "text_response": "Revenue grew 4%.",
                "visualizations": [
                    {
                        "type": "bar",
                        "title": "Revenue by region",
                        "data": [{"name": "EMEA", "value": 1.2}],
                    }
                ],
            }
        )
        assert payload.has_visualizations
        assert not AnswerPayload(text_response="No chart").has_visualizations
