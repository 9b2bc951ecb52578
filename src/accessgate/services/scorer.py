"""Client for the external risk scoring service.

The scorer receives the requester's profile fields, the query, and the
resource context, and answers with anomaly and classifier outputs. Anything
that is not a well-formed, in-range set of signals is reported as an error;
callers decide how to fail.
"""

from typing import Any, Optional, Protocol

import httpx
import structlog
from pydantic import ValidationError

from accessgate.models.access_request import ResourceContext, RiskSignals
from accessgate.models.requester import RequesterProfile

logger = structlog.get_logger(__name__)


class ScorerError(Exception):
    """Base exception for scorer failures."""

    pass


class ScorerUnavailableError(ScorerError):
    """Raised when the scorer cannot be reached, times out, or errors."""

    pass


class ScorerMalformedOutputError(ScorerError):
    """Raised when the scorer answers with missing or out-of-range signals."""

    pass


class ModelScorer(Protocol):
    """Anything that can score a query for a requester."""

    async def score(
        self,
        profile: RequesterProfile,
        query_text: str,
        resource_context: ResourceContext,
    ) -> Any:
        ...


def parse_risk_signals(raw: Any) -> RiskSignals:
    """Validate raw scorer output into RiskSignals.

    Accepts either a bare signal mapping or one nested under
    ``model_outputs``.

    Raises:
        ScorerMalformedOutputError: If the output is missing fields or out of range
    """
    if isinstance(raw, RiskSignals):
        return raw
    if isinstance(raw, dict) and isinstance(raw.get("model_outputs"), dict):
        raw = raw["model_outputs"]
    if not isinstance(raw, dict):
        raise ScorerMalformedOutputError(
            f"Expected a mapping of risk signals, got {type(raw).__name__}"
        )
    try:
        return RiskSignals.model_validate(raw)
    except ValidationError as e:
        raise ScorerMalformedOutputError(
            f"Invalid risk signals: {e.error_count()} validation error(s)"
        ) from e


class ModelScorerClient:
    """HTTP client for the risk scoring service."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize scorer client.

        Args:
            url: Scoring endpoint
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used for testing)
        """
        self.url = url
        self.timeout = timeout
        self.transport = transport

    def build_payload(
        self,
        profile: RequesterProfile,
        query_text: str,
        resource_context: ResourceContext,
    ) -> dict[str, Any]:
        """Build the scoring request body."""
        return {
            "query": query_text,
            "request_details": {
                **profile.snapshot().model_dump(mode="json"),
                **resource_context.model_dump(mode="json"),
            },
        }

    async def score(
        self,
        profile: RequesterProfile,
        query_text: str,
        resource_context: ResourceContext,
    ) -> RiskSignals:
        """Score a query.

        Args:
            profile: Requester profile
            query_text: Natural-language query
            resource_context: Requested resource

        Returns:
            Validated RiskSignals

        Raises:
            ScorerUnavailableError: On timeout, transport error, or error status
            ScorerMalformedOutputError: On unparseable or invalid signals
        """
        payload = self.build_payload(profile, query_text, resource_context)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as e:
            raise ScorerUnavailableError("Scorer request timed out") from e
        except httpx.HTTPStatusError as e:
            raise ScorerUnavailableError(
                f"Scorer returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ScorerUnavailableError(f"Scorer request failed: {e}") from e
        except ValueError as e:
            raise ScorerMalformedOutputError("Scorer response is not valid JSON") from e

        signals = parse_risk_signals(body)

        logger.debug(
            "Scored query",
            anomaly_score=signals.anomaly_score,
            classifier_probability=signals.classifier_probability,
        )
        return signals
