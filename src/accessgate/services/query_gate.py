"""Query gate: the per-query entry point of the access decision engine.

For every incoming query the gate:
1. Resolves the requester profile
2. Obtains risk signals from the scorer (bounded timeout, at most one retry)
3. Classifies risk and runs the decision policy
4. Persists an immutable AccessRequest
5. Creates the pending ReviewTicket
6. Returns an approved verdict with a proceed token, or a sanitized denial

Every failure before step 4 becomes a denial. Exactly one access request
and one ticket are recorded per query whatever the outcome.
"""

import asyncio
import secrets
from datetime import datetime
from typing import Callable, Optional

import structlog

from accessgate.config import PolicyConfig
from accessgate.models.access_request import (
    AccessRequest,
    Decision,
    ReasonCode,
    ResourceContext,
    RiskSignals,
)
from accessgate.models.requester import RequesterProfile, RequesterSnapshot
from accessgate.models.ticket import ReviewTicket
from accessgate.models.verdict import ApprovedVerdict, DeniedVerdict, Verdict
from accessgate.services.database import AccessRequestRepository
from accessgate.services.decision_policy import DecisionPolicy, deny
from accessgate.services.identity import IdentityError, IdentityService
from accessgate.services.knowledge_base import KnowledgeBaseService
from accessgate.services.risk_classification import RiskAssessment, RiskClassifier
from accessgate.services.scorer import (
    ModelScorer,
    ScorerError,
    ScorerUnavailableError,
    parse_risk_signals,
)
from accessgate.services.ticket_lifecycle import TicketLifecycleManager
from accessgate.utils.retry import RetryConfig, async_retry_with_backoff

logger = structlog.get_logger(__name__)


def _to_millis(value: datetime) -> datetime:
    # Mongo stores datetimes at millisecond precision
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


class QueryGate:
    """Orchestrates scoring, decision, persistence and ticket creation."""

    def __init__(
        self,
        identity: IdentityService,
        scorer: ModelScorer,
        access_requests: AccessRequestRepository,
        tickets: TicketLifecycleManager,
        config: Optional[PolicyConfig] = None,
        scorer_timeout: float = 5.0,
        scorer_max_retries: int = 1,
        scorer_retry_delay: float = 0.2,
        knowledge_base: Optional[KnowledgeBaseService] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """Initialize QueryGate.

        Args:
            identity: Identity collaborator
            scorer: Model scorer collaborator
            access_requests: Access request repository
            tickets: Ticket lifecycle manager
            config: Policy thresholds
            scorer_timeout: Default per-attempt scorer timeout in seconds
            scorer_max_retries: Retries after an unavailable scorer (capped at 1)
            scorer_retry_delay: Delay before the retry in seconds
            knowledge_base: Optional indexer offered approved requests
            clock: Source of request creation time
        """
        config = config or PolicyConfig()
        self.identity = identity
        self.scorer = scorer
        self.access_requests = access_requests
        self.tickets = tickets
        self.classifier = RiskClassifier(config)
        self.policy = DecisionPolicy(config)
        self.scorer_timeout = scorer_timeout
        self.scorer_max_retries = max(0, min(scorer_max_retries, 1))
        self.scorer_retry_delay = scorer_retry_delay
        self.knowledge_base = knowledge_base
        self.clock = clock
        self._background_tasks: set[asyncio.Task] = set()

    async def submit_query(
        self,
        requester_id: str,
        query_text: str,
        resource_context: Optional[ResourceContext] = None,
        timeout: Optional[float] = None,
    ) -> Verdict:
        """Decide whether a query may proceed.

        Args:
            requester_id: Identity of the requester
            query_text: Natural-language query
            resource_context: Requested resource (unspecified sensitivity is high)
            timeout: Per-attempt scorer timeout in seconds (defaults to configured)

        Returns:
            ApprovedVerdict or DeniedVerdict
        """
        resource_context = resource_context or ResourceContext()
        created_at = _to_millis(self.clock())

        snapshot: Optional[RequesterSnapshot] = None
        signals: Optional[RiskSignals] = None
        assessment: Optional[RiskAssessment] = None
        failure_detail: Optional[str] = None

        try:
            profile = await self.identity.get_profile(requester_id)
        except IdentityError as e:
            decision = deny(ReasonCode.PROFILE_NOT_FOUND)
            failure_detail = f"{type(e).__name__}: {e}"
            logger.warning(
                "Denied query for unresolvable requester",
                requester_id=requester_id,
                error=type(e).__name__,
            )
        else:
            snapshot = profile.snapshot()
            try:
                signals = await self._score(profile, query_text, resource_context, timeout)
            except ScorerError as e:
                decision = deny(ReasonCode.RISK_ASSESSMENT_UNAVAILABLE)
                failure_detail = f"{type(e).__name__}: {e}"
                logger.warning(
                    "Risk assessment unavailable, failing closed",
                    requester_id=requester_id,
                    error=failure_detail,
                )
            else:
                assessment = self.classifier.classify(signals)
                decision = self.policy.evaluate(
                    snapshot=snapshot,
                    tier=assessment.tier,
                    sensitivity=resource_context.resource_sensitivity,
                    signals=signals,
                    now=created_at,
                )

        request = await self.access_requests.create(
            AccessRequest(
                requester_id=requester_id,
                query_text=query_text,
                requester_snapshot=snapshot,
                resource_context=resource_context,
                risk_signals=signals,
                risk_tier=assessment.tier if assessment else None,
                severity=assessment.severity if assessment else None,
                decision=decision,
                failure_detail=failure_detail,
                proceed_token=secrets.token_urlsafe(32) if decision.approved else None,
                created_at=created_at,
            )
        )
        ticket = await self._open_ticket(request)

        logger.info(
            "Access decision recorded",
            access_request_id=str(request.id),
            ticket_id=str(ticket.id),
            requester_id=requester_id,
            outcome=decision.outcome,
            reason_code=decision.reason_code,
        )

        if decision.approved:
            self._offer_to_knowledge_base(request)
            return ApprovedVerdict(
                proceed_token=request.proceed_token,
                access_request_id=str(request.id),
                ticket_id=str(ticket.id),
            )

        return DeniedVerdict(
            reason=decision.reason_text,
            access_request_id=str(request.id),
            ticket_id=str(ticket.id),
        )

    async def _open_ticket(self, request: AccessRequest) -> ReviewTicket:
        """Create the review ticket for a persisted request.

        Ticket creation is idempotent per request, so a failed attempt is
        retried once for the same request before giving up.

        Raises:
            Exception: The second failure, after logging the orphaned request
        """
        try:
            return await self.tickets.create(request)
        except Exception as e:
            logger.warning(
                "Ticket creation failed, retrying",
                access_request_id=str(request.id),
                error=str(e),
            )
        try:
            return await self.tickets.create(request)
        except Exception as e:
            logger.error(
                "Access request recorded without review ticket",
                access_request_id=str(request.id),
                requester_id=request.requester_id,
                error=str(e),
            )
            raise

    async def _score(
        self,
        profile: RequesterProfile,
        query_text: str,
        resource_context: ResourceContext,
        timeout: Optional[float],
    ) -> RiskSignals:
        """Fetch and validate risk signals.

        Raises:
            ScorerError: If the scorer fails after the allowed retry
        """
        if timeout is None:
            timeout = self.scorer_timeout

        async def attempt() -> RiskSignals:
            try:
                raw = await asyncio.wait_for(
                    self.scorer.score(profile, query_text, resource_context),
                    timeout=timeout,
                )
            except asyncio.TimeoutError as e:
                raise ScorerUnavailableError(
                    f"Scorer did not answer within {timeout}s"
                ) from e
            except ScorerError:
                raise
            except Exception as e:
                raise ScorerUnavailableError(f"Scorer raised {type(e).__name__}: {e}") from e
            return parse_risk_signals(raw)

        retrying = async_retry_with_backoff(
            RetryConfig(
                max_retries=self.scorer_max_retries,
                initial_delay=self.scorer_retry_delay,
                retryable_exceptions=(ScorerUnavailableError,),
            )
        )
        return await retrying(attempt)()

    def _offer_to_knowledge_base(self, request: AccessRequest) -> None:
        """Schedule indexing without blocking the verdict."""
        if self.knowledge_base is None:
            return
        task = asyncio.create_task(self._index(request))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _index(self, request: AccessRequest) -> None:
        try:
            await self.knowledge_base.index_access_request(request)
        except Exception as e:
            logger.warning(
                "Knowledge base indexing failed",
                access_request_id=str(request.id),
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait for outstanding background indexing tasks."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)


def replay_decision(
    policy: DecisionPolicy,
    request: AccessRequest,
) -> Decision:
    """Re-run the decision policy against a stored access request.

    Fail-closed requests (no snapshot or no signals) reproduce their stored
    denial.

    Args:
        policy: Decision policy with the same configuration
        request: Stored access request

    Returns:
        The decision the policy produces for the stored inputs
    """
    if request.requester_snapshot is None or request.risk_signals is None:
        return request.decision
    return policy.evaluate(
        snapshot=request.requester_snapshot,
        tier=request.risk_tier,
        sensitivity=request.resource_context.resource_sensitivity,
        signals=request.risk_signals,
        now=request.created_at,
    )
