"""FastAPI dependencies for services and administrator authorization.

Requester identity is always passed explicitly in the request body. Admin
routes identify the acting administrator from the ``X-Admin-Id`` header;
there is no ambient current user.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status

from accessgate.config import settings
from accessgate.models.requester import RequesterProfile
from accessgate.services.audit import AuditRepository, AuditService
from accessgate.services.database import (
    ACCESS_REQUESTS_COLLECTION,
    AUDIT_LOG_COLLECTION,
    REVIEW_TICKETS_COLLECTION,
    USERS_COLLECTION,
    AccessRequestRepository,
    ReviewTicketRepository,
    get_collection,
)
from accessgate.services.identity import IdentityError, IdentityService
from accessgate.services.knowledge_base import get_knowledge_base_service
from accessgate.services.query_gate import QueryGate
from accessgate.services.scorer import ModelScorerClient
from accessgate.services.ticket_lifecycle import TicketLifecycleManager

_query_gate: Optional[QueryGate] = None


def get_identity() -> IdentityService:
    """Get identity service instance.

    Returns:
        IdentityService instance
    """
    return IdentityService(get_collection(USERS_COLLECTION))


def get_ticket_manager() -> TicketLifecycleManager:
    """Get ticket lifecycle manager instance.

    Returns:
        TicketLifecycleManager instance
    """
    return TicketLifecycleManager(
        repository=ReviewTicketRepository(get_collection(REVIEW_TICKETS_COLLECTION)),
        audit_service=AuditService(AuditRepository(get_collection(AUDIT_LOG_COLLECTION))),
    )


def get_query_gate() -> QueryGate:
    """Get the process-wide query gate, built from settings on first use.

    Returns:
        QueryGate singleton
    """
    global _query_gate
    if _query_gate is None:
        _query_gate = QueryGate(
            identity=get_identity(),
            scorer=ModelScorerClient(
                url=settings.scorer_url,
                timeout=settings.scorer_timeout_seconds,
            ),
            access_requests=AccessRequestRepository(
                get_collection(ACCESS_REQUESTS_COLLECTION)
            ),
            tickets=get_ticket_manager(),
            config=settings.policy_config(),
            scorer_timeout=settings.scorer_timeout_seconds,
            scorer_max_retries=settings.scorer_max_retries,
            scorer_retry_delay=settings.scorer_retry_delay,
            knowledge_base=get_knowledge_base_service(),
        )
    return _query_gate


async def reset_query_gate() -> None:
    """Drain background work and drop the query gate singleton."""
    global _query_gate
    if _query_gate is not None:
        await _query_gate.drain()
    _query_gate = None


async def get_current_admin(
    x_admin_id: Annotated[Optional[str], Header()] = None,
    identity: IdentityService = Depends(get_identity),
) -> RequesterProfile:
    """Resolve the acting administrator from the ``X-Admin-Id`` header.

    Args:
        x_admin_id: Administrator user ID
        identity: Identity service

    Returns:
        The administrator's profile

    Raises:
        HTTPException: 401 if the header is missing or unknown, 403 if not an admin
    """
    if not x_admin_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Administrator identity required",
        )

    try:
        profile = await identity.get_profile(x_admin_id)
    except IdentityError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown administrator",
        )

    if not profile.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator role required",
        )

    return profile


# Type alias for current admin dependency
CurrentAdmin = Annotated[RequesterProfile, Depends(get_current_admin)]
