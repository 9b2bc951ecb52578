"""Access request API routes (administrator view).

Access requests carry full diagnostics here: risk signals, tier, severity
and failure details that are never shown to requesters.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from accessgate.api.dependencies import CurrentAdmin, get_ticket_manager
from accessgate.config import settings
from accessgate.models.access_request import (
    AccessRequest,
    AccessRequestResponse,
    Decision,
    DecisionOutcome,
)
from accessgate.models.audit import AuditActionType, AuditTargetType
from accessgate.models.common import parse_object_id
from accessgate.models.ticket import TicketStatus
from accessgate.services.audit import AuditRepository, AuditService, get_audit_repository
from accessgate.services.database import (
    AccessRequestRepository,
    get_access_request_repository,
)
from accessgate.services.decision_policy import DecisionPolicy
from accessgate.services.knowledge_base import (
    KnowledgeBaseError,
    get_knowledge_base_service,
)
from accessgate.services.query_gate import replay_decision
from accessgate.services.ticket_lifecycle import TicketLifecycleManager

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/access-requests", tags=["Access Requests"])


class PaginationMeta(BaseModel):
    """Pagination metadata."""

    page: int
    per_page: int
    total: int
    total_pages: int


class AccessRequestListResponse(BaseModel):
    """Response for list access requests endpoint."""

    data: list[AccessRequestResponse]
    meta: PaginationMeta


class ReplayResponse(BaseModel):
    """Stored decision next to the decision the current policy produces."""

    access_request_id: str
    stored: Decision
    replayed: Decision
    matches: bool


async def _load_request(
    request_id: str,
    requests: AccessRequestRepository,
) -> AccessRequest:
    try:
        oid = parse_object_id(request_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid access request ID format",
        )

    request = await requests.get_by_id(oid)
    if not request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Access request not found",
        )
    return request


@router.get("", response_model=AccessRequestListResponse)
async def list_access_requests(
    admin: CurrentAdmin,
    outcome: Optional[DecisionOutcome] = Query(
        default=None, description="Filter by decision outcome"
    ),
    requester_id: Optional[str] = Query(
        default=None, description="Filter by requester"
    ),
    page: int = Query(default=1, ge=1, description="Page number"),
    per_page: int = Query(default=20, ge=1, le=100, description="Items per page"),
    requests: AccessRequestRepository = Depends(get_access_request_repository),
) -> AccessRequestListResponse:
    """List access requests, newest first.

    Args:
        admin: Acting administrator
        outcome: Filter by decision outcome (optional)
        requester_id: Filter by requester (optional)
        page: Page number
        per_page: Items per page
        requests: Access request repository

    Returns:
        Access requests with pagination
    """
    offset = (page - 1) * per_page

    items = await requests.list(
        outcome=outcome,
        requester_id=requester_id,
        limit=per_page,
        offset=offset,
    )
    total = await requests.count(outcome=outcome, requester_id=requester_id)

    total_pages = (total + per_page - 1) // per_page

    return AccessRequestListResponse(
        data=[AccessRequestResponse.from_request(r) for r in items],
        meta=PaginationMeta(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
        ),
    )


@router.get("/{request_id}", response_model=dict)
async def get_access_request(
    request_id: str,
    admin: CurrentAdmin,
    requests: AccessRequestRepository = Depends(get_access_request_repository),
) -> dict:
    """Get an access request with full diagnostics."""
    request = await _load_request(request_id, requests)
    return {"data": AccessRequestResponse.from_request(request).model_dump(mode="json")}


@router.get("/{request_id}/replay", response_model=ReplayResponse)
async def replay_access_request(
    request_id: str,
    admin: CurrentAdmin,
    requests: AccessRequestRepository = Depends(get_access_request_repository),
) -> ReplayResponse:
    """Re-run the decision policy against a stored request.

    The replay uses the stored snapshot, signals and creation time, so it
    only diverges from the stored decision when policy settings changed.
    """
    request = await _load_request(request_id, requests)
    replayed = replay_decision(DecisionPolicy(settings.policy_config()), request)

    return ReplayResponse(
        access_request_id=str(request.id),
        stored=request.decision,
        replayed=replayed,
        matches=replayed == request.decision,
    )


@router.post("/{request_id}/knowledge-base", response_model=dict)
async def index_access_request(
    request_id: str,
    admin: CurrentAdmin,
    requests: AccessRequestRepository = Depends(get_access_request_repository),
    manager: TicketLifecycleManager = Depends(get_ticket_manager),
    audit_repo: AuditRepository = Depends(get_audit_repository),
) -> dict:
    """Index an approved access request into the knowledge base.

    A request qualifies when its automated decision was approved or an
    administrator approved its ticket.

    Raises:
        HTTPException: 400 if the request does not qualify, 503 if the
            knowledge base is disabled, 502 if indexing fails
    """
    request = await _load_request(request_id, requests)

    ticket = await manager.get_by_access_request(request.id)
    ticket_approved = ticket is not None and ticket.status == TicketStatus.APPROVED
    if not request.decision.approved and not ticket_approved:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only approved access requests can be indexed",
        )

    knowledge_base = get_knowledge_base_service()
    if knowledge_base is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Knowledge base is not enabled",
        )

    try:
        vector_id = await knowledge_base.index_access_request(request)
    except KnowledgeBaseError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )

    await AuditService(audit_repo).log_action(
        actor_id=str(admin.id),
        action_type=AuditActionType.KNOWLEDGE_BASE_INDEX,
        target_type=AuditTargetType.ACCESS_REQUEST,
        target_id=request.id,
        changes_after={"vector_id": vector_id},
        system_context={
            "decision_outcome": request.decision.outcome,
            "ticket_status": ticket.status if ticket else None,
        },
    )

    logger.info(
        "Indexed access request on administrator request",
        access_request_id=vector_id,
        admin_id=str(admin.id),
    )

    return {"data": {"access_request_id": vector_id, "indexed": True}}
