"""Audit log API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from accessgate.api.dependencies import CurrentAdmin
from accessgate.models.audit import AuditActionType, AuditLogResponse, AuditTargetType
from accessgate.models.common import parse_object_id
from accessgate.services.audit import AuditRepository, get_audit_repository

router = APIRouter(prefix="/audit", tags=["Audit"])


class AuditListResponse(BaseModel):
    """Response for list audit entries endpoint."""

    data: list[AuditLogResponse]
    page: int
    per_page: int


@router.get("", response_model=AuditListResponse)
async def list_audit_entries(
    admin: CurrentAdmin,
    target_id: Optional[str] = Query(
        default=None, description="Filter by target entity ID"
    ),
    target_type: Optional[AuditTargetType] = Query(
        default=None, description="Filter by target entity type"
    ),
    action_type: Optional[AuditActionType] = Query(
        default=None, description="Filter by action type"
    ),
    actor_id: Optional[str] = Query(
        default=None, description="Filter by acting administrator"
    ),
    page: int = Query(default=1, ge=1, description="Page number"),
    per_page: int = Query(default=50, ge=1, le=100, description="Items per page"),
    audit_repo: AuditRepository = Depends(get_audit_repository),
) -> AuditListResponse:
    """List audit entries, newest first.

    With ``target_id`` the trail of that entity is returned; otherwise the
    action and actor filters apply.

    Raises:
        HTTPException: 400 for a malformed target ID
    """
    offset = (page - 1) * per_page

    if target_id:
        try:
            entity_id = parse_object_id(target_id)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid target ID format",
            )
        entries = await audit_repo.list_by_entity(
            entity_id=entity_id,
            entity_type=target_type,
            limit=per_page,
            offset=offset,
        )
    else:
        entries = await audit_repo.list_all(
            action_type=action_type,
            actor_id=actor_id,
            limit=per_page,
            offset=offset,
        )

    return AuditListResponse(
        data=[AuditLogResponse.from_entry(e) for e in entries],
        page=page,
        per_page=per_page,
    )
