"""Review ticket API routes.

Administrators list pending tickets and adjudicate each one exactly once.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from accessgate.api.dependencies import CurrentAdmin, get_ticket_manager
from accessgate.models.common import parse_object_id
from accessgate.models.ticket import (
    ReviewTicketResponse,
    TicketReviewRequest,
    TicketStatus,
)
from accessgate.services.ticket_lifecycle import (
    InvalidTransitionError,
    TicketLifecycleManager,
    TicketNotFoundError,
)

router = APIRouter(prefix="/tickets", tags=["Tickets"])


class PaginationMeta(BaseModel):
    """Pagination metadata."""

    page: int
    per_page: int
    total: int
    total_pages: int


class TicketListResponse(BaseModel):
    """Response for list tickets endpoint."""

    data: list[ReviewTicketResponse]
    meta: PaginationMeta


@router.get("", response_model=TicketListResponse)
async def list_tickets(
    admin: CurrentAdmin,
    ticket_status: Optional[TicketStatus] = Query(
        default=None, alias="status", description="Filter by status"
    ),
    page: int = Query(default=1, ge=1, description="Page number"),
    per_page: int = Query(default=20, ge=1, le=100, description="Items per page"),
    manager: TicketLifecycleManager = Depends(get_ticket_manager),
) -> TicketListResponse:
    """List review tickets, newest first.

    Args:
        admin: Acting administrator
        ticket_status: Filter by status (optional)
        page: Page number
        per_page: Items per page
        manager: Ticket lifecycle manager

    Returns:
        Tickets with pagination
    """
    offset = (page - 1) * per_page

    tickets = await manager.list(status=ticket_status, limit=per_page, offset=offset)
    total = await manager.count(status=ticket_status)

    total_pages = (total + per_page - 1) // per_page

    return TicketListResponse(
        data=[ReviewTicketResponse.from_ticket(t) for t in tickets],
        meta=PaginationMeta(
            page=page,
            per_page=per_page,
            total=total,
            total_pages=total_pages,
        ),
    )


@router.get("/{ticket_id}", response_model=dict)
async def get_ticket(
    ticket_id: str,
    admin: CurrentAdmin,
    manager: TicketLifecycleManager = Depends(get_ticket_manager),
) -> dict:
    """Get a ticket by ID.

    Raises:
        HTTPException: 400 for a malformed ID, 404 if not found
    """
    try:
        oid = parse_object_id(ticket_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid ticket ID format",
        )

    ticket = await manager.get(oid)
    if not ticket:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket not found",
        )

    return {"data": ReviewTicketResponse.from_ticket(ticket).model_dump()}


@router.post("/{ticket_id}/review", response_model=dict)
async def review_ticket(
    ticket_id: str,
    body: TicketReviewRequest,
    admin: CurrentAdmin,
    manager: TicketLifecycleManager = Depends(get_ticket_manager),
) -> dict:
    """Approve or deny a pending ticket.

    Args:
        ticket_id: Ticket to review
        body: Outcome and optional notes
        admin: Acting administrator
        manager: Ticket lifecycle manager

    Returns:
        The reviewed ticket

    Raises:
        HTTPException: 400 for a malformed ID, 404 if not found,
            409 if the ticket is no longer pending or the outcome is invalid
    """
    try:
        oid = parse_object_id(ticket_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid ticket ID format",
        )

    try:
        ticket = await manager.review(
            ticket_id=oid,
            outcome=body.outcome,
            admin_id=str(admin.id),
            notes=body.notes,
        )
    except TicketNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ticket not found",
        )
    except InvalidTransitionError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=e.message,
        )

    return {"data": ReviewTicketResponse.from_ticket(ticket).model_dump()}
