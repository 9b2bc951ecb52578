"""Ticket lifecycle manager for administrator review of access requests.

State machine:
- pending -> approved
- pending -> denied

Both approved and denied are terminal. Reviews are applied as a single
compare-and-swap on the stored status, so two concurrent reviews of the same
ticket cannot both succeed.
"""

from datetime import datetime
from typing import Optional, Union

import structlog
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from accessgate.models.access_request import AccessRequest
from accessgate.models.audit import AuditActionType, AuditTargetType
from accessgate.models.ticket import ReviewTicket, TicketStatus
from accessgate.services.audit import AuditService
from accessgate.services.database import ReviewTicketRepository

logger = structlog.get_logger(__name__)


class TicketLifecycleError(Exception):
    """Base exception for ticket lifecycle errors."""

    pass


class TicketNotFoundError(TicketLifecycleError):
    """Raised when a ticket does not exist."""

    def __init__(self, ticket_id: ObjectId):
        super().__init__(f"Ticket not found: {ticket_id}")
        self.ticket_id = ticket_id


class InvalidTransitionError(TicketLifecycleError):
    """Raised when a review is attempted that the state machine forbids."""

    def __init__(
        self,
        ticket_id: ObjectId,
        requested_status: str,
        current_status: Optional[str] = None,
    ):
        if current_status is None:
            message = f"'{requested_status}' is not a review outcome"
        else:
            message = (
                f"Ticket {ticket_id} is already {current_status}; "
                f"cannot transition to {requested_status}"
            )
        super().__init__(message)
        self.message = message
        self.ticket_id = ticket_id
        self.requested_status = requested_status
        self.current_status = current_status


class TicketLifecycleManager:
    """Sole writer of review ticket status and review fields."""

    def __init__(
        self,
        repository: Optional[ReviewTicketRepository] = None,
        audit_service: Optional[AuditService] = None,
    ):
        """Initialize TicketLifecycleManager.

        Args:
            repository: Review ticket repository
            audit_service: Audit logging service
        """
        self.repository = repository or ReviewTicketRepository()
        self.audit_service = audit_service or AuditService()

    async def create(self, access_request: AccessRequest) -> ReviewTicket:
        """Create the pending ticket for an access request.

        Creating a ticket for a request that already has one returns the
        existing ticket, so retried submissions never produce duplicates.

        Args:
            access_request: Persisted access request

        Returns:
            The request's ticket

        Raises:
            ValueError: If the access request has not been persisted
        """
        if access_request.id is None:
            raise ValueError("Access request must be persisted before ticket creation")

        existing = await self.repository.get_by_access_request(access_request.id)
        if existing:
            logger.info(
                "Duplicate ticket creation ignored",
                access_request_id=str(access_request.id),
                ticket_id=str(existing.id),
            )
            return existing

        try:
            ticket = await self.repository.create(ReviewTicket.for_request(access_request))
        except DuplicateKeyError:
            # Lost a creation race with a concurrent retry
            existing = await self.repository.get_by_access_request(access_request.id)
            if existing is None:
                raise
            logger.info(
                "Duplicate ticket creation ignored",
                access_request_id=str(access_request.id),
                ticket_id=str(existing.id),
            )
            return existing

        logger.info(
            "Created review ticket",
            ticket_id=str(ticket.id),
            access_request_id=str(access_request.id),
            decision_outcome=ticket.decision_outcome,
        )
        return ticket

    async def review(
        self,
        ticket_id: ObjectId,
        outcome: Union[TicketStatus, str],
        admin_id: str,
        notes: Optional[str] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> ReviewTicket:
        """Apply an administrator's review to a pending ticket.

        Args:
            ticket_id: Ticket to review
            outcome: approved or denied
            admin_id: Reviewing administrator
            notes: Optional reviewer notes
            reviewed_at: Review time (defaults to now)

        Returns:
            The reviewed ticket

        Raises:
            InvalidTransitionError: If the outcome is not terminal or the ticket
                has already been reviewed
            TicketNotFoundError: If the ticket does not exist
            ValueError: If no administrator is given
        """
        if not admin_id or not admin_id.strip():
            raise ValueError("Review requires an administrator id")

        requested = TicketStatus(outcome)
        if not requested.is_terminal:
            raise InvalidTransitionError(ticket_id, requested.value)

        reviewed_at = reviewed_at or datetime.utcnow()
        notes = notes.strip() if notes and notes.strip() else None

        updated = await self.repository.transition_from_pending(
            ticket_id=ticket_id,
            status=requested,
            reviewed_by=admin_id,
            reviewed_at=reviewed_at,
            admin_notes=notes,
        )

        if updated is None:
            current = await self.repository.get_by_id(ticket_id)
            if current is None:
                raise TicketNotFoundError(ticket_id)

            logger.warning(
                "Rejected review of terminal ticket",
                ticket_id=str(ticket_id),
                current_status=current.status,
                requested_status=requested.value,
                admin_id=admin_id,
            )
            await self._audit(
                admin_id=admin_id,
                action_type=AuditActionType.TICKET_REVIEW_REJECTED,
                ticket_id=ticket_id,
                before={"status": current.status},
                after=None,
                notes=notes,
                context={"requested_status": requested.value},
            )
            raise InvalidTransitionError(ticket_id, requested.value, current.status)

        logger.info(
            "Reviewed ticket",
            ticket_id=str(ticket_id),
            status=updated.status,
            reviewed_by=admin_id,
        )
        await self._audit(
            admin_id=admin_id,
            action_type=AuditActionType.TICKET_REVIEW,
            ticket_id=ticket_id,
            before={"status": TicketStatus.PENDING.value},
            after={"status": updated.status},
            notes=notes,
            context={"access_request_id": str(updated.access_request_id)},
        )
        return updated

    async def get(self, ticket_id: ObjectId) -> Optional[ReviewTicket]:
        """Get a ticket by ID."""
        return await self.repository.get_by_id(ticket_id)

    async def get_by_access_request(
        self,
        access_request_id: ObjectId,
    ) -> Optional[ReviewTicket]:
        """Get the ticket for an access request."""
        return await self.repository.get_by_access_request(access_request_id)

    async def list(
        self,
        status: Optional[Union[TicketStatus, str]] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ReviewTicket]:
        """List tickets newest first, optionally filtered by status."""
        return await self.repository.list(
            status=TicketStatus(status) if status else None,
            limit=limit,
            offset=offset,
        )

    async def count(self, status: Optional[Union[TicketStatus, str]] = None) -> int:
        """Count tickets, optionally filtered by status."""
        return await self.repository.count(TicketStatus(status) if status else None)

    async def _audit(
        self,
        admin_id: str,
        action_type: AuditActionType,
        ticket_id: ObjectId,
        before: Optional[dict],
        after: Optional[dict],
        notes: Optional[str],
        context: dict,
    ) -> None:
        try:
            await self.audit_service.log_action(
                actor_id=admin_id,
                action_type=action_type,
                target_type=AuditTargetType.REVIEW_TICKET,
                target_id=ticket_id,
                changes_before=before,
                changes_after=after,
                justification=notes,
                system_context=context,
            )
        except Exception as e:
            # The ticket transition is already committed
            logger.error(
                "Failed to write ticket audit entry",
                ticket_id=str(ticket_id),
                action_type=action_type.value,
                error=str(e),
            )
