"""Unit tests for the review ticket lifecycle.

Tests:
- Ticket creation is idempotent per access request
- Reviews apply exactly once, including under concurrency
- Rejected reviews leave the ticket untouched and are audited
"""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from accessgate.models.audit import AuditActionType
from accessgate.models.ticket import ReviewTicket, TicketStatus
from accessgate.services.database import AccessRequestRepository, ReviewTicketRepository
from accessgate.services.ticket_lifecycle import (
    InvalidTransitionError,
    TicketLifecycleManager,
    TicketNotFoundError,
)
from tests.factories import create_access_request

ADMIN_ID = str(ObjectId())


async def persisted_request(repo: AccessRequestRepository, **kwargs):
    return await repo.create(create_access_request(**kwargs))


@pytest.mark.unit
@pytest.mark.requires_mongodb
class TestTicketCreation:
    """Test ticket creation."""

    @pytest.mark.asyncio
    async def test_creates_pending_ticket(self, ticket_manager, access_request_repo):
        request = await persisted_request(access_request_repo, approved=False)

        ticket = await ticket_manager.create(request)

        assert ticket.id is not None
        assert ticket.status == TicketStatus.PENDING
        assert ticket.access_request_id == request.id
        assert ticket.decision_outcome == "denied"
        assert ticket.reviewed_by is None

    @pytest.mark.asyncio
    async def test_second_create_returns_existing(
        self, ticket_manager, access_request_repo, ticket_repo
    ):
        request = await persisted_request(access_request_repo)

        first = await ticket_manager.create(request)
        second = await ticket_manager.create(request)

        assert second.id == first.id
        assert await ticket_repo.count() == 1

    @pytest.mark.asyncio
    async def test_lost_creation_race_returns_existing(self, access_request_repo):
        """A unique-index collision after the pre-check yields the winner's ticket."""
        request = await persisted_request(access_request_repo)
        winner = ReviewTicket.for_request(request).model_copy(update={"id": ObjectId()})

        repo = AsyncMock(spec=ReviewTicketRepository)
        repo.get_by_access_request.side_effect = [None, winner]
        repo.create.side_effect = DuplicateKeyError("E11000 duplicate key")

        manager = TicketLifecycleManager(repository=repo, audit_service=AsyncMock())
        ticket = await manager.create(request)

        assert ticket.id == winner.id

    @pytest.mark.asyncio
    async def test_unique_index_rejects_direct_duplicates(
        self, ticket_repo, access_request_repo
    ):
        request = await persisted_request(access_request_repo)
        await ticket_repo.create(ReviewTicket.for_request(request))

        with pytest.raises(DuplicateKeyError):
            await ticket_repo.create(ReviewTicket.for_request(request))

    @pytest.mark.asyncio
    async def test_unpersisted_request_is_rejected(self, ticket_manager):
        with pytest.raises(ValueError):
            await ticket_manager.create(create_access_request())


@pytest.mark.unit
@pytest.mark.requires_mongodb
class TestTicketReview:
    """Test administrator reviews."""

    @pytest.mark.asyncio
    async def test_review_approves_pending_ticket(
        self, ticket_manager, access_request_repo, test_db
    ):
        request = await persisted_request(access_request_repo, approved=False)
        ticket = await ticket_manager.create(request)
        reviewed_at = datetime(2026, 3, 2, 10, 0, 0)

        reviewed = await ticket_manager.review(
            ticket.id,
            TicketStatus.APPROVED,
            admin_id=ADMIN_ID,
            notes="verified manually",
            reviewed_at=reviewed_at,
        )

        assert reviewed.status == TicketStatus.APPROVED
        assert reviewed.reviewed_by == ADMIN_ID
        assert reviewed.reviewed_at == reviewed_at
        assert reviewed.admin_notes == "verified manually"

        entry = await test_db.audit_log.find_one({"target_entity_id": ticket.id})
        assert entry["action_type"] == AuditActionType.TICKET_REVIEW.value
        assert entry["changes"]["after"] == {"status": "approved"}
        assert entry["justification"] == "verified manually"

    @pytest.mark.asyncio
    async def test_second_review_fails_and_leaves_ticket_unchanged(
        self, ticket_manager, access_request_repo, ticket_repo
    ):
        request = await persisted_request(access_request_repo, approved=False)
        ticket = await ticket_manager.create(request)
        await ticket_manager.review(
            ticket.id, "approved", admin_id=ADMIN_ID, notes="verified manually"
        )
        before = await ticket_repo.get_by_id(ticket.id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await ticket_manager.review(
                ticket.id, "denied", admin_id=str(ObjectId()), notes="changed my mind"
            )

        after = await ticket_repo.get_by_id(ticket.id)
        assert after.model_dump() == before.model_dump()
        assert exc_info.value.current_status == "approved"

    @pytest.mark.asyncio
    async def test_rejected_review_is_audited(
        self, ticket_manager, access_request_repo, test_db
    ):
        request = await persisted_request(access_request_repo)
        ticket = await ticket_manager.create(request)
        await ticket_manager.review(ticket.id, "denied", admin_id=ADMIN_ID)

        with pytest.raises(InvalidTransitionError):
            await ticket_manager.review(ticket.id, "approved", admin_id=ADMIN_ID)

        rejected = await test_db.audit_log.find_one(
            {"action_type": AuditActionType.TICKET_REVIEW_REJECTED.value}
        )
        assert rejected is not None
        assert rejected["system_context"] == {"requested_status": "approved"}

    @pytest.mark.asyncio
    async def test_pending_is_not_a_review_outcome(
        self, ticket_manager, access_request_repo, ticket_repo
    ):
        request = await persisted_request(access_request_repo)
        ticket = await ticket_manager.create(request)

        with pytest.raises(InvalidTransitionError):
            await ticket_manager.review(ticket.id, "pending", admin_id=ADMIN_ID)

        assert (await ticket_repo.get_by_id(ticket.id)).is_pending

    @pytest.mark.asyncio
    async def test_unknown_ticket(self, ticket_manager):
        with pytest.raises(TicketNotFoundError):
            await ticket_manager.review(ObjectId(), "approved", admin_id=ADMIN_ID)

    @pytest.mark.asyncio
    async def test_review_requires_admin(self, ticket_manager, access_request_repo):
        request = await persisted_request(access_request_repo)
        ticket = await ticket_manager.create(request)

        with pytest.raises(ValueError):
            await ticket_manager.review(ticket.id, "approved", admin_id="  ")

    @pytest.mark.asyncio
    async def test_concurrent_reviews_exactly_one_succeeds(
        self, ticket_manager, access_request_repo, ticket_repo
    ):
        request = await persisted_request(access_request_repo, approved=False)
        ticket = await ticket_manager.create(request)
        admins = [str(ObjectId()) for _ in range(5)]

        results = await asyncio.gather(
            *[
                ticket_manager.review(
                    ticket.id,
                    "approved" if i % 2 == 0 else "denied",
                    admin_id=admin,
                )
                for i, admin in enumerate(admins)
            ],
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, ReviewTicket)]
        failures = [r for r in results if isinstance(r, InvalidTransitionError)]
        assert len(successes) == 1
        assert len(failures) == 4

        stored = await ticket_repo.get_by_id(ticket.id)
        assert stored.reviewed_by == successes[0].reviewed_by
        assert stored.status == successes[0].status

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_undo_review(
        self, ticket_repo, access_request_repo
    ):
        audit = AsyncMock()
        audit.log_action.side_effect = RuntimeError("audit store down")
        manager = TicketLifecycleManager(repository=ticket_repo, audit_service=audit)
        request = await persisted_request(access_request_repo)
        ticket = await manager.create(request)

        reviewed = await manager.review(ticket.id, "approved", admin_id=ADMIN_ID)

        assert reviewed.status == TicketStatus.APPROVED
        assert (await ticket_repo.get_by_id(ticket.id)).status == TicketStatus.APPROVED


@pytest.mark.unit
@pytest.mark.requires_mongodb
class TestTicketQueries:
    """Test read-only ticket queries."""

    @pytest.mark.asyncio
    async def test_list_filters_by_status_newest_first(
        self, ticket_manager, access_request_repo
    ):
        older = await persisted_request(
            access_request_repo, created_at=datetime(2026, 3, 1, 9, 0, 0)
        )
        newer = await persisted_request(
            access_request_repo, created_at=datetime(2026, 3, 2, 9, 0, 0)
        )
        reviewed = await persisted_request(access_request_repo)
        t_older = await ticket_manager.create(older)
        t_newer = await ticket_manager.create(newer)
        t_reviewed = await ticket_manager.create(reviewed)
        await ticket_manager.review(t_reviewed.id, "denied", admin_id=ADMIN_ID)

        pending = await ticket_manager.list(status="pending")

        assert [t.id for t in pending] == [t_newer.id, t_older.id]
        assert await ticket_manager.count("pending") == 2
        assert await ticket_manager.count() == 3

    @pytest.mark.asyncio
    async def test_get_by_access_request(self, ticket_manager, access_request_repo):
        request = await persisted_request(access_request_repo)
        ticket = await ticket_manager.create(request)

        found = await ticket_manager.get_by_access_request(request.id)

        assert found.id == ticket.id
