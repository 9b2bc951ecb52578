"""Database service for MongoDB operations using Motor (async)."""

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from accessgate.models.access_request import AccessRequest, DecisionOutcome
from accessgate.models.ticket import ReviewTicket, TicketStatus

# Global MongoDB client (initialized at startup)
_mongodb_client: Optional[AsyncIOMotorClient] = None
_mongodb_database: Optional[AsyncIOMotorDatabase] = None

ACCESS_REQUESTS_COLLECTION = "access_requests"
REVIEW_TICKETS_COLLECTION = "review_tickets"
USERS_COLLECTION = "users"
AUDIT_LOG_COLLECTION = "audit_log"


async def connect_to_mongodb(uri: str, database_name: str) -> None:
    """Connect to MongoDB and initialize global client.

    Args:
        uri: MongoDB connection URI
        database_name: Database name to use
    """
    global _mongodb_client, _mongodb_database
    _mongodb_client = AsyncIOMotorClient(uri)
    _mongodb_database = _mongodb_client[database_name]


async def close_mongodb_connection() -> None:
    """Close MongoDB connection."""
    global _mongodb_client, _mongodb_database
    if _mongodb_client:
        _mongodb_client.close()
    _mongodb_client = None
    _mongodb_database = None


def get_database() -> AsyncIOMotorDatabase:
    """Get MongoDB database instance.

    Returns:
        AsyncIOMotorDatabase instance

    Raises:
        RuntimeError: If database not initialized
    """
    if _mongodb_database is None:
        raise RuntimeError("Database not initialized. Call connect_to_mongodb first.")
    return _mongodb_database


def get_collection(name: str) -> AsyncIOMotorCollection:
    """Get MongoDB collection by name.

    Args:
        name: Collection name

    Returns:
        AsyncIOMotorCollection instance
    """
    db = get_database()
    return db[name]


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the access workflow relies on.

    The unique index on ``access_request_id`` is what makes ticket creation
    idempotent under concurrent retries.
    """
    await db[REVIEW_TICKETS_COLLECTION].create_index(
        [("access_request_id", ASCENDING)],
        unique=True,
    )
    await db[REVIEW_TICKETS_COLLECTION].create_index(
        [("status", ASCENDING), ("created_at", DESCENDING)]
    )
    await db[ACCESS_REQUESTS_COLLECTION].create_index([("created_at", DESCENDING)])
    await db[ACCESS_REQUESTS_COLLECTION].create_index([("proceed_token", ASCENDING)])
    await db[USERS_COLLECTION].create_index([("email", ASCENDING)], unique=True)


class AccessRequestRepository:
    """Repository for access requests.

    Access requests are immutable - only insert and read operations are supported.
    """

    def __init__(self, collection: Optional[AsyncIOMotorCollection] = None):
        """Initialize access request repository.

        Args:
            collection: Motor collection instance (optional, uses default if not provided)
        """
        self.collection = (
            collection
            if collection is not None
            else get_collection(ACCESS_REQUESTS_COLLECTION)
        )

    async def create(self, request: AccessRequest) -> AccessRequest:
        """Insert a new access request.

        Args:
            request: Access request without an ID

        Returns:
            The stored AccessRequest with its generated ID
        """
        request_dict = request.model_dump(by_alias=True, exclude={"id"})

        result = await self.collection.insert_one(request_dict)

        return request.model_copy(update={"id": result.inserted_id})

    async def get_by_id(self, request_id: ObjectId) -> Optional[AccessRequest]:
        """Get access request by MongoDB ObjectId.

        Args:
            request_id: Access request ObjectId

        Returns:
            AccessRequest instance or None if not found
        """
        doc = await self.collection.find_one({"_id": request_id})
        if doc:
            return AccessRequest(**doc)
        return None

    async def get_by_proceed_token(self, token: str) -> Optional[AccessRequest]:
        """Get the access request a proceed token was issued for.

        Args:
            token: Proceed token

        Returns:
            AccessRequest instance or None if no request holds the token
        """
        if not token:
            return None
        doc = await self.collection.find_one({"proceed_token": token})
        if doc:
            return AccessRequest(**doc)
        return None

    def _build_query(
        self,
        outcome: Optional[DecisionOutcome] = None,
        requester_id: Optional[str] = None,
    ) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if outcome:
            query["decision.outcome"] = DecisionOutcome(outcome).value
        if requester_id:
            query["requester_id"] = requester_id
        return query

    async def list(
        self,
        outcome: Optional[DecisionOutcome] = None,
        requester_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AccessRequest]:
        """List access requests, newest first.

        Args:
            outcome: Filter by decision outcome (optional)
            requester_id: Filter by requester (optional)
            limit: Maximum number of requests to return
            offset: Number of requests to skip

        Returns:
            List of AccessRequest instances
        """
        cursor = (
            self.collection.find(self._build_query(outcome, requester_id))
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .skip(offset)
            .limit(limit)
        )

        requests = []
        async for doc in cursor:
            requests.append(AccessRequest(**doc))

        return requests

    async def count(
        self,
        outcome: Optional[DecisionOutcome] = None,
        requester_id: Optional[str] = None,
    ) -> int:
        """Count access requests matching the filters."""
        return await self.collection.count_documents(
            self._build_query(outcome, requester_id)
        )


class ReviewTicketRepository:
    """Repository for review ticket storage.

    Status changes go through ``transition_from_pending`` only.
    """

    def __init__(self, collection: Optional[AsyncIOMotorCollection] = None):
        """Initialize review ticket repository.

        Args:
            collection: Motor collection instance (optional, uses default if not provided)
        """
        self.collection = (
            collection
            if collection is not None
            else get_collection(REVIEW_TICKETS_COLLECTION)
        )

    async def create(self, ticket: ReviewTicket) -> ReviewTicket:
        """Insert a new ticket.

        Args:
            ticket: Ticket without an ID

        Returns:
            The stored ticket with its generated ID

        Raises:
            pymongo.errors.DuplicateKeyError: If the access request already has a ticket
        """
        ticket_dict = ticket.model_dump(by_alias=True, exclude={"id"})

        result = await self.collection.insert_one(ticket_dict)
        ticket.id = result.inserted_id

        return ticket

    async def get_by_id(self, ticket_id: ObjectId) -> Optional[ReviewTicket]:
        """Get ticket by MongoDB ObjectId.

        Args:
            ticket_id: Ticket ObjectId

        Returns:
            ReviewTicket instance or None if not found
        """
        doc = await self.collection.find_one({"_id": ticket_id})
        if doc:
            return ReviewTicket(**doc)
        return None

    async def get_by_access_request(
        self,
        access_request_id: ObjectId,
    ) -> Optional[ReviewTicket]:
        """Get the ticket created for an access request.

        Args:
            access_request_id: Access request ObjectId

        Returns:
            ReviewTicket instance or None if not found
        """
        doc = await self.collection.find_one({"access_request_id": access_request_id})
        if doc:
            return ReviewTicket(**doc)
        return None

    async def transition_from_pending(
        self,
        ticket_id: ObjectId,
        status: TicketStatus,
        reviewed_by: str,
        reviewed_at: datetime,
        admin_notes: Optional[str] = None,
    ) -> Optional[ReviewTicket]:
        """Atomically move a pending ticket to a terminal status.

        The update only matches while the stored status is still pending,
        so at most one caller can ever succeed for a given ticket.

        Args:
            ticket_id: Ticket ObjectId
            status: Terminal status to apply
            reviewed_by: Reviewing administrator
            reviewed_at: Review time
            admin_notes: Reviewer notes

        Returns:
            Updated ReviewTicket, or None if the ticket is missing or not pending
        """
        result = await self.collection.find_one_and_update(
            {"_id": ticket_id, "status": TicketStatus.PENDING.value},
            {
                "$set": {
                    "status": TicketStatus(status).value,
                    "reviewed_by": reviewed_by,
                    "reviewed_at": reviewed_at,
                    "admin_notes": admin_notes,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        if result:
            return ReviewTicket(**result)
        return None

    def _build_query(self, status: Optional[TicketStatus] = None) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if status:
            query["status"] = TicketStatus(status).value
        return query

    async def list(
        self,
        status: Optional[TicketStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ReviewTicket]:
        """List tickets, newest first.

        Args:
            status: Filter by status (optional)
            limit: Maximum number of tickets to return
            offset: Number of tickets to skip

        Returns:
            List of ReviewTicket instances
        """
        cursor = (
            self.collection.find(self._build_query(status))
            .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
            .skip(offset)
            .limit(limit)
        )

        tickets = []
        async for doc in cursor:
            tickets.append(ReviewTicket(**doc))

        return tickets

    async def count(self, status: Optional[TicketStatus] = None) -> int:
        """Count tickets, optionally by status."""
        return await self.collection.count_documents(self._build_query(status))


async def get_access_request_repository() -> AccessRequestRepository:
    """Get access request repository instance (for FastAPI dependency injection)."""
    return AccessRequestRepository(get_collection(ACCESS_REQUESTS_COLLECTION))


async def get_review_ticket_repository() -> ReviewTicketRepository:
    """Get review ticket repository instance (for FastAPI dependency injection)."""
    return ReviewTicketRepository(get_collection(REVIEW_TICKETS_COLLECTION))
