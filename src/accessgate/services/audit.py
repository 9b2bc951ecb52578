"""Audit logging service for immutable administrator action history."""

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection

from accessgate.models.audit import (
    AuditActionType,
    AuditChanges,
    AuditLogCreate,
    AuditLogEntry,
    AuditTargetType,
)
from accessgate.services.database import AUDIT_LOG_COLLECTION, get_collection


class AuditRepository:
    """Repository for audit log operations.

    Audit log entries are immutable - only insert and read operations are supported.
    """

    def __init__(self, collection: Optional[AsyncIOMotorCollection] = None):
        """Initialize audit repository.

        Args:
            collection: Motor collection instance (optional, uses default if not provided)
        """
        self.collection = (
            collection if collection is not None else get_collection(AUDIT_LOG_COLLECTION)
        )

    async def create(self, entry_data: AuditLogCreate) -> AuditLogEntry:
        """Create a new audit log entry.

        Args:
            entry_data: Audit entry creation data

        Returns:
            Created AuditLogEntry instance with ID
        """
        entry = AuditLogEntry(
            timestamp=datetime.utcnow(),
            **entry_data.model_dump(),
        )

        # Convert to dict for MongoDB insertion
        entry_dict = entry.model_dump(by_alias=True, exclude={"id"})

        result = await self.collection.insert_one(entry_dict)
        entry.id = result.inserted_id

        return entry

    async def list_by_entity(
        self,
        entity_id: ObjectId,
        entity_type: Optional[AuditTargetType] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditLogEntry]:
        """List audit entries for a specific entity.

        Args:
            entity_id: Entity ObjectId
            entity_type: Type of entity (optional)
            limit: Maximum entries to return
            offset: Number of entries to skip

        Returns:
            List of AuditLogEntry instances
        """
        query: dict[str, Any] = {"target_entity_id": entity_id}
        if entity_type:
            query["target_entity_type"] = AuditTargetType(entity_type).value

        cursor = (
            self.collection.find(query)
            .sort("timestamp", -1)
            .skip(offset)
            .limit(limit)
        )

        entries = []
        async for doc in cursor:
            entries.append(AuditLogEntry(**doc))

        return entries

    async def list_all(
        self,
        action_type: Optional[AuditActionType] = None,
        actor_id: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[AuditLogEntry]:
        """List audit entries with filters.

        Args:
            action_type: Filter by action type (optional)
            actor_id: Filter by acting administrator (optional)
            limit: Maximum entries to return
            offset: Number of entries to skip

        Returns:
            List of AuditLogEntry instances
        """
        query: dict[str, Any] = {}

        if action_type:
            query["action_type"] = AuditActionType(action_type).value

        if actor_id:
            query["actor_id"] = actor_id

        cursor = (
            self.collection.find(query)
            .sort("timestamp", -1)
            .skip(offset)
            .limit(limit)
        )

        entries = []
        async for doc in cursor:
            entries.append(AuditLogEntry(**doc))

        return entries


class AuditService:
    """Service for creating audit log entries.

    Provides high-level methods for logging administrator actions.
    """

    def __init__(self, repository: Optional[AuditRepository] = None):
        """Initialize audit service.

        Args:
            repository: AuditRepository instance (optional)
        """
        self.repository = repository or AuditRepository()

    async def log_action(
        self,
        actor_id: str,
        action_type: AuditActionType,
        target_type: AuditTargetType,
        target_id: ObjectId,
        changes_before: Optional[dict[str, Any]] = None,
        changes_after: Optional[dict[str, Any]] = None,
        justification: Optional[str] = None,
        system_context: Optional[dict[str, Any]] = None,
    ) -> AuditLogEntry:
        """Log a generic action.

        Args:
            actor_id: Administrator who performed the action
            action_type: Type of action
            target_type: Type of target entity
            target_id: ID of target entity
            changes_before: State before change
            changes_after: State after change
            justification: Administrator notes
            system_context: Additional context

        Returns:
            Created AuditLogEntry
        """
        entry_data = AuditLogCreate(
            actor_id=actor_id,
            action_type=action_type,
            target_entity_type=target_type,
            target_entity_id=target_id,
            changes=AuditChanges(
                before=changes_before,
                after=changes_after,
            ),
            justification=justification,
            system_context=system_context,
        )

        return await self.repository.create(entry_data)


async def get_audit_repository() -> AuditRepository:
    """Get audit repository instance (for FastAPI dependency injection).

    Returns:
        AuditRepository instance
    """
    return AuditRepository(get_collection(AUDIT_LOG_COLLECTION))
