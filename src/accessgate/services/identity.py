"""Identity collaborator backed by the ``users`` collection."""

from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pydantic import ValidationError

from accessgate.models.requester import RequesterProfile
from accessgate.services.database import USERS_COLLECTION, get_collection


class IdentityError(Exception):
    """Base exception for identity lookups."""

    pass


class ProfileNotFoundError(IdentityError):
    """Raised when a requester id does not resolve to a profile."""

    def __init__(self, requester_id: str):
        super().__init__(f"Requester profile not found: {requester_id}")
        self.requester_id = requester_id


class ProfileMalformedError(IdentityError):
    """Raised when a stored profile document fails validation."""

    def __init__(self, requester_id: str, detail: str):
        super().__init__(f"Requester profile malformed: {requester_id}: {detail}")
        self.requester_id = requester_id
        self.detail = detail


class IdentityService:
    """Read-only access to requester profiles."""

    def __init__(self, collection: Optional[AsyncIOMotorCollection] = None):
        """Initialize identity service.

        Args:
            collection: Motor collection instance (optional, uses default if not provided)
        """
        self.collection = (
            collection if collection is not None else get_collection(USERS_COLLECTION)
        )

    async def get_profile(self, requester_id: str) -> RequesterProfile:
        """Resolve a requester id to a profile.

        Args:
            requester_id: User document ID as a string

        Returns:
            RequesterProfile

        Raises:
            ProfileNotFoundError: If the id is malformed or unknown
            ProfileMalformedError: If the stored document is not a valid profile
        """
        if not ObjectId.is_valid(requester_id):
            raise ProfileNotFoundError(requester_id)

        doc = await self.collection.find_one({"_id": ObjectId(requester_id)})
        if not doc:
            raise ProfileNotFoundError(requester_id)
        try:
            return RequesterProfile(**doc)
        except ValidationError as e:
            raise ProfileMalformedError(requester_id, str(e)) from e

    async def get_by_email(self, email: str) -> Optional[RequesterProfile]:
        """Look up a profile by email address.

        Args:
            email: Email address

        Returns:
            RequesterProfile or None if not found
        """
        doc = await self.collection.find_one({"email": email.strip()})
        if doc:
            return RequesterProfile(**doc)
        return None

    async def is_admin(self, user_id: str) -> bool:
        """Check whether a user id belongs to an administrator."""
        try:
            profile = await self.get_profile(user_id)
        except IdentityError:
            return False
        return profile.is_admin


async def get_identity_service() -> IdentityService:
    """Get identity service instance (for FastAPI dependency injection)."""
    return IdentityService(get_collection(USERS_COLLECTION))
