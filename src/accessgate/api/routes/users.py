"""Requester profile API routes (read-only, administrator view)."""

from fastapi import APIRouter, Depends, HTTPException, status

from accessgate.api.dependencies import CurrentAdmin, get_identity
from accessgate.models.requester import RequesterResponse
from accessgate.services.identity import IdentityService, ProfileNotFoundError

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/by-email/{email}", response_model=dict)
async def get_user_by_email(
    email: str,
    admin: CurrentAdmin,
    identity: IdentityService = Depends(get_identity),
) -> dict:
    """Look up a requester profile by email.

    Raises:
        HTTPException: 404 if no profile has this email
    """
    profile = await identity.get_by_email(email)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return {"data": RequesterResponse.from_profile(profile).model_dump()}


@router.get("/{user_id}", response_model=dict)
async def get_user(
    user_id: str,
    admin: CurrentAdmin,
    identity: IdentityService = Depends(get_identity),
) -> dict:
    """Get a requester profile by ID.

    Raises:
        HTTPException: 404 if the ID is unknown or malformed
    """
    try:
        profile = await identity.get_profile(user_id)
    except ProfileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return {"data": RequesterResponse.from_profile(profile).model_dump()}
