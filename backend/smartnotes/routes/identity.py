"""
SmartNotes Backend — Identity Route
=====================================

What:  GET /api/me: who the bearer token says the caller is, including the
       name the frontend greets them with.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from smartnotes.exceptions import UnauthenticatedError
from smartnotes.routes.deps import get_identity
from smartnotes.schemas.identity import Identity
from smartnotes.schemas.note import ErrorResponse, IdentityResponse

router = APIRouter(prefix="/api", tags=["Identity"])


@router.get(
    "/me",
    response_model=IdentityResponse,
    responses={401: {"description": "Not logged in", "model": ErrorResponse}},
    summary="Current identity",
)
async def me(identity: Optional[Identity] = Depends(get_identity)) -> IdentityResponse:
    if identity is None:
        raise UnauthenticatedError()
    return IdentityResponse(
        user_id=identity.user_id,
        email=identity.email,
        display_name=identity.display_name,
        greeting_name=identity.greeting_name,
    )
