"""
SmartNotes Backend — Session Token Verification
=================================================

What:  Turns a bearer token issued by the identity provider into an Identity.
How:   Verifies the HS256 signature (python-jose) with the provider's shared
       secret, checks expiry and audience, and reads the claims:

           sub                        → user_id
           email                      → email
           user_metadata.firstName    → display_name (password sign-up)
           user_metadata.full_name    → display_name (federated login)
           user_metadata.name         → display_name (fallback)

Who:   Called by the `get_identity` route dependency.

The service never issues tokens; sign-up, password login and OAuth are the
identity provider's business.
"""

import logging
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from smartnotes.config import settings
from smartnotes.exceptions import UnauthenticatedError
from smartnotes.schemas.identity import Identity

logger = logging.getLogger(__name__)

DISPLAY_NAME_CLAIMS = ("firstName", "full_name", "name")


def _display_name(claims: Dict[str, Any]) -> Optional[str]:
    metadata = claims.get("user_metadata") or {}
    if not isinstance(metadata, dict):
        return None
    for key in DISPLAY_NAME_CLAIMS:
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def decode_identity(token: str) -> Identity:
    """
    Verify `token` and build the caller's Identity.

    Raises:
        UnauthenticatedError: bad signature, expired, wrong audience, missing
            `sub`, or no secret configured.
    """
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not configured; rejecting bearer token")
        raise UnauthenticatedError(
            message="Authentication is not configured on this server.",
        )

    options = {}
    audience = settings.jwt_audience or None
    if audience is None:
        options["verify_aud"] = False

    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=audience,
            options=options,
        )
    except JWTError as e:
        logger.info("Rejected session token: %s", str(e))
        raise UnauthenticatedError(
            message="Your session is invalid or has expired. Please log in again.",
            context={"reason": str(e)},
        )

    user_id = claims.get("sub")
    if not user_id:
        raise UnauthenticatedError(
            message="Your session is invalid or has expired. Please log in again.",
            context={"reason": "missing sub claim"},
        )

    return Identity(
        user_id=str(user_id),
        email=claims.get("email") or "",
        display_name=_display_name(claims),
    )
