"""
SmartNotes Backend — Route Dependencies
=========================================

What:  FastAPI dependencies shared by the route modules.

    get_identity        Authorization: Bearer <token> → Identity, or None when
                        no token was sent. An invalid token is a 401, never a
                        silent downgrade to anonymous.
    get_note_lifecycle  Process-wide NoteLifecycleManager. Tests replace it
                        through app.dependency_overrides.
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from smartnotes.schemas.identity import Identity
from smartnotes.services.auth_service import decode_identity
from smartnotes.services.note_lifecycle import NoteLifecycleManager, build_note_lifecycle

bearer = HTTPBearer(auto_error=False)


async def get_identity(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Optional[Identity]:
    if creds is None:
        return None
    return decode_identity(creds.credentials)


@lru_cache(maxsize=1)
def get_note_lifecycle() -> NoteLifecycleManager:
    # One manager per process: it owns the in-flight markers and listing cache.
    return build_note_lifecycle()
