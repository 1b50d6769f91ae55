# Shared FastAPI dependencies for the API layer.
# Created: 2026-10-18

from __future__ import annotations

from fastapi import HTTPException, Request

from pocketauth.oauth2.models import AccessToken


def get_authenticated_user_id(request: Request) -> str | None:
    """Resource owner id set by the embedding app's session middleware.

    Login and sessions live outside this server. Whatever authenticates the
    browser is expected to put the user id on ``request.state.user_id``.
    """
    user_id = getattr(request.state, "user_id", None)
    return str(user_id) if user_id else None


def _bearer(request: Request) -> str:
    auth_header = request.headers.get("Authorization", "")
    return auth_header.removeprefix("Bearer ").strip() if auth_header.startswith("Bearer ") else ""


async def require_access_token(request: Request) -> AccessToken:
    """FastAPI dependency for routes protected by tokens from this server.

    Usage::

        @router.get("/things")
        async def list_things(token: AccessToken = Depends(require_access_token)): ...

    The token record is also stored on ``request.state.access_token``.
    """
    from pocketauth.oauth2.server import get_oauth_server

    presented = _bearer(request)
    token = await get_oauth_server().verify_access_token(presented) if presented else None
    if token is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired access token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    request.state.access_token = token
    return token
