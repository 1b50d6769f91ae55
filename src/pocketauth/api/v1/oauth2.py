# OAuth2 router: authorize and token endpoints.
# Created: 2026-10-18

from __future__ import annotations

import html
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from pydantic import ValidationError

from pocketauth.api.deps import get_authenticated_user_id
from pocketauth.api.v1.schemas.oauth2 import OAuthErrorResponse, TokenResponse
from pocketauth.oauth2.errors import ConfigurationError
from pocketauth.oauth2.models import Application
from pocketauth.oauth2.requests import AuthorizeRequest, describe_validation_error
from pocketauth.oauth2.server import (
    InlineError,
    InternalFailure,
    LoginRequired,
    ProtocolFailure,
    Redirect,
    TokenGranted,
    TokenResult,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["OAuth2"])

_NO_STORE = {"Cache-Control": "no-store", "Pragma": "no-cache"}

_CONSENT_HTML = """<!DOCTYPE html>
<html><head><title>Authorize {client_name}</title>
<style>
body {{ font-family: system-ui; max-width: 480px; margin: 40px auto; padding: 20px; }}
.btn {{ padding: 10px 24px; border: none; border-radius: 6px; cursor: pointer; font-size: 16px; }}
.allow {{ background: #2563eb; color: white; }} .allow:hover {{ background: #1d4ed8; }}
.deny {{ background: #e5e7eb; color: #374151; margin-left: 12px; }}
.scope {{ background: #f3f4f6; padding: 12px; border-radius: 8px; margin: 16px 0; }}
</style></head><body>
<h2>Authorize {client_name}</h2>
<p>{website_line}This app wants to access your account.</p>
<div class="scope"><strong>Requested access:</strong> {scope_label}</div>
<form method="POST" action="{action}">
<input type="hidden" name="client_id" value="{client_id}">
<input type="hidden" name="response_type" value="{response_type}">
<input type="hidden" name="redirect_uri" value="{redirect_uri}">
{optional_fields}<button type="submit" name="action" value="allow" class="btn allow">Allow</button>
<button type="submit" name="action" value="deny" class="btn deny">Deny</button>
</form></body></html>"""


async def _read_body(request: Request) -> dict[str, Any]:
    """Read a form-encoded (RFC 6749) or JSON body into a plain dict."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
    form = await request.form()
    return {key: str(value) for key, value in form.items()}


def _misconfigured(exc: ConfigurationError) -> JSONResponse:
    logger.error("Refusing /authorize: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "server_misconfigured"})


def _authorize_response(outcome: LoginRequired | Redirect | InlineError):
    if isinstance(outcome, InlineError):
        return PlainTextResponse(outcome.message, status_code=outcome.status_code)
    return RedirectResponse(outcome.location, status_code=302)


def _render_consent(application: Application, body: AuthorizeRequest, action: str) -> HTMLResponse:
    optional = ""
    # Absent and empty are different for state, so only emit fields that were sent.
    for name in ("scope", "state"):
        value = getattr(body, name)
        if value is not None:
            optional += f'<input type="hidden" name="{name}" value="{html.escape(value)}">\n'

    website_line = ""
    if application.website:
        website_line = f"{html.escape(application.website)}<br>"

    page = _CONSENT_HTML.format(
        client_name=html.escape(application.name or application.client_id),
        website_line=website_line,
        scope_label=html.escape(body.scope) if body.scope else "basic access",
        action=html.escape(action),
        client_id=html.escape(body.client_id),
        response_type=html.escape(body.response_type or ""),
        redirect_uri=html.escape(body.redirect_uri or ""),
        optional_fields=optional,
    )
    return HTMLResponse(page)


@router.get("/oauth/authorize")
async def authorization_view(
    request: Request,
    user_id: str | None = Depends(get_authenticated_user_id),
):
    """Show the consent screen for an authorization code request."""
    from pocketauth.oauth2.server import get_oauth_server

    try:
        body = AuthorizeRequest.model_validate(dict(request.query_params))
    except ValidationError as exc:
        return PlainTextResponse(describe_validation_error(exc), status_code=400)

    server = get_oauth_server()
    try:
        prepared = await server.prepare(body, user_id)
    except ConfigurationError as exc:
        return _misconfigured(exc)

    if not isinstance(prepared, Application):
        return _authorize_response(prepared)
    return _render_consent(prepared, body, action=request.url.path)


@router.post("/oauth/authorize")
async def authorize(
    request: Request,
    user_id: str | None = Depends(get_authenticated_user_id),
):
    """Issue an authorization code and redirect back to the client."""
    from pocketauth.oauth2.server import get_oauth_server

    data = await _read_body(request)
    try:
        body = AuthorizeRequest.model_validate(data)
    except ValidationError as exc:
        return PlainTextResponse(describe_validation_error(exc), status_code=400)

    server = get_oauth_server()
    try:
        outcome = await server.authorize(body, user_id, approved=data.get("action", "allow") != "deny")
    except ConfigurationError as exc:
        return _misconfigured(exc)
    return _authorize_response(outcome)


def token_result_response(result: TokenResult):
    """Render a token handler result as the HTTP response."""
    if isinstance(result, TokenGranted):
        body = TokenResponse(**result.body).model_dump(exclude_none=True)
        return JSONResponse(status_code=200, content=body, headers=_NO_STORE)

    if isinstance(result, ProtocolFailure):
        location = result.error.redirect_location()
        if location:
            return RedirectResponse(location, status_code=400)
        body = OAuthErrorResponse(**result.error.to_dict()).model_dump()
        return JSONResponse(status_code=400, content=body, headers=_NO_STORE)

    if isinstance(result, InternalFailure):
        return JSONResponse(status_code=result.status_code, content=result.to_dict())

    logger.error("Unknown token result type: %r", result)
    return JSONResponse(status_code=500, content={"error": "unexpected"})


@router.post("/oauth/token")
async def token(request: Request):
    """Exchange a grant for a bearer token."""
    from pocketauth.oauth2.server import get_oauth_server

    server = get_oauth_server()
    try:
        data = await _read_body(request)
    except Exception:
        logger.exception("Failed to read token request body")
        return JSONResponse(status_code=400, content={"error": "unexpected"})

    result = await server.handle_token_request(data)
    return token_result_response(result)
