"""
OAuth and user routes.

This module implements the server half of Kick's OAuth 2.0 authorization
code flow with PKCE. The browser performs the authorize redirect itself and
posts the resulting code here; the relay adds the client secret, which
never leaves the server, and hands back only browser-safe token fields.

Endpoints:
----------
- GET  /oauth/authorize: Build the Kick authorization URL
- POST /oauth/exchange:  Exchange an authorization code for an access token
- POST /api/user:        Look up the current user through the fallback list
"""

import logging
from typing import Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError

from ..config import Settings
from ..dependencies import get_http_client, get_request_settings
from ..errors import ClientInputError, ConfigurationError, UpstreamError
from ..models import (
    AuthorizeUrlResponse,
    ErrorResponse,
    TokenExchangeRequest,
    TokenExchangeResult,
    UserLookupRequest,
)
from .lookup import build_user_endpoints, lookup_user

logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

oauth_router = APIRouter(
    prefix="/oauth",
    tags=["oauth"],
)

user_router = APIRouter(
    prefix="/api",
    tags=["users"],
)


# =============================================================================
# Authorize URL Endpoint
# =============================================================================

@oauth_router.get("/authorize", response_model=AuthorizeUrlResponse)
async def authorize_url(
    redirect_uri: Optional[str] = Query(None, description="Redirect URI registered with Kick"),
    code_challenge: Optional[str] = Query(None, description="PKCE S256 code challenge"),
    state: Optional[str] = Query(None, description="Opaque CSRF state"),
    settings: Settings = Depends(get_request_settings),
):
    """
    Build the Kick authorization URL for the browser to redirect to.

    The browser generates the PKCE verifier/challenge and the state itself;
    the relay only contributes the client id and scopes so they are not
    hardcoded in the game bundle. No upstream call is made.
    """
    if not redirect_uri or not code_challenge or not state:
        raise ClientInputError(
            "Missing required parameters: redirect_uri, code_challenge, state"
        )

    if not settings.client_id_configured:
        logger.error("Missing KICK_CLIENT_ID")
        raise ConfigurationError("Server configuration error - missing client id")

    params = {
        "response_type": "code",
        "client_id": settings.KICK_CLIENT_ID,
        "redirect_uri": redirect_uri,
        "scope": settings.KICK_OAUTH_SCOPES,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "state": state,
    }

    return AuthorizeUrlResponse(
        authorization_url=f"{settings.KICK_OAUTH_BASE_URL}?{urlencode(params)}",
        client_id=settings.KICK_CLIENT_ID,
        scope=settings.KICK_OAUTH_SCOPES,
    )


# =============================================================================
# Token Exchange Endpoint
# =============================================================================

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


async def read_exchange_request(request: Request) -> TokenExchangeRequest:
    """
    Dependency parsing the exchange body from JSON or a urlencoded form.

    An empty body yields an empty request so the handler reports the
    missing parameters.

    Raises:
        ClientInputError: If the body cannot be parsed into the model
    """
    content_type = request.headers.get("content-type", "").lower()

    try:
        if content_type.startswith(FORM_CONTENT_TYPE):
            form = await request.form()
            return TokenExchangeRequest.model_validate(dict(form))

        body = await request.body()
        if not body.strip():
            return TokenExchangeRequest()
        return TokenExchangeRequest.model_validate_json(body)
    except ValidationError as e:
        raise ClientInputError(
            "Invalid request body",
            details=jsonable_encoder(e.errors()),
        )


@oauth_router.post(
    "/exchange",
    response_model=TokenExchangeResult,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def exchange_code(
    exchange_request: TokenExchangeRequest = Depends(read_exchange_request),
    settings: Settings = Depends(get_request_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Exchange an authorization code for an access token.

    Flow:
    1. Validate that code, redirect_uri and code_verifier are present
    2. Refuse with a configuration error if credentials are missing
    3. POST the form-encoded grant to the Kick token endpoint
    4. Forward upstream failures with their status and raw body
    5. Return only access_token, token_type, expires_in and scope

    The body may be JSON or form-encoded. Steps 1 and 2 happen before any
    network call.
    """
    logger.info(
        "OAuth exchange request",
        extra={
            "code": bool(exchange_request.code),
            "redirect_uri": exchange_request.redirect_uri,
            "code_verifier": bool(exchange_request.code_verifier),
        }
    )

    if not exchange_request.is_complete:
        raise ClientInputError(
            "Missing required parameters: code, redirect_uri, code_verifier"
        )

    if not settings.credentials_configured:
        logger.error("Missing KICK_CLIENT_ID or KICK_CLIENT_SECRET")
        raise ConfigurationError("Server configuration error - missing credentials")

    token_data = await _exchange_code_for_token(client, settings, exchange_request)

    logger.info("Token exchange successful")

    # Refresh tokens stay on this side of the relay
    return TokenExchangeResult(
        access_token=token_data.get("access_token"),
        token_type=token_data.get("token_type"),
        expires_in=token_data.get("expires_in"),
        scope=token_data.get("scope"),
    )


async def _exchange_code_for_token(
    client: httpx.AsyncClient,
    settings: Settings,
    exchange_request: TokenExchangeRequest,
) -> dict:
    """
    POST the authorization code grant to the Kick token endpoint.

    Returns:
        Decoded upstream token response

    Raises:
        UpstreamError: On a non-success status (status forwarded) or on a
            transport failure / undecodable body (500)
    """
    payload = {
        "grant_type": "authorization_code",
        "client_id": settings.KICK_CLIENT_ID,
        "client_secret": settings.KICK_CLIENT_SECRET,
        "code": exchange_request.code,
        "redirect_uri": exchange_request.redirect_uri,
        "code_verifier": exchange_request.code_verifier,
    }

    try:
        response = await client.post(
            settings.KICK_TOKEN_URL,
            data=payload,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "application/json",
            },
        )
    except httpx.HTTPError as e:
        logger.error(f"OAuth exchange error: {e}", exc_info=True)
        raise UpstreamError("Internal server error")

    logger.info("Kick token response status", extra={"status_code": response.status_code})

    if not response.is_success:
        logger.error("Kick token error", extra={"body": response.text})
        raise UpstreamError(
            "Token exchange failed",
            details=response.text,
            status_code=response.status_code,
        )

    try:
        token_data = response.json()
    except ValueError as e:
        logger.error(f"Kick token response is not JSON: {e}")
        raise UpstreamError("Internal server error")

    if not isinstance(token_data, dict) or not token_data.get("access_token"):
        logger.error("Kick token response missing access_token")
        raise UpstreamError("Internal server error")

    return token_data


# =============================================================================
# User Lookup Endpoint
# =============================================================================

@user_router.post(
    "/user",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_user(
    lookup_request: Optional[UserLookupRequest] = None,
    settings: Settings = Depends(get_request_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Fetch the current Kick user on behalf of the browser.

    Endpoints from build_user_endpoints() are tried in order. A response
    from the public users endpoint is normalized to
    ``{id, username, email, profile_picture, chatroom: {id}}``; any other
    endpoint's JSON is returned as-is.
    """
    lookup_request = lookup_request or UserLookupRequest()

    if not lookup_request.access_token:
        raise ClientInputError("Missing access token")

    return await lookup_user(
        client,
        build_user_endpoints(settings),
        lookup_request.access_token,
    )
