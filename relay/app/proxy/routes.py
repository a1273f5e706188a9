"""
Proxy Routes - Emote Relay
==========================

This module relays Kick emote images through the game's own origin so the
browser is not blocked by hot-linking or CORS restrictions on
files.kick.com.

Behavior:
---------
1. The emote id is used as-is in the upstream URL template (no validation)
2. Upstream success: raw bytes with the upstream content type
   (image/gif when absent) and a public one-hour cache directive
3. Upstream non-success: the same status with a generic JSON error
4. Transport failure: 500 with a generic JSON error
5. No retries

Endpoints:
----------
- GET /proxy/emote/{emote_id}: Fetch an emote image
"""

import logging

from fastapi import APIRouter, Depends, Response
import httpx

from ..config import Settings
from ..dependencies import get_http_client, get_request_settings
from ..errors import UpstreamError

logger = logging.getLogger(__name__)

DEFAULT_EMOTE_CONTENT_TYPE = "image/gif"

# Create router
proxy_router = APIRouter(prefix="/proxy", tags=["proxy"])


# ============================================================================
# Header Helpers
# ============================================================================

def build_emote_headers(settings: Settings, content_type: str) -> dict:
    """
    Build response headers for a relayed emote.

    Args:
        settings: Application settings
        content_type: Upstream content type, or empty if missing

    Returns:
        Headers dict for the browser response
    """
    return {
        "Content-Type": content_type or DEFAULT_EMOTE_CONTENT_TYPE,
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET",
        "Access-Control-Allow-Headers": "Content-Type",
        "Cache-Control": f"public, max-age={settings.EMOTE_CACHE_SECONDS}",
    }


# ============================================================================
# Proxy Endpoints
# ============================================================================

@proxy_router.get("/emote/{emote_id}")
async def proxy_emote(
    emote_id: str,
    settings: Settings = Depends(get_request_settings),
    client: httpx.AsyncClient = Depends(get_http_client),
):
    """
    Relay a Kick emote image.

    Args:
        emote_id: Opaque emote identifier from the chat message
        settings: Application settings
        client: Shared upstream HTTP client

    Returns:
        Raw image bytes with upstream content type and cache headers

    Raises:
        UpstreamError: Upstream status forwarded, or 500 on transport failure
    """
    emote_url = settings.emote_url(emote_id)

    logger.info("Proxying Kick emote", extra={"emote_id": emote_id, "emote_url": emote_url})

    try:
        response = await client.get(emote_url)
    except httpx.HTTPError as e:
        logger.error(f"Error proxying emote: {e}", extra={"emote_id": emote_id})
        raise UpstreamError("Internal server error")

    if not response.is_success:
        logger.error(
            f"Failed to fetch emote: {response.status_code}",
            extra={"emote_id": emote_id}
        )
        raise UpstreamError("Failed to fetch emote", status_code=response.status_code)

    content_type = response.headers.get("content-type", "")

    logger.info("Successfully proxied emote", extra={"emote_id": emote_id})

    return Response(
        content=response.content,
        headers=build_emote_headers(settings, content_type),
    )
