"""
User lookup with endpoint fallback.

Kick exposes the current user through several endpoints of varying age and
reliability. The relay tries an ordered list of them and accepts the first
response that has a success status and a JSON body:

    1. public-users   {public_api}/users, array-wrapped under "data"
    2. api-base       {api_base}/user
    3. legacy-N       each KICK_LEGACY_USER_URLS entry

Each candidate is a UserEndpoint pairing a URL with an optional normalizer.
Only the public-users endpoint is normalized (and triggers a second,
unauthenticated channel lookup for the chatroom id); every other endpoint's
JSON is passed through untouched.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from ..config import Settings
from ..errors import UserLookupError
from ..models import Chatroom, UserProfile

logger = logging.getLogger(__name__)

Normalizer = Callable[[httpx.AsyncClient, Any], Awaitable[Any]]


@dataclass(frozen=True)
class UserEndpoint:
    """One candidate in the fallback sequence."""

    name: str
    url: str
    normalizer: Optional[Normalizer] = None

    def request_headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    async def normalize(self, client: httpx.AsyncClient, payload: Any) -> Any:
        if self.normalizer is None:
            return payload
        return await self.normalizer(client, payload)


# ============================================================================
# Candidate List
# ============================================================================

def build_user_endpoints(settings: Settings) -> List[UserEndpoint]:
    """
    Build the ordered candidate list from settings.

    Order matters: most reliable first. Adding an endpoint means appending
    a UserEndpoint here.
    """
    endpoints = [
        UserEndpoint(
            name="public-users",
            url=f"{settings.public_api_url}/users",
            normalizer=public_users_normalizer(settings),
        ),
        UserEndpoint(
            name="api-base",
            url=f"{settings.api_base_url}/user",
        ),
    ]

    for index, url in enumerate(settings.legacy_user_urls_list, start=1):
        endpoints.append(UserEndpoint(name=f"legacy-{index}", url=url))

    return endpoints


# ============================================================================
# Fallback Driver
# ============================================================================

async def fetch_first_accepted(
    client: httpx.AsyncClient,
    endpoints: Sequence[UserEndpoint],
    access_token: str,
) -> Tuple[UserEndpoint, Any]:
    """
    Try each endpoint in order and return the first accepted response.

    A candidate fails on a non-success status, a non-JSON content type,
    an undecodable body or an httpx error; the next one is then tried.
    Calls are strictly sequential.

    Returns:
        The accepting endpoint and its decoded JSON payload

    Raises:
        UserLookupError: If every candidate failed, with the last failure
    """
    last_error = "No user endpoints configured"

    for endpoint in endpoints:
        try:
            response = await client.get(
                endpoint.url,
                headers=endpoint.request_headers(access_token),
            )
        except httpx.HTTPError as e:
            last_error = f"{endpoint.name} request failed: {e}"
            logger.warning(last_error, extra={"endpoint": endpoint.url})
            continue

        if not response.is_success:
            last_error = f"{endpoint.name} returned HTTP {response.status_code}"
            logger.warning(last_error, extra={"endpoint": endpoint.url})
            continue

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type.lower():
            last_error = f"{endpoint.name} returned non-JSON content ({content_type or 'none'})"
            logger.warning(last_error, extra={"endpoint": endpoint.url})
            continue

        try:
            payload = response.json()
        except ValueError as e:
            last_error = f"{endpoint.name} returned invalid JSON: {e}"
            logger.warning(last_error, extra={"endpoint": endpoint.url})
            continue

        logger.info("User lookup accepted", extra={"endpoint": endpoint.name})
        return endpoint, payload

    raise UserLookupError("Failed to fetch user info", details=last_error)


async def lookup_user(
    client: httpx.AsyncClient,
    endpoints: Sequence[UserEndpoint],
    access_token: str,
) -> Any:
    """Run the fallback sequence and shape the accepted payload."""
    endpoint, payload = await fetch_first_accepted(client, endpoints, access_token)
    return await endpoint.normalize(client, payload)


# ============================================================================
# Public Users Normalization
# ============================================================================

def public_users_normalizer(settings: Settings) -> Normalizer:
    """
    Normalizer for the array-wrapped public users response.

    Payloads without a non-empty ``data`` list are returned unchanged.
    """

    async def normalize(client: httpx.AsyncClient, payload: Any) -> Any:
        users = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(users, list) or not users:
            return payload

        user = users[0]
        if not isinstance(user, dict):
            return payload

        username = user.get("name")
        chatroom_id = None
        if username:
            chatroom_id = await fetch_chatroom_id(client, settings.channel_url(username))

        profile = UserProfile(
            id=user.get("user_id"),
            username=username,
            email=user.get("email"),
            profile_picture=user.get("profile_picture"),
            chatroom=Chatroom(id=chatroom_id),
        )
        return profile.model_dump()

    return normalize


async def fetch_chatroom_id(client: httpx.AsyncClient, channel_url: str) -> Optional[str]:
    """
    Fetch the chatroom id for a channel.

    Failure is never fatal: any error yields None.
    """
    try:
        response = await client.get(channel_url, headers={"Accept": "application/json"})
        if not response.is_success:
            logger.warning(
                f"Channel lookup returned HTTP {response.status_code}",
                extra={"channel_url": channel_url},
            )
            return None
        chatroom_id = response.json()["chatroom"]["id"]
    except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Channel lookup failed: {e}", extra={"channel_url": channel_url})
        return None

    if chatroom_id is None:
        return None
    return str(chatroom_id)
