"""
Unit Tests for User Lookup
==========================

Tests for relay/app/auth/lookup.py and the POST /api/user route

Test Coverage:
--------------
1. Candidate order and stop-at-first-accepted
2. Equivalent failure modes (status, content type, bad JSON, transport error)
3. Normalization of the public users response with chatroom lookup
4. Non-fatal chatroom lookup failure
5. Passthrough of legacy responses
6. Exhausted fallbacks report the last failure

Run tests:
----------
    pytest relay/app/tests/test_user_lookup.py -v
"""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from relay.app.auth.lookup import (
    UserEndpoint,
    build_user_endpoints,
    fetch_chatroom_id,
    fetch_first_accepted,
)
from relay.app.config import Settings
from relay.app.errors import UserLookupError
from relay.app.main import create_app


PUBLIC_USERS_URL = "https://api.kick.test/public/v1/users"
API_BASE_USER_URL = "https://kick.test/api/v2/user"
LEGACY_URLS = ["https://kick.test/api/v1/user", "https://legacy.kick.test/v1/user"]
CHANNEL_URL = "https://kick.test/api/v2/channels/dropgamer"


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def mock_settings():
    return Settings(
        _env_file=None,
        KICK_CLIENT_ID="test-client-id",
        KICK_CLIENT_SECRET="test-client-secret",
        KICK_PUBLIC_API_URL="https://api.kick.test/public/v1",
        KICK_API_BASE_URL="https://kick.test/api/v2",
        KICK_LEGACY_USER_URLS=",".join(LEGACY_URLS),
    )


@pytest.fixture
def mock_http_client():
    return AsyncMock()


@pytest.fixture
def client(mock_settings, mock_http_client):
    app = create_app(mock_settings)
    app.state.app_state.http_client = mock_http_client
    return TestClient(app)


def json_response(payload, status_code=200):
    return httpx.Response(status_code, json=payload)


def html_response(status_code=200):
    return httpx.Response(
        status_code,
        text="<html>Cloudflare</html>",
        headers={"content-type": "text/html; charset=utf-8"},
    )


def public_users_payload():
    return {
        "data": [{
            "user_id": 4242,
            "name": "dropgamer",
            "email": "drop@example.com",
            "profile_picture": "https://files.kick.test/pic.png",
        }],
        "message": "OK",
    }


def called_urls(mock_http_client):
    return [call.args[0] for call in mock_http_client.get.call_args_list]


# ============================================================================
# Candidate List Tests
# ============================================================================

def test_build_user_endpoints_order(mock_settings):
    endpoints = build_user_endpoints(mock_settings)

    assert [e.url for e in endpoints] == [
        PUBLIC_USERS_URL,
        API_BASE_USER_URL,
        *LEGACY_URLS,
    ]
    assert [e.name for e in endpoints] == ["public-users", "api-base", "legacy-1", "legacy-2"]
    assert endpoints[0].normalizer is not None
    assert all(e.normalizer is None for e in endpoints[1:])


def test_build_user_endpoints_without_legacy_urls():
    settings = Settings(_env_file=None, KICK_LEGACY_USER_URLS="")

    assert len(build_user_endpoints(settings)) == 2


# ============================================================================
# Route Validation Tests
# ============================================================================

def test_user_lookup_requires_access_token(client, mock_http_client):
    response = client.post("/api/user", json={})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "access token" in response.json()["error"].lower()
    mock_http_client.get.assert_not_called()


# ============================================================================
# Fallback Order Tests
# ============================================================================

def test_stops_at_third_candidate(client, mock_http_client):
    """Only the first three endpoints are called, in order, when the third succeeds"""
    legacy_user = {"id": 7, "username": "legacy-user"}
    mock_http_client.get = AsyncMock(side_effect=[
        json_response({"message": "Unauthorized"}, status_code=401),
        html_response(),
        json_response(legacy_user),
        json_response({"should": "not be reached"}),
    ])

    response = client.post("/api/user", json={"access_token": "token-123"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == legacy_user
    assert called_urls(mock_http_client) == [
        PUBLIC_USERS_URL,
        API_BASE_USER_URL,
        LEGACY_URLS[0],
    ]


def test_access_token_sent_as_bearer(client, mock_http_client):
    mock_http_client.get = AsyncMock(side_effect=[
        html_response(status_code=500),
        json_response({"id": 1}),
    ])

    client.post("/api/user", json={"access_token": "token-123"})

    for call in mock_http_client.get.call_args_list:
        assert call.kwargs["headers"]["Authorization"] == "Bearer token-123"


def test_transport_error_advances_to_next_candidate(client, mock_http_client):
    mock_http_client.get = AsyncMock(side_effect=[
        httpx.ConnectError("Connection refused"),
        json_response({"id": 9, "username": "api-base-user"}),
    ])

    response = client.post("/api/user", json={"access_token": "token-123"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"id": 9, "username": "api-base-user"}
    assert mock_http_client.get.call_count == 2


def test_invalid_json_advances_to_next_candidate(client, mock_http_client):
    mock_http_client.get = AsyncMock(side_effect=[
        httpx.Response(200, text="{not json", headers={"content-type": "application/json"}),
        json_response({"id": 9}),
    ])

    response = client.post("/api/user", json={"access_token": "token-123"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"id": 9}


def test_all_candidates_fail_reports_last_error(client, mock_http_client):
    """Exhausted fallbacks return 500 with the last candidate's failure"""
    mock_http_client.get = AsyncMock(side_effect=[
        json_response({}, status_code=401),
        html_response(),
        httpx.ReadTimeout("timed out"),
        json_response({}, status_code=404),
    ])

    response = client.post("/api/user", json={"access_token": "token-123"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    body = response.json()
    assert body["error"] == "Failed to fetch user info"
    assert body["details"] == "legacy-2 returned HTTP 404"
    assert mock_http_client.get.call_count == 4


def test_fetch_first_accepted_raises_with_last_transport_error():
    http_client = AsyncMock()
    http_client.get = AsyncMock(side_effect=[
        json_response({}, status_code=500),
        httpx.ConnectError("connection reset"),
    ])
    endpoints = [
        UserEndpoint(name="first", url="https://a.test/user"),
        UserEndpoint(name="second", url="https://b.test/user"),
    ]

    with pytest.raises(UserLookupError) as exc_info:
        asyncio.run(fetch_first_accepted(http_client, endpoints, "token"))

    assert exc_info.value.details == "second request failed: connection reset"


def test_fetch_first_accepted_with_no_endpoints():
    with pytest.raises(UserLookupError):
        asyncio.run(fetch_first_accepted(AsyncMock(), [], "token"))


# ============================================================================
# Normalization Tests
# ============================================================================

def test_public_users_response_is_normalized(client, mock_http_client):
    mock_http_client.get = AsyncMock(side_effect=[
        json_response(public_users_payload()),
        json_response({"slug": "dropgamer", "chatroom": {"id": 555}}),
    ])

    response = client.post("/api/user", json={"access_token": "token-123"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "id": 4242,
        "username": "dropgamer",
        "email": "drop@example.com",
        "profile_picture": "https://files.kick.test/pic.png",
        "chatroom": {"id": "555"},
    }
    assert called_urls(mock_http_client) == [PUBLIC_USERS_URL, CHANNEL_URL]


def test_channel_lookup_is_unauthenticated(client, mock_http_client):
    mock_http_client.get = AsyncMock(side_effect=[
        json_response(public_users_payload()),
        json_response({"chatroom": {"id": 1}}),
    ])

    client.post("/api/user", json={"access_token": "token-123"})

    channel_call = mock_http_client.get.call_args_list[1]
    assert "Authorization" not in channel_call.kwargs.get("headers", {})


@pytest.mark.parametrize("channel_reply", [
    json_response({"message": "Not found"}, status_code=404),
    json_response({"slug": "dropgamer"}),
    httpx.ConnectError("Connection refused"),
])
def test_failed_chatroom_lookup_degrades_to_null(client, mock_http_client, channel_reply):
    """Secondary lookup failure never fails the whole request"""
    mock_http_client.get = AsyncMock(side_effect=[
        json_response(public_users_payload()),
        channel_reply,
    ])

    response = client.post("/api/user", json={"access_token": "token-123"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["chatroom"] == {"id": None}
    assert body["username"] == "dropgamer"


def test_empty_public_users_data_passes_through(client, mock_http_client):
    mock_http_client.get = AsyncMock(side_effect=[
        json_response({"data": [], "message": "OK"}),
    ])

    response = client.post("/api/user", json={"access_token": "token-123"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"data": [], "message": "OK"}
    assert mock_http_client.get.call_count == 1


def test_array_shape_from_legacy_endpoint_is_not_normalized(client, mock_http_client):
    """Shape handling follows the answering endpoint, not the payload"""
    legacy_payload = public_users_payload()
    mock_http_client.get = AsyncMock(side_effect=[
        json_response({}, status_code=403),
        json_response(legacy_payload),
    ])

    response = client.post("/api/user", json={"access_token": "token-123"})

    assert response.json() == legacy_payload
    assert mock_http_client.get.call_count == 2


def test_fetch_chatroom_id_returns_string():
    http_client = AsyncMock()
    http_client.get = AsyncMock(return_value=json_response({"chatroom": {"id": 99}}))

    assert asyncio.run(fetch_chatroom_id(http_client, CHANNEL_URL)) == "99"
