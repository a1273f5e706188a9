from fastapi import HTTPException, Request, status
import httpx

from .config import Settings


def get_request_settings(request: Request) -> Settings:
    """Dependency returning the settings injected by create_app()."""
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    """
    Dependency to get the shared upstream HTTP client from app state.

    Raises:
        HTTPException: 503 if the client has not been created yet
    """
    if not hasattr(request.app.state, "app_state"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upstream client not initialized"
        )

    client = request.app.state.app_state.http_client
    if not client:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Upstream client not available"
        )

    return client
