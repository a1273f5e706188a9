"""
Data Models Module

This module defines Pydantic models for request/response validation
and data serialization throughout the relay service.

Models are organized by functional area:
- OAuth models (code exchange requests and the browser-safe token result)
- User models (lookup request and the normalized profile)
- Diagnostic and error models
"""

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


# ============================================================================
# OAuth Models
# ============================================================================

class TokenExchangeRequest(BaseModel):
    """
    Authorization code exchange request from the browser.

    All three fields are required; they are optional here so the handler can
    answer with a descriptive 400 instead of a validation error list.
    """
    code: Optional[str] = Field(None, description="Authorization code from Kick")
    redirect_uri: Optional[str] = Field(None, description="Redirect URI used for the authorize call")
    code_verifier: Optional[str] = Field(None, description="PKCE code verifier")

    @property
    def is_complete(self) -> bool:
        return bool(self.code and self.redirect_uri and self.code_verifier)


class TokenExchangeResult(BaseModel):
    """Token data returned to the browser. Refresh tokens are never included."""
    access_token: str = Field(..., description="Kick access token")
    token_type: Optional[str] = Field(None, description="Token type (usually Bearer)")
    expires_in: Optional[int] = Field(None, description="Token lifetime in seconds")
    scope: Optional[str] = Field(None, description="Granted scopes")


class AuthorizeUrlResponse(BaseModel):
    """Authorization URL the browser should redirect to."""
    authorization_url: str
    client_id: str
    scope: str


# ============================================================================
# User Models
# ============================================================================

class UserLookupRequest(BaseModel):
    """Request model for the user lookup relay."""
    access_token: Optional[str] = Field(None, description="Kick access token")


class Chatroom(BaseModel):
    id: Optional[str] = Field(None, description="Chatroom id, null when unknown")


class UserProfile(BaseModel):
    """Normalized profile built from the public users endpoint."""
    id: Optional[Union[int, str]] = Field(None, description="Kick user id")
    username: Optional[str] = Field(None, description="Kick user name (channel slug)")
    email: Optional[str] = Field(None, description="User email address")
    profile_picture: Optional[str] = Field(None, description="Avatar URL")
    chatroom: Chatroom = Field(default_factory=Chatroom)


# ============================================================================
# Diagnostic Models
# ============================================================================

class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(..., description="Check timestamp")
    client_id_configured: bool
    client_secret_configured: bool
    config_valid: bool
    environment: str


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(None, description="Additional error details")
