"""
Authentication Package

This package relays Kick OAuth 2.0 and user lookups for the browser game
so that the client secret never reaches the browser and Kick's CORS policy
does not block the calls.

Key responsibilities:
- Authorization URL construction (client id and scopes from configuration)
- Authorization code exchange with PKCE, dropping refresh tokens
- Current-user lookup across an ordered list of fallback endpoints

Modules:
- routes: Public endpoints (/oauth/authorize, /oauth/exchange, /api/user)
- lookup: Fallback driver and response normalization for user lookups

The authentication flow:
1. Browser asks /oauth/authorize for the Kick authorization URL
2. User authenticates with Kick and is redirected back with a code
3. Browser posts code, redirect_uri and code_verifier to /oauth/exchange
4. Relay adds the client secret, returns the access token only
5. Browser posts the access token to /api/user for profile and chatroom id
"""

from .routes import oauth_router, user_router

__all__ = [
    "oauth_router",
    "user_router",
]
