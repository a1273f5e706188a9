"""
Proxy Package
=============

This package relays binary assets from Kick through the relay's own origin.

Main Components:
----------------
- routes.py: FastAPI router with the emote relay (/proxy/emote/{emote_id})

Usage:
------
    from relay.app.proxy import proxy_router
    app.include_router(proxy_router)
"""

from .routes import proxy_router

__all__ = ["proxy_router"]
