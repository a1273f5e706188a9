"""
Kick OAuth Relay application package.

FastAPI service that performs the confidential half of Kick's OAuth code
exchange, looks up the signed-in user, and relays emote images for the
browser game. See main.py for the application factory.
"""
