"""
Access token validation shared by HTTP and WebSocket entry points.

The chat core only needs one question answered: given a credential, which
user is this, if any? JWTAuthenticator answers it with simplejwt access
tokens. REST views get the same check through simplejwt's
JWTAuthentication class; the WebSocket handshake (chat.middleware) calls
this module directly because Channels has no DRF request.

Related files:
    - chat/middleware.py: Resolves scope["user"] during the handshake
    - config/settings.py: SIMPLE_JWT (signing key, lifetimes, user id claim)
"""

from __future__ import annotations

import logging

from django.conf import settings
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from authentication.models import User

logger = logging.getLogger(__name__)


class JWTAuthenticator:
    """
    Resolve an access token to an active user.

    Both methods return None for every kind of rejection (malformed,
    expired or tampered token, unknown or deactivated user); callers
    never need to catch anything.

    Usage:
        user_id = JWTAuthenticator.validate(token)
        if user_id is None:
            ...  # reject the handshake
    """

    @classmethod
    def validate(cls, credential: str | None) -> int | None:
        """Return the user id for a valid credential, None otherwise."""
        user = cls.get_user(credential)
        return user.id if user is not None else None

    @staticmethod
    def get_user(credential: str | None) -> User | None:
        """Return the active user a credential belongs to, None otherwise."""
        if not credential:
            return None

        try:
            access_token = AccessToken(credential)
        except TokenError as e:
            logger.warning(f"Invalid JWT token: {e}")
            return None

        claim = settings.SIMPLE_JWT.get("USER_ID_CLAIM", "user_id")
        user_id = access_token.get(claim)
        if user_id is None:
            logger.warning("JWT token has no user id claim")
            return None

        user = User.objects.filter(pk=user_id).first()
        if user is None:
            logger.warning(f"User not found for token: {user_id}")
            return None
        if not user.is_active:
            logger.warning(f"Inactive user presented a token: {user_id}")
            return None

        return user
