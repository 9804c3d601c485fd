"""
Resolves the caller's identity for each request.
"""

from __future__ import annotations

import logging
from typing import Optional

from visionboard.auth import AuthClient, Identity
from visionboard.errors import AuthenticationError, VisionBoardError

logger = logging.getLogger(__name__)


class SessionResolver:
    """
    Looks up the identity behind an access token.

    A backend failure while resolving is treated like "no identity" so pages
    fall back to the login redirect instead of erroring.
    """

    def __init__(self, auth: AuthClient):
        self.auth = auth

    def resolve(self, access_token: Optional[str]) -> Optional[Identity]:
        if not access_token:
            return None
        try:
            return self.auth.get_user(access_token)
        except VisionBoardError as exc:
            logger.warning("Could not resolve session: %s", exc.message)
            return None

    def require(self, access_token: Optional[str]) -> Identity:
        identity = self.resolve(access_token)
        if identity is None:
            raise AuthenticationError("You must be logged in.")
        return identity


def extract_access_token(
    authorization: Optional[str], cookie_token: Optional[str]
) -> Optional[str]:
    """Prefer an explicit bearer header, fall back to the session cookie."""
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    return cookie_token or None
