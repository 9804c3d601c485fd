"""
Error taxonomy shared by the adapters and the HTTP layer.

Hosted clients translate their library exceptions into these classes so the
adapters never see requests/SQLAlchemy/botocore types.
"""

from __future__ import annotations

from typing import Sequence


class VisionBoardError(Exception):
    """Base class for every error the service reports to callers."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class AuthenticationError(VisionBoardError):
    """No session, or the session/credentials were rejected."""

    status_code = 401


class AccessDenied(VisionBoardError):
    """The caller does not own the requested resource."""

    status_code = 403


class NotFound(VisionBoardError):
    status_code = 404


class ValidationError(VisionBoardError):
    """Input rejected before any backend call was made."""

    status_code = 422


class BackendError(VisionBoardError):
    """Network, database or storage failure."""

    status_code = 502


class PartialFailure(BackendError):
    """
    Some writes landed and others did not.

    `orphaned_paths` lists stored objects that no image-slot row references.
    """

    def __init__(self, message: str, orphaned_paths: Sequence[str] = ()):
        super().__init__(message)
        self.orphaned_paths = list(orphaned_paths)
