"""
adreward.errors — Domain exception taxonomy
============================================

Services raise these; the API layer maps ``status_code`` / ``message``
straight onto the JSON response.  Anything that is *not* an
:class:`AdRewardError` is treated as an internal failure (500).
"""

from __future__ import annotations


class AdRewardError(Exception):
    """Base class for errors that are safe to show to the client."""

    status_code: int = 400
    default_message: str = "Invalid request"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(AdRewardError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(AdRewardError):
    status_code = 403
    default_message = "Forbidden"


class ValidationError(AdRewardError):
    default_message = "Invalid request"


class InsufficientProgress(AdRewardError):
    default_message = "Not enough ads watched"


class AlreadyClaimed(AdRewardError):
    default_message = "Reward already claimed"


class NotFound(AdRewardError):
    status_code = 404
    default_message = "Not found"
