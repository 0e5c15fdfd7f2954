"""
katreview exception hierarchy.

Provides a base exception class with user-facing messages and debug context,
plus one subclass per failure category of an annotation run. Every category is
fatal: callers catch KatReviewError at the CLI boundary only.
"""

from typing import Any, Dict, Optional


class KatReviewError(Exception):
    """Base exception for katreview errors.

    Attributes:
        user_message: Safe, user-facing error message.
        context: Dictionary of debug information.
    """

    def __init__(
        self,
        message: str,
        *,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.user_message = user_message or message
        self.context = context or {}


class RecordIOError(KatReviewError):
    """Input record, results file or output record could not be read or written."""

    pass


class SGFError(KatReviewError):
    """SGF load/parse errors."""

    pass


class EngineError(KatReviewError):
    """KataGo engine errors (spawn failure, non-zero exit, undecodable output)."""

    pass


class EngineTimeoutError(EngineError):
    """KataGo did not finish within the configured timeout."""

    pass


class ResponseDecodeError(KatReviewError):
    """An analysis response is malformed, incomplete or reports an engine error."""

    pass


class PreconditionError(KatReviewError):
    """Moves and analysis responses do not line up."""

    pass


class ConfigError(KatReviewError):
    """Configuration load/validation errors."""

    pass


class CoordinateError(KatReviewError, ValueError):
    """A cell label or grid coordinate is outside the board alphabet."""

    pass
