"""
Custom exception hierarchy for the earnings tracker.

All exceptions inherit from ETError, which provides optional context
for structured error handling and logging.

An empty upstream result is not an error and has no exception type:
adapters report it through ``AdapterStatus.EMPTY``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ETError(Exception):
    """Base exception for all earnings tracker errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationErrorKind(str, Enum):
    """Sub-kinds of configuration failure."""

    MISSING_CREDENTIALS = "missing_credentials"
    MISSING_REPOSITORY = "missing_repository"
    WORKFLOW_NOT_FOUND = "workflow_not_found"
    INVALID_CREDENTIAL = "invalid_credential"
    INVALID_SETTINGS = "invalid_settings"


class ConfigurationError(ETError):
    """Raised when configuration is invalid or missing.

    Fatal: surfaced to the operator and never retried.

    Examples:
        - GITHUB_ACTIONS_TOKEN not set
        - GITHUB_OWNER / GITHUB_REPO not set
        - Dispatch target workflow does not exist
    """

    def __init__(
        self,
        message: str,
        kind: ConfigurationErrorKind = ConfigurationErrorKind.INVALID_SETTINGS,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.kind = kind


class TransportError(ETError):
    """Raised when an upstream call fails (network or non-2xx status).

    Adapters catch this and report a failed result instead of propagating it.

    Context should include:
        - source: The upstream (e.g., "sec", "polygon")
        - url: The URL that was being fetched
        - status_code: HTTP status code if applicable
    """

    pass


class SourceUnavailableError(TransportError):
    """Raised by the fetch client when the request never got a response.

    Timeouts, DNS failures and refused connections end up here.
    """

    pass


class NotFoundError(ETError):
    """Raised when a requested entity does not exist.

    Context should include:
        - entity: What was looked up (company, cik)
        - ticker: The ticker involved
    """

    pass


class RateLimitError(ETError):
    """Raised when a client exceeds the ingress request quota.

    Attributes:
        retry_after: Whole seconds until the current window resets.
        limit: Maximum requests admitted per window.
        reset_at: Epoch seconds when the window resets.
    """

    def __init__(
        self,
        message: str,
        retry_after: int,
        limit: int,
        reset_at: float,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.retry_after = retry_after
        self.limit = limit
        self.reset_at = reset_at


class UpstreamUnexpectedResponse(ETError):
    """Raised when an upstream answers with something other than the agreed signal.

    Attributes:
        status_code: HTTP status returned by the upstream.
        body: Response body, truncated for logging.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.status_code = status_code
        self.body = body
