"""
Unified exception definitions for spreadarb.

All custom exceptions inherit from SpreadArbError for easy catching.
"""

from typing import Any, Optional


class SpreadArbError(Exception):
    """Base exception for all spreadarb errors."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "SPREADARB_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging/serialization."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(SpreadArbError):
    """Configuration-related errors."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="CONFIG_ERROR", **kwargs)


class FeedError(SpreadArbError):
    """Market feed errors (connection, handshake, protocol)."""

    def __init__(
        self,
        message: str,
        *,
        venue: str,
        recoverable: bool = True,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["venue"] = venue
        details["recoverable"] = recoverable
        super().__init__(message, code="FEED_ERROR", details=details, **kwargs)
        self.venue = venue
        self.recoverable = recoverable


class MalformedMessageError(FeedError):
    """Inbound payload could not be normalized into a snapshot."""

    def __init__(self, message: str, *, venue: str, raw: Any = None, **kwargs):
        details = kwargs.pop("details", {})
        if raw is not None:
            details["raw"] = str(raw)[:200]
        super().__init__(message, venue=venue, recoverable=True, details=details, **kwargs)
        self.code = "MALFORMED_MESSAGE"


class ExecutionError(SpreadArbError):
    """Execution port errors (order placement, account queries)."""

    def __init__(
        self,
        message: str,
        *,
        venue: str,
        recoverable: bool = True,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        details["venue"] = venue
        details["recoverable"] = recoverable
        super().__init__(message, code="EXECUTION_ERROR", details=details, **kwargs)
        self.venue = venue
        self.recoverable = recoverable


class OrderRejectedError(ExecutionError):
    """Venue rejected an order."""

    def __init__(self, message: str, *, venue: str, **kwargs):
        super().__init__(message, venue=venue, recoverable=True, **kwargs)
        self.code = "ORDER_REJECTED"


class BalanceUnavailableError(ExecutionError):
    """Account balance could not be fetched."""

    def __init__(self, message: str, *, venue: str, **kwargs):
        super().__init__(message, venue=venue, recoverable=True, **kwargs)
        self.code = "BALANCE_UNAVAILABLE"


class PositionStateError(SpreadArbError):
    """Operation is not valid for the current position state."""

    def __init__(self, message: str, *, state: str, **kwargs):
        details = kwargs.pop("details", {})
        details["state"] = state
        super().__init__(message, code="POSITION_STATE", details=details, **kwargs)
        self.state = state
