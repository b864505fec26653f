"""Exception hierarchy for shardstatsd.

Only configuration problems ever reach the caller. Transport failures are
raised by transports and caught at the client's delivery boundary;
signature failures only surface on the receiving side.
"""

from __future__ import annotations


class StatsdError(Exception):
    """Base class for all shardstatsd errors."""

    pass


class ConfigurationError(StatsdError, ValueError):
    """Invalid shard address or client configuration.

    Raised immediately at setup time. When produced by configuration
    validation, ``errors`` holds every problem that was found.
    """

    def __init__(self, message: str | list[str]) -> None:
        if isinstance(message, list):
            self.errors = message
            message = f"Configuration validation failed: {', '.join(message)}"
        else:
            self.errors = [message]
        super().__init__(message)


class TransportError(StatsdError):
    """Failure while handing a payload to the network."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class SignatureError(StatsdError):
    """A signed payload is malformed, stale or fails verification."""

    pass
