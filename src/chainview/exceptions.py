"""Custom exception hierarchy for chainview."""

from __future__ import annotations


class ChainViewError(Exception):
    """Base exception for all chainview errors."""


class ConfigError(ChainViewError):
    """Invalid or missing configuration."""


class TopicError(ChainViewError):
    """Topic string does not match the chain/subsystem topic grammar."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class PayloadError(ChainViewError):
    """Broker payload could not be decoded into the expected shape."""

    def __init__(self, message: str, *, topic: str = "") -> None:
        self.topic = topic
        super().__init__(message)


class SchemaError(ChainViewError):
    """A record stream declaration cannot be used for its display type.

    Raised when a schema is requested for a display that carries no records
    (``Tile`` or ``Rosette``).
    """

    def __init__(self, message: str, *, display: str = "") -> None:
        self.display = display
        super().__init__(message)


class BrokerTransportError(ChainViewError):
    """Broker connection-level failure."""

    def __init__(
        self,
        message: str,
        *,
        host: str = "",
        port: int | None = None,
    ) -> None:
        self.host = host
        self.port = port
        super().__init__(message)
