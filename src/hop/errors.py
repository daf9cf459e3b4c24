"""Exception hierarchy for work queue operations.

Every error raised by this package wraps its cause (``raise ... from err``),
so the broker-level exception stays reachable through ``__cause__``.
"""

__all__ = (
    "AcknowledgementError",
    "ChannelRetrievalError",
    "CloseError",
    "ConnectionFailedError",
    "DeclarationError",
    "HopError",
    "JobAlreadyResolvedError",
    "PublishError",
    "PullError",
)


class HopError(Exception):
    """Base exception for all work queue operations."""


class ConnectionFailedError(HopError):
    """The dial backoff budget is exhausted; the connection is unusable for good."""


class ChannelRetrievalError(HopError):
    """No channel can be produced because the connection failed permanently."""


class DeclarationError(HopError):
    """Declaring the exchange, a queue or a binding was rejected."""


class PublishError(HopError):
    """Publishing a message failed."""


class PullError(HopError):
    """Polling a topic for its next message failed."""


class AcknowledgementError(HopError):
    """Acking or rejecting a delivery failed; its disposition is unknown."""


class JobAlreadyResolvedError(HopError):
    """done() or fail() was called on a job that was already resolved."""


class CloseError(HopError):
    """Closing the broker connection failed."""
