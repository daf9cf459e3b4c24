"""Work queue semantics (named, exclusive-pull topics) on top of RabbitMQ."""

from hop.config import DEFAULT_CONFIG, QueueConfig, RabbitMqConfig
from hop.errors import (
    AcknowledgementError,
    ChannelRetrievalError,
    CloseError,
    ConnectionFailedError,
    DeclarationError,
    HopError,
    JobAlreadyResolvedError,
    PublishError,
    PullError,
)
from hop.queue import Job, Topic, WorkQueue, connect_queue, default_queue, new_queue

__all__ = [
    "DEFAULT_CONFIG",
    "AcknowledgementError",
    "ChannelRetrievalError",
    "CloseError",
    "ConnectionFailedError",
    "DeclarationError",
    "HopError",
    "Job",
    "JobAlreadyResolvedError",
    "PublishError",
    "PullError",
    "QueueConfig",
    "RabbitMqConfig",
    "Topic",
    "WorkQueue",
    "connect_queue",
    "default_queue",
    "new_queue",
]
