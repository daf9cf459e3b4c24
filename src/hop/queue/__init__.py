from hop.queue.connection import ChannelFailure, ChannelSlot, Connection, OpenChannel
from hop.queue.job import Job
from hop.queue.pool import ChannelPool
from hop.queue.topic import Topic
from hop.queue.work_queue import WorkQueue, connect_queue, default_queue, new_queue

__all__ = [
    "ChannelFailure",
    "ChannelPool",
    "ChannelSlot",
    "Connection",
    "Job",
    "OpenChannel",
    "Topic",
    "WorkQueue",
    "connect_queue",
    "default_queue",
    "new_queue",
]
