from collections import deque

from aio_pika.abc import AbstractChannel

from hop.errors import ChannelRetrievalError
from hop.logging import get_logger
from hop.queue.connection import ChannelFailure, ChannelSlot, Connection, OpenChannel

logger = get_logger("pool")


class ChannelPool:
    """Idle protocol channels shared by every operation on one connection.

    ``get`` hands a channel over to the caller, who owns it until ``put``
    gives it back. Channels are not health-checked on return; one found
    closed on the way out is dropped and replaced by a fresh channel, which
    is what triggers a reconnect after the session dies.
    """

    def __init__(self, connection: Connection):
        self._connection = connection
        self._idle: deque[AbstractChannel] = deque()
        self._failure: ChannelFailure | None = None

    @property
    def size(self) -> int:
        """Number of idle channels."""
        return len(self._idle)

    async def get(self) -> AbstractChannel:
        """Borrow a channel.

        Raises:
            ChannelRetrievalError: If the connection failed permanently. Every
                later call raises it again, chained to the same cause.
        """
        match await self._take():
            case OpenChannel(channel):
                return channel
            case ChannelFailure(error):
                raise ChannelRetrievalError("channel retrieval failed permanently") from error

    async def _take(self) -> ChannelSlot:
        if self._failure is not None:
            return self._failure

        while self._idle:
            channel = self._idle.pop()
            if not channel.is_closed:
                return OpenChannel(channel)
            logger.debug("Dropping closed channel")

        slot = await self._connection.new_channel()
        if isinstance(slot, ChannelFailure):
            self._failure = slot
        return slot

    def put(self, channel: AbstractChannel) -> None:
        self._idle.append(channel)

    def clear(self) -> None:
        """Forget all idle channels; closing the connection closes them."""
        self._idle.clear()
