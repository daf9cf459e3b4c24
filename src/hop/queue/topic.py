import asyncio
from typing import TYPE_CHECKING

from aio_pika import DeliveryMode, Message
from aio_pika.abc import AbstractChannel, AbstractIncomingMessage

from hop import metrics
from hop.errors import PublishError, PullError
from hop.logging import get_logger
from hop.queue.connection import BROKER_ERRORS
from hop.queue.job import Job

if TYPE_CHECKING:
    from hop.queue.work_queue import WorkQueue

logger = get_logger("topic")


class Topic:
    """A named tube from which jobs are exclusively pulled and into which they are put.

    Underneath, a topic is a queue bound to the shared direct exchange with
    its own name as routing key. Each operation borrows a channel from the
    work queue's pool.
    """

    def __init__(self, name: str, queue: "WorkQueue"):
        self._name = name
        self.queue = queue
        self.exchange_name = queue.config.exchange_name
        self.persistent = queue.config.persistent

    def __repr__(self) -> str:
        return f"Topic(name={self._name!r}, exchange={self.exchange_name!r})"

    @property
    def name(self) -> str:
        return self._name

    async def pull(self) -> Job:
        """Wait until a message is available and return it as a Job.

        The channel the message arrived on stays checked out until the job
        is resolved.
        """
        channel = await self.queue.get_channel()
        try:
            message = await self._poll(channel)
        except BROKER_ERRORS as e:
            self.queue.put_channel(channel)
            logger.warning("Pull failed", topic=self._name, error=str(e))
            raise PullError(f"error getting message from {self._name!r}") from e
        except asyncio.CancelledError:
            # A Get-Ok may still land on this channel; closing it requeues the delivery.
            await asyncio.shield(self._discard(channel))
            raise

        metrics.messages_pulled.add(1, {"topic": self._name})
        return Job(self, message, channel)

    async def _discard(self, channel: AbstractChannel) -> None:
        try:
            await channel.close()
        except BROKER_ERRORS as e:
            logger.warning("Failed to close abandoned channel", topic=self._name, error=str(e))

    async def _poll(self, channel: AbstractChannel) -> AbstractIncomingMessage:
        queue = await channel.get_queue(self._name, ensure=False)
        while True:
            message = await queue.get(no_ack=False, fail=False)
            if message is not None:
                return message
            await asyncio.sleep(self.queue.config.pull_interval)

    async def put(self, body: bytes) -> None:
        """Put a job with ``body`` into the topic.

        Messages are persistent when the queue config is, transient otherwise.
        Use put_publishing for control over the rest of the message.
        """
        if self.persistent:
            delivery_mode = DeliveryMode.PERSISTENT
        else:
            delivery_mode = DeliveryMode.NOT_PERSISTENT
        await self.put_publishing(Message(body, delivery_mode=delivery_mode))

    async def put_publishing(self, message: Message) -> None:
        """Publish a fully built message to the topic."""
        channel = await self.queue.get_channel()
        try:
            exchange = await channel.get_exchange(self.exchange_name, ensure=False)
            await exchange.publish(message, routing_key=self._name, mandatory=False)
        except BROKER_ERRORS as e:
            logger.warning("Publish failed", topic=self._name, error=str(e))
            raise PublishError(f"error publishing message to {self._name!r}") from e
        finally:
            self.queue.put_channel(channel)

        metrics.messages_published.add(1, {"topic": self._name})
