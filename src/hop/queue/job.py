from typing import TYPE_CHECKING

from aio_pika.abc import AbstractChannel, AbstractIncomingMessage

from hop import metrics
from hop.errors import AcknowledgementError, JobAlreadyResolvedError
from hop.logging import get_logger
from hop.queue.connection import BROKER_ERRORS

if TYPE_CHECKING:
    from hop.queue.topic import Topic

logger = get_logger("job")


class Job:
    """A work unit taken from a topic.

    The job owns the channel its delivery arrived on. Call exactly one of
    ``done`` or ``fail``, exactly once; either hands the channel back to the
    pool, even when the broker rejects the disposition.
    """

    def __init__(
        self,
        topic: "Topic",
        delivery: AbstractIncomingMessage,
        channel: AbstractChannel,
    ):
        self.topic = topic
        self._delivery = delivery
        self._channel: AbstractChannel | None = channel

    def __repr__(self) -> str:
        return f"Job(topic={self.topic.name!r}, delivery_tag={self.delivery_tag})"

    @property
    def body(self) -> bytes:
        return self._delivery.body

    @property
    def delivery(self) -> AbstractIncomingMessage:
        """The underlying aio-pika message, for full control over the delivery."""
        return self._delivery

    @property
    def delivery_tag(self) -> int | None:
        return self._delivery.delivery_tag

    @property
    def resolved(self) -> bool:
        return self._channel is None

    async def done(self) -> None:
        """Acknowledge the delivery so it is removed from the topic."""
        channel = self._release()
        try:
            await self._delivery.ack()
        except BROKER_ERRORS as e:
            logger.warning(
                "Ack failed, delivery may be redelivered",
                topic=self.topic.name,
                delivery_tag=self.delivery_tag,
                error=str(e),
            )
            raise AcknowledgementError("error acknowledging delivery") from e
        finally:
            self.topic.queue.put_channel(channel)

        metrics.jobs_resolved.add(1, {"outcome": "done"})

    async def fail(self, requeue: bool = False) -> None:
        """Reject the delivery.

        With ``requeue`` the job goes back to the topic, otherwise it is
        dropped.
        """
        channel = self._release()
        try:
            await self._delivery.nack(requeue=requeue)
        except BROKER_ERRORS as e:
            logger.warning(
                "Reject failed, delivery may be redelivered",
                topic=self.topic.name,
                delivery_tag=self.delivery_tag,
                error=str(e),
            )
            raise AcknowledgementError("error rejecting delivery") from e
        finally:
            self.topic.queue.put_channel(channel)

        metrics.jobs_resolved.add(1, {"outcome": "requeued" if requeue else "dropped"})

    def _release(self) -> AbstractChannel:
        channel = self._channel
        if channel is None:
            raise JobAlreadyResolvedError(f"job {self.delivery_tag} was already resolved")
        self._channel = None
        return channel
