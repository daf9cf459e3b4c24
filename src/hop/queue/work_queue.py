from types import TracebackType
from typing import Self

from aio_pika import ExchangeType
from aio_pika.abc import AbstractChannel, AbstractConnection

from hop.config import DEFAULT_CONFIG, QueueConfig
from hop.errors import CloseError, DeclarationError
from hop.logging import get_logger
from hop.queue.connection import BROKER_ERRORS, Connection
from hop.queue.pool import ChannelPool
from hop.queue.topic import Topic

logger = get_logger("work_queue")

EXCHANGE_KIND = ExchangeType.DIRECT


class WorkQueue:
    """Work queue semantics over a self-healing broker connection.

    Every topic obtained from the queue is a broker queue bound to one shared
    direct exchange. Channels for all operations come from a single pool.

    Closing the queue while pulls, puts or job resolutions are still in
    flight is not supported.
    """

    def __init__(self, connection: Connection, config: QueueConfig):
        self.connection = connection
        self.config = config
        self._pool = ChannelPool(connection)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def is_closed(self) -> bool:
        return self.connection.is_closed

    async def get_channel(self) -> AbstractChannel:
        return await self._pool.get()

    def put_channel(self, channel: AbstractChannel) -> None:
        self._pool.put(channel)

    async def declare_exchange(self) -> None:
        """Declare the shared exchange; a no-op if it already exists identically."""
        channel = await self.get_channel()
        try:
            await channel.declare_exchange(
                self.config.exchange_name,
                EXCHANGE_KIND,
                durable=False,
                auto_delete=False,
                internal=False,
            )
        except BROKER_ERRORS as e:
            logger.error(
                "Exchange declaration failed",
                exchange=self.config.exchange_name,
                error=str(e),
            )
            raise DeclarationError(
                f"error declaring exchange {self.config.exchange_name!r}"
            ) from e
        finally:
            self.put_channel(channel)
        logger.info("Exchange declared", exchange=self.config.exchange_name)

    async def get_topic(self, name: str) -> Topic:
        """Return a handle on the topic ``name``, declaring and binding its queue.

        Declaration is idempotent, so asking for the same name again is safe
        and yields another handle on the same queue.
        """
        if not name:
            raise ValueError("topic name must not be empty")

        channel = await self.get_channel()
        try:
            await self._declare_topic(channel, name)
        finally:
            self.put_channel(channel)
        return Topic(name, self)

    async def _declare_topic(self, channel: AbstractChannel, name: str) -> None:
        try:
            queue = await channel.declare_queue(
                name,
                durable=self.config.persistent,
                auto_delete=False,
                exclusive=False,
            )
        except BROKER_ERRORS as e:
            logger.error("Queue declaration failed", topic=name, error=str(e))
            raise DeclarationError(f"error declaring queue {name!r}") from e

        try:
            await queue.bind(self.config.exchange_name, routing_key=name)
        except BROKER_ERRORS as e:
            logger.error("Queue binding failed", topic=name, error=str(e))
            raise DeclarationError(f"unable to bind queue {name!r}") from e

    async def close(self) -> None:
        """Close the broker connection and, with it, every channel."""
        self._pool.clear()
        try:
            await self.connection.close()
        except BROKER_ERRORS as e:
            raise CloseError("error closing connection") from e
        logger.info("Work queue closed")


async def connect_queue(address: str, config: QueueConfig | None = None) -> WorkQueue:
    """Dial ``address`` and set up a work queue with ``config``.

    Raises:
        ConnectionFailedError: If the broker stays unreachable for
            ``config.max_connection_retry``.
        ChannelRetrievalError: If no channel can be opened for the exchange
            declaration.
        DeclarationError: If the exchange cannot be declared.
    """
    config = config or DEFAULT_CONFIG
    connection = Connection(address, config)
    await connection.connect()
    queue = WorkQueue(connection, config)
    await queue.declare_exchange()
    return queue


async def default_queue(address: str) -> WorkQueue:
    """Connect with the default configuration."""
    return await connect_queue(address, DEFAULT_CONFIG)


async def new_queue(
    address: str,
    session: AbstractConnection,
    config: QueueConfig | None = None,
) -> WorkQueue:
    """Set up a work queue over an already open aio-pika connection.

    ``address`` is dialed again if the session is lost. Closing the returned
    queue closes ``session`` too, so skip ``close()`` when the caller keeps
    managing the connection.
    """
    config = config or DEFAULT_CONFIG
    queue = WorkQueue(Connection(address, config, session=session), config)
    await queue.declare_exchange()
    return queue
