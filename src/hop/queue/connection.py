import asyncio
from dataclasses import dataclass
from typing import TypeAlias

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection
from aio_pika.exceptions import AMQPConnectionError, AMQPError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_before_delay,
    wait_exponential,
)

from hop import metrics
from hop.config import QueueConfig
from hop.errors import ConnectionFailedError
from hop.logging import get_logger

logger = get_logger("connection")

# Dial errors worth another attempt.
DIAL_ERRORS = (AMQPConnectionError, OSError)

# aio-pika signals operations on closed connections/channels with RuntimeError.
BROKER_ERRORS = (AMQPError, RuntimeError, OSError)


@dataclass(frozen=True, slots=True)
class OpenChannel:
    """A usable protocol channel."""

    channel: AbstractChannel


@dataclass(frozen=True, slots=True)
class ChannelFailure:
    """Terminal marker: the connection behind the channel is gone for good."""

    error: ConnectionFailedError


ChannelSlot: TypeAlias = OpenChannel | ChannelFailure


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        "Dial failed, retrying",
        attempt=retry_state.attempt_number,
        delay=retry_state.upcoming_sleep,
        error=str(outcome.exception()) if outcome is not None else None,
    )


class Connection:
    """Owns the single broker session and redials it with bounded backoff.

    At most one redial runs at a time. Tasks that need a session while a
    redial is in flight wait for it and reuse its result instead of dialing
    again. Once the backoff budget is exhausted the failure is cached and the
    connection never dials again.
    """

    def __init__(
        self,
        address: str,
        config: QueueConfig,
        session: AbstractConnection | None = None,
    ):
        self.address = address
        self.config = config
        self._session = session
        self._failure: ConnectionFailedError | None = None
        self._retired: list[AbstractConnection] = []
        self._lock = asyncio.Lock()

    @property
    def session(self) -> AbstractConnection | None:
        return self._session

    @property
    def is_closed(self) -> bool:
        return self._session is None or self._session.is_closed

    async def connect(self, stale: AbstractConnection | None = None) -> None:
        """Establish a session unless a live one other than ``stale`` exists.

        Raises:
            ConnectionFailedError: If dialing failed for the whole retry budget,
                now or on an earlier call.
        """
        async with self._lock:
            if self._failure is not None:
                raise self._failure

            current = self._session
            if current is not None and current is not stale and not current.is_closed:
                return

            if current is not None and not current.is_closed:
                # Jobs may still hold channels on it; closed with the connection.
                self._retired = [s for s in self._retired if not s.is_closed]
                self._retired.append(current)
            self._session = None
            try:
                session = await self._dial_with_backoff()
            except DIAL_ERRORS as e:
                metrics.dials.add(1, {"outcome": "failed"})
                logger.error("Connection failed permanently", error=str(e))
                self._failure = ConnectionFailedError("queue connection failed permanently")
                raise self._failure from e

            self._session = session
            metrics.dials.add(1, {"outcome": "connected"})
            if current is None:
                logger.info("Connected to RabbitMQ")
            else:
                logger.info("Reconnected to RabbitMQ")

    async def _dial_with_backoff(self) -> AbstractConnection:
        budget = self.config.max_connection_retry.total_seconds()
        deadline = asyncio.get_running_loop().time() + budget
        retrying = AsyncRetrying(
            stop=stop_before_delay(budget),
            wait=wait_exponential(
                multiplier=self.config.retry_initial_interval,
                max=self.config.retry_max_interval,
            ),
            retry=retry_if_exception_type(DIAL_ERRORS),
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(self._dial_once, deadline)

    async def _dial_once(self, deadline: float) -> AbstractConnection:
        # A peer that accepts but never speaks AMQP must not outlast the budget.
        async with asyncio.timeout_at(deadline):
            return await aio_pika.connect(self.address, **self.config.broker_options)

    async def new_channel(self) -> ChannelSlot:
        """Open a channel, redialing the session as often as needed.

        Returns a ChannelFailure instead of a channel once the connection has
        failed permanently.
        """
        while True:
            session = self._session
            if session is not None and not session.is_closed:
                try:
                    channel = await session.channel()
                except BROKER_ERRORS as e:
                    logger.warning("Failed to open channel, reconnecting", error=str(e))
                else:
                    metrics.channels_opened.add(1)
                    return OpenChannel(channel)

            try:
                await self.connect(stale=session)
            except ConnectionFailedError as e:
                return ChannelFailure(e)

    async def close(self) -> None:
        """Close the current session and every replaced one still open."""
        retired, self._retired = self._retired, []
        for session in retired:
            if session.is_closed:
                continue
            try:
                await session.close()
            except BROKER_ERRORS as e:
                logger.warning("Failed to close replaced session", error=str(e))
        if self._session is not None:
            await self._session.close()
