import asyncio
import logging
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Callable, Dict, List, Literal, Optional, Union

from lsps1client.blip51.channel import ChannelRecord
from lsps1client.blip51.order import Order

logger = logging.getLogger(__name__)


class MessageKind(str, Enum):
    ORDER_CREATED = 'order_created'
    ORDER_STATUS = 'order_status'
    CHANNELS_UPDATED = 'channels_updated'
    POLL_FAILED = 'poll_failed'
    POLLER_STOPPED = 'poller_stopped'


class PollerName(str, Enum):
    ORDER_STATUS = 'order_status'
    CHANNEL_LIST = 'channel_list'


class OrderCreated(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal[MessageKind.ORDER_CREATED] = MessageKind.ORDER_CREATED
    order: Order


class OrderStatusUpdated(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal[MessageKind.ORDER_STATUS] = MessageKind.ORDER_STATUS
    order: Order


class ChannelsUpdated(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal[MessageKind.CHANNELS_UPDATED] = MessageKind.CHANNELS_UPDATED
    channels: List[ChannelRecord] = Field(default_factory=list)


class PollFailed(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal[MessageKind.POLL_FAILED] = MessageKind.POLL_FAILED
    poller: PollerName
    error_message: str


class PollerStopped(BaseModel):
    model_config = ConfigDict(frozen=True)
    kind: Literal[MessageKind.POLLER_STOPPED] = MessageKind.POLLER_STOPPED
    poller: PollerName
    order_id: Optional[str] = None
    reason: str


Message = Union[
    OrderCreated,
    OrderStatusUpdated,
    ChannelsUpdated,
    PollFailed,
    PollerStopped,
]
Subscriber = Callable[[Message], None]


class MessageBus:
    """
    Delivers messages to explicit per-kind subscriber lists.

    publish() is synchronous: every subscriber has seen the message by the
    time it returns, so a poller that gets cancelled right after publishing
    can never leave half of its subscribers updated. Async consumers use
    wait_for_next(), which hands out one-shot queues.
    """

    def __init__(self):
        self.latest_messages: Dict[MessageKind, Message] = {}
        self.subscribers: Dict[MessageKind, List[Subscriber]] = {
            kind: [] for kind in MessageKind
        }
        self.waiters: Dict[MessageKind, List[asyncio.Queue]] = {
            kind: [] for kind in MessageKind
        }

    def subscribe(
            self,
            kind: MessageKind,
            callback: Subscriber) -> Callable[[], None]:
        self.subscribers[kind].append(callback)

        def unsubscribe() -> None:
            if callback in self.subscribers[kind]:
                self.subscribers[kind].remove(callback)

        return unsubscribe

    def publish(self, message: Message) -> None:
        kind = message.kind
        logger.debug(f'MessageBus: publishing {kind.value}')
        self.latest_messages[kind] = message

        for callback in list(self.subscribers[kind]):
            try:
                callback(message)
            except Exception as e:
                logger.error(
                    f'MessageBus: subscriber {callback!r} failed on '
                    f'{kind.value}: {e}', exc_info=True)

        # one-shot waiters are served once and dropped
        waiters, self.waiters[kind] = self.waiters[kind], []
        for queue in waiters:
            if queue.full():
                logger.warning(f'MessageBus: waiter queue for {kind.value} is full, skipping')
                continue
            queue.put_nowait(message)

    def latest(self, kind: MessageKind) -> Optional[Message]:
        return self.latest_messages.get(kind)

    def create_waiter(self, kind: MessageKind) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=1)
        self.waiters[kind].append(queue)
        return queue

    async def wait_for_next(
            self,
            kind: MessageKind,
            timeout: Optional[float] = 30.0) -> Optional[Message]:
        """next message of a kind, or None on timeout"""
        queue = self.create_waiter(kind)
        try:
            if timeout is None:
                return await queue.get()
            return await asyncio.wait_for(queue.get(), timeout)
        except asyncio.TimeoutError:
            logger.debug(f'MessageBus: timed out waiting for {kind.value}')
            if queue in self.waiters[kind]:
                self.waiters[kind].remove(queue)
            return None
