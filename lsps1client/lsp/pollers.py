import asyncio
import contextlib
import logging
from typing import Iterable, List, Optional

from lsps1client.blip51.channel import ChannelRecord
from lsps1client.blip51.order import Order
from lsps1client.blip51.utils import pubkey_from_uri
from lsps1client.ln.base import NodeBase
from lsps1client.lsp.client import OrderClient
from lsps1client.lsp.errors import MissingIdentityError, OrderError
from lsps1client.lsp.messages import (
    ChannelsUpdated,
    MessageBus,
    OrderStatusUpdated,
    PollFailed,
    PollerName,
    PollerStopped,
)
from lsps1client.settings import PollingSettings

logger = logging.getLogger(name=__name__)


class OrderStatusPoller:
    """
    Polls one order's status on a fixed interval until it goes terminal.

    Ticks run strictly one after another inside a single task, the first
    one right after start(). Each tick publishes the replacement order to
    the bus before the next sleep begins. A failed fetch is published as
    PollFailed and polling carries on. Once the order reaches COMPLETED or
    FAILED the poller stops itself and publishes a single PollerStopped.
    """
    def __init__(
            self,
            client: OrderClient,
            order: Order,
            bus: MessageBus,
            interval: Optional[float] = None):
        self.client = client
        self.order = order
        self.bus = bus
        self.interval = interval if interval is not None \
            else PollingSettings().order_poll_interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._in_flight = False
        self._stopped = False
        self._finished = False

    @property
    def order_id(self) -> Optional[str]:
        return self.order.order_id

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.order.is_terminal:
            logger.info(
                f'order {self.order_id} already {self.order.state.value}, '
                'not polling')
            return
        if not self.order_id:
            raise MissingIdentityError('cannot poll an order without an order id')
        if self._task is None or self._task.done():
            self._stopped = False
            self._task = asyncio.create_task(self._run())
            logger.debug(f'polling order {self.order_id} every {self.interval}s')

    async def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug(f'stopped polling order {self.order_id}')

    async def _run(self) -> None:
        while not self._stopped:
            await self.tick()
            if self._finished:
                break
            await asyncio.sleep(self.interval)

    async def tick(self) -> Optional[Order]:
        """
        one status fetch, returns the new order or None if the tick was
        skipped, failed or came back after the poller was stopped
        """
        if self._in_flight or self._finished or self._stopped:
            return None
        self._in_flight = True
        try:
            update = await self.client.get_order_status(self.order_id)
        except OrderError as e:
            self._poll_failed(str(e))
            return None
        except Exception as e:
            logger.error(f'unexpected error polling order {self.order_id}: {e}', exc_info=True)
            self._poll_failed(f'unexpected error: {e}')
            return None
        finally:
            self._in_flight = False

        if self._stopped:
            logger.debug(f'discarding status for {self.order_id} received after stop')
            return None

        previous = self.order.state
        self.order = self.order.transition_to(update)
        if self.order.state != previous:
            logger.info(
                f'order {self.order_id}: {previous.value} -> '
                f'{self.order.state.value}')
        self.bus.publish(OrderStatusUpdated(order=self.order))

        if self.order.is_terminal:
            self._finish()
        return self.order

    def _poll_failed(self, error_message: str) -> None:
        if self._stopped:
            return
        logger.warning(f'status poll for order {self.order_id} failed: {error_message}')
        self.bus.publish(PollFailed(
            poller=PollerName.ORDER_STATUS,
            error_message=error_message,
        ))

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._stopped = True
        logger.info(f'order {self.order_id} is {self.order.state.value}, polling stopped')
        self.bus.publish(PollerStopped(
            poller=PollerName.ORDER_STATUS,
            order_id=self.order_id,
            reason=self.order.state.value,
        ))


class ChannelListPoller:
    """
    Refreshes the node's channel list and keeps only channels opened with a
    known LSP. Without any known LSP pubkey every channel is dropped.
    """
    def __init__(
            self,
            node: NodeBase,
            bus: MessageBus,
            known_pubkeys: Optional[Iterable[str]] = None,
            interval: Optional[float] = None):
        self.node = node
        self.bus = bus
        self.known_pubkeys: List[str] = []
        self.observe_pubkeys(known_pubkeys or [])
        self.interval = interval if interval is not None \
            else PollingSettings().channel_poll_interval_seconds
        self.channels: List[ChannelRecord] = []
        self._task: Optional[asyncio.Task] = None
        self._in_flight = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def observe_pubkeys(self, pubkeys: Iterable[str]) -> List[str]:
        for pubkey in pubkeys:
            if pubkey and pubkey not in self.known_pubkeys:
                self.known_pubkeys.append(pubkey)
        return self.known_pubkeys

    def observe_uris(self, uris: Iterable[str]) -> List[str]:
        return self.observe_pubkeys(
            pubkey for pubkey in map(pubkey_from_uri, uris) if pubkey)

    def filter_channels(self, channels: Iterable[ChannelRecord]) -> List[ChannelRecord]:
        return [
            c for c in channels
            if any(c.is_with(pubkey) for pubkey in self.known_pubkeys)
        ]

    async def refresh(self) -> Optional[List[ChannelRecord]]:
        if self._stopped:
            return None
        if self._in_flight:
            logger.debug('channel refresh already in flight, skipping')
            return None
        self._in_flight = True
        try:
            response = await self.node.list_channels()
        except Exception as e:
            logger.error(f'channel refresh failed: {e}', exc_info=True)
            self._poll_failed(str(e))
            return None
        finally:
            self._in_flight = False

        if not response.ok:
            self._poll_failed(response.error_message)
            return None
        if self._stopped:
            logger.debug('discarding channel list received after stop')
            return None

        self.channels = self.filter_channels(response.channels)
        logger.debug(
            f'{len(self.channels)} of {len(response.channels)} channels '
            'are with a known LSP')
        self.bus.publish(ChannelsUpdated(channels=self.channels))
        return self.channels

    def _poll_failed(self, error_message: str) -> None:
        if self._stopped:
            return
        logger.warning(f'channel refresh failed: {error_message}')
        self.bus.publish(PollFailed(
            poller=PollerName.CHANNEL_LIST,
            error_message=error_message,
        ))

    async def _run(self) -> None:
        while not self._stopped:
            await self.refresh()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._stopped = False
            self._task = asyncio.create_task(self._run())
            logger.debug(f'refreshing channels every {self.interval}s')

    async def stop(self) -> None:
        self._stopped = True
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.debug('stopped refreshing channels')
