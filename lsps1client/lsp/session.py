import asyncio
import logging
import uuid
from datetime import datetime
from pydantic import ValidationError
from typing import Any, Dict, List, Optional

from lsps1client.blip51.channel import ChannelRecord
from lsps1client.blip51.info import LspCapabilities
from lsps1client.blip51.order import ChannelOrderRequest, Order
from lsps1client.ln.base import NodeBase
from lsps1client.ln.lnd import get_node_backend
from lsps1client.lsp.cache import LspCache
from lsps1client.lsp.capabilities import CapabilityResolver
from lsps1client.lsp.client import OrderClient
from lsps1client.lsp.errors import MissingIdentityError, OrderValidationError
from lsps1client.lsp.messages import MessageBus, MessageKind, OrderCreated
from lsps1client.lsp.pollers import ChannelListPoller, OrderStatusPoller
from lsps1client.lsp.providers import LspProvider, get_provider
from lsps1client.lsp.reconciler import OrderView, StatusReconciler
from lsps1client.settings import (
    CacheSettings,
    OrderSettings,
    PollingSettings,
    Settings,
)

logger = logging.getLogger(name=__name__)


class OrderSession:
    """
    Wires one provider's order flow together: the order client, the message
    bus, a status poller per order, the optional channel poller and the
    reconciler that turns all of it into an OrderView.
    """

    def __init__(
            self,
            provider: LspProvider,
            client: Optional[OrderClient] = None,
            bus: Optional[MessageBus] = None,
            node: Optional[NodeBase] = None,
            cache: Optional[LspCache] = None,
            order_settings: Optional[OrderSettings] = None,
            polling_settings: Optional[PollingSettings] = None):
        self.session_id = str(uuid.uuid4())
        self.created_at = datetime.now()
        self.provider = provider
        self.cache = cache or LspCache()
        self.client = client or OrderClient(provider=provider, cache=self.cache)
        self.bus = bus or MessageBus()
        self.node = node
        self.order_settings = order_settings or OrderSettings()
        self.polling_settings = polling_settings or PollingSettings()
        self.reconciler = StatusReconciler(self.bus)
        self.order_pollers: Dict[str, OrderStatusPoller] = {}
        self.channel_poller: Optional[ChannelListPoller] = None
        if node is not None:
            self.channel_poller = ChannelListPoller(
                node=node,
                bus=self.bus,
                known_pubkeys=self.cache.get_pubkeys(),
                interval=self.polling_settings.channel_poll_interval_seconds,
            )
        self.capabilities: Optional[LspCapabilities] = None

        # Track initialization state
        self.initialized = False
        self.initialization_lock = asyncio.Lock()

    @classmethod
    def from_settings(
            cls,
            provider_slug: Optional[str] = None,
            settings: Optional[Settings] = None) -> "OrderSession":
        """build a session, node backend and cache from environment settings"""
        settings = settings or Settings()
        provider = get_provider(slug=provider_slug, settings=settings)
        cache_path = settings.cache_path or CacheSettings().cache_path
        cache = LspCache(cache_path)
        client = OrderClient(
            provider=provider,
            resolver=CapabilityResolver(settings),
            cache=cache,
            timeout=settings.request_timeout_seconds,
        )
        return cls(
            provider=provider,
            client=client,
            node=get_node_backend(settings),
            cache=cache,
            order_settings=settings,
            polling_settings=settings,
        )

    async def initialize(self) -> LspCapabilities:
        """fetch capabilities, connect to the LSP and start watching channels"""
        async with self.initialization_lock:
            if self.initialized:
                return self.capabilities

            self.capabilities = await self.client.get_info()
            if self.channel_poller is not None:
                self.channel_poller.observe_pubkeys(self.cache.get_pubkeys())
                self.channel_poller.observe_uris(self.capabilities.uris)
                await self.connect_to_lsp()
                self.channel_poller.start()

            self.initialized = True
            logger.info(
                f'Session {self.session_id} for {self.provider.name} initialized')
            return self.capabilities

    async def connect_to_lsp(self) -> bool:
        if self.node is None or not self.capabilities or not self.capabilities.uris:
            return False
        uri = self.capabilities.uris[0]
        response = await self.node.connect_peer(uri)
        if response.connected:
            logger.info(f'connected to {self.provider.name} at {uri}')
        else:
            logger.warning(
                f'could not connect to {self.provider.name}: '
                f'{response.error_message}')
        return response.connected

    async def resolve_node_pubkey(self, node_pubkey: Optional[str] = None) -> str:
        """explicit pubkey, else the configured one, else the node's own"""
        if node_pubkey:
            return node_pubkey
        if self.order_settings.node_pubkey:
            return self.order_settings.node_pubkey
        if self.node is not None:
            response = await self.node.get_node_id()
            if response.pubkey:
                return response.pubkey
            logger.warning(f'could not get node pubkey: {response.error_message}')
        raise MissingIdentityError(
            'no node pubkey given, configured or available from a node backend')

    async def create_order(
            self,
            channel_size_sats: Optional[int] = None,
            node_pubkey: Optional[str] = None,
            **overrides: Any) -> Order:
        if not self.initialized:
            await self.initialize()

        pubkey = await self.resolve_node_pubkey(node_pubkey)
        settings = self.order_settings
        fields = {
            'channel_size_sats': channel_size_sats or settings.channel_size_sat,
            'required_channel_confirmations': settings.required_channel_confirmations,
            'funding_confirms_within_blocks': settings.funding_confirms_within_blocks,
            'expiry_blocks': settings.channel_expiry_blocks,
            'announce_channel': settings.announce_channel,
            'token': settings.token,
        }
        fields.update({k: v for k, v in overrides.items() if v is not None})
        try:
            request = ChannelOrderRequest(node_pubkey=pubkey, **fields)
        except ValidationError as e:
            details = '; '.join(err['msg'] for err in e.errors())
            raise OrderValidationError(f'invalid order request: {details}')

        order = await self.client.create_order(request)
        self.bus.publish(OrderCreated(order=order))
        self.start_polling(order)
        return order

    def start_polling(self, order: Order) -> Optional[OrderStatusPoller]:
        """at most one poller per order id"""
        if not order.order_id:
            logger.warning('order has no order id, its status cannot be tracked')
            return None
        poller = self.order_pollers.get(order.order_id)
        if poller is None:
            poller = OrderStatusPoller(
                client=self.client,
                order=order,
                bus=self.bus,
                interval=self.polling_settings.order_poll_interval_seconds,
            )
            self.order_pollers[order.order_id] = poller
        poller.start()
        return poller

    async def check_order(self, order_id: str) -> Order:
        """one-off status lookup, independent of any running poller"""
        return await self.client.get_order_status(order_id)

    async def refresh_channels(self) -> List[ChannelRecord]:
        if self.channel_poller is None:
            return []
        channels = await self.channel_poller.refresh()
        if channels is None:
            return list(self.channel_poller.channels)
        return channels

    def view(self) -> OrderView:
        return self.reconciler.view()

    async def wait_for_update(self, timeout: Optional[float] = None) -> OrderView:
        """the view after the next status update, or the current one on timeout"""
        await self.bus.wait_for_next(MessageKind.ORDER_STATUS, timeout=timeout)
        return self.view()

    async def wait_for_completion(self, timeout: Optional[float] = None) -> OrderView:
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        view = self.view()
        while not view.is_terminal:
            remaining = None
            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
            view = await self.wait_for_update(timeout=remaining)
        return view

    async def cleanup(self) -> None:
        """Clean up all resources for this session"""
        logger.info(f'Cleaning up session {self.session_id} for {self.provider.name}')
        for poller in self.order_pollers.values():
            await poller.stop()
        if self.channel_poller is not None:
            await self.channel_poller.stop()
        self.reconciler.detach()
        await self.client.close()
        if self.node is not None:
            await self.node.close_rest_client()
        self.initialized = False
