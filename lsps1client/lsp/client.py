import httpx
import json
import logging
from typing import Any, Dict, Optional

from lsps1client.blip51.info import LspCapabilities
from lsps1client.blip51.order import ChannelOrderRequest, Order, OrderState
from lsps1client.lsp.adapters import ERROR_DETAIL_FIELDS, lookup_str
from lsps1client.lsp.cache import LspCache
from lsps1client.lsp.capabilities import CapabilityResolver
from lsps1client.lsp.errors import (
    MissingIdentityError,
    OrderError,
    OutOfRangeError,
    ParseError,
    TransportError,
)
from lsps1client.lsp.providers import LspProvider
from lsps1client.lsp.shapes import normalize_envelope
from lsps1client.settings import HttpSettings

logger = logging.getLogger(name=__name__)


class OrderClient:
    """
    Talks LSPS1 over HTTP to a single provider: capability discovery, order
    creation and order status. Nothing is retried; every failure is raised
    as an OrderError subclass for the caller to surface.
    """
    def __init__(
            self,
            provider: LspProvider,
            http_client: Optional[httpx.AsyncClient] = None,
            resolver: Optional[CapabilityResolver] = None,
            cache: Optional[LspCache] = None,
            capabilities: Optional[LspCapabilities] = None,
            timeout: Optional[float] = None):
        self.provider = provider
        self.adapter = provider.adapter
        self.resolver = resolver or CapabilityResolver()
        self.cache = cache or LspCache()
        self.capabilities = capabilities
        self._owns_http_client = http_client is None
        if http_client is None:
            if timeout is None:
                timeout = HttpSettings().request_timeout_seconds
            http_client = httpx.AsyncClient(
                base_url=provider.base_url,
                headers={'Content-Type': 'application/json'},
                timeout=httpx.Timeout(timeout),
            )
        self.http_client = http_client

    @property
    def current_capabilities(self) -> LspCapabilities:
        """last fetched capabilities, or the defaults if none were fetched"""
        if self.capabilities is None:
            return self.resolver.resolve({})
        return self.capabilities

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            r = await self.http_client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            msg = f'could not reach {self.provider.name}: {e}'
            logger.error(msg)
            raise TransportError(msg)

        text = r.text
        logger.debug(f'{method} {path} -> {r.status_code}: {text[:500]}')
        if r.is_error:
            detail = None
            try:
                detail = lookup_str(r.json(), ERROR_DETAIL_FIELDS)
            except ValueError:
                pass
            msg = f'error from {self.provider.name}: {r.status_code}'
            if detail:
                msg = f'{msg}, {detail}'
            logger.warning(f'{msg}: {text[:200]}')
            raise TransportError(msg, status_code=r.status_code)

        try:
            return json.loads(text)
        except ValueError as e:
            logger.error(f'invalid json from {self.provider.name}: {e}')
            raise ParseError(
                f'invalid response from {self.provider.name}',
                raw_payload=text)

    async def get_info(self) -> LspCapabilities:
        """
        GET get_info, falling back to a cached document when the LSP can't
        be reached
        """
        try:
            document = await self._request('GET', self.adapter.info_path)
        except OrderError:
            document = self.cache.get_lsp_info(self.provider.slug)
            if document is None:
                raise
            logger.warning(
                f'using cached capabilities for {self.provider.name}')
        else:
            if isinstance(document, dict):
                self.cache.store_lsp_info(self.provider.slug, document)

        self.capabilities = self.resolver.resolve(document)
        self.cache.add_pubkeys_from_uris(self.capabilities.uris)
        logger.info(
            f'{self.provider.name} accepts channels of '
            f'{self.capabilities.min_channel_sats}-'
            f'{self.capabilities.max_channel_sats} sats at '
            f'{self.capabilities.fee_rate_percent}%')
        return self.capabilities

    def validate_request(self, request: ChannelOrderRequest) -> None:
        capabilities = self.current_capabilities
        if not capabilities.contains(request.channel_size_sats):
            raise OutOfRangeError(
                request.channel_size_sats,
                capabilities.min_channel_sats,
                capabilities.max_channel_sats)

    def parse_order_payload(
            self,
            payload: Any,
            default_state: Optional[OrderState] = None) -> Order:
        records = normalize_envelope(payload)
        if not records:
            raise ParseError(
                f'no order found in response from {self.provider.name}',
                raw_payload=json.dumps(payload, default=str))
        return self.adapter.parse_order(records[0], default_state=default_state)

    async def create_order(self, request: ChannelOrderRequest) -> Order:
        self.validate_request(request)
        body: Dict[str, Any] = self.adapter.order_body(request)
        logger.info(
            f'creating order with {self.provider.name} for '
            f'{request.channel_size_sats} sats')
        payload = await self._request('POST', self.adapter.order_path, json=body)
        order = self.parse_order_payload(payload, default_state=OrderState.CREATED)
        logger.info(f'order {order.order_id} created, state {order.state}')
        return order

    async def get_order_status(self, order_id: Optional[str]) -> Order:
        if not order_id:
            raise MissingIdentityError('order id is required to check order status')
        payload = await self._request(
            'GET', self.adapter.order_status_path(order_id))
        order = self.parse_order_payload(payload)
        if order.order_id is None:
            order = order.model_copy(update={'order_id': order_id})
        return order

    async def close(self) -> None:
        if not self._owns_http_client:
            return
        try:
            await self.http_client.aclose()
        except RuntimeError as e:
            logger.error(f'Could not close http client: {e}')
