import httpx
import json
import pytest

from lsps1client.blip51.order import ChannelOrderRequest, OrderState
from lsps1client.lsp.cache import LspCache
from lsps1client.lsp.errors import (
    MissingIdentityError,
    OrderValidationError,
    OutOfRangeError,
    ParseError,
    TransportError,
)

from fakes import (
    GET_INFO,
    INVOICE,
    LSP_PUBKEY,
    NODE_PUBKEY,
    ORDER_ID,
    order_payload,
    status_payload,
)


def order_request(channel_size_sats: int = 1000000) -> ChannelOrderRequest:
    return ChannelOrderRequest(channel_size_sats=channel_size_sats, node_pubkey=NODE_PUBKEY)


def connect_error(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError('connection refused', request=request)


@pytest.mark.asyncio
async def test_get_info_resolves_and_caches(order_client, fake_lsp):
    caps = await order_client.get_info()
    assert caps.min_channel_sats == 150000
    assert order_client.capabilities == caps
    assert order_client.cache.get_lsp_info('test-lsp') == GET_INFO
    assert order_client.cache.get_pubkeys() == [LSP_PUBKEY]
    assert fake_lsp.calls('GET', '/get_info') == 1


@pytest.mark.asyncio
async def test_get_info_falls_back_to_cache(fake_lsp, provider):
    cache = LspCache()
    cache.store_lsp_info('test-lsp', {'min_initial_lsp_balance_sat': 250000})
    fake_lsp.info_reply = (503, {'message': 'maintenance'})
    client = fake_lsp.order_client(provider, cache=cache)
    caps = await client.get_info()
    assert caps.min_channel_sats == 250000
    await client.http_client.aclose()


@pytest.mark.asyncio
async def test_get_info_without_cache_raises(order_client, fake_lsp):
    fake_lsp.info_reply = connect_error
    with pytest.raises(TransportError):
        await order_client.get_info()


@pytest.mark.asyncio
async def test_create_order(order_client, fake_lsp):
    await order_client.get_info()
    order = await order_client.create_order(order_request(2000000))
    assert order.order_id == ORDER_ID
    assert order.state == OrderState.CREATED
    assert order.invoice == INVOICE

    sent = [r for r in fake_lsp.requests if r.method == 'POST'][0]
    assert sent.url.path == '/api/v1/order'
    body = json.loads(sent.content)
    assert body['lsp_balance_sat'] == '2000000'
    assert body['client_balance_sat'] == '0'
    assert body['node_pubkey'] == NODE_PUBKEY


@pytest.mark.asyncio
async def test_create_order_without_state_is_created(order_client, fake_lsp):
    fake_lsp.create_reply = (200, {'data': {'id': 'x9', 'invoice': 'lnbc1'}})
    order = await order_client.create_order(order_request())
    assert order.order_id == 'x9'
    assert order.state == OrderState.CREATED


@pytest.mark.asyncio
async def test_out_of_range_rejected_before_any_request(order_client, fake_lsp):
    caps = await order_client.get_info()
    requests_before = len(fake_lsp.requests)
    with pytest.raises(OrderValidationError) as exc_info:
        await order_client.create_order(order_request(caps.max_channel_sats + 1))
    assert isinstance(exc_info.value, OutOfRangeError)
    assert exc_info.value.max_sats == caps.max_channel_sats
    assert len(fake_lsp.requests) == requests_before


@pytest.mark.asyncio
async def test_default_bounds_apply_without_get_info(order_client, fake_lsp):
    with pytest.raises(OutOfRangeError):
        await order_client.create_order(order_request(50000))
    assert fake_lsp.requests == []


@pytest.mark.asyncio
async def test_non_2xx_is_transport_error(order_client, fake_lsp):
    fake_lsp.create_reply = (400, {'error': {'code': 100, 'message': 'option mismatch'}})
    with pytest.raises(TransportError) as exc_info:
        await order_client.create_order(order_request())
    assert exc_info.value.status_code == 400
    assert 'option mismatch' in exc_info.value.message
    assert fake_lsp.calls('POST', '/order') == 1


@pytest.mark.asyncio
async def test_rejection_keeps_plain_message(order_client, fake_lsp):
    fake_lsp.create_reply = (422, {'message': 'channel expiry too long'})
    with pytest.raises(TransportError) as exc_info:
        await order_client.create_order(order_request())
    assert exc_info.value.status_code == 422
    assert exc_info.value.message == 'error from Test LSP: 422, channel expiry too long'


@pytest.mark.asyncio
async def test_message_field_on_success_is_not_an_error(order_client, fake_lsp):
    fake_lsp.create_reply = (200, order_payload(message='order accepted'))
    order = await order_client.create_order(order_request())
    assert order.error_message is None


@pytest.mark.asyncio
async def test_network_failure_is_transport_error(order_client, fake_lsp):
    fake_lsp.create_reply = connect_error
    with pytest.raises(TransportError) as exc_info:
        await order_client.create_order(order_request())
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_non_json_is_parse_error_with_raw_payload(order_client, fake_lsp):
    fake_lsp.create_reply = (200, '<html>gateway</html>')
    with pytest.raises(ParseError) as exc_info:
        await order_client.create_order(order_request())
    assert exc_info.value.raw_payload == '<html>gateway</html>'


@pytest.mark.asyncio
async def test_empty_envelope_is_parse_error(order_client, fake_lsp):
    fake_lsp.create_reply = (200, [])
    with pytest.raises(ParseError):
        await order_client.create_order(order_request())


@pytest.mark.asyncio
async def test_get_order_status(order_client, fake_lsp):
    fake_lsp.status_replies = [(200, status_payload('COMPLETED', 'ab' * 32 + ':0'))]
    order = await order_client.get_order_status(ORDER_ID)
    assert order.state == OrderState.COMPLETED
    assert order.funding_outpoint == 'ab' * 32 + ':0'
    assert fake_lsp.calls('GET', f'/order/{ORDER_ID}') == 1


@pytest.mark.asyncio
async def test_get_order_status_keeps_requested_id(order_client, fake_lsp):
    fake_lsp.status_replies = [(200, {'status': 'OPEN'})]
    order = await order_client.get_order_status('legacy-1')
    assert order.order_id == 'legacy-1'
    assert order.state == OrderState.PAYMENT_PENDING


@pytest.mark.asyncio
async def test_get_order_status_needs_an_id(order_client, fake_lsp):
    with pytest.raises(MissingIdentityError):
        await order_client.get_order_status(None)
    assert fake_lsp.requests == []


@pytest.mark.asyncio
async def test_create_reply_shapes(order_client, fake_lsp):
    for reply in ({'orders': [order_payload()]}, [order_payload()], order_payload()):
        fake_lsp.create_reply = (200, reply)
        order = await order_client.create_order(order_request())
        assert order.order_id == ORDER_ID
