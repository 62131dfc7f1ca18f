import pytest

from lsps1client.blip51.order import ChannelOrderRequest, OrderState
from lsps1client.lsp.adapters import get_adapter, lookup, lookup_int
from lsps1client.lsp.errors import ConfigurationError

from fakes import INVOICE, NODE_PUBKEY, ORDER_ID, order_payload


@pytest.fixture
def request_():
    return ChannelOrderRequest(
        channel_size_sats=2000000,
        node_pubkey=NODE_PUBKEY,
        required_channel_confirmations=1,
        funding_confirms_within_blocks=6,
        expiry_blocks=13140,
        announce_channel=False,
        token='promo',
    )


def test_v1_order_body(request_):
    body = get_adapter('lsps1-v1').order_body(request_)
    assert body == {
        'lsp_balance_sat': '2000000',
        'client_balance_sat': '0',
        'required_channel_confirmations': 1,
        'funding_confirms_within_blocks': 6,
        'channel_expiry_blocks': 13140,
        'token': 'promo',
        'announce_channel': False,
        'node_pubkey': NODE_PUBKEY,
    }


def test_legacy_adapter_sends_public_key(request_):
    adapter = get_adapter('lsps1-legacy')
    body = adapter.order_body(request_)
    assert body['public_key'] == NODE_PUBKEY
    assert 'node_pubkey' not in body
    assert adapter.order_path == 'create_order'


def test_status_path():
    assert get_adapter('lsps1-v1').order_status_path('abc') == 'order/abc'


def test_unknown_adapter():
    with pytest.raises(ConfigurationError):
        get_adapter('lsps9')


def test_parse_lsps1_order():
    order = get_adapter('lsps1-v1').parse_order(
        order_payload(outpoint='ab' * 32 + ':1'))
    assert order.order_id == ORDER_ID
    assert order.state == OrderState.CREATED
    assert order.invoice == INVOICE
    assert order.payment.order_total_sat == 15000
    assert order.payment.fee_total_sat == 5000
    assert order.funding_outpoint == 'ab' * 32 + ':1'
    assert order.channel_info.vout == 1
    assert order.raw['order_id'] == ORDER_ID


def test_parse_flat_camel_case_order():
    order = get_adapter('lsps1-v1').parse_order({
        'orderId': 'o-2',
        'status': 'payment_received',
        'paymentRequest': 'lnbc2',
        'total_sats': 1200,
        'channelInfo': {'fundingOutpoint': 'cd' * 32 + ':0'},
    })
    assert order.order_id == 'o-2'
    assert order.state == OrderState.PAID
    assert order.invoice == 'lnbc2'
    assert order.payment.order_total_sat == 1200
    assert order.channel_info.txid == 'cd' * 32


def test_parse_uses_default_state_only_when_missing():
    adapter = get_adapter('lsps1-v1')
    assert adapter.parse_order({'id': '1'}, default_state=OrderState.CREATED).state == OrderState.CREATED
    assert adapter.parse_order({'id': '1'}).state == OrderState.PAID
    assert adapter.parse_order(
        {'id': '1', 'state': 'FAILED'}, default_state=OrderState.CREATED).state == OrderState.FAILED


def test_parse_error_message():
    order = get_adapter('lsps1-v1').parse_order({
        'order_id': '1',
        'state': 'ERROR',
        'error': {'message': 'channel open failed'},
    })
    assert order.state == OrderState.FAILED
    assert order.error_message == 'channel open failed'


def test_lookup_dotted_paths():
    doc = {'payment': {'bolt11': {'invoice': 'lnbc'}}, 'a': None, 'b': 2}
    assert lookup(doc, ('missing', 'payment.bolt11.invoice')) == 'lnbc'
    assert lookup(doc, ('a', 'b')) == 2
    assert lookup_int({'x': 'abc', 'y': '12'}, ('x', 'y')) == 12
