import httpx
import json
import pytest
import pytest_asyncio

from lsps1client.ln.lnd import LndBackend, get_node_backend
from lsps1client.lsp.errors import ConfigurationError, MissingIdentityError
from lsps1client.settings import LnBackendSettings, LnImplementation

from fakes import LSP_PUBKEY, LSP_URI, NODE_PUBKEY, build_session

REST_HOST = 'https://127.0.0.1:8080'

GETINFO = {
    'identity_pubkey': NODE_PUBKEY,
    'alias': 'carol',
    'synced_to_chain': True,
    'synced_to_graph': True,
}
CHANNELS = {
    'channels': [
        {
            'active': True,
            'remote_pubkey': LSP_PUBKEY,
            'channel_point': 'ab' * 32 + ':0',
            'capacity': '1000000',
            'local_balance': '2500',
            'private': False,
        },
        {
            'active': False,
            'remote_pubkey': '02' + '77' * 32,
            'channel_point': 'cd' * 32 + ':1',
            'capacity': '500000',
            'private': True,
        },
    ]
}


class FakeLnd:
    def __init__(self):
        self.routes = {
            ('GET', '/v1/getinfo'): (200, GETINFO),
            ('GET', '/v1/channels'): (200, CHANNELS),
            ('POST', '/v1/peers'): (200, {}),
        }
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.routes.get((request.method, request.url.path))
        if reply is None:
            return httpx.Response(404, json={'message': 'not found'})
        if callable(reply):
            return reply(request)
        status_code, body = reply
        return httpx.Response(status_code, json=body)


@pytest.fixture
def lnd():
    return FakeLnd()


@pytest_asyncio.fixture
async def customer_lnd_client(lnd):
    backend = LndBackend(
        rest_host=REST_HOST,
        http_client=httpx.AsyncClient(
            transport=httpx.MockTransport(lnd.handler),
            base_url=REST_HOST,
        ),
    )
    yield backend
    await backend.close_rest_client()


@pytest.mark.asyncio
async def test_check_node_connection(customer_lnd_client):
    conn = await customer_lnd_client.check_node_connection()
    assert conn.healthy
    assert conn.synced_to_chain
    assert conn.synced_to_graph
    assert not conn.error_message


@pytest.mark.asyncio
async def test_unsynced_node_is_unhealthy(customer_lnd_client, lnd):
    lnd.routes[('GET', '/v1/getinfo')] = (200, {**GETINFO, 'synced_to_graph': False})
    conn = await customer_lnd_client.check_node_connection()
    assert not conn.healthy
    assert 'synced to graph: False' in conn.error_message


@pytest.mark.asyncio
async def test_get_node_id(customer_lnd_client):
    info = await customer_lnd_client.get_node_id()
    assert info.pubkey == NODE_PUBKEY
    assert info.alias == 'carol'
    assert not info.error_message


@pytest.mark.asyncio
async def test_get_node_id_error(customer_lnd_client, lnd):
    lnd.routes[('GET', '/v1/getinfo')] = (500, {'message': 'wallet locked'})
    info = await customer_lnd_client.get_node_id()
    assert info.pubkey == ''
    assert 'wallet locked' in info.error_message


@pytest.mark.asyncio
async def test_connect_peer(customer_lnd_client, lnd):
    conn = await customer_lnd_client.connect_peer(LSP_URI)
    assert conn.connected
    assert not conn.error_message
    body = json.loads(lnd.requests[-1].content)
    assert body['addr'] == {'pubkey': LSP_PUBKEY, 'host': '127.0.0.1:9735'}


@pytest.mark.asyncio
async def test_connect_peer_already_connected(customer_lnd_client, lnd):
    lnd.routes[('POST', '/v1/peers')] = (
        500, {'message': f'already connected to peer: {LSP_PUBKEY}'})
    conn = await customer_lnd_client.connect_peer(LSP_URI)
    assert conn.connected
    assert conn.error_message is None


@pytest.mark.asyncio
async def test_connect_peer_bad_uri(customer_lnd_client, lnd):
    conn = await customer_lnd_client.connect_peer(LSP_PUBKEY)
    assert not conn.connected
    assert 'pubkey@host:port' in conn.error_message
    assert lnd.requests == []


@pytest.mark.asyncio
async def test_list_channels(customer_lnd_client):
    response = await customer_lnd_client.list_channels()
    assert response.ok
    first, second = response.channels
    assert first.remote_pubkey == LSP_PUBKEY
    assert first.capacity_sats == 1000000
    assert first.local_balance_sats == 2500
    assert first.active and first.public
    assert not second.active
    assert not second.public
    assert second.local_balance_sats == 0


@pytest.mark.asyncio
async def test_list_channels_unreachable(customer_lnd_client, lnd):
    def refuse(request):
        raise httpx.ConnectError('connection refused', request=request)

    lnd.routes[('GET', '/v1/channels')] = refuse
    response = await customer_lnd_client.list_channels()
    assert not response.ok
    assert response.channels == []
    assert 'connection refused' in response.error_message


def test_macaroon_header(tmp_path):
    macaroon = tmp_path / 'admin.macaroon'
    macaroon.write_bytes(b'\x02\x01\x03lnd')
    backend = LndBackend(rest_host=REST_HOST, permissions_file_path=str(macaroon))
    assert backend.headers['Grpc-Metadata-macaroon'] == b'0201036c6e64'
    assert backend.http_client.headers['Grpc-Metadata-macaroon'] == '0201036c6e64'


def test_no_node_configured():
    assert get_node_backend(LnBackendSettings(node=None, rest_host=None)) is None


def test_lnd_backend_from_settings(tmp_path):
    macaroon = tmp_path / 'admin.macaroon'
    macaroon.write_bytes(b'\x02\x01')
    settings = LnBackendSettings(
        node='lnd',
        rest_host=REST_HOST,
        permissions_file_path=str(macaroon),
    )
    backend = get_node_backend(settings)
    assert isinstance(backend, LndBackend)
    assert backend.rest_host.startswith(REST_HOST)
    assert backend.cert_path is None


def test_unsupported_node_rejected():
    with pytest.raises(ValueError):
        LnBackendSettings(node='cln', rest_host=REST_HOST)
    with pytest.raises(ConfigurationError):
        get_node_backend(LnBackendSettings.model_construct(
            node=LnImplementation.CLN, rest_host=REST_HOST, permissions_file_path='x'))


@pytest.mark.asyncio
@pytest.mark.parametrize('reply', [
    lambda request: httpx.Response(200, text='<html>proxy</html>'),
    lambda request: httpx.Response(200, json=['not', 'an', 'object']),
])
async def test_get_node_id_unexpected_body(customer_lnd_client, lnd, reply):
    lnd.routes[('GET', '/v1/getinfo')] = reply
    info = await customer_lnd_client.get_node_id()
    assert info.pubkey == ''
    assert 'unexpected getinfo response' in info.error_message


@pytest.mark.asyncio
async def test_unreadable_node_id_fails_the_order_cleanly(customer_lnd_client, lnd, fake_lsp, provider):
    lnd.routes[('GET', '/v1/getinfo')] = lambda request: httpx.Response(200, text='<html>proxy</html>')
    session = build_session(fake_lsp, provider, node=customer_lnd_client)
    try:
        with pytest.raises(MissingIdentityError):
            await session.create_order()
        assert fake_lsp.calls('POST', '/order') == 0
    finally:
        await session.cleanup()
