import json
import pytest
from fastapi.testclient import TestClient

from lsps1client.api.app import create_app
from lsps1client.api.session import SessionManager
from lsps1client.lsp.errors import ConfigurationError
from lsps1client.lsp.session import OrderSession

from fakes import (
    FAST_POLLING,
    INVOICE,
    LSP_PUBKEY,
    NODE_PUBKEY,
    ORDER_ID,
    FakeNode,
    channel,
    status_payload,
)

OUTPOINT = '9f' * 32 + ':2'


@pytest.fixture
def node():
    return FakeNode(channels=[channel(LSP_PUBKEY, capacity=3000000)])


@pytest.fixture
def manager(fake_lsp, provider):
    def session_factory(provider_slug=None):
        if provider_slug not in (None, provider.slug):
            raise ConfigurationError(f'unknown LSP {provider_slug!r}')
        return OrderSession(
            provider=provider,
            client=fake_lsp.order_client(provider),
            polling_settings=FAST_POLLING,
        )

    return SessionManager(session_factory=session_factory)


@pytest.fixture
def client(manager):
    with TestClient(create_app(manager)) as client:
        yield client


def create(client, **body):
    body.setdefault('node_pubkey', NODE_PUBKEY)
    return client.post('/orders/create', json=body)


def test_providers(client):
    response = client.get('/lsp/providers')
    assert response.status_code == 200
    slugs = [p['slug'] for p in response.json()['providers']]
    assert 'megalith-lsp' in slugs


def test_info_creates_a_session(client, manager):
    response = client.get('/lsp/info')
    assert response.status_code == 200
    data = response.json()
    assert data['capabilities']['min_channel_sats'] == 150000
    assert data['capabilities']['max_channel_sats'] == 16000000
    assert data['session_id'] in manager.sessions


def test_unknown_lsp_is_a_bad_request(client):
    response = client.get('/lsp/info', params={'lsp': 'nope-lsp'})
    assert response.status_code == 400
    assert 'nope-lsp' in response.json()['detail']


def test_unreachable_lsp_is_a_bad_gateway(client, fake_lsp):
    fake_lsp.info_reply = (503, {'message': 'maintenance'})
    response = client.get('/lsp/info')
    assert response.status_code == 502


def test_create_order_and_follow_status(client, fake_lsp):
    fake_lsp.status_replies = [(200, status_payload('PAYMENT_PENDING'))]
    response = create(client, channel_size_sats=2000000)
    assert response.status_code == 200
    data = response.json()
    assert data['order']['order_id'] == ORDER_ID
    assert data['view']['invoice'] == INVOICE
    assert data['view']['state'] == 'CREATED'

    body = json.loads([r for r in fake_lsp.requests if r.method == 'POST'][0].content)
    assert body['lsp_balance_sat'] == '2000000'

    status = client.get('/orders/status', headers={'session-id': data['session_id']})
    assert status.status_code == 200
    assert status.json()['order_id'] == ORDER_ID
    assert status.json()['invoice'] == INVOICE


def test_session_is_reused(client, manager):
    first = client.get('/lsp/info').json()['session_id']
    second = client.get('/lsp/info', headers={'session-id': first}).json()['session_id']
    assert first == second
    assert len(manager.sessions) == 1


def test_out_of_range_order(client, fake_lsp):
    response = create(client, channel_size_sats=50000)
    assert response.status_code == 400
    assert 'outside of the LSP limits' in response.json()['detail']
    assert fake_lsp.calls('POST', '/order') == 0


def test_order_without_pubkey(client, fake_lsp):
    response = client.post('/orders/create', json={'channel_size_sats': 1000000})
    assert response.status_code == 400
    assert fake_lsp.calls('POST', '/order') == 0


def test_lsp_rejection_passes_through(client, fake_lsp):
    fake_lsp.create_reply = (422, {'message': 'channel expiry too long'})
    response = create(client)
    assert response.status_code == 422
    assert 'channel expiry too long' in response.json()['detail']


def test_status_needs_a_session(client):
    assert client.get('/orders/status').status_code == 400
    assert client.get('/orders/status', headers={'session-id': 'missing'}).status_code == 404


def test_status_before_any_order(client):
    session_id = client.get('/lsp/info').json()['session_id']
    response = client.get('/orders/status', headers={'session-id': session_id})
    assert response.status_code == 404


def test_one_off_status_lookup(client, fake_lsp):
    fake_lsp.status_replies = [(200, status_payload('COMPLETED', OUTPOINT))]
    session_id = client.get('/lsp/info').json()['session_id']
    response = client.get(
        '/orders/status',
        params={'order_id': ORDER_ID},
        headers={'session-id': session_id},
    )
    assert response.status_code == 200
    data = response.json()
    assert data['state'] == 'COMPLETED'
    assert data['funding_outpoint'] == OUTPOINT
    assert data['explorer_url'].endswith('#vout=2')


def test_listen_status_streams_until_complete(client, fake_lsp):
    fake_lsp.status_replies = [
        (200, status_payload('PAID')),
        (200, status_payload('COMPLETED', OUTPOINT)),
    ]
    session_id = create(client).json()['session_id']

    with client.stream(
            'GET',
            '/orders/listen-status',
            headers={'session-id': session_id}) as response:
        assert response.status_code == 200
        assert response.headers['content-type'].startswith('application/x-ndjson')
        lines = [json.loads(line) for line in response.iter_lines() if line]

    views = [line for line in lines if 'state' in line]
    assert views[-1]['state'] == 'COMPLETED'
    assert views[-1]['is_terminal']
    assert views[-1]['invoice'] == INVOICE
    assert views[-1]['funding_outpoint'] == OUTPOINT


def test_listen_status_without_order(client):
    session_id = client.get('/lsp/info').json()['session_id']
    response = client.get('/orders/listen-status', headers={'session-id': session_id})
    assert response.status_code == 404


def test_channels_without_node(client):
    response = client.get('/channels')
    assert response.status_code == 503


def test_channels_with_node(fake_lsp, provider, node):
    manager = SessionManager(session_factory=lambda slug=None: OrderSession(
        provider=provider,
        client=fake_lsp.order_client(provider),
        node=node,
        polling_settings=FAST_POLLING,
    ))
    with TestClient(create_app(manager)) as client:
        response = client.get('/channels')
    assert response.status_code == 200
    data = response.json()
    assert data['lsp_pubkeys'] == [LSP_PUBKEY]
    assert [c['capacity_sats'] for c in data['channels']] == [3000000]
    assert node.closed
