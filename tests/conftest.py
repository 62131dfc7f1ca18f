import pytest
import pytest_asyncio

from lsps1client.lsp.messages import MessageBus
from lsps1client.lsp.providers import LspProvider

from fakes import BusRecorder, FakeLsp


@pytest.fixture
def provider():
    return LspProvider(
        slug='test-lsp',
        name='Test LSP',
        url='https://lsp.test/api/v1',
    )


@pytest.fixture
def fake_lsp():
    return FakeLsp()


@pytest.fixture
def bus():
    return MessageBus()


@pytest.fixture
def recorder(bus):
    return BusRecorder(bus)


@pytest_asyncio.fixture
async def order_client(fake_lsp, provider):
    client = fake_lsp.order_client(provider)
    yield client
    await client.http_client.aclose()
