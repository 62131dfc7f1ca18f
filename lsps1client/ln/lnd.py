import codecs
import httpx
import logging
from typing import Any, Dict, Optional

from lsps1client.blip51.channel import ChannelRecord
from lsps1client.ln.base import NodeBase
from lsps1client.ln.requesthandlers import (
    ConnectPeerResponse,
    GetNodeIdResponse,
    ListChannelsResponse,
    NodeStatusResponse,
)
from lsps1client.lsp.errors import ConfigurationError
from lsps1client.settings import LnBackendSettings, LnImplementation

logger = logging.getLogger(name=__name__)


class LndBackend(NodeBase):
    def __init__(
            self,
            rest_host: str,
            permissions_file_path: Optional[str] = None,
            cert_file_path: Optional[str] = None,
            http_client: Optional[httpx.AsyncClient] = None):

        self.rest_host = rest_host
        self.macaroon_path = permissions_file_path
        self.headers = {}
        if self.macaroon_path:
            with open(self.macaroon_path, 'rb') as f:
                self.macaroon = codecs.encode(f.read(), 'hex')
            self.headers['Grpc-Metadata-macaroon'] = self.macaroon
        self.cert_path = cert_file_path
        if http_client is None:
            timeout = httpx.Timeout(connect=5.0, read=30.0, write=5.0, pool=None)
            http_client = httpx.AsyncClient(
                base_url=self.rest_host,
                verify=self.cert_path if self.cert_path else True,
                headers=self.headers,
                timeout=timeout,
            )
        self.http_client = http_client

    async def check_node_connection(self) -> NodeStatusResponse:
        """
        https://lightning.engineering/api-docs/api/lnd/lightning/get-info/

        /lnrpc.Lightning/GetInfo
        """
        try:
            r = await self.http_client.get('/v1/getinfo')
        except httpx.HTTPError as error:
            msg = f'could not connect to {self.rest_host}, {error}'
            logger.error(msg)
            return NodeStatusResponse(healthy=False, error_message=msg)

        try:
            data = r.json()
        except ValueError:
            data = None
        if r.is_error or not isinstance(data, dict):
            return NodeStatusResponse(
                healthy=False,
                error_message=r.text[:200]
            )

        synced_to_chain = data.get('synced_to_chain')
        synced_to_graph = data.get('synced_to_graph')
        if not synced_to_chain or not synced_to_graph:
            return NodeStatusResponse(
                healthy=False,
                synced_to_chain=synced_to_chain,
                synced_to_graph=synced_to_graph,
                error_message=f"synced to chain: {synced_to_chain}, "
                f"synced to graph: {synced_to_graph}, "
                "cannot proceed"
            )

        return NodeStatusResponse(
            healthy=True,
            synced_to_chain=synced_to_chain,
            synced_to_graph=synced_to_graph,
        )

    async def close_rest_client(self) -> None:
        try:
            await self.http_client.aclose()
        except RuntimeError as e:
            logger.error(f"Could not close rest client: {e}")

    async def get_node_id(self) -> GetNodeIdResponse:
        """
        /lnrpc.Lightning/GetInfo
        """
        try:
            r = await self.http_client.get('/v1/getinfo')
        except httpx.HTTPError as e:
            msg = f'failed to get info: {e}'
            logger.error(msg)
            return GetNodeIdResponse(pubkey='', alias='', error_message=msg)

        if r.is_error:
            logger.error(f'error in getinfo response: {r.text[:200]}')
            return GetNodeIdResponse(
                pubkey='',
                alias='',
                error_message=r.text
            )

        try:
            data = r.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            msg = f'unexpected getinfo response: {r.text[:200]}'
            logger.error(msg)
            return GetNodeIdResponse(pubkey='', alias='', error_message=msg)

        pubkey = data.get('identity_pubkey')
        if pubkey:
            return GetNodeIdResponse(pubkey=pubkey, alias=data.get('alias') or '')

        return GetNodeIdResponse(
            pubkey='',
            alias='',
            error_message='could not getinfo'
        )

    async def connect_peer(
            self,
            pubkey_uri: str,
            timeout: int = 15,
            retry_connect: bool = False) -> ConnectPeerResponse:
        """
        https://lightning.engineering/api-docs/api/lnd/lightning/connect-peer/

        /lnrpc.Lightning/ConnectPeer
        """
        uri_components = pubkey_uri.split('@')
        if len(uri_components) != 2:
            return ConnectPeerResponse(
                connected=False,
                error_message=f'{pubkey_uri} is not a pubkey@host:port uri'
            )
        data = {
            'addr': {
                'pubkey': uri_components[0],
                'host': uri_components[1],
            },
            'perm': retry_connect,
            'timeout': timeout
        }
        try:
            r = await self.http_client.post('/v1/peers', json=data)
        except httpx.HTTPError as e:
            msg = f'could not connect to peer {pubkey_uri}'
            logger.error(msg)
            logger.error(f'connect peer error: {e}')
            return ConnectPeerResponse(
                connected=False,
                error_message=msg
            )

        if r.is_error:
            try:
                msg = r.json().get('message') or ''
            except ValueError:
                msg = r.text
            if 'already connected to peer' in msg:
                connected = True
                error_message = None
            elif 'timeout' in msg:
                connected = False
                error_message = f'connection try to {pubkey_uri} timed out'
            elif 'EOF' in msg:
                connected = False
                error_message = 'pubkey uri error or node does not exist'
            elif msg:
                connected = False
                error_message = msg
            else:
                connected = False
                error_message = 'unknown error occurred'
            return ConnectPeerResponse(
                connected=connected,
                error_message=error_message
            )

        return ConnectPeerResponse(connected=True)

    @staticmethod
    def _channel_record(channel: Dict[str, Any]) -> ChannelRecord:
        return ChannelRecord(
            remote_pubkey=channel.get('remote_pubkey', ''),
            capacity_sats=int(channel.get('capacity') or 0),
            local_balance_sats=int(channel.get('local_balance') or 0),
            active=bool(channel.get('active', False)),
            public=not channel.get('private', False),
            channel_point=channel.get('channel_point'),
        )

    async def list_channels(self) -> ListChannelsResponse:
        """
        https://lightning.engineering/api-docs/api/lnd/lightning/list-channels/

        /lnrpc.Lightning/ListChannels
        """
        try:
            r = await self.http_client.get('/v1/channels')
        except httpx.HTTPError as e:
            msg = f'could not list channels from {self.rest_host}: {e}'
            logger.error(msg)
            return ListChannelsResponse(error_message=msg)

        if r.is_error:
            logger.error(f'error in listchannels response: {r.text[:200]}')
            return ListChannelsResponse(error_message=r.text[:200])

        try:
            channels = [
                self._channel_record(c) for c in r.json().get('channels', [])
            ]
        except (ValueError, TypeError, AttributeError) as e:
            msg = f'unexpected listchannels response: {e}'
            logger.error(msg)
            return ListChannelsResponse(error_message=msg)

        return ListChannelsResponse(channels=channels)


def get_node_backend(settings: Optional[LnBackendSettings] = None) -> Optional[NodeBase]:
    """node backend from settings, None when no node is configured"""
    settings = settings or LnBackendSettings()
    if not settings.configured:
        return None
    if settings.node == LnImplementation.LND:
        return LndBackend(
            rest_host=settings.rest_host.unicode_string(),
            permissions_file_path=str(settings.permissions_file_path),
            cert_file_path=str(settings.cert_file_path) if settings.cert_file_path else None,
        )
    raise ConfigurationError(f'{settings.node.value} node backend not supported')
