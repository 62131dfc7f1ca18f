from abc import ABC, abstractmethod
from typing import Coroutine

from lsps1client.ln.requesthandlers import (
    ConnectPeerResponse,
    GetNodeIdResponse,
    ListChannelsResponse,
    NodeStatusResponse,
)


class NodeBase(ABC):
    """
    The slice of a lightning node the order flow needs: who we are, a peer
    connection to the LSP and the list of open channels. Failures come back
    on the response's error_message rather than as exceptions.
    """
    @abstractmethod
    def check_node_connection(self) -> Coroutine[None, None, NodeStatusResponse]:
        pass

    @abstractmethod
    def get_node_id(self) -> Coroutine[None, None, GetNodeIdResponse]:
        pass

    @abstractmethod
    def connect_peer(
            self,
            pubkey_uri: str) -> Coroutine[None, None, ConnectPeerResponse]:
        pass

    @abstractmethod
    def list_channels(self) -> Coroutine[None, None, ListChannelsResponse]:
        pass

    @abstractmethod
    def close_rest_client(self) -> Coroutine[None, None, None]:
        pass
