from pydantic import BaseModel, Field
from typing import List, Optional

from lsps1client.blip51.channel import ChannelRecord
from lsps1client.blip51.mixins import ErrorMessageMixin


class NodeStatusResponse(BaseModel, ErrorMessageMixin):
    healthy: bool
    synced_to_chain: Optional[bool] = None
    synced_to_graph: Optional[bool] = None


class ConnectPeerResponse(BaseModel, ErrorMessageMixin):
    connected: bool


class GetNodeIdResponse(BaseModel, ErrorMessageMixin):
    pubkey: str
    alias: str


class ListChannelsResponse(BaseModel, ErrorMessageMixin):
    channels: List[ChannelRecord] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error_message is None
