import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List

from lsps1client.api.utils import get_order_session, http_error
from lsps1client.blip51.channel import ChannelRecord
from lsps1client.lsp.errors import OrderError
from lsps1client.lsp.session import OrderSession

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/channels", tags=["Channels"])


class ChannelsResponse(BaseModel):
    session_id: str
    lsp_pubkeys: List[str]
    channels: List[ChannelRecord]


@router.get("", response_model=ChannelsResponse)
async def list_lsp_channels(session: OrderSession = Depends(get_order_session)):
    """The node's channels with the session's LSP"""
    if session.channel_poller is None:
        raise HTTPException(status_code=503, detail="No lightning node configured")
    try:
        await session.initialize()
    except OrderError as e:
        raise http_error(e)

    channels = await session.refresh_channels()
    return ChannelsResponse(
        session_id=session.session_id,
        lsp_pubkeys=session.channel_poller.known_pubkeys,
        channels=channels,
    )
