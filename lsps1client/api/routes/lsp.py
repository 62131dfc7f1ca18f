from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import List

from lsps1client.api.utils import get_order_session, http_error
from lsps1client.blip51.info import LspCapabilities
from lsps1client.lsp.errors import OrderError
from lsps1client.lsp.providers import LspProvider, available_providers
from lsps1client.lsp.session import OrderSession
from lsps1client.settings import ProviderSettings


class ProvidersResponse(BaseModel):
    default: str
    providers: List[LspProvider]


class InfoResponse(BaseModel):
    session_id: str
    provider: LspProvider
    capabilities: LspCapabilities


router = APIRouter(prefix="/lsp", tags=["LSP"])


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers():
    """LSPs that orders can be placed with"""
    return ProvidersResponse(
        default=ProviderSettings().lsp_provider,
        providers=available_providers(),
    )


@router.get("/info", response_model=InfoResponse)
async def get_info(session: OrderSession = Depends(get_order_session)):
    """Channel size bounds and fee rate of the session's LSP"""
    try:
        capabilities = await session.initialize()
    except OrderError as e:
        raise http_error(e)
    return InfoResponse(
        session_id=session.session_id,
        provider=session.provider,
        capabilities=capabilities,
    )
