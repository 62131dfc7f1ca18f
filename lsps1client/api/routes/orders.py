import asyncio
import json
import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from typing import AsyncGenerator, Optional

from lsps1client.api.utils import get_existing_session, get_order_session, http_error
from lsps1client.blip51.order import Order
from lsps1client.lsp.errors import OrderError
from lsps1client.lsp.reconciler import OrderView, reconcile
from lsps1client.lsp.session import OrderSession
from lsps1client.settings import ApiSettings

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])


class OrderCreateRequest(BaseModel):
    channel_size_sats: Optional[int] = None
    node_pubkey: Optional[str] = None
    token: Optional[str] = None
    announce_channel: Optional[bool] = None
    required_channel_confirmations: Optional[int] = None
    funding_confirms_within_blocks: Optional[int] = None
    expiry_blocks: Optional[int] = None


class OrderCreateResponse(BaseModel):
    session_id: str
    order: Order
    view: OrderView


@router.post("/create", response_model=OrderCreateResponse)
async def create_order(
    request: OrderCreateRequest,
    session: OrderSession = Depends(get_order_session)
):
    """Create a new order with the session's LSP and start tracking it"""
    logger.info(f"Order request received: {request.model_dump(exclude_none=True)}")
    try:
        order = await session.create_order(**request.model_dump())
    except OrderError as e:
        logger.warning(f"Order request rejected: {e.message}")
        raise http_error(e)

    return OrderCreateResponse(
        session_id=session.session_id,
        order=order,
        view=session.view(),
    )


@router.get("/status", response_model=OrderView)
async def get_order_status(
    order_id: Optional[str] = None,
    session: OrderSession = Depends(get_existing_session)
):
    """
    The reconciled view of this session's order, or a one-off lookup of
    another order when order_id is given
    """
    if order_id:
        try:
            order = await session.check_order(order_id)
        except OrderError as e:
            raise http_error(e)
        return reconcile(order, None, [])

    if session.reconciler.created is None:
        raise HTTPException(status_code=404, detail="No order created in this session")
    return session.view()


async def generate_order_views(
        session: OrderSession,
        max_wait_time: float,
        heartbeat_seconds: float) -> AsyncGenerator[str, None]:
    """
    newline delimited json: the current view, then every changed view until
    the order is terminal, with heartbeats in between
    """
    logger.info(f"Starting order status stream for session {session.session_id}")
    loop = asyncio.get_running_loop()
    max_wait_time_seconds = max_wait_time * 60
    start_time = loop.time()

    view = session.view()
    yield view.model_dump_json() + '\n'
    last_sent = view

    while not view.is_terminal:
        elapsed_time = loop.time() - start_time
        remaining = max_wait_time_seconds - elapsed_time
        if remaining <= 0:
            logger.info(f"Stream timeout reached after {elapsed_time:.1f}s")
            yield json.dumps({
                "error_message": f"Stream timeout after {max_wait_time_seconds} seconds"
            }) + '\n'
            break

        view = await session.wait_for_update(timeout=min(heartbeat_seconds, remaining))
        if view != last_sent:
            yield view.model_dump_json() + '\n'
            last_sent = view
        else:
            yield json.dumps({
                "elapsed_time": round(loop.time() - start_time, 1),
                "waiting_for_update": True,
            }) + '\n'

    logger.info(f"Order status stream for session {session.session_id} ended")


@router.get("/listen-status")
async def stream_order_status(
        max_wait_time: float = ApiSettings().max_listen_minutes,
        session: OrderSession = Depends(get_existing_session)):
    """Stream reconciled order views until the order completes or fails"""
    if session.reconciler.created is None:
        raise HTTPException(status_code=404, detail="No order created in this session")

    return StreamingResponse(
        generate_order_views(session, max_wait_time, ApiSettings().heartbeat_seconds),
        media_type="application/x-ndjson",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        }
    )
