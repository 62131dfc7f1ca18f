from fastapi import Header, HTTPException, Query, Request
from typing import Optional

from lsps1client.api.session import SessionManager
from lsps1client.lsp.errors import (
    ConfigurationError,
    OrderError,
    OrderValidationError,
    ParseError,
    TransportError,
)
from lsps1client.lsp.session import OrderSession


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_order_session(
    request: Request,
    session_id: Optional[str] = Header(None),
    lsp: Optional[str] = Query(None),
) -> OrderSession:
    """
    Get an order session.

    If session_id is provided, returns an existing session (if found).
    Otherwise, creates a new session for the requested LSP.
    """
    manager = get_session_manager(request)
    try:
        return manager.get_or_create_session(session_id=session_id, provider_slug=lsp)
    except OrderError as e:
        raise http_error(e)


def get_existing_session(
    request: Request,
    session_id: Optional[str] = Header(None),
) -> OrderSession:
    if not session_id:
        raise HTTPException(status_code=400, detail="session-id header required")
    session = get_session_manager(request).get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


def http_error(error: OrderError) -> HTTPException:
    if isinstance(error, (OrderValidationError, ConfigurationError)):
        return HTTPException(status_code=400, detail=error.message)
    if isinstance(error, TransportError):
        if error.status_code is not None and error.status_code < 500:
            return HTTPException(status_code=error.status_code, detail=error.message)
        return HTTPException(status_code=502, detail=error.message)
    if isinstance(error, ParseError):
        return HTTPException(status_code=502, detail=error.message)
    return HTTPException(status_code=500, detail=error.message)
