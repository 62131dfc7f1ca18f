from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional

from lsps1client.api.session import SessionManager
from lsps1client.api.routes import channels, lsp, orders
from lsps1client.settings import VERSION


def create_app(session_manager: Optional[SessionManager] = None) -> FastAPI:
    session_manager = session_manager or SessionManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await session_manager.start_maintenance()
        yield
        # Properly clean up all sessions
        await session_manager.shutdown()

    app = FastAPI(
        title="lsps1client API",
        description="API for buying inbound channels from LSPS1 "
        "Lightning service providers",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.session_manager = session_manager

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173", "http://127.0.0.1:3000", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(lsp.router)
    app.include_router(orders.router)
    app.include_router(channels.router)
    return app


app = create_app()
