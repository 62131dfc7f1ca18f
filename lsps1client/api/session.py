import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from lsps1client.lsp.session import OrderSession
from lsps1client.settings import ApiSettings

logger = logging.getLogger(__name__)

SessionFactory = Callable[[Optional[str]], OrderSession]


def default_session_factory(provider_slug: Optional[str] = None) -> OrderSession:
    return OrderSession.from_settings(provider_slug=provider_slug)


class SessionManager:
    """
    Holds the order sessions of API clients. Each session owns its pollers
    and http clients; idle sessions are cleaned up by a maintenance task.
    """

    def __init__(self, session_factory: SessionFactory = default_session_factory):
        self.session_factory = session_factory
        self.sessions: Dict[str, OrderSession] = {}
        self.last_accessed: Dict[str, datetime] = {}
        self.maintenance_task: Optional[asyncio.Task] = None

    def create_session(self, provider_slug: Optional[str] = None) -> OrderSession:
        """Create a new session regardless of existing sessions"""
        session = self.session_factory(provider_slug)
        self.sessions[session.session_id] = session
        self.last_accessed[session.session_id] = datetime.now()
        logger.info(
            f'Created session {session.session_id} for {session.provider.name}')
        return session

    def get_session(self, session_id: str) -> Optional[OrderSession]:
        """Get a session by its ID"""
        session = self.sessions.get(session_id)
        if session:
            self.last_accessed[session_id] = datetime.now()
        return session

    def get_or_create_session(
            self,
            session_id: Optional[str] = None,
            provider_slug: Optional[str] = None) -> OrderSession:
        if session_id:
            session = self.get_session(session_id)
            if session:
                return session
        return self.create_session(provider_slug)

    def is_expired(self, session_id: str, max_idle_minutes: int) -> bool:
        last_accessed = self.last_accessed.get(session_id, datetime.now())
        return datetime.now() - last_accessed > timedelta(minutes=max_idle_minutes)

    async def cleanup_session(self, session_id: str) -> bool:
        """Clean up and remove a specific session"""
        session = self.sessions.pop(session_id, None)
        self.last_accessed.pop(session_id, None)
        if not session:
            return False
        await session.cleanup()
        return True

    async def cleanup_expired_sessions(
            self,
            max_idle_minutes: int = ApiSettings().max_idle_minutes) -> int:
        expired_sessions = [
            session_id for session_id in list(self.sessions)
            if self.is_expired(session_id, max_idle_minutes)
        ]

        count = 0
        for session_id in expired_sessions:
            if await self.cleanup_session(session_id):
                count += 1

        if count > 0:
            logger.info(f"Cleaned up {count} expired sessions")

        return count

    async def start_maintenance(
            self,
            interval_minutes: int = ApiSettings().interval_minutes,
            max_idle_minutes: int = ApiSettings().max_idle_minutes):
        """Start a background task to clean up expired sessions"""
        async def maintenance_loop():
            while True:
                await asyncio.sleep(interval_minutes * 60)
                try:
                    await self.cleanup_expired_sessions(max_idle_minutes)
                except Exception as e:
                    logger.error(f"Error in session maintenance: {e}")

        if self.maintenance_task is None or self.maintenance_task.done():
            self.maintenance_task = asyncio.create_task(maintenance_loop())

    async def stop_maintenance(self):
        if self.maintenance_task:
            self.maintenance_task.cancel()
            try:
                await self.maintenance_task
            except asyncio.CancelledError:
                pass
            self.maintenance_task = None

    async def shutdown(self):
        """Clean up all sessions and stop maintenance"""
        await self.stop_maintenance()
        for session_id in list(self.sessions):
            await self.cleanup_session(session_id)
