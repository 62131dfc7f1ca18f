from abc import ABC, abstractmethod
from typing import Coroutine, Optional

from lsps1client.lsp.session import OrderSession
from lsps1client.settings import Settings

import logging
logger = logging.getLogger(name=__name__)


class BaseCLI(ABC):
    _running: bool = True
    session: OrderSession

    def __init__(
            self,
            settings: Optional[Settings] = None,
            session: Optional[OrderSession] = None):
        self.settings = settings or Settings()
        self.session = session or OrderSession.from_settings(settings=self.settings)

    @abstractmethod
    def run(self) -> Coroutine[None, None, int]:
        pass

    async def startup(self) -> None:
        await self.session.initialize()

    async def shutdown(self) -> None:
        """stop pollers and close http clients"""
        self._running = False
        await self.session.cleanup()
