import logging
from typing import Union

from lsps1client.settings import LogLevel

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class LoggerSetup:
    def __init__(self, log_level: Union[LogLevel, str]):
        self.log_level = log_level.value if isinstance(log_level, LogLevel) else log_level

    def setup_logging(self):
        level = getattr(logging, str(self.log_level).upper(), logging.INFO)
        logging.basicConfig(format=LOG_FORMAT, level=level)

        # request lines from httpx would drown out the poller logs
        logging.getLogger("httpx").setLevel(logging.ERROR)
        logging.getLogger("httpcore").setLevel(logging.ERROR)
