from typing import Optional


class OrderError(Exception):
    """base for everything an order round trip can fail with"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class OrderValidationError(OrderError):
    """rejected locally, nothing was sent to the LSP"""


class OutOfRangeError(OrderValidationError):
    def __init__(self, channel_size_sats: int, min_sats: int, max_sats: int):
        super().__init__(
            f'channel size {channel_size_sats} sats outside of the LSP '
            f'limits [{min_sats}, {max_sats}]')
        self.channel_size_sats = channel_size_sats
        self.min_sats = min_sats
        self.max_sats = max_sats


class MissingIdentityError(OrderValidationError):
    pass


class TransportError(OrderError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(OrderError):
    def __init__(self, message: str, raw_payload: Optional[str] = None):
        super().__init__(message)
        self.raw_payload = raw_payload


class ConfigurationError(OrderError):
    pass
