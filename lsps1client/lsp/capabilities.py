import logging
from typing import Any, List, Optional

from lsps1client.blip51.info import LspCapabilities
from lsps1client.lsp.adapters import (
    CAPABILITY_FIELDS,
    lookup,
    lookup_bool,
    lookup_int,
    lookup_number,
)
from lsps1client.settings import CapabilitySettings

logger = logging.getLogger(name=__name__)

PPM_PER_PERCENT = 10000


class CapabilityResolver:
    """
    Turns whatever an LSP returns from get_info into channel size bounds and
    a fee rate. Absent, malformed or nonsensical values fall back to the
    configured defaults, resolve() itself never raises.
    """
    def __init__(self, settings: Optional[CapabilitySettings] = None):
        self.settings = settings or CapabilitySettings()

    def resolve(
            self,
            document: Any,
            default_channel_sats: Optional[int] = None) -> LspCapabilities:
        if not isinstance(document, dict):
            if document is not None:
                logger.warning(
                    f'capability document is a {type(document).__name__}, '
                    'using defaults')
            document = {}

        min_sats, max_sats = self._channel_bounds(document)
        suggested = default_channel_sats or self.settings.default_channel_sats

        return LspCapabilities(
            min_channel_sats=min_sats,
            max_channel_sats=max_sats,
            fee_rate_percent=self._fee_rate_percent(document),
            supports_zero_conf=lookup_bool(
                document, CAPABILITY_FIELDS['supports_zero_conf']),
            supports_zero_reserve=lookup_bool(
                document, CAPABILITY_FIELDS['supports_zero_reserve']),
            default_channel_sats=min(max(suggested, min_sats), max_sats),
            min_required_channel_confirmations=self._non_negative_int(
                document, 'min_required_channel_confirmations'),
            min_funding_confirms_within_blocks=self._non_negative_int(
                document, 'min_funding_confirms_within_blocks'),
            max_channel_expiry_blocks=self._non_negative_int(
                document, 'max_channel_expiry_blocks'),
            uris=self._uris(document),
        )

    def _channel_bounds(self, document: dict) -> tuple[int, int]:
        min_sats = lookup_int(document, CAPABILITY_FIELDS['min_channel_sats'])
        max_sats = lookup_int(document, CAPABILITY_FIELDS['max_channel_sats'])
        if min_sats is None or min_sats <= 0:
            min_sats = self.settings.default_min_channel_sats
        if max_sats is None or max_sats <= 0:
            max_sats = self.settings.default_max_channel_sats

        # the platform floor beats whatever the LSP advertises
        min_sats = max(min_sats, self.settings.hard_floor_sats)
        if max_sats < min_sats:
            logger.warning(
                f'LSP max channel size {max_sats} below min {min_sats}, '
                'raising max to min')
            max_sats = min_sats
        return min_sats, max_sats

    def _fee_rate_percent(self, document: dict) -> float:
        percent = lookup_number(document, CAPABILITY_FIELDS['fee_rate_percent'])
        if percent is not None and percent >= 0:
            return percent
        ppm = lookup_number(document, CAPABILITY_FIELDS['fee_rate_ppm'])
        if ppm is not None and ppm >= 0:
            return ppm / PPM_PER_PERCENT
        return self.settings.default_fee_rate_percent

    @staticmethod
    def _non_negative_int(document: dict, field: str) -> int:
        value = lookup_int(document, CAPABILITY_FIELDS[field])
        if value is None or value < 0:
            return 0
        return value

    @staticmethod
    def _uris(document: dict) -> List[str]:
        uris = lookup(document, CAPABILITY_FIELDS['uris'])
        if isinstance(uris, str):
            uris = [uris]
        if not isinstance(uris, list):
            return []
        return [uri for uri in uris if isinstance(uri, str) and uri.strip()]
