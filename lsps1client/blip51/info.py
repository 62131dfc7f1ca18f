"""
resolved form of
https://github.com/lightning/blips/blob/master/blip-0051.md#1-lsps1get_info
"""
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List

from lsps1client.blip51.utils import estimate_fee_sats, pubkey_from_uri
from lsps1client.settings import CapabilitySettings


class LspCapabilities(BaseModel):
    model_config = ConfigDict(frozen=True)

    min_channel_sats: int = CapabilitySettings().default_min_channel_sats
    max_channel_sats: int = CapabilitySettings().default_max_channel_sats
    fee_rate_percent: float = CapabilitySettings().default_fee_rate_percent
    supports_zero_conf: bool = Field(default=False)
    supports_zero_reserve: bool = Field(default=False)
    default_channel_sats: int = CapabilitySettings().default_channel_sats
    min_required_channel_confirmations: int = Field(default=0)
    min_funding_confirms_within_blocks: int = Field(default=0)
    max_channel_expiry_blocks: int = Field(default=0)
    uris: List[str] = Field(default_factory=list)

    @model_validator(mode='after')
    def check_bounds(self):
        if self.min_channel_sats > self.max_channel_sats:
            raise ValueError(
                f'min_channel_sats {self.min_channel_sats} > '
                f'max_channel_sats {self.max_channel_sats}')
        if not self.contains(self.default_channel_sats):
            raise ValueError(
                f'default_channel_sats {self.default_channel_sats} outside '
                f'[{self.min_channel_sats}, {self.max_channel_sats}]')
        return self

    @property
    def lsp_pubkeys(self) -> List[str]:
        pubkeys = []
        for uri in self.uris:
            pubkey = pubkey_from_uri(uri)
            if pubkey and pubkey not in pubkeys:
                pubkeys.append(pubkey)
        return pubkeys

    def contains(self, channel_size_sats: int) -> bool:
        return self.min_channel_sats <= channel_size_sats <= self.max_channel_sats

    def estimate_fee_sats(self, channel_size_sats: int) -> int:
        return estimate_fee_sats(channel_size_sats, self.fee_rate_percent)
