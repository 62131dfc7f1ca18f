"""
https://github.com/lightning/blips/blob/master/blip-0051.md#4-channel
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ChannelInfo(BaseModel):
    """part of an order once the LSP has broadcast the funding transaction"""
    model_config = ConfigDict(frozen=True)

    funding_outpoint: str
    funded_at: Optional[str] = Field(default=None)
    expires_at: Optional[str] = Field(default=None)

    @property
    def txid(self) -> str:
        return self.funding_outpoint.split(':')[0]

    @property
    def vout(self) -> int:
        parts = self.funding_outpoint.split(':')
        if len(parts) > 1 and parts[1].isdigit():
            return int(parts[1])
        return 0


class ChannelRecord(BaseModel):
    """one of the customer node's channels, rebuilt on every refresh"""
    model_config = ConfigDict(frozen=True)

    remote_pubkey: str
    capacity_sats: int = 0
    local_balance_sats: int = 0
    active: bool = False
    public: bool = True
    channel_point: Optional[str] = Field(default=None)

    def is_with(self, lsp_pubkey: str) -> bool:
        return bool(lsp_pubkey) and self.remote_pubkey.startswith(lsp_pubkey)
