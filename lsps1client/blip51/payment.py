"""
https://github.com/lightning/blips/blob/master/blip-0051.md#3-payment
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class PaymentInfo(BaseModel):
    """part of order response, flattened across provider envelopes"""
    model_config = ConfigDict(frozen=True)

    invoice: Optional[str] = Field(default=None)
    order_total_sat: Optional[int] = Field(default=None)
    fee_total_sat: Optional[int] = Field(default=None)

    @property
    def lightning_uri(self) -> Optional[str]:
        if not self.invoice:
            return None
        return f'lightning:{self.invoice}'

    def merged_with(self, newer: "PaymentInfo") -> "PaymentInfo":
        """fields present in `newer` win, the rest are kept"""
        update = {
            k: v for k, v in newer.model_dump().items() if v is not None
        }
        return self.model_copy(update=update)
