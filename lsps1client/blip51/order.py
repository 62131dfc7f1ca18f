"""
https://github.com/lightning/blips/blob/master/blip-0051.md#2-lsps1create_order
"""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, Optional

from lsps1client.blip51.channel import ChannelInfo
from lsps1client.blip51.mixins import ErrorMessageMixin
from lsps1client.blip51.payment import PaymentInfo
from lsps1client.settings import OrderSettings, PUBKEY_RE


class OrderState(str, Enum):
    """
    canonical order lifecycle, PAID doubles as the generic "processing"
    state for anything a provider reports that we don't recognise
    """
    CREATED = 'CREATED'
    PAYMENT_PENDING = 'PAYMENT_PENDING'
    PAID = 'PAID'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'

    @classmethod
    def from_provider(cls, provider_state: Optional[str]) -> "OrderState":
        mapping = {
            "CREATED": cls.CREATED,
            "PAYMENT_PENDING": cls.PAYMENT_PENDING,
            "OPEN": cls.PAYMENT_PENDING,
            "EXPECT_PAYMENT": cls.PAYMENT_PENDING,
            "PAID": cls.PAID,
            "PAYMENT_RECEIVED": cls.PAID,
            "HOLD": cls.PAID,
            "COMPLETED": cls.COMPLETED,
            "SUCCESS": cls.COMPLETED,
            "FAILED": cls.FAILED,
            "ERROR": cls.FAILED,
        }
        if not isinstance(provider_state, str):
            return cls.PAID
        return mapping.get(provider_state.strip().upper(), cls.PAID)

    @property
    def is_terminal(self) -> bool:
        return self in (OrderState.COMPLETED, OrderState.FAILED)

    @property
    def awaiting_payment(self) -> bool:
        return self in (OrderState.CREATED, OrderState.PAYMENT_PENDING)

    def __str__(self):
        return self.name


class ChannelOrderRequest(BaseModel):
    """
    what we ask the LSP for, the channel size is the LSP side balance, our
    side always starts empty
    """
    model_config = ConfigDict(frozen=True)

    channel_size_sats: int = OrderSettings().channel_size_sat
    node_pubkey: str
    required_channel_confirmations: int = OrderSettings().required_channel_confirmations
    funding_confirms_within_blocks: int = OrderSettings().funding_confirms_within_blocks
    expiry_blocks: int = OrderSettings().channel_expiry_blocks
    announce_channel: bool = OrderSettings().announce_channel
    token: str = OrderSettings().token

    @field_validator('node_pubkey', mode='before')
    def validate_node_pubkey(cls, v: Any) -> str:
        if not isinstance(v, str) or not PUBKEY_RE.fullmatch(v.strip()):
            raise ValueError("node pubkey must be exactly 66 hex characters")
        return v.strip()

    @field_validator('channel_size_sats', 'expiry_blocks')
    def validate_greater_than_zero(cls, v: int) -> int:
        if v > 0:
            return v
        raise ValueError(f'{v} must be greater than 0')

    @field_validator('required_channel_confirmations', 'funding_confirms_within_blocks')
    def validate_greater_equal_to_zero(cls, v: int) -> int:
        if v >= 0:
            return v
        raise ValueError(f'{v} must be greater than or equal to 0')


class Order(BaseModel, ErrorMessageMixin):
    """
    an LSP order as we track it, never mutated in place: every status update
    produces a new instance through transition_to
    """
    model_config = ConfigDict(frozen=True)

    order_id: Optional[str] = Field(default=None)
    state: OrderState = OrderState.CREATED
    payment: PaymentInfo = Field(default_factory=PaymentInfo)
    channel_info: Optional[ChannelInfo] = Field(default=None)
    raw: Optional[Dict[str, Any]] = Field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def invoice(self) -> Optional[str]:
        return self.payment.invoice

    @property
    def funding_outpoint(self) -> Optional[str]:
        if self.channel_info is None:
            return None
        return self.channel_info.funding_outpoint

    def transition_to(self, update: "Order") -> "Order":
        """
        terminal orders never move; otherwise the update replaces this order,
        keeping whatever the update didn't report (status endpoints usually
        omit the invoice)
        """
        if self.is_terminal:
            return self
        return Order(
            order_id=update.order_id or self.order_id,
            state=update.state,
            payment=self.payment.merged_with(update.payment),
            channel_info=update.channel_info or self.channel_info,
            error_message=update.error_message,
            raw=update.raw,
        )
