import logging
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Callable, List, Optional

from lsps1client.blip51.channel import ChannelRecord
from lsps1client.blip51.order import Order, OrderState
from lsps1client.blip51.utils import explorer_url
from lsps1client.lsp.messages import (
    ChannelsUpdated,
    MessageBus,
    MessageKind,
    OrderCreated,
    OrderStatusUpdated,
)

logger = logging.getLogger(name=__name__)

STATUS_MESSAGES = {
    OrderState.CREATED: 'Order created, waiting for the invoice to be paid',
    OrderState.PAYMENT_PENDING: 'Waiting for the invoice to be paid',
    OrderState.PAID: 'Payment received, the LSP is opening your channel',
    OrderState.COMPLETED: 'Channel funding transaction broadcast',
    OrderState.FAILED: 'The LSP could not complete this order',
}
NO_ORDER_MESSAGE = 'No order yet'


class ViewSource(str, Enum):
    STATUS = 'status'
    CREATION = 'creation'
    NONE = 'none'


class OrderView(BaseModel):
    """everything a frontend needs to show where an order stands"""
    model_config = ConfigDict(frozen=True)

    order_id: Optional[str] = None
    state: Optional[OrderState] = None
    invoice: Optional[str] = None
    order_total_sat: Optional[int] = None
    fee_total_sat: Optional[int] = None
    funding_outpoint: Optional[str] = None
    explorer_url: Optional[str] = None
    error_message: Optional[str] = None
    channel_data: List[ChannelRecord] = Field(default_factory=list)
    source: ViewSource = ViewSource.NONE
    is_terminal: bool = False
    status_message: str = NO_ORDER_MESSAGE


def reconcile(
        status: Optional[Order],
        created: Optional[Order],
        channels: Optional[List[ChannelRecord]] = None) -> OrderView:
    """
    merge the latest status poll, the order creation result and the latest
    channel list into one view; no I/O, same inputs give the same view
    """
    channels = list(channels or [])
    if status is None and created is None:
        return OrderView(channel_data=channels)

    order = status if status is not None else created
    source = ViewSource.STATUS if status is not None else ViewSource.CREATION

    # status responses often leave out the invoice and totals
    payment = order.payment
    if created is not None and order is not created:
        payment = created.payment.merged_with(payment)

    funding_outpoint = order.funding_outpoint
    status_message = STATUS_MESSAGES[order.state]
    if order.state == OrderState.FAILED and order.error_message:
        status_message = f'{status_message}: {order.error_message}'

    return OrderView(
        order_id=order.order_id or (created.order_id if created else None),
        state=order.state,
        invoice=payment.invoice,
        order_total_sat=payment.order_total_sat,
        fee_total_sat=payment.fee_total_sat,
        funding_outpoint=funding_outpoint,
        explorer_url=explorer_url(funding_outpoint),
        error_message=order.error_message,
        channel_data=[] if funding_outpoint else channels,
        source=source,
        is_terminal=order.is_terminal,
        status_message=status_message,
    )


class StatusReconciler:
    """
    Keeps the latest order creation result, status and channel list seen on
    the bus and reconciles them on demand. Messages may arrive in any order.
    """
    def __init__(self, bus: Optional[MessageBus] = None):
        self.created: Optional[Order] = None
        self.status: Optional[Order] = None
        self.channels: List[ChannelRecord] = []
        self._unsubscribers: List[Callable[[], None]] = []
        if bus is not None:
            self.attach(bus)

    def attach(self, bus: MessageBus) -> None:
        self._unsubscribers.extend([
            bus.subscribe(MessageKind.ORDER_CREATED, self.on_order_created),
            bus.subscribe(MessageKind.ORDER_STATUS, self.on_order_status),
            bus.subscribe(MessageKind.CHANNELS_UPDATED, self.on_channels_updated),
        ])

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def on_order_created(self, message: OrderCreated) -> None:
        # a new order resets whatever we knew about the previous one
        if self.status is not None \
                and self.status.order_id != message.order.order_id:
            self.status = None
        self.created = message.order

    def on_order_status(self, message: OrderStatusUpdated) -> None:
        if self.created is not None and self.created.order_id \
                and message.order.order_id != self.created.order_id:
            logger.debug(f'ignoring status for unrelated order {message.order.order_id}')
            return
        self.status = message.order

    def on_channels_updated(self, message: ChannelsUpdated) -> None:
        self.channels = list(message.channels)

    def view(self) -> OrderView:
        return reconcile(self.status, self.created, self.channels)
