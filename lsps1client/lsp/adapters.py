"""
Provider variance lives here and nowhere else: every LSP speaks roughly
LSPS1, but field names drift between snake_case and camelCase, the node key
is sent as either `node_pubkey` or `public_key`, and payment details may be
flat or nested under `payment.bolt11`. Each field has a priority list of
dotted paths, first present value wins. Support for a new provider variant
is a new table entry, not a new branch at the call site.
"""
import logging
import math
from pydantic import BaseModel, ConfigDict
from typing import Any, Dict, Optional, Sequence

from lsps1client.blip51.channel import ChannelInfo
from lsps1client.blip51.order import ChannelOrderRequest, Order, OrderState
from lsps1client.blip51.payment import PaymentInfo
from lsps1client.lsp.errors import ConfigurationError

logger = logging.getLogger(name=__name__)

ORDER_ID_FIELDS = ('order_id', 'orderId', 'id')
ORDER_STATE_FIELDS = ('state', 'order_state', 'orderState', 'status')
INVOICE_FIELDS = (
    'payment_request',
    'paymentRequest',
    'invoice',
    'payment.bolt11.invoice',
    'paymentInfo.invoice',
)
ORDER_TOTAL_FIELDS = (
    'total_sats',
    'amount',
    'order_total_sat',
    'payment.bolt11.order_total_sat',
    'fee_total_sat',
)
FEE_TOTAL_FIELDS = ('fee_total_sat', 'feeTotalSat', 'payment.bolt11.fee_total_sat')
CHANNEL_INFO_FIELDS = ('channelInfo', 'channel_info', 'channel')
FUNDING_OUTPOINT_FIELDS = ('fundingOutpoint', 'funding_outpoint')
FUNDED_AT_FIELDS = ('fundedAt', 'funded_at')
EXPIRES_AT_FIELDS = ('expiresAt', 'expires_at')
ERROR_MESSAGE_FIELDS = ('error_message', 'errorMessage', 'error.message', 'error')
# rejections usually carry a plain message, orders never should
ERROR_DETAIL_FIELDS = ('message', *ERROR_MESSAGE_FIELDS)

CAPABILITY_FIELDS: Dict[str, Sequence[str]] = {
    'min_channel_sats': (
        'min_initial_lsp_balance_sat',
        'minInitialLspBalanceSat',
        'options.min_initial_lsp_balance_sat',
        'min_channel_balance_sat',
        'minChannelBalanceSat',
    ),
    'max_channel_sats': (
        'max_initial_lsp_balance_sat',
        'maxInitialLspBalanceSat',
        'options.max_initial_lsp_balance_sat',
        'max_channel_balance_sat',
        'maxChannelBalanceSat',
    ),
    'fee_rate_percent': (
        'fee_rate_percent',
        'feeRatePercent',
        'fee_percent',
        'feePercent',
    ),
    'fee_rate_ppm': (
        'fee_rate_ppm',
        'feeRatePpm',
        'fee_ppm',
        'feePpm',
        'variable_cost_ppm',
        'variableCostPpm',
    ),
    'supports_zero_conf': ('supports_zero_conf', 'supportsZeroConf'),
    'supports_zero_reserve': (
        'supports_zero_channel_reserve',
        'supportsZeroChannelReserve',
        'options.supports_zero_channel_reserve',
    ),
    'min_required_channel_confirmations': (
        'min_required_channel_confirmations',
        'minRequiredChannelConfirmations',
        'options.min_required_channel_confirmations',
    ),
    'min_funding_confirms_within_blocks': (
        'min_funding_confirms_within_blocks',
        'minFundingConfirmsWithinBlocks',
        'options.min_funding_confirms_within_blocks',
    ),
    'max_channel_expiry_blocks': (
        'max_channel_expiry_blocks',
        'maxChannelExpiryBlocks',
        'options.max_channel_expiry_blocks',
    ),
    'uris': ('uris', 'Uris'),
}


def lookup(document: Any, paths: Sequence[str]) -> Any:
    """first present, non-null value among dotted paths"""
    if not isinstance(document, dict):
        return None
    for path in paths:
        value = document
        for key in path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                value = None
                break
        if value is not None:
            return value
    return None


def as_number(value: Any) -> Optional[float]:
    # bools are ints in python, but a bool balance is garbage
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number


def lookup_number(document: Any, paths: Sequence[str]) -> Optional[float]:
    """like lookup, but skips values that don't parse as numbers"""
    for path in paths:
        number = as_number(lookup(document, (path,)))
        if number is not None:
            return number
    return None


def lookup_int(document: Any, paths: Sequence[str]) -> Optional[int]:
    number = lookup_number(document, paths)
    return None if number is None else int(number)


def lookup_bool(document: Any, paths: Sequence[str]) -> bool:
    value = lookup(document, paths)
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes')
    return bool(value)


def lookup_str(document: Any, paths: Sequence[str]) -> Optional[str]:
    for path in paths:
        value = lookup(document, (path,))
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            value = str(value).strip()
            if value:
                return value
    return None


class ProtocolAdapter(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    info_path: str = 'get_info'
    order_path: str = 'order'
    status_path: str = 'order/{order_id}'
    pubkey_field: str = 'node_pubkey'

    def order_body(self, request: ChannelOrderRequest) -> Dict[str, Any]:
        return {
            'lsp_balance_sat': str(request.channel_size_sats),
            'client_balance_sat': '0',
            'required_channel_confirmations': request.required_channel_confirmations,
            'funding_confirms_within_blocks': request.funding_confirms_within_blocks,
            'channel_expiry_blocks': request.expiry_blocks,
            'token': request.token,
            'announce_channel': request.announce_channel,
            self.pubkey_field: request.node_pubkey,
        }

    def order_status_path(self, order_id: str) -> str:
        return self.status_path.format(order_id=order_id)

    def parse_order(
            self,
            record: Dict[str, Any],
            default_state: Optional[OrderState] = None) -> Order:
        raw_state = lookup(record, ORDER_STATE_FIELDS)
        if raw_state is None and default_state is not None:
            state = default_state
        else:
            state = OrderState.from_provider(raw_state)

        channel_info = None
        channel = lookup(record, CHANNEL_INFO_FIELDS)
        outpoint = lookup_str(channel, FUNDING_OUTPOINT_FIELDS)
        if outpoint:
            channel_info = ChannelInfo(
                funding_outpoint=outpoint,
                funded_at=lookup_str(channel, FUNDED_AT_FIELDS),
                expires_at=lookup_str(channel, EXPIRES_AT_FIELDS),
            )

        return Order(
            order_id=lookup_str(record, ORDER_ID_FIELDS),
            state=state,
            payment=PaymentInfo(
                invoice=lookup_str(record, INVOICE_FIELDS),
                order_total_sat=lookup_int(record, ORDER_TOTAL_FIELDS),
                fee_total_sat=lookup_int(record, FEE_TOTAL_FIELDS),
            ),
            channel_info=channel_info,
            error_message=lookup_str(record, ERROR_MESSAGE_FIELDS),
            raw=record,
        )


ADAPTERS: Dict[str, ProtocolAdapter] = {
    adapter.version: adapter
    for adapter in (
        ProtocolAdapter(version='lsps1-v1', pubkey_field='node_pubkey'),
        ProtocolAdapter(
            version='lsps1-legacy',
            order_path='create_order',
            pubkey_field='public_key',
        ),
    )
}


def get_adapter(version: str) -> ProtocolAdapter:
    adapter = ADAPTERS.get(version)
    if adapter is None:
        raise ConfigurationError(
            f'unknown protocol adapter {version!r}, '
            f'expected one of {sorted(ADAPTERS)}')
    return adapter
