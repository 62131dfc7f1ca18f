from pydantic import ValidationError
from typing import Iterable, List

from lsps1client.blip51.channel import ChannelRecord
from lsps1client.blip51.info import LspCapabilities
from lsps1client.blip51.utils import format_sats
from lsps1client.lsp.providers import LspProvider
from lsps1client.lsp.reconciler import OrderView


def format_errors(exc: ValidationError) -> str:
    lines = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err["loc"])
        lines.append(f"{loc}: {err['msg']}")
    return "Configuration error:\n  " + "\n  ".join(lines)


def format_providers(providers: Iterable[LspProvider], selected: str = '') -> str:
    lines = []
    for p in providers:
        marker = '*' if p.slug == selected else ' '
        lines.append(f"{marker} {p.slug:<20} {p.name:<20} {p.url}")
    return "\n".join(lines)


def format_capabilities(name: str, capabilities: LspCapabilities) -> str:
    lines = [
        f"{name}",
        f"  channel size:     {format_sats(capabilities.min_channel_sats)} - "
        f"{format_sats(capabilities.max_channel_sats)}",
        f"  fee rate:         {capabilities.fee_rate_percent}%",
        f"  fee for default:  {format_sats(capabilities.estimate_fee_sats(capabilities.default_channel_sats))}"
        f" on {format_sats(capabilities.default_channel_sats)}",
        f"  zero conf:        {capabilities.supports_zero_conf}",
        f"  zero reserve:     {capabilities.supports_zero_reserve}",
    ]
    for uri in capabilities.uris:
        lines.append(f"  uri:              {uri}")
    return "\n".join(lines)


def format_channels(channels: List[ChannelRecord]) -> str:
    if not channels:
        return "No channels with a known LSP."
    lines = []
    for c in channels:
        status = 'active' if c.active else 'inactive'
        visibility = 'public' if c.public else 'private'
        lines.append(
            f"{c.remote_pubkey[:20]}… {format_sats(c.capacity_sats):>16} "
            f"local {format_sats(c.local_balance_sats):>16} {status} {visibility}")
    return "\n".join(lines)


def format_view(view: OrderView) -> str:
    lines = [f"[{view.state.value if view.state else '-'}] {view.status_message}"]
    if view.order_id:
        lines.append(f"  order id: {view.order_id}")
    if view.invoice and view.state is not None and view.state.awaiting_payment:
        lines.append(f"  invoice:  {view.invoice}")
    if view.order_total_sat is not None:
        lines.append(f"  total:    {format_sats(view.order_total_sat)}")
    if view.fee_total_sat is not None:
        lines.append(f"  fee:      {format_sats(view.fee_total_sat)}")
    if view.funding_outpoint:
        lines.append(f"  funding:  {view.funding_outpoint}")
        lines.append(f"  explorer: {view.explorer_url}")
    if view.channel_data:
        lines.append(f"  channels with LSP: {len(view.channel_data)}")
    return "\n".join(lines)
