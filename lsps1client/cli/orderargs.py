import sys

import click
from pydantic import ValidationError

from lsps1client.cli.helpers import format_errors, format_providers
from lsps1client.cli.ordercli import (
    run_channels_cli,
    run_info_cli,
    run_order_cli,
    settings_from_options,
)
from lsps1client.lsp.providers import available_providers
from lsps1client.settings import (
    ApiSettings,
    OrderSettings,
    ProviderSettings,
    Settings,
)


def _settings(ctx: click.Context, **kwargs) -> Settings:
    options = dict(ctx.obj or {})
    options.update(kwargs)
    try:
        return settings_from_options(options)
    except ValidationError as e:
        click.secho(format_errors(e), fg="red", err=True)
        sys.exit(1)


@click.command("providers", help="List the LSPs orders can be placed with")
@click.pass_context
def providers(ctx):
    selected = (ctx.obj or {}).get("lsp_provider") or ProviderSettings().lsp_provider
    click.echo(format_providers(available_providers(), selected=selected))


@click.command("info", help="Show channel sizes and fees offered by the LSP")
@click.pass_context
def info(ctx):
    sys.exit(run_info_cli(_settings(ctx)))


@click.command("channels", help="List your node's channels with the LSP")
@click.pass_context
def channels(ctx):
    sys.exit(run_channels_cli(_settings(ctx)))


# --- ORDER SUBCOMMAND -----------------------------------------------
@click.command("order", help="Buy an inbound channel from the LSP")
@click.option(
    "--node-pubkey",
    "node_pubkey",
    type=str,
    required=False,
    default=None,
    help="pubkey of the node receiving the channel, taken from the node "
    "backend when not given"
)
@click.option(
    "--channel-size",
    "channel_size_sat",
    type=int,
    required=False,
    default=OrderSettings().channel_size_sat,
    show_default=True,
    help="desired inbound sats"
)
@click.option(
    "--token",
    "token",
    type=str,
    required=False,
    default=OrderSettings().token,
    show_default=True,
    help="coupon code (if any)"
)
@click.option(
    "--announce-channel",
    "announce_channel",
    type=bool,
    required=False,
    default=OrderSettings().announce_channel,
    show_default=True,
    help="whether to publicly announce the channel"
)
@click.option(
    "--req-chan-confs",
    "required_channel_confirmations",
    type=int,
    required=False,
    default=OrderSettings().required_channel_confirmations,
    show_default=True,
    help="confirms required before channel_ready"
)
@click.option(
    "--funding-confs",
    "funding_confirms_within_blocks",
    type=int,
    required=False,
    default=OrderSettings().funding_confirms_within_blocks,
    show_default=True,
    help="max blocks to wait for funding confirm"
)
@click.option(
    "--chan-expiry",
    "channel_expiry_blocks",
    type=int,
    required=False,
    default=OrderSettings().channel_expiry_blocks,
    show_default=True,
    help="lease duration in blocks"
)
@click.option(
    "--no-follow",
    "no_follow",
    is_flag=True,
    default=False,
    help="exit after printing the invoice instead of following the order"
)
@click.option(
    "--timeout",
    "timeout_minutes",
    type=float,
    required=False,
    default=ApiSettings().max_listen_minutes,
    show_default=True,
    help="minutes to follow the order before giving up"
)
@click.pass_context
def order(ctx, no_follow, timeout_minutes, **kwargs):
    """
    Create the order, print the invoice and follow it until it completes.
    """
    settings = _settings(ctx, **kwargs)
    sys.exit(run_order_cli(
        settings=settings,
        follow=not no_follow,
        timeout_minutes=timeout_minutes,
    ))
