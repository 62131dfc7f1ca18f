import asyncio
import click
import logging
from functools import partial
from typing import Any, Callable, Dict, Optional

from lsps1client.cli.basecli import BaseCLI
from lsps1client.cli.helpers import (
    format_capabilities,
    format_channels,
    format_view,
)
from lsps1client.blip51.order import OrderState
from lsps1client.lsp.errors import OrderError
from lsps1client.lsp.session import OrderSession
from lsps1client.settings import Settings

logger = logging.getLogger(name=__name__)


class InfoCLI(BaseCLI):
    """print what the selected LSP offers"""

    async def run(self) -> int:
        capabilities = await self.session.client.get_info()
        click.echo(format_capabilities(self.session.provider.name, capabilities))
        return 0


class ChannelsCLI(BaseCLI):
    """print the node's channels opened with the selected LSP"""

    async def run(self) -> int:
        if self.session.channel_poller is None:
            click.secho("No lightning node configured, set NODE and REST_HOST.", fg="red", err=True)
            return 1
        await self.session.client.get_info()
        self.session.channel_poller.observe_uris(self.session.client.current_capabilities.uris)
        response = await self.session.node.list_channels()
        if response.error_message:
            click.secho(f"Could not list channels: {response.error_message}", fg="red", err=True)
            return 1
        click.echo(format_channels(self.session.channel_poller.filter_channels(response.channels)))
        return 0


class OrderCLI(BaseCLI):
    """
    Create an order, show the invoice to pay and follow the order until the
    LSP has funded the channel or given up on it.
    """
    def __init__(
            self,
            settings: Optional[Settings] = None,
            session: Optional[OrderSession] = None,
            follow: bool = True,
            timeout_minutes: Optional[float] = None):
        super().__init__(settings=settings, session=session)
        self.follow = follow
        self.timeout_minutes = timeout_minutes

    async def run(self) -> int:
        await self.startup()
        order = await self.session.create_order()
        view = self.session.view()
        click.echo(format_view(view))
        if view.invoice:
            click.echo(f"\nPay this invoice to continue:\n{order.payment.lightning_uri}")

        if not self.follow or not order.order_id:
            return 0

        loop = asyncio.get_running_loop()
        deadline = None
        if self.timeout_minutes:
            deadline = loop.time() + self.timeout_minutes * 60
        last_message = view.status_message
        while self._running and not view.is_terminal:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                click.secho("Stopped following the order, it is still open with the LSP.", fg="yellow")
                return 0
            view = await self.session.wait_for_update(timeout=remaining)
            if view.status_message != last_message:
                click.echo(format_view(view))
                last_message = view.status_message

        if view.state == OrderState.FAILED:
            return 1
        return 0


async def run_cli(build: Callable[[], BaseCLI]) -> int:
    """build the cli inside the event loop so its http clients belong to it"""
    try:
        cli = build()
    except OrderError as e:
        click.secho(f"Error: {e.message}", fg="red", err=True)
        return 1
    try:
        return await cli.run()
    except OrderError as e:
        click.secho(f"Error: {e.message}", fg="red", err=True)
        return 1
    finally:
        await cli.shutdown()


def run_order_cli(
        settings: Settings,
        follow: bool = True,
        timeout_minutes: Optional[float] = None) -> int:
    return asyncio.run(run_cli(partial(
        OrderCLI,
        settings=settings,
        follow=follow,
        timeout_minutes=timeout_minutes,
    )))


def run_info_cli(settings: Settings) -> int:
    return asyncio.run(run_cli(partial(InfoCLI, settings=settings)))


def run_channels_cli(settings: Settings) -> int:
    return asyncio.run(run_cli(partial(ChannelsCLI, settings=settings)))


def settings_from_options(options: Dict[str, Any]) -> Settings:
    """cli options override .env values, unset options keep them"""
    return Settings(**{k: v for k, v in options.items() if v is not None})
