import click

from lsps1client.cli.orderargs import channels, info, order, providers
from lsps1client.cli.logger import LoggerSetup
from lsps1client.settings import ClientSettings, LogLevel, ProviderSettings

LOG_LEVELS = [lvl.value.lower() for lvl in LogLevel]


@click.group(
    context_settings={
        "help_option_names": ["-h", "--help"],
        "max_content_width": 120,
        "terminal_width": 120,
    }
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=ClientSettings().log_level.value.lower(),
    show_default=True,
    help="logging level, e.g. DEBUG, info, WaRnInG, etc.",
)
@click.option(
    "--lsp",
    "lsp_provider",
    type=str,
    default=ProviderSettings().lsp_provider,
    show_default=True,
    help="slug of the LSP to talk to, see the providers command"
)
@click.pass_context
def cli(ctx, log_level, lsp_provider):
    """
    lsps1client: buy inbound Lightning channels from LSPS1 service providers
    """
    level_enum = LogLevel[log_level.upper()]
    LoggerSetup(level_enum).setup_logging()

    ctx.ensure_object(dict)
    ctx.obj["log_level"] = level_enum
    ctx.obj["lsp_provider"] = lsp_provider


def register_commands(group: click.Group):
    group.add_command(providers)
    group.add_command(info)
    group.add_command(channels)
    group.add_command(order)


register_commands(cli)


def main():
    cli()


if __name__ == "__main__":
    main()
