"""Command-line entry point."""

import logging
import sys
from pathlib import Path

import anyio
import click

from pushrelay import __version__
from pushrelay.config import RelayConfig, load_config
from pushrelay.errors import BusUnavailableError, ConfigError
from pushrelay.logger import build_logger
from pushrelay.service import RelayService


async def serve(config: RelayConfig, logger: logging.Logger) -> None:
    """Run the relay until every consumer has stopped."""
    async with RelayService(config, logger) as service:
        await service.run()


@click.command()
@click.option(
    "-c",
    "--config",
    "config_path",
    default="./config.toml",
    show_default=True,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Path to the configuration file.",
)
@click.version_option(version=__version__)
def main(config_path: Path) -> None:
    """Relay Redis pub/sub messages to HTTP endpoints."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo("Load config successfully.")

    logger = build_logger(config.logger.log_prefix, config.logger.level)
    try:
        anyio.run(serve, config, logger)
    except BusUnavailableError:
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
