# src/location_sync/cli.py
"""Command-line interface for the location-sync tool."""

import asyncio
import logging
import sys
from dataclasses import replace
from typing import Any, Optional

import click
from aiobotocore.session import AioSession, get_session
from botocore.config import Config as BotoConfig
from dotenv import load_dotenv
from rich.logging import RichHandler

from location_sync.config import AppConfig, Config, Location, SyncConfig
from location_sync.exceptions import LocationSyncError
from location_sync.store import MIB, open_s3_store

logger: logging.Logger = logging.getLogger(__name__)

# Exit code for a run that completed but did not converge.
EXIT_NOT_CONVERGED: int = 3


def setup_logging(level: str) -> None:
    """Configure rich-based logging for the application."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # Silence noisy loggers
    for logger_name in ["botocore", "aiobotocore", "s3transfer", "urllib3"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


async def main_async(config: Config) -> bool:
    """
    Open both stores and run one synchronization.

    Args:
        config (Config): The application configuration.

    Returns:
        bool: Whether the destination converged to the source.
    """
    # Lazily import to keep CLI startup fast
    from location_sync.synchronizer import LocationSynchronizer

    boto_config: BotoConfig = BotoConfig(
        signature_version="s3v4",
        max_pool_connections=config.app.max_concurrency + 10,
    )
    session: AioSession = get_session()
    threshold: int = config.app.multipart_threshold_mb * MIB
    async with (
        open_s3_store(session, config.source, boto_config, threshold) as source_store,
        open_s3_store(session, config.destination, boto_config, threshold) as dest_store,
    ):
        sync_config: SyncConfig = SyncConfig.from_app_config(
            source=Location(source_store, config.source.bucket, config.source.prefix),
            destination=Location(
                dest_store, config.destination.bucket, config.destination.prefix
            ),
            app=config.app,
        )
        synchronizer: LocationSynchronizer = LocationSynchronizer(sync_config)
        return await synchronizer.start_syncing()


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--source-prefix",
    default=None,
    help="Override LOCATION_SYNC_SOURCE_PREFIX.",
)
@click.option(
    "--destination-prefix",
    default=None,
    help="Override LOCATION_SYNC_DESTINATION_PREFIX.",
)
@click.option(
    "--max-concurrency",
    type=click.IntRange(min=1),
    default=15,
    help="Maximum number of concurrent copies.",
    show_default=True,
)
@click.option(
    "--max-retries",
    type=click.IntRange(min=1),
    default=5,
    help="Attempts per object before giving up on it.",
    show_default=True,
)
@click.option(
    "--retry-delay",
    type=click.FloatRange(min=0.0),
    default=0.0,
    help="Seconds to wait between copy attempts.",
    show_default=True,
)
@click.option(
    "--express",
    is_flag=True,
    default=False,
    help="Use server-side copies. Both buckets must be reachable "
    "with the destination credentials.",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Set the logging level.",
    show_default=True,
)
def cli(**kwargs: Any) -> None:
    """
    Make a destination S3 prefix match a source S3 prefix.

    Objects missing at the destination, or whose size differs, or that are
    older than their source counterpart, are copied. Nothing is ever
    deleted from the destination. After copying, both sides are listed
    again; the command exits with status 3 if they still differ.

    Credentials, buckets and prefixes are read from environment variables.
    See the .env.example file for required variables.
    """
    load_dotenv()
    setup_logging(kwargs["log_level"])

    try:
        config: Config = Config(
            app=AppConfig(
                max_concurrency=kwargs["max_concurrency"],
                max_retries=kwargs["max_retries"],
                retry_delay_s=kwargs["retry_delay"],
                express=kwargs["express"],
            )
        )
        source_prefix: Optional[str] = kwargs["source_prefix"]
        if source_prefix is not None:
            config = replace(config, source=replace(config.source, prefix=source_prefix))
        destination_prefix: Optional[str] = kwargs["destination_prefix"]
        if destination_prefix is not None:
            config = replace(
                config,
                destination=replace(config.destination, prefix=destination_prefix),
            )

        converged: bool = asyncio.run(main_async(config))
    except LocationSyncError as e:
        logger.critical(f"A critical application error occurred: {e}")
        sys.exit(1)
    except Exception:
        logger.critical(
            "An unexpected error caused the application to fail:", exc_info=True
        )
        sys.exit(1)

    if not converged:
        logger.error("❌ Destination does not match the source after syncing.")
        sys.exit(EXIT_NOT_CONVERGED)
    logger.info("✅ Run completed successfully.")


if __name__ == "__main__":
    cli()
