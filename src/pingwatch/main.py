import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence

import httpx

from pingwatch.abstractions.result_sink import BootstrapError
from pingwatch.config.config import Config
from pingwatch.config.logging_config import setup_logging
from pingwatch.config.settings import SettingsError, load_settings
from pingwatch.core.cancellation import CancellationToken
from pingwatch.core.metrics_manager import MetricsManager
from pingwatch.core.probe import HttpProbe
from pingwatch.core.round_executor import RoundExecutor
from pingwatch.core.round_scheduler import RoundScheduler
from pingwatch.core.sink_factory import SinkFactory

logger = logging.getLogger(__name__)


class StartupError(Exception):
    """Raised when a process-level resource needed before scheduling cannot be set up."""


def install_signal_handlers(shutdown: CancellationToken):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.cancel, f"received {sig.name}")


async def run(config_path: str, shutdown: Optional[CancellationToken] = None):
    """
    Load settings, bootstrap the sink and run rounds until shutdown.

    Raises:
        SettingsError: If the settings file or the cadence is unusable.
        StartupError: If the metrics server cannot be started.
        BootstrapError: If the sink cannot be connected or migrated.
    """
    settings = load_settings(config_path)
    cadence = settings.cadence_seconds or Config.CADENCE_SECONDS
    if cadence <= 0:
        raise SettingsError(f"cadence_seconds must be positive, got {cadence}")
    logger.info(
        f"config: urls={settings.urls}, connection_string={settings.masked_connection_string()}, "
        f"sink={Config.SINK_TYPE}, cadence_seconds={cadence}"
    )

    # Installed before bootstrap so an interrupt there ends the run at the first round boundary
    if shutdown is None:
        shutdown = CancellationToken()
        install_signal_handlers(shutdown)

    metrics = MetricsManager()
    if Config.METRICS_PORT:
        try:
            metrics.start_server(Config.METRICS_PORT)
        except OSError as e:
            raise StartupError(
                f"failed to start metrics server on port {Config.METRICS_PORT}: {e}"
            ) from e

    sink = SinkFactory.create_sink(Config.SINK_TYPE, settings.connection_string)
    await sink.connect()

    try:
        async with httpx.AsyncClient(timeout=Config.REQUEST_TIMEOUT_SECONDS) as client:
            executor = RoundExecutor(HttpProbe(client, metrics=metrics))
            scheduler = RoundScheduler(
                settings.urls, executor, sink, cadence_seconds=cadence, metrics=metrics
            )
            await scheduler.run(shutdown)
    finally:
        await sink.close()


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Periodically ping a fixed set of endpoints and record the results"
    )
    parser.add_argument(
        "--config",
        default=Config.CONFIG_PATH,
        help=f"Path to the JSON or TOML settings file (default: {Config.CONFIG_PATH})",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging()
    try:
        asyncio.run(run(args.config))
    except (SettingsError, StartupError, BootstrapError) as e:
        logger.critical(f"Run failed: {e}")
        return 1
    logger.info("Exited without error")
    return 0


if __name__ == "__main__":
    sys.exit(main())
