"""
============================================================================
SERVICE CHECK - MAIN APPLICATION
============================================================================
Periodic status checks of network services (DNS, HTTP, HTTPS, TCP) with
the results published to an MQTT broker.

Startup Order
-------------
1.  Parse command line, load settings & configure logging
2.  Load the JSON configuration (bundled default as fallback)
3.  Start StatusPublisher (connect to the broker)
4.  Publish Home Assistant discovery topics (if configured)
5.  Schedule every service and start the Scheduler
6.  Wait for SIGINT / SIGTERM

Shutdown Order (reverse)
-------------------------
    Stop scheduler → stop publisher (flush, disconnect) → exit

Usage
-----
    service-check [-d] [-c config.json]

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from config.loader import load_config
from config.settings import ServiceCheckConfig, Settings, get_settings
from exceptions import ConfigurationError, InitializationError
from monitoring.monitor import MonitoringEngine
from monitoring.publisher import StatusPublisher
from monitoring.scheduler import Scheduler
from utils.logger import get_logger, setup_logging


logger = get_logger("Main")


# ============================================================================
# APPLICATION CLASS
# ============================================================================

class ServiceCheckApplication:
    """
    Top-level application orchestrator.

    Owns every subsystem and is the single place that knows the startup /
    shutdown order.  The configuration is handed in once and shared
    read-only with every component.
    """

    def __init__(
        self,
        config: ServiceCheckConfig,
        settings: Optional[Settings] = None,
        publisher: Optional[StatusPublisher] = None,
    ):
        self.config = config
        self.settings = settings or get_settings()

        self.publisher = publisher or StatusPublisher(
            broker=config.mqtt_connect,
            payloads=config.payload,
            settings=self.settings,
        )
        self.engine = MonitoringEngine(self.publisher, self.settings)
        self.scheduler = Scheduler()

        self._stop_event = asyncio.Event()
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    # ==================================================================
    # STARTUP
    # ==================================================================

    async def startup(self) -> bool:
        """
        Execute the startup sequence.
        Returns False (and logs errors) if the publisher cannot start.
        """
        broker = self.config.mqtt_connect

        try:
            await self.publisher.start()
        except InitializationError as e:
            logger.error(f"✗ {e.log_format()}")
            return False

        self.publisher.publish_discovery(self.config.services)

        logger.info(f"Publishing state topics to: {broker.topic_root}")
        scheduled = self.scheduler.schedule_services(self.config.services, self.engine)
        if not scheduled:
            logger.warning("No services to check — nothing will be published")

        await self.scheduler.start()
        self._is_running = True
        return True

    # ==================================================================
    # RUN / STOP
    # ==================================================================

    async def run(self) -> None:
        """Block until ``request_stop`` is called."""
        await self._stop_event.wait()

    def request_stop(self) -> None:
        if not self._stop_event.is_set():
            logger.info("Signal received — initiating graceful shutdown…")
        self._stop_event.set()

    async def shutdown(self) -> None:
        """
        Graceful shutdown in reverse order.
        Each step is wrapped so a failure in one subsystem doesn't prevent
        the others from cleaning up.
        """
        self._is_running = False

        try:
            await self.scheduler.stop()
        except Exception as e:
            logger.error(f"✗ Scheduler stop error: {e}")

        for job in self.scheduler.get_job_stats():
            logger.debug(
                f"[Stats] {job['name']}: runs={job['run_count']}, "
                f"errors={job['error_count']}, last_run={job['last_run']}"
            )

        try:
            await self.publisher.stop()
        except Exception as e:
            logger.error(f"✗ StatusPublisher stop error: {e}")

        logger.info(
            f"✓ Shutdown complete — {self.engine.checks_performed} checks, "
            f"{self.publisher.published_count} published, "
            f"{self.publisher.dropped_count} dropped"
        )


# ============================================================================
# COMMAND LINE
# ============================================================================

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="service-check",
        description="Periodically check network services and publish "
                    "their status to an MQTT broker.",
    )
    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        help="verbose diagnostic logging",
    )
    parser.add_argument(
        "-c", "--config",
        metavar="PATH",
        default=None,
        help="configuration file (default: config.json or $SERVICECHECK_CONFIG_FILE)",
    )
    return parser.parse_args(argv)


def _install_signal_handlers(app: ServiceCheckApplication) -> None:
    """
    Stop the application on SIGTERM / SIGINT.
    """
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, app.request_stop)
        except (NotImplementedError, RuntimeError):
            # Windows, or not on the main thread: rely on KeyboardInterrupt
            pass


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

async def main(argv: Optional[List[str]] = None) -> int:
    """
    Async main — load configuration, start the app, run until stopped.
    Returns the process exit code.
    """
    args = parse_args(argv)
    settings = get_settings()

    setup_logging(
        level="DEBUG" if args.debug else settings.log_level.value,
        log_file=settings.log_file,
        colorize=settings.log_colorize,
    )

    try:
        config = load_config(args.config or settings.config_file)
    except ConfigurationError as e:
        logger.error(f"✗ {e.log_format()}")
        return 1

    app = ServiceCheckApplication(config, settings)
    _install_signal_handlers(app)

    if not await app.startup():
        await app.shutdown()
        return 1

    try:
        await app.run()
    finally:
        await app.shutdown()
    return 0


def cli() -> None:
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli()
