"""faucet agent - forwards faucet events to Prometheus remote write."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from . import BIN_NAME, __version__
from .config.settings import AgentSettings, load_settings
from .errors import ConfigurationError
from .processor import EventProcessor
from .remote_write.client import MetricSink, RemoteWriteClient
from .supervisor import ReconnectSupervisor
from .translator import EventTranslator
from .utils.logging import setup_logging


logger = logging.getLogger(__name__)


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=BIN_NAME,
        description="Forward faucet events to a Prometheus remote write endpoint. "
                    "Every option can also be set through a FAUCET_AGENT_<OPTION> environment variable.",
    )
    parser.add_argument("--version", action="store_true", help="Print version")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "error"],
        help="Log level: debug, info, warn, error (default: info)",
    )
    parser.add_argument("--log-format", choices=["text", "json"], help="Log format (default: text)")
    parser.add_argument(
        "--prometheus-remote-write-uri",
        help="Prometheus remote write URI (default: http://localhost:9090/api/v1/write)",
    )
    parser.add_argument("--event-socket", help="Path to faucet event socket (default: /run/faucet/event.sock)")
    parser.add_argument("--config", help="Optional YAML configuration file")
    return parser


def version_string() -> str:
    return f"{BIN_NAME} v{__version__} (python {sys.version.split()[0]})"


class FaucetAgentService:
    """Wires the pipeline together and runs it until a shutdown signal."""

    def __init__(self, settings: AgentSettings):
        self.settings = settings
        self.client = RemoteWriteClient(
            settings.prometheus_remote_write_uri,
            timeout_seconds=settings.remote_write.timeout_seconds,
            user_agent=settings.remote_write.user_agent,
        )
        self.processor = EventProcessor(
            EventTranslator(),
            MetricSink(self.client, settings.external_labels),
            skip_empty_writes=settings.skip_empty_writes,
        )
        self.supervisor = ReconnectSupervisor(
            settings.event_socket,
            self.processor,
            initial_backoff=settings.retry.initial_backoff_seconds,
            max_backoff=settings.retry.max_backoff_seconds,
        )
        self._shutdown_event = asyncio.Event()

    def request_shutdown(self):
        self._shutdown_event.set()

    async def start(self):
        logger.info(
            f"Starting {BIN_NAME} v{__version__}: socket={self.settings.event_socket} "
            f"remote_write={self.settings.prometheus_remote_write_uri}"
        )

        self._setup_signal_handlers()

        async with self.client:
            watcher = asyncio.create_task(self._watch_shutdown())
            try:
                await self.supervisor.run()
            finally:
                watcher.cancel()
                try:
                    await watcher
                except asyncio.CancelledError:
                    pass
                self._remove_signal_handlers()

        logger.info(f"{BIN_NAME} stopped: {self.processor.get_stats()}")

    async def _watch_shutdown(self):
        await self._shutdown_event.wait()
        logger.info("Cleaning up and exiting")
        self.supervisor.shutdown()

    def _setup_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Not on the main thread, or no loop signal support
                logger.debug(f"Could not install handler for signal {signum}")

    def _remove_signal_handlers(self):
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(signum)
            except (NotImplementedError, RuntimeError):
                pass


async def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, start the agent and return the process exit code."""
    args = build_parser().parse_args(argv)

    if args.version:
        print(version_string())
        return 0

    overrides = {
        "log_level": args.log_level,
        "log_format": args.log_format,
        "prometheus_remote_write_uri": args.prometheus_remote_write_uri,
        "event_socket": args.event_socket,
    }

    try:
        settings = load_settings(args.config, overrides)
    except (ConfigurationError, FileNotFoundError) as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    try:
        service = FaucetAgentService(settings)
    except ConfigurationError as e:
        logger.error(f"Failed to create prometheus remote write client: {e}")
        return 1

    await service.start()
    return 0


def run():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
