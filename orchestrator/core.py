"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Wires the notifier into one controlled runtime.

- Builds every component from NotifierConfig
- Controls startup and shutdown order
- Handles signals (SIGINT, SIGTERM)

============================================================
STARTUP ORDER
============================================================
1. Validate configuration
2. Initialize the recipient database (dynamic mode)
3. getMe / setMyCommands
4. Dispatcher, poller, metrics collector
5. HTTP site

Shutdown runs the reverse: poller first (abandoning the
in-flight long-poll), then dispatcher, collector, HTTP and
finally the transport session.

============================================================
"""

import asyncio
import json
import logging
import os
import signal
import sys
from typing import Any, Dict, Optional

from aiohttp import web
from sqlalchemy.engine import Engine

from api.routes import create_app
from core.clock import ClockFactory, ClockProtocol
from core.exceptions import (
    ShutdownError,
    StartupError,
    TransportError,
    TransportErrorCategory,
)
from database.engine import (
    create_database_engine,
    create_session_factory,
    initialize_database,
)
from delivery.backoff import BackoffPolicy
from delivery.dispatcher import RateLimitedDispatcher
from delivery.queue import DeliveryQueue
from ingestion.commands import BOT_COMMANDS, CommandRouter
from ingestion.poller import UpdatePoller
from monitoring.collector import MetricsCollector
from monitoring.metrics_cache import MetricsCache
from monitoring.sources import SourceRegistry
from recipients.base import RecipientDirectory
from recipients.fixed import FixedRecipientDirectory
from recipients.persisted import PersistedRecipientDirectory
from telegram_api.base import ChatTransport
from telegram_api.client import TelegramClient

from .config import NotifierConfig, RecipientMode


# ============================================================
# LOGGING SETUP
# ============================================================

ERROR_LOG_FILENAME = "server.log"


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_dir: Optional[str] = None,
) -> logging.Logger:
    """
    Set up process logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        log_dir: When set, ERROR and above are also written to
            <log_dir>/server.log

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
            })
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handlers = [handler]

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(
            os.path.join(log_dir, ERROR_LOG_FILENAME),
            encoding="utf-8",
        )
        file_handler.setLevel(logging.ERROR)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = handlers

    # aiohttp's access log duplicates the request middleware
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    return logging.getLogger("orchestrator")


# ============================================================
# RUNTIME
# ============================================================

class NotifierRuntime:
    """
    Owns every long-lived component of the notifier.
    """

    def __init__(
        self,
        config: NotifierConfig,
        clock: Optional[ClockProtocol] = None,
        transport: Optional[ChatTransport] = None,
        directory: Optional[RecipientDirectory] = None,
        engine: Optional[Engine] = None,
    ):
        """
        Initialize runtime.

        Args:
            config: Notifier configuration
            clock: Clock (defaults to the process clock)
            transport: Chat transport (defaults to TelegramClient)
            directory: Recipient directory (defaults by recipient mode)
            engine: Database engine for dynamic mode

        Raises:
            ConfigurationError: if the configuration does not validate
        """
        config.ensure_valid()

        self._config = config
        self._logger = logging.getLogger("orchestrator")
        self._clock = clock or ClockFactory.get_clock()

        self._engine = engine
        self._transport = transport or TelegramClient(
            bot_token=config.bot_token or "",
            api_url=config.api_url,
            enabled=config.telegram_enabled,
        )
        self._directory = directory or self._build_directory()

        self._queue = DeliveryQueue(
            config=config.delivery,
            backoff=BackoffPolicy(config.delivery.retry_delays_seconds),
            clock=self._clock,
        )
        self._dispatcher = RateLimitedDispatcher(
            queue=self._queue,
            transport=self._transport,
            directory=self._directory,
            config=config.delivery,
            clock=self._clock,
        )

        self._metrics_cache = MetricsCache(
            registry=SourceRegistry(config.metrics_sources),
            clock=self._clock,
            refresh_hours=config.metrics_refresh_hours,
        )
        self._collector = MetricsCollector(
            cache=self._metrics_cache,
            refresh_hours=config.metrics_refresh_hours,
            clock=self._clock,
        )

        self._router = CommandRouter(
            queue=self._queue,
            directory=self._directory,
            metrics_cache=self._metrics_cache,
            app_token=config.app_token,
            source_label=config.app_env,
        )
        self._poller = UpdatePoller(
            transport=self._transport,
            handler=self._router.handle,
            config=config.ingestion,
        )

        self._app = create_app(
            queue=self._queue,
            metrics_cache=self._metrics_cache,
            directory=self._directory,
            clock=self._clock,
            default_source=config.app_env,
            status_provider=self.get_status,
        )
        self._runner: Optional[web.AppRunner] = None

        self._running = False
        self._stopped = asyncio.Event()
        self._signals_installed = False

    def _build_directory(self) -> RecipientDirectory:
        if self._config.recipient_mode == RecipientMode.FIXED:
            return FixedRecipientDirectory(self._config.fixed_chat_id or "")

        if self._engine is None:
            self._engine = create_database_engine(self._config.database_url)
        return PersistedRecipientDirectory(create_session_factory(self._engine))

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def config(self) -> NotifierConfig:
        return self._config

    @property
    def queue(self) -> DeliveryQueue:
        return self._queue

    @property
    def dispatcher(self) -> RateLimitedDispatcher:
        return self._dispatcher

    @property
    def poller(self) -> UpdatePoller:
        return self._poller

    @property
    def directory(self) -> RecipientDirectory:
        return self._directory

    @property
    def metrics_cache(self) -> MetricsCache:
        return self._metrics_cache

    @property
    def app(self) -> web.Application:
        return self._app

    @property
    def is_running(self) -> bool:
        return self._running

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    async def start(self, serve_http: bool = True, install_signals: bool = True) -> None:
        """
        Start the notifier.

        Raises:
            ConfigurationError: on invalid configuration
            StartupError: when a startup stage cannot complete
        """
        if self._running:
            self._logger.warning("Notifier already running")
            return

        self._logger.info("=== NOTIFIER STARTUP SEQUENCE ===")
        self._logger.info(
            f"env={self._config.app_env} | recipients={self._config.recipient_mode.value} | "
            f"telegram_enabled={self._config.telegram_enabled}"
        )

        self._config.ensure_valid()

        if self._config.recipient_mode == RecipientMode.DYNAMIC and self._engine is not None:
            try:
                await asyncio.to_thread(initialize_database, self._engine)
            except Exception as e:
                raise StartupError(
                    f"Recipient database unavailable: {e}",
                    stage="database",
                    cause=e,
                ) from e

        await self._announce()

        self._dispatcher.start()
        if self._config.telegram_enabled:
            self._poller.start()
        else:
            self._logger.info("Telegram disabled, update polling not started")
        self._collector.start()

        if serve_http:
            await self._start_http()

        if install_signals:
            self._install_signal_handlers()

        self._running = True
        self._stopped.clear()
        self._logger.info("=== NOTIFIER STARTUP COMPLETE ===")

    async def _announce(self) -> None:
        """getMe and setMyCommands; only rejected credentials are fatal."""
        try:
            bot = await self._transport.get_me()
            self._logger.info(f"Bot identity: @{bot.username} ({bot.link})")
        except TransportError as e:
            if e.category == TransportErrorCategory.UNAUTHORIZED:
                self._logger.critical(f"Bot token rejected: {e}")
                raise StartupError(
                    f"Bot token rejected: {e}",
                    stage="transport",
                    cause=e,
                ) from e
            self._logger.error(f"getMe failed, continuing: {e}")

        try:
            await self._transport.set_my_commands(BOT_COMMANDS)
        except TransportError as e:
            self._logger.error(f"setMyCommands failed, continuing: {e}")

    async def _start_http(self) -> None:
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        site = web.TCPSite(self._runner, self._config.http_host, self._config.http_port)
        await site.start()

        self._logger.info(
            f"HTTP server listening on http://{self._config.http_host}:{self._config.http_port}"
        )

    async def stop(self) -> None:
        """
        Stop the notifier gracefully.

        Messages still queued are lost with the process.
        """
        if not self._running:
            return

        self._logger.info("=== NOTIFIER SHUTDOWN SEQUENCE ===")
        self._running = False

        try:
            await self._poller.stop()
            await self._dispatcher.stop()
            await self._collector.stop()

            if self._runner is not None:
                await self._runner.cleanup()
                self._runner = None

            await self._transport.close()

            pending = len(self._queue)
            if pending:
                self._logger.warning(f"Shutting down with {pending} undelivered messages")

            self._restore_signal_handlers()
            self._logger.info("=== NOTIFIER SHUTDOWN COMPLETE ===")

        except Exception as e:
            self._logger.error(f"Shutdown error: {e}", exc_info=True)
            raise ShutdownError(f"Shutdown error: {e}", cause=e) from e
        finally:
            self._stopped.set()

    async def run_forever(self) -> None:
        """Start and block until stopped."""
        if not self._running:
            await self.start()
        await self._stopped.wait()

    # --------------------------------------------------------
    # Signals
    # --------------------------------------------------------

    def _install_signal_handlers(self) -> None:
        """Install signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(
                sig,
                lambda s=sig: asyncio.create_task(self._async_signal_handler(s)),
            )
        self._signals_installed = True

    def _restore_signal_handlers(self) -> None:
        if not self._signals_installed:
            return

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)
        self._signals_installed = False

    async def _async_signal_handler(self, sig: signal.Signals) -> None:
        self._logger.info(f"Received signal {sig.name}")
        await self.stop()

    # --------------------------------------------------------
    # Status
    # --------------------------------------------------------

    def get_status(self) -> Dict[str, Any]:
        """Runtime snapshot served on GET /status."""
        return {
            "running": self._running,
            "env": self._config.app_env,
            "recipient_mode": self._config.recipient_mode.value,
            "queue": self._queue.status().to_dict(),
            "poller": self._poller.get_stats(),
        }
