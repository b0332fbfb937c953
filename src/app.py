"""Application entry point for the tokenscope alert service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import Optional

import aiohttp
from art import tprint
from dotenv import load_dotenv
from telethon import TelegramClient

import settings
from adapters.helius import HeliusClient
from adapters.market_data import CoinMarketCapClient, CoinPaprikaClient
from adapters.notification_formatting import format_alert
from adapters.sqlite_storage import SQLiteDedupStore
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_commands import TelegramCommandRouter
from adapters.telegram_notifier import TelegramSavedMessagesNotifier
from adapters.webhook_server import WebhookServer
from client import build_client, connect_authorized, login
from core.cache import FreshnessCache
from core.config import DedupConfig, NotificationConfig, RetryConfig
from core.dispatcher import AlertDispatcher
from core.processor import AlertPipeline

NAME = "TOKENSCOPE"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    # Longest first so a secret containing another is masked whole.
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/tokenscope.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    # aiohttp logs every access line at INFO; keep the console readable.
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"{name} is required in the environment")
    return value


def _retry_config() -> RetryConfig:
    return RetryConfig(
        max_attempts=settings.RETRY_MAX_ATTEMPTS,
        delay_seconds=settings.RETRY_DELAY_SECONDS,
        timeout_seconds=settings.RETRY_TIMEOUT_SECONDS,
    )


def _dedup_config() -> DedupConfig:
    return DedupConfig(
        min_market_cap_usd=settings.MIN_MARKET_CAP_USD,
        token_ttl_seconds=settings.TOKEN_TTL_SECONDS,
        transaction_ttl_seconds=settings.TRANSACTION_TTL_SECONDS,
    )


def _open_store() -> SQLiteDedupStore:
    store = SQLiteDedupStore(settings.DB_PATH)
    store.init_db()
    return store


@dataclass
class _Services:
    """Everything built once per process and shared by all entry points."""

    pipeline: AlertPipeline
    helius: HeliusClient
    bot: Optional[TelegramBotNotifier] = None
    router: Optional[TelegramCommandRouter] = None
    telethon_client: Optional[TelegramClient] = None

    async def poll(self) -> int:
        return await self.pipeline.run_poll(self.helius.search_assets)


def _notification_config() -> NotificationConfig:
    return NotificationConfig(
        send_interval_seconds=settings.SEND_INTERVAL_SECONDS,
        retry_attempts=settings.NOTIFY_RETRY_ATTEMPTS,
    )


def _build_bot(
    session: aiohttp.ClientSession, notifications: NotificationConfig
) -> Optional[TelegramBotNotifier]:
    """Build the Bot API adapter, or None when no bot token is configured."""

    bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
    if settings.NOTIFICATION_METHOD == "bot":
        bot_token = _require_env("TELEGRAM_BOT_TOKEN")
        _require_env("TELEGRAM_CHANNEL_ID")
    if not bot_token:
        return None
    return TelegramBotNotifier(
        session,
        bot_token=bot_token,
        chat_id=os.getenv("TELEGRAM_CHANNEL_ID", ""),
        retry=RetryConfig(
            max_attempts=notifications.retry_attempts,
            delay_seconds=settings.RETRY_DELAY_SECONDS,
            timeout_seconds=settings.RETRY_TIMEOUT_SECONDS,
        ),
    )


async def _build_services(session: aiohttp.ClientSession) -> _Services:
    retry = _retry_config()
    dedup = _dedup_config()
    notifications = _notification_config()

    store = _open_store()
    if settings.DEDUP_CLEANUP_ON_START:
        removed = store.cleanup_expired()
        LOGGER.info("Dedup cleanup removed %s expired markers", removed)

    bot = _build_bot(session, notifications)

    # Select the alert notifier based on configuration to keep the core
    # pipeline independent from delivery details.
    telethon_client = None
    if settings.NOTIFICATION_METHOD == "bot":
        notifier = bot
    elif settings.NOTIFICATION_METHOD == "saved_messages":
        telethon_client = build_client()
        await connect_authorized(telethon_client)
        notifier = TelegramSavedMessagesNotifier(telethon_client, settings.SAVED_MESSAGES_TARGET)
    else:
        raise RuntimeError("notification_method must be 'bot' or 'saved_messages'")
    LOGGER.info("Selected notification method - %s", settings.NOTIFICATION_METHOD)

    dispatcher = AlertDispatcher(
        notifier,
        format_alert,
        send_interval=notifications.send_interval_seconds,
    )
    pipeline = AlertPipeline(store, dispatcher, dedup)
    helius = HeliusClient(
        session,
        api_key=_require_env("HELIUS_API_KEY"),
        retry=retry,
        limit=settings.POLL_LIMIT,
        sort_by=settings.POLL_SORT_BY,
        sort_direction=settings.POLL_SORT_DIRECTION,
    )

    # One cache for the whole process; it starts empty on every restart.
    cache = FreshnessCache(settings.CACHE_FRESHNESS_SECONDS)
    services = _Services(
        pipeline=pipeline,
        helius=helius,
        bot=bot,
        telethon_client=telethon_client,
    )
    if bot is None:
        LOGGER.info("TELEGRAM_BOT_TOKEN is not set; bot commands are disabled")
        return services
    services.router = TelegramCommandRouter(
        replier=bot,
        coinmarketcap=CoinMarketCapClient(session, os.getenv("CMC_API_KEY", ""), retry),
        coinpaprika=CoinPaprikaClient(session, retry),
        cache=cache,
        run_alert_check=services.poll,
        min_market_cap_usd=dedup.min_market_cap_usd,
    )
    return services


async def _close_services(services: _Services) -> None:
    if services.telethon_client is not None:
        await services.telethon_client.disconnect()


async def _poll_forever(services: _Services, interval: float) -> None:
    while True:
        await services.poll()
        await asyncio.sleep(interval)


async def _serve() -> None:
    async with aiohttp.ClientSession() as session:
        services = await _build_services(session)
        helius_secret = os.getenv("HELIUS_WEBHOOK_SECRET", "")
        if not helius_secret:
            LOGGER.warning("HELIUS_WEBHOOK_SECRET is not set; transaction webhooks will be rejected")

        server = WebhookServer(
            pipeline=services.pipeline,
            run_poll=services.poll,
            helius_secret=helius_secret,
            router=services.router,
            bot=services.bot,
            telegram_secret=os.getenv("TELEGRAM_WEBHOOK_SECRET") or None,
            public_url=settings.PUBLIC_URL,
        )
        await server.start(settings.SERVER_HOST, settings.SERVER_PORT)
        LOGGER.info("Polling every %s seconds", settings.POLL_INTERVAL_SECONDS)
        try:
            await _poll_forever(services, settings.POLL_INTERVAL_SECONDS)
        finally:
            await server.stop()
            await _close_services(services)


async def _poll_once() -> int:
    async with aiohttp.ClientSession() as session:
        services = await _build_services(session)
        try:
            return await services.poll()
        finally:
            await _close_services(services)


async def _setup_webhook() -> None:
    if not settings.PUBLIC_URL:
        raise RuntimeError("server.public_url is required to register the bot webhook")
    async with aiohttp.ClientSession() as session:
        bot = TelegramBotNotifier(
            session,
            bot_token=_require_env("TELEGRAM_BOT_TOKEN"),
            chat_id="",
            retry=_retry_config(),
        )
        result = await bot.set_webhook(
            f"{settings.PUBLIC_URL.rstrip('/')}/webhook/telegram",
            os.getenv("TELEGRAM_WEBHOOK_SECRET") or None,
        )
        LOGGER.info("setWebhook result: %s", result)


def _run() -> None:
    _print_banner()
    LOGGER.info("Starting tokenscope")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        LOGGER.info("Stopped")


def _cleanup() -> None:
    removed = _open_store().cleanup_expired()
    LOGGER.info("Removed %s expired markers", removed)


def _login() -> None:
    _print_banner()
    asyncio.run(login(build_client()))


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    _configure_logging()

    parser = argparse.ArgumentParser(prog="tokenscope")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the webhook server and the poll scheduler")
    subparsers.add_parser("poll", help="Run a single poll cycle and exit")
    subparsers.add_parser("cleanup", help="Delete expired dedup markers")
    subparsers.add_parser("setup-webhook", help="Register the bot webhook at server.public_url")
    subparsers.add_parser("login", help="Authorize the Telegram user session")

    args = parser.parse_args(argv)
    if args.command == "poll":
        delivered = asyncio.run(_poll_once())
        LOGGER.info("Poll complete: %s alerts sent", delivered)
        return
    if args.command == "cleanup":
        _cleanup()
        return
    if args.command == "setup-webhook":
        asyncio.run(_setup_webhook())
        return
    if args.command == "login":
        _login()
        return
    _run()


if __name__ == "__main__":
    main()
