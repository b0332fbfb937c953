"""HTTP surface: transaction webhook, bot updates and manual triggers.

Routes:
- POST /webhook/helius    enhanced transaction batches, shared-secret auth
- POST /webhook/telegram  Bot API updates for the command router
- GET  /cron              run one poll cycle
- GET  /setup-webhook     register /webhook/telegram with the Bot API
- GET  /webhook-info      show the Bot API webhook state
- GET  /health            liveness probe
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Awaitable, Callable, Optional

from aiohttp import web

from adapters.helius import parse_enhanced_transactions
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_commands import TelegramCommandRouter
from core.errors import AuthFailure, MalformedUpstreamResponse, UpstreamError
from core.processor import AlertPipeline

LOGGER = logging.getLogger(__name__)

TELEGRAM_SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def verify_shared_secret(received: Optional[str], expected: str) -> None:
    """Raise AuthFailure unless received equals expected."""

    if not expected or received is None:
        raise AuthFailure("missing shared secret")
    if not hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8")):
        raise AuthFailure("shared secret mismatch")


class WebhookServer:
    """aiohttp application wiring inbound HTTP onto the alert pipeline."""

    def __init__(
        self,
        pipeline: AlertPipeline,
        run_poll: Callable[[], Awaitable[int]],
        helius_secret: str,
        router: Optional[TelegramCommandRouter] = None,
        bot: Optional[TelegramBotNotifier] = None,
        telegram_secret: Optional[str] = None,
        public_url: Optional[str] = None,
    ) -> None:
        self._pipeline = pipeline
        self._run_poll = run_poll
        self._helius_secret = helius_secret
        self._router = router
        self._bot = bot
        self._telegram_secret = telegram_secret
        self._public_url = public_url
        self._runner: Optional[web.AppRunner] = None

        self.app = web.Application()
        self.app.add_routes(
            [
                web.post("/webhook/helius", self.handle_helius),
                web.post("/webhook/telegram", self.handle_telegram),
                web.get("/cron", self.handle_cron),
                web.get("/setup-webhook", self.handle_setup_webhook),
                web.get("/webhook-info", self.handle_webhook_info),
                web.get("/health", self.handle_health),
            ]
        )

    async def start(self, host: str, port: int) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        LOGGER.info("Webhook server listening on %s:%s", host, port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    async def handle_helius(self, request: web.Request) -> web.Response:
        # Authenticate before reading the body so rejected deliveries never
        # reach the dedup store.
        try:
            verify_shared_secret(request.headers.get("Authorization"), self._helius_secret)
        except AuthFailure as exc:
            LOGGER.warning("Rejected transaction webhook from %s: %s", request.remote, exc)
            return web.Response(text="Unauthorized", status=401)

        try:
            payload = await request.json()
            transactions = parse_enhanced_transactions(payload)
        except (ValueError, MalformedUpstreamResponse) as exc:
            LOGGER.warning("Invalid transaction webhook body: %s", exc)
            return web.Response(text="Invalid payload", status=400)

        try:
            delivered = await self._pipeline.handle_transactions(transactions)
        except Exception:
            LOGGER.exception("Transaction webhook processing failed")
            return web.Response(text="Error", status=500)
        return web.json_response({"received": len(transactions), "alerted": delivered})

    async def handle_telegram(self, request: web.Request) -> web.Response:
        if self._router is None:
            return web.Response(text="Not configured", status=404)
        if self._telegram_secret:
            try:
                verify_shared_secret(
                    request.headers.get(TELEGRAM_SECRET_HEADER), self._telegram_secret
                )
            except AuthFailure as exc:
                LOGGER.warning("Rejected bot update: %s", exc)
                return web.Response(text="Unauthorized", status=401)
        try:
            update = await request.json()
        except ValueError:
            return web.Response(text="Invalid payload", status=400)
        await self._router.handle_update(update)
        return web.Response(text="OK")

    async def handle_cron(self, request: web.Request) -> web.Response:
        delivered = await self._run_poll()
        return web.Response(text=f"Cron job executed ({delivered} alerts)")

    async def handle_setup_webhook(self, request: web.Request) -> web.Response:
        if self._bot is None:
            return web.Response(text="Not configured", status=404)
        base_url = self._public_url or f"{request.scheme}://{request.host}"
        try:
            result: Any = await self._bot.set_webhook(
                f"{base_url.rstrip('/')}/webhook/telegram", self._telegram_secret
            )
        except UpstreamError as exc:
            LOGGER.error("setWebhook failed: %s", exc)
            return web.json_response({"ok": False, "error": "Bot API request failed"}, status=502)
        return web.json_response(result)

    async def handle_webhook_info(self, request: web.Request) -> web.Response:
        if self._bot is None:
            return web.Response(text="Not configured", status=404)
        try:
            result = await self._bot.get_webhook_info()
        except UpstreamError as exc:
            LOGGER.error("getWebhookInfo failed: %s", exc)
            return web.json_response({"ok": False, "error": "Bot API request failed"}, status=502)
        return web.json_response(result)

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.Response(text="OK")
