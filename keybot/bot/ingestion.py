"""
Ingestion strategies: long-poll or webhook, chosen once at startup.
Both feed the same Dispatcher, so handlers never know which one is active.
"""
import logging

import uvicorn
from aiogram import Bot, Dispatcher
from aiogram.exceptions import TelegramAPIError
from prometheus_client import start_http_server

from keybot.bot.webhook import create_webhook_app
from keybot.core.config import Settings

logger = logging.getLogger(__name__)


class StartupError(Exception):
    """Unrecoverable startup failure (webhook registration, bad token)."""


class PollingIngestion:
    mode = "long_poll"

    def __init__(self, bot: Bot, dp: Dispatcher, settings: Settings) -> None:
        self.bot = bot
        self.dp = dp
        self.settings = settings

    async def run(self) -> None:
        # Delete webhook if exists (we use polling)
        try:
            await self.bot.delete_webhook(drop_pending_updates=True)
        except TelegramAPIError as e:
            raise StartupError(f"Failed delete webhook: {e}") from e

        if self.settings.metrics_port:
            start_http_server(self.settings.metrics_port)
            logger.info(f"Metrics server started on :{self.settings.metrics_port}", extra={"mode": self.mode})

        await self.dp.start_polling(
            self.bot,
            allowed_updates=self.dp.resolve_used_update_types(),
        )


class WebhookIngestion:
    mode = "webhook"

    def __init__(self, bot: Bot, dp: Dispatcher, settings: Settings) -> None:
        self.bot = bot
        self.dp = dp
        self.settings = settings

    async def register(self) -> None:
        try:
            await self.bot.set_webhook(
                self.settings.webhook_address,
                drop_pending_updates=True,
                secret_token=self.settings.webhook_secret or None,
                allowed_updates=self.dp.resolve_used_update_types(),
            )
        except TelegramAPIError as e:
            raise StartupError(f"Failed set webhook: {e}") from e

    async def run(self) -> None:
        await self.register()
        app = create_webhook_app(self.bot, self.dp, self.settings)
        config = uvicorn.Config(
            app,
            host=self.settings.bind_host,
            port=self.settings.bind_port,
            log_config=None,  # keep JSON root logging
        )
        logger.info(
            "Webhook server starting",
            extra={"mode": self.mode, "path": self.settings.webhook_path},
        )
        await uvicorn.Server(config).serve()


def select_ingestion(bot: Bot, dp: Dispatcher, settings: Settings) -> PollingIngestion | WebhookIngestion:
    if settings.webhook_feature:
        return WebhookIngestion(bot, dp, settings)
    return PollingIngestion(bot, dp, settings)
