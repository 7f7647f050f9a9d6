"""
FastAPI app for webhook mode.
Serves the Telegram webhook endpoint, health, and metrics.
"""
import logging

from aiogram import Bot, Dispatcher
from aiogram.types import Update
from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Request
from pydantic import ValidationError

from keybot.core.config import Settings
from keybot.utils.metrics import router as metrics_router

logger = logging.getLogger(__name__)


def create_webhook_app(bot: Bot, dp: Dispatcher, settings: Settings) -> FastAPI:
    app = FastAPI(
        title="Key Bot Webhook",
        description="Telegram webhook receiver for the API key shop bot",
        version="1.0.0",
    )

    @app.get("/health")
    def health() -> dict:
        """Liveness probe - always returns 200 if app is running."""
        return {"status": "ok", "mode": settings.mode}

    @app.post(settings.webhook_path)
    async def telegram_webhook(
        request: Request,
        background_tasks: BackgroundTasks,
        x_telegram_bot_api_secret_token: str | None = Header(None),
    ) -> dict:
        """
        Webhook endpoint for Telegram updates.

        The update is fed to the dispatcher after the response is sent,
        so Telegram gets a fast 200 OK.
        """
        if settings.webhook_secret:
            if x_telegram_bot_api_secret_token != settings.webhook_secret:
                raise HTTPException(status_code=403, detail="Invalid secret token")

        try:
            data = await request.json()
            update = Update.model_validate(data, context={"bot": bot})
        except (ValueError, ValidationError) as e:
            # Telegram redelivers anything answered with non-2xx
            logger.warning("Received invalid update data", extra={"error": str(e)})
            return {"ok": True}

        background_tasks.add_task(dp.feed_update, bot, update)
        return {"ok": True}

    app.include_router(metrics_router)
    return app
