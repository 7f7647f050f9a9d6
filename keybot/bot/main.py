"""
Telegram bot using aiogram 3.x
Every update is normalized and handed to keybot.routing; mode (polling/webhook) is chosen at startup.
"""
import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher, Router
from aiogram.types import ErrorEvent, Message, PreCheckoutQuery
from aiogram.utils.token import TokenValidationError

from keybot.bot.ingestion import StartupError, select_ingestion
from keybot.core.config import ConfigError, Settings, load_settings
from keybot.core.logging import configure_logging
from keybot.routing import ActionExecutor, InvoiceSpec, handle_event
from keybot.routing.normalize import from_message, from_pre_checkout
from keybot.services.credentials.service import CredentialBroker

logger = logging.getLogger("bot")


# ===========================================
# Handlers
# ===========================================

async def on_message(message: Message, executor: ActionExecutor, settings: Settings) -> None:
    """Text commands and successful_payment both arrive as messages."""
    await handle_event(from_message(message), executor, settings.superuser)


async def on_pre_checkout(pre_checkout: PreCheckoutQuery, executor: ActionExecutor, settings: Settings) -> None:
    """Валидация платежа перед списанием Stars."""
    await handle_event(from_pre_checkout(pre_checkout), executor, settings.superuser)


async def on_error(event: ErrorEvent, *args, **kwargs):
    """Global error handler (anything that escaped handle_event)."""
    logger.error(
        "Error in handler",
        exc_info=event.exception,
        extra={"error": str(event.exception), "update_id": event.update.update_id},
    )


def create_router() -> Router:
    router = Router(name="keybot")
    router.message.register(on_message)
    router.pre_checkout_query.register(on_pre_checkout)
    return router


def create_dispatcher(settings: Settings, executor: ActionExecutor) -> Dispatcher:
    # settings/executor become handler kwargs (aiogram workflow data)
    dp = Dispatcher(settings=settings, executor=executor)
    dp.errors.register(on_error)
    dp.include_router(create_router())
    return dp


def build_invoice(settings: Settings) -> InvoiceSpec:
    return InvoiceSpec(
        title=settings.invoice_title,
        description=settings.invoice_description,
        payload=settings.invoice_payload,
        currency=settings.invoice_currency,
        price_label=settings.invoice_price_label,
        price_amount=settings.invoice_price_amount,
    )


async def main(settings: Settings) -> None:
    """Start the bot."""
    try:
        bot = Bot(token=settings.tgbot_token)
    except TokenValidationError as e:
        raise StartupError(f"Failed create bot: {e}") from e

    broker = CredentialBroker.from_settings(settings)
    executor = ActionExecutor(bot, broker, build_invoice(settings), greeting=settings.greeting_text)
    dp = create_dispatcher(settings, executor)
    ingestion = select_ingestion(bot, dp, settings)

    logger.info(f"The bot will be started as {ingestion.mode.upper()}", extra={"mode": ingestion.mode})
    try:
        await ingestion.run()
    finally:
        await broker.aclose()
        await bot.session.close()


def run() -> None:
    """Console entry point: fail fast on configuration or startup errors."""
    try:
        settings = load_settings()
    except ConfigError as e:
        sys.exit(f"Invalid configuration: {e}")

    configure_logging(settings)
    try:
        asyncio.run(main(settings))
    except StartupError as e:
        logger.error("Startup failed", extra={"error": str(e)})
        sys.exit(str(e))


if __name__ == "__main__":
    run()
