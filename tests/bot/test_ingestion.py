"""
Стратегии ingestion и сквозной прогон апдейта через Dispatcher (без сети).
"""
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramNetworkError
from aiogram.methods import DeleteWebhook, SetWebhook
from aiogram.types import Update

from keybot.bot.ingestion import (
    PollingIngestion,
    StartupError,
    WebhookIngestion,
    select_ingestion,
)
from keybot.bot.main import build_invoice, create_dispatcher
from keybot.core.config import load_settings
from keybot.routing.executor import ActionExecutor


def _make_settings(**kwargs):
    values = {
        "_env_file": None,
        "tgbot_token": "123456:TEST-token",
        "super_api_key": "super-key",
        "api_url": "https://backend.test/api/keys",
        "s_username": "Root",
    }
    values.update(kwargs)
    return load_settings(**values)


def _webhook_settings(**kwargs):
    return _make_settings(
        webhook_feature="yes",
        webhook_address="https://bot.test/",
        host="0.0.0.0",
        port="8443",
        **kwargs,
    )


def _make_dp():
    dp = MagicMock()
    dp.start_polling = AsyncMock()
    dp.resolve_used_update_types.return_value = ["message", "pre_checkout_query"]
    return dp


class TestSelectIngestion(unittest.TestCase):
    def test_polling_by_default(self):
        ingestion = select_ingestion(MagicMock(), _make_dp(), _make_settings())
        self.assertIsInstance(ingestion, PollingIngestion)
        self.assertEqual(ingestion.mode, "long_poll")

    def test_webhook_when_feature_on(self):
        ingestion = select_ingestion(MagicMock(), _make_dp(), _webhook_settings())
        self.assertIsInstance(ingestion, WebhookIngestion)
        self.assertEqual(ingestion.mode, "webhook")


class TestPollingIngestion(unittest.IsolatedAsyncioTestCase):
    async def test_deletes_webhook_then_polls(self):
        bot = MagicMock()
        bot.delete_webhook = AsyncMock()
        dp = _make_dp()
        await PollingIngestion(bot, dp, _make_settings()).run()
        bot.delete_webhook.assert_awaited_once_with(drop_pending_updates=True)
        dp.start_polling.assert_awaited_once_with(
            bot, allowed_updates=["message", "pre_checkout_query"]
        )

    async def test_delete_webhook_failure_is_fatal(self):
        bot = MagicMock()
        bot.delete_webhook = AsyncMock(
            side_effect=TelegramNetworkError(method=DeleteWebhook(), message="timeout")
        )
        dp = _make_dp()
        with self.assertRaises(StartupError):
            await PollingIngestion(bot, dp, _make_settings()).run()
        dp.start_polling.assert_not_awaited()

    @patch("keybot.bot.ingestion.start_http_server")
    async def test_metrics_server_when_port_configured(self, mock_server):
        bot = MagicMock()
        bot.delete_webhook = AsyncMock()
        await PollingIngestion(bot, _make_dp(), _make_settings(metrics_port=9100)).run()
        mock_server.assert_called_once_with(9100)


class TestWebhookIngestion(unittest.IsolatedAsyncioTestCase):
    async def test_register_sets_webhook(self):
        bot = MagicMock()
        bot.set_webhook = AsyncMock()
        await WebhookIngestion(bot, _make_dp(), _webhook_settings(webhook_secret="s3cret")).register()
        bot.set_webhook.assert_awaited_once_with(
            "https://bot.test/",
            drop_pending_updates=True,
            secret_token="s3cret",
            allowed_updates=["message", "pre_checkout_query"],
        )

    async def test_set_webhook_failure_is_fatal(self):
        bot = MagicMock()
        bot.set_webhook = AsyncMock(
            side_effect=TelegramNetworkError(method=SetWebhook(url="https://bot.test/"), message="boom")
        )
        with self.assertRaises(StartupError):
            await WebhookIngestion(bot, _make_dp(), _webhook_settings()).register()

    @patch("keybot.bot.ingestion.uvicorn.Server")
    async def test_run_serves_on_configured_host_port(self, mock_server_cls):
        bot = MagicMock()
        bot.set_webhook = AsyncMock()
        mock_server_cls.return_value.serve = AsyncMock()
        await WebhookIngestion(bot, _make_dp(), _webhook_settings()).run()
        config = mock_server_cls.call_args.args[0]
        self.assertEqual(config.host, "0.0.0.0")
        self.assertEqual(config.port, 8443)
        mock_server_cls.return_value.serve.assert_awaited_once()


class TestDispatcherRouting(unittest.IsolatedAsyncioTestCase):
    """Update JSON -> Dispatcher -> handle_event -> ActionExecutor (mocked Bot API)."""

    async def asyncSetUp(self):
        self.settings = _make_settings()
        self.api = MagicMock()
        self.api.send_message = AsyncMock()
        self.api.send_invoice = AsyncMock()
        self.api.answer_pre_checkout_query = AsyncMock()
        self.broker = MagicMock()
        self.broker.fetch_credential = AsyncMock(return_value="SECRET123")
        executor = ActionExecutor(self.api, self.broker, build_invoice(self.settings))
        self.dp = create_dispatcher(self.settings, executor)
        self.bot = Bot(token=self.settings.tgbot_token)

    async def asyncTearDown(self):
        await self.bot.session.close()

    async def _feed(self, data: dict) -> None:
        update = Update.model_validate(data, context={"bot": self.bot})
        await self.dp.feed_update(self.bot, update)

    def _text_update(self, text: str, username: str = "someone") -> dict:
        return {
            "update_id": 1,
            "message": {
                "message_id": 1,
                "date": 1700000000,
                "chat": {"id": 7, "type": "private", "username": username},
                "from": {"id": 42, "is_bot": False, "first_name": "U", "username": username},
                "text": text,
                "entities": [{"type": "bot_command", "offset": 0, "length": len(text.split()[0])}],
            },
        }

    async def test_start(self):
        await self._feed(self._text_update("/start"))
        self.api.send_message.assert_awaited_once_with(chat_id=7, text="hi")

    async def test_superuser_test_buy(self):
        await self._feed(self._text_update("/test_buy", username="root"))
        self.broker.fetch_credential.assert_awaited_once_with("1")
        self.api.send_message.assert_awaited_once_with(
            chat_id=7,
            text="Your API KEY:\n\n`SECRET123`",
            parse_mode=ParseMode.MARKDOWN,
        )

    async def test_successful_payment(self):
        await self._feed({
            "update_id": 2,
            "message": {
                "message_id": 2,
                "date": 1700000000,
                "chat": {"id": 7, "type": "private"},
                "from": {"id": 42, "is_bot": False, "first_name": "U"},
                "successful_payment": {
                    "currency": "XTR",
                    "total_amount": 123,
                    "invoice_payload": "1",
                    "telegram_payment_charge_id": "tg_1",
                    "provider_payment_charge_id": "pr_1",
                },
            },
        })
        self.broker.fetch_credential.assert_awaited_once_with("42")
        self.api.send_message.assert_awaited_once()

    async def test_pre_checkout_is_answered(self):
        await self._feed({
            "update_id": 3,
            "pre_checkout_query": {
                "id": "q1",
                "from": {"id": 42, "is_bot": False, "first_name": "U"},
                "currency": "XTR",
                "total_amount": 123,
                "invoice_payload": "1",
            },
        })
        self.api.answer_pre_checkout_query.assert_awaited_once_with(
            pre_checkout_query_id="q1", ok=True, error_message=None
        )
