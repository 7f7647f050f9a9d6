"""
Execution: одно действие -> один исходящий вызов (Bot API или backend + Bot API).
Без ретраев; любая ошибка поднимается как ActionFailed(action, cause).
"""
from __future__ import annotations

import logging
import time
from typing import Any, Awaitable

from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.types import LabeledPrice

from keybot.routing.errors import ActionFailed, TransportError
from keybot.routing.models import (
    Action,
    AnswerCheckout,
    FetchAndSendCredential,
    InvoiceSpec,
    NoOp,
    SendGreeting,
    SendInvoice,
)
from keybot.services.credentials.service import BrokerError, CredentialBroker
from keybot.utils.metrics import (
    telegram_requests_total,
    telegram_request_duration_seconds,
)

logger = logging.getLogger(__name__)

DEFAULT_GREETING = "hi"


def format_credential_message(credential: str) -> str:
    return f"Your API KEY:\n\n`{credential}`"


class ActionExecutor:
    """Runs routed actions against the shared Bot and CredentialBroker handles."""

    def __init__(
        self,
        bot: Bot,
        broker: CredentialBroker,
        invoice: InvoiceSpec,
        greeting: str = DEFAULT_GREETING,
    ) -> None:
        self.bot = bot
        self.broker = broker
        self.invoice = invoice
        self.greeting = greeting

    async def _call(self, method: str, call: Awaitable[Any]) -> Any:
        start = time.time()
        try:
            result = await call
        except TelegramAPIError as e:
            telegram_requests_total.labels(method=method, status="error").inc()
            telegram_request_duration_seconds.labels(method=method).observe(time.time() - start)
            raise TransportError(f"{method}: {e}") from e
        telegram_requests_total.labels(method=method, status="success").inc()
        telegram_request_duration_seconds.labels(method=method).observe(time.time() - start)
        return result

    async def execute(self, action: Action) -> None:
        if isinstance(action, NoOp):
            return
        try:
            if isinstance(action, SendGreeting):
                await self._send_greeting(action)
            elif isinstance(action, SendInvoice):
                await self._send_invoice(action)
            elif isinstance(action, FetchAndSendCredential):
                await self._fetch_and_send_credential(action)
            elif isinstance(action, AnswerCheckout):
                await self._answer_checkout(action)
            else:
                raise TypeError(f"Unknown action: {type(action).__name__}")
        except (TransportError, BrokerError) as e:
            raise ActionFailed(action.name, e) from e

    async def _send_greeting(self, action: SendGreeting) -> None:
        await self._call(
            "sendMessage",
            self.bot.send_message(chat_id=action.chat_id, text=self.greeting),
        )

    async def _send_invoice(self, action: SendInvoice) -> None:
        invoice = self.invoice
        await self._call(
            "sendInvoice",
            self.bot.send_invoice(
                chat_id=action.chat_id,
                title=invoice.title,
                description=invoice.description,
                payload=invoice.payload,
                currency=invoice.currency,
                prices=[LabeledPrice(label=invoice.price_label, amount=invoice.price_amount)],
            ),
        )

    async def _fetch_and_send_credential(self, action: FetchAndSendCredential) -> None:
        credential = await self.broker.fetch_credential(action.user_id)
        await self._call(
            "sendMessage",
            self.bot.send_message(
                chat_id=action.chat_id,
                text=format_credential_message(credential),
                parse_mode=ParseMode.MARKDOWN,
            ),
        )
        logger.info(
            "credential_delivered",
            extra={"chat_id": action.chat_id, "user_id": action.user_id, "reason": action.origin},
        )

    async def _answer_checkout(self, action: AnswerCheckout) -> None:
        await self._call(
            "answerPreCheckoutQuery",
            self.bot.answer_pre_checkout_query(
                pre_checkout_query_id=action.query_id,
                ok=action.ok,
                error_message=action.error_message,
            ),
        )
        if not action.ok:
            logger.warning(
                "pre_checkout_rejected",
                extra={"query_id": action.query_id, "reason": action.error_message},
            )
