"""
Decision только: route(event, privilege) -> Action.
Чистая функция, без I/O: каждое событие даёт не больше одного действия.
"""
from __future__ import annotations

import logging

from keybot.routing.commands import parse_command
from keybot.routing.models import (
    Action,
    AnswerCheckout,
    CheckoutRequested,
    Command,
    FetchAndSendCredential,
    InboundEvent,
    InvoiceSpec,
    NoOp,
    PaymentCompleted,
    SendGreeting,
    SendInvoice,
    TextMessage,
)

logger = logging.getLogger(__name__)

# Фиксированный user_id для /test_buy (и запасной, если в платеже нет плательщика)
TEST_USER_ID = "1"

CHECKOUT_REJECT_MESSAGE = "This invoice is no longer valid. Use /buy to get a new one."


def is_privileged(sender_username: str | None, superuser: str) -> bool:
    """Case-insensitive match of the sender against the configured superuser."""
    if not sender_username or not superuser:
        return False
    return sender_username.lstrip("@").lower() == superuser.lstrip("@").lower()


def payment_user_id(event: PaymentCompleted) -> str:
    """User id for the credential request, taken from the payer."""
    if event.payer_id is None:
        logger.warning(
            "Payment without payer, falling back to fixed user id",
            extra={"chat_id": event.chat_id, "user_id": TEST_USER_ID},
        )
        return TEST_USER_ID
    return str(event.payer_id)


def route(
    event: InboundEvent,
    privilege: bool,
    *,
    invoice: InvoiceSpec | None = None,
) -> Action:
    """
    Map one inbound event to exactly one action.

    - /start -> SendGreeting, /buy -> SendInvoice (privilege не важна)
    - /test_buy -> FetchAndSendCredential только при privilege, иначе NoOp (молча)
    - PaymentCompleted -> FetchAndSendCredential, содержимое платежа не проверяется
    - CheckoutRequested -> AnswerCheckout (сверка payload/валюты с invoice)
    - всё остальное -> NoOp
    """
    if isinstance(event, TextMessage):
        command = parse_command(event)
        if command is Command.START:
            return SendGreeting(chat_id=event.chat_id)
        if command is Command.BUY:
            return SendInvoice(chat_id=event.chat_id)
        if command is Command.TEST_BUY and privilege:
            return FetchAndSendCredential(
                chat_id=event.chat_id,
                user_id=TEST_USER_ID,
                origin="test_buy",
            )
        return NoOp()

    if isinstance(event, PaymentCompleted):
        return FetchAndSendCredential(
            chat_id=event.chat_id,
            user_id=payment_user_id(event),
            origin="payment",
        )

    if isinstance(event, CheckoutRequested):
        return _answer_checkout(event, invoice)

    return NoOp()


def _answer_checkout(event: CheckoutRequested, invoice: InvoiceSpec | None) -> AnswerCheckout:
    if invoice is None:
        return AnswerCheckout(query_id=event.query_id, ok=True)
    if event.invoice_payload != invoice.payload or event.currency != invoice.currency:
        return AnswerCheckout(
            query_id=event.query_id,
            ok=False,
            error_message=CHECKOUT_REJECT_MESSAGE,
        )
    return AnswerCheckout(query_id=event.query_id, ok=True)
