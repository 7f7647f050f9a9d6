"""
aiogram Message / PreCheckoutQuery -> InboundEvent.
Всё, что роутер не умеет обрабатывать, становится OtherEvent.
"""
from __future__ import annotations

from aiogram.types import Message, PreCheckoutQuery

from keybot.routing.models import (
    CheckoutRequested,
    InboundEvent,
    OtherEvent,
    PaymentCompleted,
    PaymentDetails,
    TextEntity,
    TextMessage,
)


def _sender_username(message: Message) -> str | None:
    if message.from_user is not None and message.from_user.username:
        return message.from_user.username
    return message.chat.username


def from_message(message: Message) -> InboundEvent:
    if message.successful_payment is not None:
        sp = message.successful_payment
        return PaymentCompleted(
            chat_id=message.chat.id,
            payer_id=message.from_user.id if message.from_user else None,
            payment=PaymentDetails(
                currency=sp.currency,
                total_amount=sp.total_amount,
                invoice_payload=sp.invoice_payload,
                telegram_payment_charge_id=sp.telegram_payment_charge_id,
                provider_payment_charge_id=sp.provider_payment_charge_id or "",
            ),
        )

    if message.text is not None:
        return TextMessage(
            chat_id=message.chat.id,
            sender_username=_sender_username(message),
            text=message.text,
            entities=tuple(
                TextEntity(type=e.type, offset=e.offset, length=e.length)
                for e in (message.entities or [])
            ),
        )

    return OtherEvent(description=f"message:{message.content_type}")


def from_pre_checkout(query: PreCheckoutQuery) -> InboundEvent:
    return CheckoutRequested(
        query_id=query.id,
        payer_id=query.from_user.id,
        currency=query.currency,
        total_amount=query.total_amount,
        invoice_payload=query.invoice_payload,
    )
