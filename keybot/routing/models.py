"""
DTO роутинга: входящие события (InboundEvent) и действия (Action).
Все модели иммутабельны; неизвестные типы апдейтов приходят как OtherEvent.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class Command(str, Enum):
    START = "/start"
    BUY = "/buy"
    TEST_BUY = "/test_buy"


# ----- Входящие события -----


class TextEntity(BaseModel):
    """Platform entity span (Telegram MessageEntity: type/offset/length, UTF-16 units)."""

    type: str
    offset: int
    length: int

    model_config = {"frozen": True}


class TextMessage(BaseModel):
    kind: Literal["text_message"] = "text_message"
    chat_id: int
    sender_username: str | None = None
    text: str
    # None = платформа не прислала entities; тогда команда распознаётся по префиксу "/"
    entities: tuple[TextEntity, ...] | None = None

    model_config = {"frozen": True}


class PaymentDetails(BaseModel):
    """successful_payment как есть; роутер его не интерпретирует."""

    currency: str = ""
    total_amount: int = 0
    invoice_payload: str = ""
    telegram_payment_charge_id: str = ""
    provider_payment_charge_id: str = ""

    model_config = {"frozen": True}


class PaymentCompleted(BaseModel):
    kind: Literal["payment_completed"] = "payment_completed"
    chat_id: int
    payer_id: int | None = None
    payment: PaymentDetails = Field(default_factory=PaymentDetails)

    model_config = {"frozen": True}


class CheckoutRequested(BaseModel):
    """Pre-checkout query: Telegram ждёт ответа до списания Stars."""

    kind: Literal["checkout_requested"] = "checkout_requested"
    query_id: str
    payer_id: int | None = None
    currency: str
    total_amount: int
    invoice_payload: str

    model_config = {"frozen": True}


class OtherEvent(BaseModel):
    kind: Literal["other"] = "other"
    description: str = ""

    model_config = {"frozen": True}


InboundEvent = Annotated[
    Union[TextMessage, PaymentCompleted, CheckoutRequested, OtherEvent],
    Field(discriminator="kind"),
]


# ----- Действия (результат route) -----


class InvoiceSpec(BaseModel):
    """Expected invoice; used both for sending and for pre-checkout validation."""

    title: str
    description: str
    payload: str
    currency: str
    price_label: str
    price_amount: int

    model_config = {"frozen": True}


class SendGreeting(BaseModel):
    name: Literal["send_greeting"] = "send_greeting"
    chat_id: int

    model_config = {"frozen": True}


class SendInvoice(BaseModel):
    name: Literal["send_invoice"] = "send_invoice"
    chat_id: int

    model_config = {"frozen": True}


class FetchAndSendCredential(BaseModel):
    name: Literal["fetch_and_send_credential"] = "fetch_and_send_credential"
    chat_id: int
    user_id: str
    origin: Literal["payment", "test_buy"]

    model_config = {"frozen": True}


class AnswerCheckout(BaseModel):
    name: Literal["answer_checkout"] = "answer_checkout"
    query_id: str
    ok: bool
    error_message: str | None = None

    model_config = {"frozen": True}


class NoOp(BaseModel):
    name: Literal["noop"] = "noop"

    model_config = {"frozen": True}


Action = Annotated[
    Union[SendGreeting, SendInvoice, FetchAndSendCredential, AnswerCheckout, NoOp],
    Field(discriminator="name"),
]


class EventOutcome(BaseModel):
    """Result of handle_event: which action ran and whether it failed."""

    action: Action
    ok: bool
    error: str | None = None

    model_config = {"frozen": True}
