"""
Роутинг входящих событий бота (внутренняя библиотека).
Decision (route) и execution (ActionExecutor) разделены; контракт через модели событий/действий.
"""
from keybot.routing.errors import ActionFailed, TransportError
from keybot.routing.executor import ActionExecutor
from keybot.routing.handler import handle_event
from keybot.routing.models import (
    Action,
    AnswerCheckout,
    CheckoutRequested,
    Command,
    EventOutcome,
    FetchAndSendCredential,
    InboundEvent,
    InvoiceSpec,
    NoOp,
    OtherEvent,
    PaymentCompleted,
    PaymentDetails,
    SendGreeting,
    SendInvoice,
    TextEntity,
    TextMessage,
)
from keybot.routing.router import TEST_USER_ID, is_privileged, route

__all__ = [
    "Action",
    "ActionExecutor",
    "ActionFailed",
    "AnswerCheckout",
    "CheckoutRequested",
    "Command",
    "EventOutcome",
    "FetchAndSendCredential",
    "InboundEvent",
    "InvoiceSpec",
    "NoOp",
    "OtherEvent",
    "PaymentCompleted",
    "PaymentDetails",
    "SendGreeting",
    "SendInvoice",
    "TEST_USER_ID",
    "TextEntity",
    "TextMessage",
    "TransportError",
    "handle_event",
    "is_privileged",
    "route",
]
