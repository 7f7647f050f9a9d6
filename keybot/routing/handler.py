"""
Boundary одного события: route -> execute, ошибки логируются и гасятся.
Пользователь ничего не получает при ошибке (ни текста, ни ключа).
"""
from __future__ import annotations

import logging
import time

from keybot.routing.errors import ActionFailed
from keybot.routing.executor import ActionExecutor
from keybot.routing.models import (
    Action,
    EventOutcome,
    InboundEvent,
    TextMessage,
)
from keybot.routing.router import is_privileged, route
from keybot.utils.metrics import actions_total, events_total

logger = logging.getLogger(__name__)


def _chat_id(action: Action) -> int | None:
    return getattr(action, "chat_id", None)


def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)


async def handle_event(
    event: InboundEvent,
    executor: ActionExecutor,
    superuser: str,
) -> EventOutcome:
    """
    Deliver one inbound event: classify it, run at most one action.

    Each call is independent: no deduplication, duplicate payment deliveries
    fetch and send a credential twice. Never raises.
    """
    events_total.labels(kind=event.kind).inc()
    privilege = isinstance(event, TextMessage) and is_privileged(event.sender_username, superuser)
    action = route(event, privilege, invoice=executor.invoice)

    if action.name == "noop":
        actions_total.labels(action=action.name, status="skipped").inc()
        return EventOutcome(action=action, ok=True)

    t0 = time.perf_counter()
    try:
        await executor.execute(action)
    except ActionFailed as e:
        actions_total.labels(action=e.action, status="error").inc()
        logger.error(
            "Failed handle_update",
            extra={
                "event_kind": event.kind,
                "action": e.action,
                "chat_id": _chat_id(action),
                "error": type(e.cause).__name__,
                "cause": str(e.cause),
                "latency_ms": _elapsed_ms(t0),
            },
        )
        return EventOutcome(action=action, ok=False, error=str(e))
    except Exception as e:
        actions_total.labels(action=action.name, status="error").inc()
        logger.exception(
            "Unexpected error in handle_update",
            extra={
                "event_kind": event.kind,
                "action": action.name,
                "chat_id": _chat_id(action),
                "error": type(e).__name__,
            },
        )
        return EventOutcome(action=action, ok=False, error=f"Failed {action.name}: {e!r}")

    actions_total.labels(action=action.name, status="success").inc()
    logger.info(
        "Update handled",
        extra={
            "event_kind": event.kind,
            "action": action.name,
            "chat_id": _chat_id(action),
            "latency_ms": _elapsed_ms(t0),
        },
    )
    return EventOutcome(action=action, ok=True)
