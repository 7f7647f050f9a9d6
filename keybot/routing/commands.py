"""
Разбор команды из TextMessage: первый токен, только если он помечен как bot command.
"""
from __future__ import annotations

from keybot.routing.models import Command, TextMessage

BOT_COMMAND_ENTITY = "bot_command"
COMMAND_PREFIX = "/"


def _leading_token(text: str) -> str:
    parts = text.split(maxsplit=1)
    return parts[0] if parts else ""


def extract_command_token(message: TextMessage) -> str | None:
    """
    Return the leading command token without the @botname mention, or None.

    With entities: a bot_command entity must start at offset 0.
    Without entities: the first whitespace-delimited token must start with "/".
    """
    text = message.text
    if message.entities is not None:
        entity = next(
            (e for e in message.entities if e.type == BOT_COMMAND_ENTITY and e.offset == 0),
            None,
        )
        if entity is None:
            return None
        # offset 0 and an ASCII command, so UTF-16 length == str length
        token = text[: entity.length]
    else:
        token = _leading_token(text)
        if not token.startswith(COMMAND_PREFIX):
            return None
    token = token.split("@", 1)[0]
    return token if len(token) > len(COMMAND_PREFIX) else None


def parse_command(message: TextMessage) -> Command | None:
    token = extract_command_token(message)
    if token is None:
        return None
    try:
        return Command(token)
    except ValueError:
        return None
