class TransportError(Exception):
    """Telegram send/receive failure (API error or network)."""


class ActionFailed(Exception):
    """Opaque per-event failure: the action that failed and its underlying cause."""

    def __init__(self, action: str, cause: Exception) -> None:
        super().__init__(f"Failed {action}: {cause!r}")
        self.action = action
        self.cause = cause
