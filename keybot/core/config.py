"""
Application configuration.
All settings are loaded from environment variables (or .env).
Use env.example as a reference for required variables.
"""
import ipaddress

from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

# Значения WEBHOOK_FEATURE, включающие webhook-режим (регистр не важен)
WEBHOOK_TRUTHY = ("ok", "1", "yes", "y", "true")


class ConfigError(Exception):
    """Missing or invalid environment value. Fatal at startup."""


class Settings(BaseSettings):
    """
    Runtime settings, assembled once at startup and passed explicitly.

    IMPORTANT: Credentials have no defaults - they MUST be set in env.
    """

    # ===========================================
    # TELEGRAM BOT
    # ===========================================
    tgbot_token: str  # Required, no default
    # Username суперпользователя (без @), которому доступна /test_buy
    s_username: str  # Required, no default

    # ===========================================
    # BACKEND (выдача API-ключей)
    # ===========================================
    api_url: str  # Required, no default
    super_api_key: str  # Required, no default

    # ===========================================
    # INGESTION MODE
    # ===========================================
    webhook_feature: bool = False
    webhook_address: str | None = None
    webhook_path: str = "/"
    # Optional: for webhook verification (X-Telegram-Bot-Api-Secret-Token)
    webhook_secret: str = ""
    # HOST/PORT проверяются только в webhook-режиме
    host: str | None = None
    port: str | None = None

    # ===========================================
    # INVOICE (Telegram Stars)
    # ===========================================
    greeting_text: str = "hi"
    invoice_title: str = "API KEY"
    invoice_description: str = "WB API KEY for repricing chrome extension"
    invoice_payload: str = "1"
    invoice_currency: str = "XTR"
    invoice_price_label: str = "20"
    invoice_price_amount: int = 123

    # ===========================================
    # LOGGING & METRICS
    # ===========================================
    log_level: str = "INFO"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5
    # Порт prometheus в polling-режиме (в webhook-режиме /metrics отдаёт FastAPI)
    metrics_port: int | None = None

    @field_validator("webhook_feature", mode="before")
    @classmethod
    def parse_webhook_feature(cls, v: object) -> bool:
        """Anything outside WEBHOOK_TRUTHY (including unset) means long-poll."""
        if isinstance(v, bool):
            return v
        if v is None:
            return False
        return str(v).strip().lower() in WEBHOOK_TRUTHY

    @field_validator("host", "port", "webhook_address", "metrics_port", "log_file", mode="before")
    @classmethod
    def empty_as_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("port", mode="before")
    @classmethod
    def port_as_str(cls, v: object) -> object:
        # PORT разбирается только в webhook-режиме (require_webhook_fields)
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("webhook_path")
    @classmethod
    def normalize_webhook_path(cls, v: str) -> str:
        v = v.strip() or "/"
        return v if v.startswith("/") else f"/{v}"

    @model_validator(mode="after")
    def require_webhook_fields(self) -> "Settings":
        """In webhook mode the public address and a valid bind host/port are mandatory."""
        if not self.webhook_feature:
            return self
        missing = [
            name.upper()
            for name in ("webhook_address", "host", "port")
            if getattr(self, name) is None
        ]
        if missing:
            raise ValueError(f"{', '.join(missing)} must be set when WEBHOOK_FEATURE is on")
        try:
            ipaddress.ip_address(self.host.strip())
        except ValueError:
            raise ValueError(f"invalid host: {self.host!r}") from None
        port = self.port.strip()
        if not port.isdigit() or not 0 <= int(port) <= 65535:
            raise ValueError(f"invalid port number: {self.port!r}")
        return self

    @property
    def bind_host(self) -> str:
        return (self.host or "").strip()

    @property
    def bind_port(self) -> int:
        return int((self.port or "").strip())

    @property
    def superuser(self) -> str:
        """Configured superuser name, normalized for comparison."""
        return self.s_username.strip().lstrip("@").lower()

    @property
    def mode(self) -> str:
        return "webhook" if self.webhook_feature else "long_poll"

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",  # Игнорировать неизвестные поля из .env
        "frozen": True,
    }


def _format_validation_error(exc: ValidationError) -> str:
    lines = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "__root__")
        if err.get("type") == "missing":
            lines.append(f"{loc.upper()} must be set")
        elif loc:
            lines.append(f"{loc.upper()}: {err.get('msg')}")
        else:
            lines.append(str(err.get("msg")))
    return "; ".join(lines)


def load_settings(**overrides) -> Settings:
    """
    Build Settings from the environment, converting validation failures into ConfigError.
    overrides are passed straight to Settings (tests, scripts).
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigError(_format_validation_error(e)) from e
