"""
CredentialBroker — выдача API-ключа через backend.

Один POST на API_URL с заголовком Authorization: <SUPER_API_KEY> и телом {"user_id": ...}.
Тело ответа возвращается как есть (ключ не парсится и не кешируется).
Без ретраев: каждый вызов — новый запрос.
"""
import logging
import time
from enum import Enum

import httpx

from keybot.core.config import Settings
from keybot.utils.metrics import (
    backend_requests_total,
    backend_request_duration_seconds,
)

logger = logging.getLogger(__name__)


class BrokerFailure(str, Enum):
    """Classified credential fetch failures."""

    AUTH_HEADER = "auth_header"  # empty key or not a valid header value
    TRANSPORT = "transport"  # connect / timeout / protocol error
    BODY_READ = "body_read"  # response arrived, body could not be read
    STATUS = "status"  # non-2xx from backend


class BrokerError(Exception):
    def __init__(self, failure: BrokerFailure, message: str) -> None:
        super().__init__(f"{failure.value}: {message}")
        self.failure = failure


def build_headers(api_key: str | None) -> dict[str, str]:
    """Authorization carries the raw key (no Bearer prefix), as the backend expects."""
    if api_key is None or not api_key.strip():
        raise BrokerError(BrokerFailure.AUTH_HEADER, "api key is empty")
    if any(not (ch == "\t" or 32 <= ord(ch) < 127) for ch in api_key):
        raise BrokerError(BrokerFailure.AUTH_HEADER, "api key is not a valid header value")
    return {
        "Authorization": api_key,
        "Content-Type": "application/json",
    }


class CredentialBroker:
    """
    Async client for the credential-issuance endpoint.
    The underlying httpx.AsyncClient is shared by all in-flight handlers.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings, client: httpx.AsyncClient | None = None) -> "CredentialBroker":
        return cls(settings.api_url, settings.super_api_key, client=client)

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy initialization of httpx client (library default timeout)."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        return self._client

    def _record_request(self, status: str, duration: float) -> None:
        backend_requests_total.labels(status=status).inc()
        backend_request_duration_seconds.observe(duration)

    async def fetch_credential(self, user_id: str) -> str:
        """Request a fresh credential for user_id. Raises BrokerError."""
        headers = build_headers(self._api_key)

        start = time.time()
        try:
            request = self.client.build_request(
                "POST",
                self._api_url,
                headers=headers,
                json={"user_id": user_id},
            )
            response = await self.client.send(request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._record_request("transport_error", time.time() - start)
            raise BrokerError(BrokerFailure.TRANSPORT, f"{type(e).__name__}: {e}") from e

        try:
            try:
                await response.aread()
            except httpx.HTTPError as e:
                self._record_request("body_error", time.time() - start)
                raise BrokerError(BrokerFailure.BODY_READ, f"{type(e).__name__}: {e}") from e
        finally:
            await response.aclose()

        if not response.is_success:
            self._record_request("status_error", time.time() - start)
            logger.warning(
                "Credential backend rejected request",
                extra={"user_id": user_id, "status_code": response.status_code},
            )
            raise BrokerError(BrokerFailure.STATUS, f"backend returned {response.status_code}")

        self._record_request("success", time.time() - start)
        return response.text

    async def aclose(self) -> None:
        """Close httpx client if the broker created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
