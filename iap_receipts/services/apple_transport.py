"""
HTTP transport for the verifyReceipt endpoints.

The verifier only depends on the ReceiptTransport protocol, so tests and
callers with their own connection pools can swap the implementation.
"""

from dataclasses import dataclass
from typing import Protocol

import httpx

from iap_receipts.config import settings


@dataclass(frozen=True)
class TransportResponse:
    """Status code and raw body of a verifyReceipt response."""

    status_code: int
    text: str


class ReceiptTransport(Protocol):
    """POST-capable HTTP client used by the verifier."""

    async def post_json(self, url: str, body: dict[str, str]) -> TransportResponse:
        """
        POST a JSON body and return the raw response.

        Raises:
            httpx.HTTPError: If the request could not be completed
        """
        ...


class HttpxReceiptTransport:
    """ReceiptTransport backed by httpx.AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Args:
            client: Shared client to reuse; a short-lived one is opened per call otherwise
            timeout: Request timeout in seconds (defaults to REQUEST_TIMEOUT_SECONDS)
        """
        self._client = client
        self.timeout = timeout if timeout is not None else settings.request_timeout_seconds

    async def post_json(self, url: str, body: dict[str, str]) -> TransportResponse:
        headers = {"Content-Type": "application/json"}

        if self._client is not None:
            response = await self._client.post(
                url, json=body, headers=headers, timeout=self.timeout
            )
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    url, json=body, headers=headers, timeout=self.timeout
                )

        return TransportResponse(status_code=response.status_code, text=response.text)
