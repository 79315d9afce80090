"""
Apple verifyReceipt client.

NO DICTIONARIES - All data uses strongly typed models.

Sends a single receipt to one verifyReceipt endpoint and maps Apple's
numeric status to typed outcomes. Environment fallback and reconciliation
live in apple_reconciler.
"""

import base64
import json
import re

from structlog import get_logger

from iap_receipts.exceptions import (
    AppleServiceError,
    ReceiptTransportError,
    ReceiptValidationError,
)
from iap_receipts.models.apple_receipt import (
    LineItem,
    PurchaseClaim,
    ReceiptRequestPayload,
    VerifiedReceipt,
    status_message,
)
from iap_receipts.services.apple_transport import HttpxReceiptTransport, ReceiptTransport

logger = get_logger(__name__)

# Heuristic only: plain alphanumeric text also matches and is sent as-is
_BASE64_LIKE = re.compile(r"^[a-zA-Z0-9/+]+={0,2}$")


def is_base64_like(value: str) -> bool:
    """Check if a string is made of base64 characters with optional padding."""
    return _BASE64_LIKE.fullmatch(value) is not None


def encode_receipt(receipt: str) -> str:
    """Base64-encode a receipt unless it already looks base64-encoded."""
    if is_base64_like(receipt):
        return receipt
    return base64.b64encode(receipt.encode("utf-8")).decode("ascii")


def build_request_payload(claim: PurchaseClaim) -> ReceiptRequestPayload:
    """
    Build the verifyReceipt body for a claimed purchase.

    Raises:
        ReceiptValidationError: If the receipt is not a string
    """
    if not isinstance(claim.receipt, str):
        raise ReceiptValidationError("Receipt must be a string")

    return ReceiptRequestPayload(
        receipt_data=encode_receipt(claim.receipt),
        password=claim.shared_secret or None,
    )


def parse_verification_response(body: str) -> VerifiedReceipt:
    """
    Interpret a 200 response from verifyReceipt.

    Raises:
        AppleServiceError: If Apple returned a non-zero status
        ReceiptTransportError: If the body is not a verifyReceipt response
    """
    try:
        parsed = json.loads(body)
        status = int(parsed["status"])
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise ReceiptTransportError(
            f"Unreadable verifyReceipt response: {exc}", status_code=200, body=body
        ) from exc

    if status != 0:
        raise AppleServiceError(status, status_message(status))

    receipt = parsed.get("receipt")
    if not isinstance(receipt, dict):
        raise ReceiptTransportError(
            "verifyReceipt response has no receipt", status_code=200, body=body
        )

    in_app = receipt.get("in_app") or []
    if not isinstance(in_app, list) or not all(isinstance(entry, dict) for entry in in_app):
        raise ReceiptTransportError(
            "verifyReceipt response has a malformed in_app list", status_code=200, body=body
        )

    line_items = tuple(
        LineItem(
            product_id=entry.get("product_id"),
            transaction_id=entry.get("transaction_id"),
        )
        for entry in in_app
    )

    return VerifiedReceipt(raw_receipt=receipt, line_items=line_items)


class AppleReceiptVerifier:
    """
    Client for Apple's legacy verifyReceipt endpoints.

    Stateless apart from the transport, so one instance can serve
    concurrent verifications.
    """

    def __init__(self, transport: ReceiptTransport | None = None) -> None:
        self.transport = transport or HttpxReceiptTransport()

    async def verify(self, endpoint: str, payload: ReceiptRequestPayload) -> VerifiedReceipt:
        """
        Verify a receipt against one verifyReceipt endpoint.

        Args:
            endpoint: Production or sandbox verifyReceipt URL
            payload: Request body built by build_request_payload

        Returns:
            Verified receipt, environment not yet stamped

        Raises:
            ReceiptTransportError: If the request fails or Apple answers non-200
            AppleServiceError: If Apple answers with a non-zero status
        """
        logger.debug("apple_receipt_request_sending", endpoint=endpoint)

        try:
            response = await self.transport.post_json(endpoint, payload.to_json())
        except Exception as exc:
            logger.warning("apple_receipt_request_failed", endpoint=endpoint, error=str(exc))
            raise ReceiptTransportError(f"Request to {endpoint} failed: {exc}") from exc

        if response.status_code != 200:
            logger.warning(
                "apple_receipt_unexpected_http_status",
                endpoint=endpoint,
                status_code=response.status_code,
            )
            raise ReceiptTransportError(
                f"Received {response.status_code} status code with body: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            receipt = parse_verification_response(response.text)
        except AppleServiceError as exc:
            logger.info(
                "apple_receipt_rejected",
                endpoint=endpoint,
                status=exc.code,
            )
            raise

        logger.debug(
            "apple_receipt_response_parsed",
            endpoint=endpoint,
            line_items=len(receipt.line_items),
        )
        return receipt
