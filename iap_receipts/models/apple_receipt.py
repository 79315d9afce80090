"""
Apple receipt domain models - Immutable dataclasses for receipt verification.

NO DICTIONARIES - All data uses strongly typed models. The raw receipt
returned by Apple is the only exception: it is kept verbatim for callers
that need fields this service does not interpret.

Apple's legacy verifyReceipt endpoint accepts a base64 receipt and answers
with a numeric status plus the decoded receipt.
https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Any


class Environment(str, Enum):
    """verifyReceipt deployment that accepted the receipt."""

    PRODUCTION = "production"
    SANDBOX = "sandbox"


class AppleStatusCode(IntEnum):
    """Documented non-zero verifyReceipt status codes."""

    UNREADABLE_JSON = 21000
    MALFORMED_RECEIPT_DATA = 21002
    NOT_AUTHENTICATED = 21003
    SHARED_SECRET_MISMATCH = 21004
    SERVER_UNAVAILABLE = 21005
    SUBSCRIPTION_EXPIRED = 21006
    SANDBOX_RECEIPT_ON_PRODUCTION = 21007
    PRODUCTION_RECEIPT_ON_SANDBOX = 21008


# Verbatim Apple descriptions (kept identical for client compatibility)
APPLE_STATUS_MESSAGES: dict[int, str] = {
    AppleStatusCode.UNREADABLE_JSON: (
        "The App Store could not read the JSON object you provided."
    ),
    AppleStatusCode.MALFORMED_RECEIPT_DATA: (
        "The data in the receipt-data property was malformed or missing."
    ),
    AppleStatusCode.NOT_AUTHENTICATED: "The receipt could not be authenticated.",
    AppleStatusCode.SHARED_SECRET_MISMATCH: (
        "The shared secret you provided does not match the shared secret on file "
        "for your account."
    ),
    AppleStatusCode.SERVER_UNAVAILABLE: "The receipt server is not currently available.",
    AppleStatusCode.SUBSCRIPTION_EXPIRED: (
        "This receipt is valid but the subscription has expired. When this status code "
        "is returned to your server, the receipt data is also decoded and returned as "
        "part of the response."
    ),
    AppleStatusCode.SANDBOX_RECEIPT_ON_PRODUCTION: (
        "This receipt is from the test environment, but it was sent to the production "
        "service for verification. Send it to the test environment service instead."
    ),
    AppleStatusCode.PRODUCTION_RECEIPT_ON_SANDBOX: (
        "This receipt is from the production receipt, but it was sent to the test "
        "environment service for verification. Send it to the production environment "
        "service instead."
    ),
}


def status_message(code: int) -> str:
    """Human-readable description for a verifyReceipt status code."""
    return APPLE_STATUS_MESSAGES.get(code, f"Unknown status code: {code}")


class MismatchReason(str, Enum):
    """Why a verified receipt failed reconciliation."""

    EMPTY_LINE_ITEMS = "empty_line_items"
    BUNDLE_MISMATCH = "bundle_mismatch"
    PRODUCT_MISMATCH = "product_mismatch"
    TRANSACTION_MISMATCH = "transaction_mismatch"


@dataclass(frozen=True)
class PurchaseClaim:
    """The purchase a client says it made.

    ``receipt`` is typed as ``Any`` on purpose: it comes straight from
    callers and is validated by the verifier, not here. Optional fields
    are ``None`` when the caller did not supply them; ``None`` means
    "do not check", never "must be empty".
    """

    receipt: Any
    shared_secret: str | None = None
    package_name: str | None = None
    product_id: str | None = None
    transaction_id: str | None = None


@dataclass(frozen=True)
class ReceiptRequestPayload:
    """Body sent to verifyReceipt."""

    receipt_data: str
    password: str | None = None

    def to_json(self) -> dict[str, str]:
        body = {"receipt-data": self.receipt_data}
        if self.password:
            body["password"] = self.password
        return body


@dataclass(frozen=True)
class LineItem:
    """One in_app entry of a verified receipt."""

    product_id: str | None
    transaction_id: str | None


@dataclass(frozen=True)
class VerifiedReceipt:
    """Receipt Apple returned with status 0.

    ``environment`` stays ``None`` until the reconciler stamps the endpoint
    that answered successfully.
    """

    raw_receipt: dict[str, Any]
    line_items: tuple[LineItem, ...] = ()
    environment: Environment | None = None

    def with_environment(self, environment: Environment) -> "VerifiedReceipt":
        """Return a copy stamped with the environment that verified it."""
        if self.environment is not None:
            raise ValueError(f"Environment already set to {self.environment.value}")
        return replace(self, environment=environment)

    def field_value(self, name: str) -> Any | None:
        """Look up a receipt field, falling back to the first in_app entry."""
        if name in self.raw_receipt:
            return self.raw_receipt[name]
        in_app = self.raw_receipt.get("in_app")
        if isinstance(in_app, list) and in_app and isinstance(in_app[0], dict):
            return in_app[0].get(name)
        return None

    @property
    def bundle_id(self) -> str | None:
        """Bundle identifier (``bid`` on older receipts, ``bundle_id`` on newer)."""
        value = self.field_value("bid")
        if value is None:
            value = self.field_value("bundle_id")
        return value

    def is_sandbox(self) -> bool:
        """Check if this receipt was verified by the sandbox service."""
        return self.environment == Environment.SANDBOX


@dataclass(frozen=True)
class ReconciliationResult:
    """Verified receipt plus the reconciliation verdict."""

    receipt: VerifiedReceipt
    verified: bool
    mismatch: MismatchReason | None = None

    def __post_init__(self) -> None:
        """Verdict and mismatch reason must agree."""
        if self.verified and self.mismatch is not None:
            raise ValueError("A verified result cannot carry a mismatch reason")
        if not self.verified and self.mismatch is None:
            raise ValueError("A failed result must carry a mismatch reason")

    @property
    def environment(self) -> Environment | None:
        return self.receipt.environment

    @property
    def line_items(self) -> tuple[LineItem, ...]:
        return self.receipt.line_items
