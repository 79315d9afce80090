"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from iap_receipts.models.apple_receipt import (
    MismatchReason,
    ReconciliationResult,
    status_message,
)


class ReceiptVerificationError(Exception):
    """Base exception for all receipt verification errors."""

    pass


class ReceiptValidationError(ReceiptVerificationError):
    """Raised when the claimed purchase is malformed (e.g. non-string receipt)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ReceiptTransportError(ReceiptVerificationError):
    """Raised when the request to Apple fails or returns a non-200 response."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class AppleServiceError(ReceiptVerificationError):
    """Raised when verifyReceipt answers with a non-zero status."""

    def __init__(self, code: int, message: str | None = None) -> None:
        self.code = code
        self.message = message if message is not None else status_message(code)
        super().__init__(self.message)


class ReconciliationError(ReceiptVerificationError):
    """Base for receipts Apple accepted that do not match the claimed purchase.

    ``result`` is the verified receipt Apple returned, so callers can see
    what was actually purchased.
    """

    reason: MismatchReason

    def __init__(self, message: str, result: ReconciliationResult) -> None:
        self.message = message
        self.result = result
        super().__init__(message)


class EmptyLineItemsError(ReconciliationError):
    """Raised when the verified receipt contains no in_app purchases."""

    reason = MismatchReason.EMPTY_LINE_ITEMS

    def __init__(self, result: ReconciliationResult) -> None:
        super().__init__("Empty in_app", result)


class BundleMismatchError(ReconciliationError):
    """Raised when the receipt belongs to a different app."""

    reason = MismatchReason.BUNDLE_MISMATCH

    def __init__(
        self, expected: str, actual: str | None, result: ReconciliationResult
    ) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Wrong bundle ID: {expected} (expected: {actual})", result)


class ProductMismatchError(ReconciliationError):
    """Raised when no line item carries the claimed product ID."""

    reason = MismatchReason.PRODUCT_MISMATCH

    def __init__(self, expected: str, result: ReconciliationResult) -> None:
        self.expected = expected
        super().__init__(f"Wrong product ID: {expected}", result)


class TransactionMismatchError(ReconciliationError):
    """Raised when no single line item carries both the claimed product and transaction."""

    reason = MismatchReason.TRANSACTION_MISMATCH

    def __init__(self, expected: str, result: ReconciliationResult) -> None:
        self.expected = expected
        super().__init__(f"Wrong transaction ID: {expected}", result)
