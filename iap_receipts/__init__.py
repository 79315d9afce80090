"""
In-app purchase receipt verification.

    reconciler = AppleReceiptReconciler()
    result = await reconciler.verify_payment(
        PurchaseClaim(receipt=receipt, product_id="credits_100", transaction_id="1000000123")
    )
"""

from iap_receipts.exceptions import (
    AppleServiceError,
    BundleMismatchError,
    EmptyLineItemsError,
    ProductMismatchError,
    ReceiptTransportError,
    ReceiptValidationError,
    ReceiptVerificationError,
    ReconciliationError,
    TransactionMismatchError,
)
from iap_receipts.models.apple_receipt import (
    Environment,
    LineItem,
    PurchaseClaim,
    ReconciliationResult,
    VerifiedReceipt,
)
from iap_receipts.services.apple_reconciler import AppleReceiptReconciler, reconcile
from iap_receipts.services.apple_verifier import AppleReceiptVerifier

__all__ = [
    "AppleReceiptReconciler",
    "AppleReceiptVerifier",
    "AppleServiceError",
    "BundleMismatchError",
    "EmptyLineItemsError",
    "Environment",
    "LineItem",
    "ProductMismatchError",
    "PurchaseClaim",
    "ReceiptTransportError",
    "ReceiptValidationError",
    "ReceiptVerificationError",
    "ReconciliationError",
    "ReconciliationResult",
    "TransactionMismatchError",
    "VerifiedReceipt",
    "reconcile",
]
