"""
Apple receipt reconciliation.

Verifies a claimed purchase against verifyReceipt (falling back to the
sandbox on status 21007) and checks the verified receipt against what the
client says it bought.
"""

import asyncio
from collections.abc import Callable

from structlog import get_logger

from iap_receipts.config import settings
from iap_receipts.exceptions import (
    AppleServiceError,
    BundleMismatchError,
    EmptyLineItemsError,
    ProductMismatchError,
    ReceiptVerificationError,
    ReconciliationError,
    TransactionMismatchError,
)
from iap_receipts.models.apple_receipt import (
    AppleStatusCode,
    Environment,
    MismatchReason,
    PurchaseClaim,
    ReceiptRequestPayload,
    ReconciliationResult,
    VerifiedReceipt,
)
from iap_receipts.observability.metrics import metrics, track_apple_request
from iap_receipts.services.apple_verifier import AppleReceiptVerifier, build_request_payload

logger = get_logger(__name__)

# (error, result) - exactly one call per verification
VerificationCallback = Callable[
    [Exception | None, ReconciliationResult | None],
    None,
]


def _failed(receipt: VerifiedReceipt, reason: MismatchReason) -> ReconciliationResult:
    return ReconciliationResult(receipt=receipt, verified=False, mismatch=reason)


def reconcile(claim: PurchaseClaim, receipt: VerifiedReceipt) -> ReconciliationResult:
    """
    Check a verified receipt against the claimed purchase.

    Claim fields left as None are not checked. Checks run in order and the
    first failure wins.

    Raises:
        EmptyLineItemsError: Receipt has no in_app entries
        BundleMismatchError: package_name differs from the receipt bundle ID
        ProductMismatchError: No line item has product_id
        TransactionMismatchError: No single line item has both product_id and transaction_id
    """
    if not receipt.line_items:
        raise EmptyLineItemsError(_failed(receipt, MismatchReason.EMPTY_LINE_ITEMS))

    bundle_id = receipt.bundle_id
    if claim.package_name is not None and claim.package_name != bundle_id:
        raise BundleMismatchError(
            expected=claim.package_name,
            actual=bundle_id,
            result=_failed(receipt, MismatchReason.BUNDLE_MISMATCH),
        )

    if claim.product_id is not None:
        if not any(item.product_id == claim.product_id for item in receipt.line_items):
            raise ProductMismatchError(
                expected=claim.product_id,
                result=_failed(receipt, MismatchReason.PRODUCT_MISMATCH),
            )

    # Must be one line item matching both, not one per field
    if claim.product_id is not None and claim.transaction_id is not None:
        if not any(
            item.product_id == claim.product_id and item.transaction_id == claim.transaction_id
            for item in receipt.line_items
        ):
            raise TransactionMismatchError(
                expected=claim.transaction_id,
                result=_failed(receipt, MismatchReason.TRANSACTION_MISMATCH),
            )

    return ReconciliationResult(receipt=receipt, verified=True)


class AppleReceiptReconciler:
    """
    Verify-and-reconcile workflow for Apple receipts.

    Holds no per-call state; concurrent verify_payment calls are independent.
    """

    def __init__(
        self,
        verifier: AppleReceiptVerifier | None = None,
        production_url: str | None = None,
        sandbox_url: str | None = None,
    ) -> None:
        self.verifier = verifier or AppleReceiptVerifier()
        self.endpoints = {
            Environment.PRODUCTION: production_url or settings.apple_production_url,
            Environment.SANDBOX: sandbox_url or settings.apple_sandbox_url,
        }
        # Callback tasks still in flight
        self._pending: set[asyncio.Task[None]] = set()

    async def _verify_in(
        self, environment: Environment, payload: ReceiptRequestPayload
    ) -> VerifiedReceipt:
        with track_apple_request(environment.value):
            receipt = await self.verifier.verify(self.endpoints[environment], payload)
        return receipt.with_environment(environment)

    async def _verify_with_fallback(self, payload: ReceiptRequestPayload) -> VerifiedReceipt:
        """Verify in production, retrying in sandbox only for status 21007."""
        try:
            return await self._verify_in(Environment.PRODUCTION, payload)
        except AppleServiceError as exc:
            if exc.code != AppleStatusCode.SANDBOX_RECEIPT_ON_PRODUCTION:
                raise

        logger.info("apple_receipt_sandbox_fallback")
        metrics.record_sandbox_fallback()
        return await self._verify_in(Environment.SANDBOX, payload)

    async def verify_payment(self, claim: PurchaseClaim) -> ReconciliationResult:
        """
        Verify a claimed purchase with Apple and reconcile the result.

        Args:
            claim: Receipt plus the purchase attributes the client reports

        Returns:
            Verified, environment-tagged result

        Raises:
            ReceiptValidationError: If the receipt is not a string
            ReceiptTransportError: If Apple could not be reached or answered non-200
            AppleServiceError: If Apple rejected the receipt (other than 21007 in production)
            ReconciliationError: If the verified receipt does not match the claim
        """
        environment: str | None = None
        try:
            payload = build_request_payload(claim)
            receipt = await self._verify_with_fallback(payload)
            environment = receipt.environment.value if receipt.environment else None
            result = reconcile(claim, receipt)
        except ReceiptVerificationError as exc:
            metrics.record_verification(environment, type(exc).__name__)
            if isinstance(exc, ReconciliationError):
                logger.warning(
                    "apple_receipt_reconciliation_failed",
                    reason=exc.reason.value,
                    environment=environment,
                    error=exc.message,
                )
            else:
                logger.warning(
                    "apple_receipt_verification_failed",
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
            raise

        metrics.record_verification(environment, "verified")
        logger.info(
            "apple_receipt_verified",
            environment=environment,
            bundle_id=receipt.bundle_id,
            line_items=len(receipt.line_items),
        )
        return result

    def verify_payment_with_callback(
        self,
        claim: PurchaseClaim,
        callback: VerificationCallback,
    ) -> "asyncio.Task[None]":
        """
        Run verify_payment in the background and report through a callback.

        The callback fires exactly once, never before this method returns:
        (None, result) on success, (error, error.result) when reconciliation
        fails, (error, None) for any other failure.

        The reconciler keeps the task alive until it finishes, so callers may
        drop the returned task.

        Must be called from a running event loop.
        """

        async def _run() -> None:
            try:
                result = await self.verify_payment(claim)
            except ReconciliationError as exc:
                callback(exc, exc.result)
                return
            except Exception as exc:
                callback(exc, None)
                return
            callback(None, result)

        task = asyncio.get_running_loop().create_task(_run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task
