"""
API Routes - FastAPI endpoints for receipt verification.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from structlog import get_logger

from iap_receipts.api.dependencies import get_apple_reconciler
from iap_receipts.config import settings
from iap_receipts.exceptions import (
    AppleServiceError,
    BundleMismatchError,
    ProductMismatchError,
    ReceiptTransportError,
    ReceiptValidationError,
    ReconciliationError,
    TransactionMismatchError,
)
from iap_receipts.models.api import (
    AppleReceiptErrorResponse,
    AppleReceiptVerifyRequest,
    AppleReceiptVerifyResponse,
    HealthResponse,
)
from iap_receipts.observability.logging import log_context
from iap_receipts.services.apple_reconciler import AppleReceiptReconciler

logger = get_logger(__name__)

router = APIRouter()


def _error_response(http_status: int, body: AppleReceiptErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=http_status, content=body.model_dump(mode="json"))


def reconciliation_error_body(exc: ReconciliationError) -> AppleReceiptErrorResponse:
    """Build the 409 body, including what Apple actually verified."""
    expected: str | None = None
    actual: str | None = None
    if isinstance(exc, BundleMismatchError):
        expected, actual = exc.expected, exc.actual
    elif isinstance(exc, (ProductMismatchError, TransactionMismatchError)):
        expected = exc.expected

    return AppleReceiptErrorResponse(
        detail=exc.message,
        error_type=type(exc).__name__,
        reason=exc.reason,
        expected=expected,
        actual=actual,
        result=AppleReceiptVerifyResponse.from_result(exc.result),
    )


@router.post(
    "/v1/receipts/apple/verify",
    response_model=AppleReceiptVerifyResponse,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"model": AppleReceiptErrorResponse},
        409: {"model": AppleReceiptErrorResponse},
        422: {"model": AppleReceiptErrorResponse},
        502: {"model": AppleReceiptErrorResponse},
    },
)
async def verify_apple_receipt(
    request: AppleReceiptVerifyRequest,
    reconciler: AppleReceiptReconciler = Depends(get_apple_reconciler),
) -> AppleReceiptVerifyResponse | JSONResponse:
    """
    Verify an Apple receipt and check it against the claimed purchase.

    Flow:
    1. iOS app completes purchase and reads the app receipt
    2. App calls this endpoint with the receipt and what it bought
    3. Backend verifies with Apple (production, then sandbox on status 21007)
    4. Backend checks bundle ID, product ID and transaction ID

    Status codes:
    - 200: verified and matching
    - 400: receipt rejected before contacting Apple
    - 409: Apple verified the receipt but it does not match the claim
    - 422: Apple rejected the receipt (status_code carries Apple's status)
    - 502: Apple could not be reached or answered unexpectedly
    """
    claim = request.to_claim(default_shared_secret=settings.apple_shared_secret)

    with log_context(product_id=request.product_id, transaction_id=request.transaction_id):
        try:
            result = await reconciler.verify_payment(claim)

        except ReceiptValidationError as exc:
            return _error_response(
                status.HTTP_400_BAD_REQUEST,
                AppleReceiptErrorResponse(detail=exc.message, error_type=type(exc).__name__),
            )

        except AppleServiceError as exc:
            return _error_response(
                status.HTTP_422_UNPROCESSABLE_CONTENT,
                AppleReceiptErrorResponse(
                    detail=exc.message,
                    error_type=type(exc).__name__,
                    status_code=exc.code,
                ),
            )

        except ReconciliationError as exc:
            return _error_response(status.HTTP_409_CONFLICT, reconciliation_error_body(exc))

        except ReceiptTransportError as exc:
            logger.error(
                "apple_receipt_transport_error",
                upstream_status=exc.status_code,
                error=exc.message,
            )
            return _error_response(
                status.HTTP_502_BAD_GATEWAY,
                AppleReceiptErrorResponse(
                    detail="Apple verification service unavailable",
                    error_type=type(exc).__name__,
                ),
            )

        except Exception:
            logger.exception("apple_receipt_verification_unexpected_error")
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                AppleReceiptErrorResponse(
                    detail="Verification failed",
                    error_type="InternalError",
                ),
            )

    return AppleReceiptVerifyResponse.from_result(result)


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check. The service has no local dependencies to probe."""
    return HealthResponse(status="healthy", timestamp=datetime.now(UTC).isoformat())
