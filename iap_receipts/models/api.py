"""
API Models - Pydantic models for HTTP requests and responses.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from iap_receipts.models.apple_receipt import (
    Environment,
    MismatchReason,
    PurchaseClaim,
    ReconciliationResult,
)

# ============================================================================
# Apple Receipt Verification Models
# ============================================================================


class AppleReceiptVerifyRequest(BaseModel):
    """POST /v1/receipts/apple/verify request body."""

    receipt: str = Field(..., min_length=1, description="Receipt (base64 or raw)")
    shared_secret: str | None = Field(None, min_length=1, max_length=255)

    # Claimed purchase - omitted fields are not checked
    package_name: str | None = Field(None, min_length=1, max_length=255)
    product_id: str | None = Field(None, min_length=1, max_length=255)
    transaction_id: str | None = Field(None, min_length=1, max_length=255)

    @field_validator("receipt")
    @classmethod
    def validate_receipt(cls, v: str) -> str:
        """Reject whitespace-only receipts."""
        if not v.strip():
            raise ValueError("receipt cannot be blank")
        return v

    def to_claim(self, default_shared_secret: str | None = None) -> PurchaseClaim:
        """Convert to domain claim, falling back to the configured shared secret."""
        return PurchaseClaim(
            receipt=self.receipt,
            shared_secret=self.shared_secret or default_shared_secret or None,
            package_name=self.package_name,
            product_id=self.product_id,
            transaction_id=self.transaction_id,
        )


class LineItemResponse(BaseModel):
    """One purchased product in a verified receipt."""

    product_id: str | None
    transaction_id: str | None


class AppleReceiptVerifyResponse(BaseModel):
    """POST /v1/receipts/apple/verify response."""

    verified: bool
    environment: Environment | None
    bundle_id: str | None = None
    line_items: list[LineItemResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "AppleReceiptVerifyResponse":
        return cls(
            verified=result.verified,
            environment=result.environment,
            bundle_id=result.receipt.bundle_id,
            line_items=[
                LineItemResponse(product_id=item.product_id, transaction_id=item.transaction_id)
                for item in result.line_items
            ],
        )


class AppleReceiptErrorResponse(BaseModel):
    """Error body for a rejected receipt verification."""

    detail: str
    error_type: str
    status_code: int | None = Field(None, description="verifyReceipt status, if any")
    reason: MismatchReason | None = None
    expected: str | None = None
    actual: str | None = None
    result: AppleReceiptVerifyResponse | None = None


# ============================================================================
# Service Models
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: Literal["healthy", "unhealthy"]
    timestamp: str
