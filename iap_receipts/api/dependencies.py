"""
FastAPI dependencies - shared service instances for routes.
"""

from functools import lru_cache

from iap_receipts.config import Settings, get_settings
from iap_receipts.services.apple_reconciler import AppleReceiptReconciler
from iap_receipts.services.apple_transport import HttpxReceiptTransport
from iap_receipts.services.apple_verifier import AppleReceiptVerifier


@lru_cache
def get_apple_reconciler() -> AppleReceiptReconciler:
    """
    Get the process-wide Apple reconciler.

    The reconciler is stateless, so a single instance serves every request.
    Tests replace it via app.dependency_overrides.
    """
    config: Settings = get_settings()
    transport = HttpxReceiptTransport(timeout=config.request_timeout_seconds)
    return AppleReceiptReconciler(
        verifier=AppleReceiptVerifier(transport),
        production_url=config.apple_production_url,
        sandbox_url=config.apple_sandbox_url,
    )
