"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fakes for the verifyReceipt round-trip:
- Receipt fixtures
- Mock transport with queued responses
- Verifier and reconciler wired to the mock transport
- API test client with the reconciler overridden
"""

import os
from collections.abc import Iterator
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

# Set environment variables BEFORE importing package modules
os.environ.setdefault("LOG_FORMAT", "console")

from iap_receipts.models.apple_receipt import PurchaseClaim
from iap_receipts.services.apple_reconciler import AppleReceiptReconciler
from iap_receipts.services.apple_verifier import AppleReceiptVerifier
from receipt_factories import (
    PRODUCTION_URL,
    SANDBOX_URL,
    apple_response,
    make_in_app,
    make_receipt,
)

# ============================================================================
# Receipt Fixtures
# ============================================================================


@pytest.fixture
def standard_receipt() -> dict[str, Any]:
    """Receipt with one consumable purchase for com.example.app."""
    return make_receipt(
        bid="com.example.app",
        in_app=[make_in_app("credits_100", "1000000001")],
    )


# ============================================================================
# Transport / Service Fixtures
# ============================================================================


@pytest.fixture
def mock_transport() -> AsyncMock:
    """Transport whose post_json responses are set per test via side_effect."""
    transport = AsyncMock()
    transport.post_json = AsyncMock(return_value=apple_response(0, make_receipt(in_app=[])))
    return transport


@pytest.fixture
def verifier(mock_transport: AsyncMock) -> AppleReceiptVerifier:
    """Verifier using the mock transport."""
    return AppleReceiptVerifier(mock_transport)


@pytest.fixture
def reconciler(verifier: AppleReceiptVerifier) -> AppleReceiptReconciler:
    """Reconciler with fixed production and sandbox URLs."""
    return AppleReceiptReconciler(
        verifier=verifier,
        production_url=PRODUCTION_URL,
        sandbox_url=SANDBOX_URL,
    )


@pytest.fixture
def claim() -> PurchaseClaim:
    """Claim matching standard_receipt."""
    return PurchaseClaim(
        receipt="MIIT2QYJKoZIhvcNAQcCoIITyjCCE8YCAQExCzAJBgUrDgMCGgUAMIIDegYJKoZIhvcNAQcB",
        package_name="com.example.app",
        product_id="credits_100",
        transaction_id="1000000001",
    )


# ============================================================================
# API Client Fixtures
# ============================================================================


@pytest.fixture
def client(reconciler: AppleReceiptReconciler) -> Iterator[TestClient]:
    """Test client with the Apple reconciler replaced by the mock-backed one."""
    from iap_receipts.api.dependencies import get_apple_reconciler
    from iap_receipts.main import app

    app.dependency_overrides[get_apple_reconciler] = lambda: reconciler
    yield TestClient(app)
    app.dependency_overrides.clear()
