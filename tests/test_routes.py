"""
Tests for API Routes.

End-to-end HTTP tests against the app with the validation pipeline's
collaborators mocked.
"""

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.exceptions import MintDispatchError
from app.models.domain import FailureReason, Provider, VerificationResult
from app.services.payment_provider import UnconfiguredVerifier

# ============================================================================
# POST /engine/validate
# ============================================================================


class TestValidateEndpoint:
    """Tests for POST /engine/validate."""

    def test_google_play_receipt_returns_engine_body(
        self,
        client: TestClient,
        google_request_body: dict[str, Any],
        mint_response: dict[str, Any],
    ):
        response = client.post("/engine/validate", json=google_request_body)

        assert response.status_code == 200
        assert response.json() == mint_response

    def test_apple_receipt_returns_engine_body(
        self,
        client: TestClient,
        apple_request_body: dict[str, Any],
        mint_response: dict[str, Any],
    ):
        response = client.post("/engine/validate", json=apple_request_body)

        assert response.status_code == 200
        assert response.json() == mint_response

    def test_unknown_product(
        self,
        client: TestClient,
        apple_request_body: dict[str, Any],
        apple_verifier: MagicMock,
    ):
        apple_request_body["receipt"]["receiptData"]["productID"] = "1000_tokens"

        response = client.post("/engine/validate", json=apple_request_body)

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid product ID, could not find reward."}
        apple_verifier.verify_receipt.assert_not_awaited()

    def test_canceled_purchase(
        self,
        client: TestClient,
        google_request_body: dict[str, Any],
        google_verifier: MagicMock,
        mint_dispatcher: MagicMock,
    ):
        google_verifier.verify_receipt = AsyncMock(
            return_value=VerificationResult.failed(
                Provider.GOOGLE_PLAY, FailureReason.INVALID_PURCHASE_STATE
            )
        )

        response = client.post("/engine/validate", json=google_request_body)

        assert response.status_code == 401
        assert response.json() == {"message": "Unable to validate receipt: InvalidPurchaseState"}
        mint_dispatcher.dispatch_mint.assert_not_awaited()

    def test_stale_apple_purchase(
        self,
        client: TestClient,
        apple_request_body: dict[str, Any],
        apple_verifier: MagicMock,
    ):
        apple_verifier.verify_receipt = AsyncMock(
            return_value=VerificationResult.failed(Provider.APPLE, FailureReason.PURCHASE_TOO_OLD)
        )

        response = client.post("/engine/validate", json=apple_request_body)

        assert response.status_code == 401
        assert response.json() == {"message": "Unable to validate receipt: PurchaseTooOld"}

    def test_mint_failure(
        self,
        client: TestClient,
        google_request_body: dict[str, Any],
        mint_dispatcher: MagicMock,
    ):
        mint_dispatcher.dispatch_mint = AsyncMock(side_effect=MintDispatchError("Engine down"))

        response = client.post("/engine/validate", json=google_request_body)

        assert response.status_code == 400
        assert response.json() == {"message": "Unable to sign payload."}

    def test_unparseable_client_date_still_verifies(
        self,
        client: TestClient,
        apple_request_body: dict[str, Any],
        apple_verifier: MagicMock,
        mint_response: dict[str, Any],
    ):
        apple_request_body["receipt"]["receiptData"]["purchaseDate"] = "10/18/2026 3:00:00 PM"

        response = client.post("/engine/validate", json=apple_request_body)

        assert response.status_code == 200
        assert response.json() == mint_response
        apple_verifier.verify_receipt.assert_awaited_once()

    def test_unclassifiable_receipt(self, client: TestClient):
        response = client.post(
            "/engine/validate",
            json={"receipt": {"receiptData": {"productID": "100_tokens"}}, "toAddress": "0xABC"},
        )

        assert response.status_code == 400
        assert response.json() == {"message": "Unable to classify receipt."}

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"toAddress": "0xABC"},
            {"receipt": {"receiptData": {}}},
            {"receipt": {}, "toAddress": "0xABC"},
            {"receipt": {"receiptData": {}}, "toAddress": "   "},
        ],
    )
    def test_malformed_request_body(self, client: TestClient, body: dict[str, Any]):
        response = client.post("/engine/validate", json=body)

        assert response.status_code == 422
        assert "detail" in response.json()

    def test_unconfigured_store_is_unavailable(
        self,
        app,
        pipeline,
        google_request_body: dict[str, Any],
        mint_dispatcher: MagicMock,
    ):
        from app.api.dependencies import get_validation_pipeline

        pipeline.google_verifier = UnconfiguredVerifier(Provider.GOOGLE_PLAY, "no key file")
        app.dependency_overrides[get_validation_pipeline] = lambda: pipeline
        try:
            response = TestClient(app).post("/engine/validate", json=google_request_body)
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 401
        assert response.json() == {"message": "Unable to validate receipt: ProviderUnavailable"}
        mint_dispatcher.dispatch_mint.assert_not_awaited()


# ============================================================================
# Health / Root / Metrics
# ============================================================================


class TestServiceEndpoints:
    """Tests for health, root and metrics endpoints."""

    def test_health(self, client: TestClient):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["reward_products"] == 1
        assert data["apple_configured"] is True
        assert data["google_play_configured"] is True
        assert data["apple_signature_verification"] is False

    def test_health_reports_unconfigured_store(self, app, pipeline):
        from app.api.dependencies import get_validation_pipeline

        pipeline.apple_verifier = UnconfiguredVerifier(Provider.APPLE, "missing key")
        app.dependency_overrides[get_validation_pipeline] = lambda: pipeline
        try:
            response = TestClient(app).get("/health")
        finally:
            app.dependency_overrides.clear()

        assert response.json()["apple_configured"] is False

    def test_health_does_not_expose_credentials(self, client: TestClient):
        assert "test-engine-secret" not in client.get("/health").text

    def test_root(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_metrics(self, client: TestClient, google_request_body: dict[str, Any]):
        client.post("/engine/validate", json=google_request_body)

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "receipt_verifications_total" in response.text
        assert "mint_dispatches_total" in response.text

    def test_cors_preflight(self, client: TestClient):
        response = client.options(
            "/engine/validate",
            headers={
                "Origin": "https://wallet.example",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert "access-control-allow-origin" in response.headers
