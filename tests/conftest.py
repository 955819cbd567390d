"""
Pytest Configuration and Centralized Fixtures.

Provides reusable mocks and fixtures for testing:
- Receipt payloads for both stores
- Reward catalog
- Store verifiers and mint dispatcher doubles
- Validation pipeline with a fixed clock
- API test client with the pipeline overridden
"""

import os
from collections.abc import Iterator
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Set required environment variables BEFORE importing app modules
os.environ.setdefault("THIRDWEB_ENGINE_URL", "https://engine.test")
os.environ.setdefault("THIRDWEB_ENGINE_BACKEND_WALLET", "0xBACKEND")
os.environ.setdefault("THIRDWEB_CHAIN_ID", "84532")
os.environ.setdefault("THIRDWEB_API_SECRET_KEY", "test-engine-secret")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")

from app.models.domain import Provider, Reward, VerificationResult
from app.services.mint_dispatcher import MintDispatcher
from app.services.reward_catalog import RewardCatalog
from app.services.validation_pipeline import ValidationPipeline

REWARD_CONTRACT = "0x33D1a021aFbE0CFB0AC7CcB7c5A247777b3e7c50"

# ============================================================================
# Clock
# ============================================================================


@pytest.fixture
def now() -> datetime:
    """Fixed verification instant."""
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


# ============================================================================
# Receipt Fixtures
# ============================================================================


@pytest.fixture
def google_receipt_data(now: datetime) -> dict[str, Any]:
    """Google Play receipt data as sent by the app."""
    return {
        "productID": "100_tokens",
        "purchaseToken": "tok1",
        "packageName": "com.x",
        "orderID": "ord1",
        "transactionID": "t1",
        "purchaseDate": now.isoformat(),
        "purchaseState": 0,
    }


@pytest.fixture
def apple_receipt_data(now: datetime) -> dict[str, Any]:
    """App Store receipt data as sent by the app."""
    return {
        "quantity": 1,
        "productID": "100_tokens",
        "transactionID": "2000000123456789",
        "originalTransactionIdentifier": "2000000123456789",
        "purchaseDate": epoch_millis(now),
        "originalPurchaseDate": epoch_millis(now),
        "subscriptionExpirationDate": "",
        "cancellationDate": "",
        "isFreeTrial": 0,
        "productType": 0,
        "isIntroductoryPricePeriod": 0,
    }


@pytest.fixture
def google_request_body(google_receipt_data: dict[str, Any]) -> dict[str, Any]:
    return {"receipt": {"receiptData": google_receipt_data}, "toAddress": "0xABC"}


@pytest.fixture
def apple_request_body(apple_receipt_data: dict[str, Any]) -> dict[str, Any]:
    return {"receipt": {"receiptData": apple_receipt_data}, "toAddress": "0xABC"}


# ============================================================================
# Catalog / Collaborator Fixtures
# ============================================================================


@pytest.fixture
def reward_catalog() -> RewardCatalog:
    return RewardCatalog.default()


@pytest.fixture
def apple_verifier() -> MagicMock:
    """App Store verifier that accepts every receipt."""
    verifier = MagicMock()
    verifier.verify_receipt = AsyncMock(return_value=VerificationResult.success(Provider.APPLE))
    return verifier


@pytest.fixture
def google_verifier() -> MagicMock:
    """Google Play verifier that accepts every receipt."""
    verifier = MagicMock()
    verifier.verify_receipt = AsyncMock(
        return_value=VerificationResult.success(Provider.GOOGLE_PLAY)
    )
    return verifier


@pytest.fixture
def mint_response() -> dict[str, Any]:
    """Body Engine returns for a queued mint."""
    return {"result": {"queueId": "9f2c1a3e-queue"}}


@pytest.fixture
def mint_dispatcher(mint_response: dict[str, Any]) -> MagicMock:
    dispatcher = MagicMock(spec=MintDispatcher)
    dispatcher.dispatch_mint = AsyncMock(return_value=mint_response)
    return dispatcher


@pytest.fixture
def pipeline(
    reward_catalog: RewardCatalog,
    apple_verifier: MagicMock,
    google_verifier: MagicMock,
    mint_dispatcher: MagicMock,
    now: datetime,
) -> ValidationPipeline:
    return ValidationPipeline(
        catalog=reward_catalog,
        apple_verifier=apple_verifier,
        google_verifier=google_verifier,
        mint_dispatcher=mint_dispatcher,
        clock=lambda: now,
    )


# ============================================================================
# API Client Fixtures
# ============================================================================


@pytest.fixture
def app() -> FastAPI:
    from app.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def client(app: FastAPI, pipeline: ValidationPipeline) -> Iterator[TestClient]:
    """Test client whose requests run through the fixture pipeline."""
    from app.api.dependencies import get_validation_pipeline

    app.dependency_overrides[get_validation_pipeline] = lambda: pipeline
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_reward() -> Reward:
    return Reward(contract_address=REWARD_CONTRACT, amount="100")
