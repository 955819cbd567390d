"""
Tests for the validation pipeline.

Covers routing to the right store, catalog gating, failure mapping,
and mint dispatch.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.exceptions import MintDispatchError
from app.models.api import ValidateRequest
from app.models.domain import (
    FailureReason,
    MintResult,
    Provider,
    Reward,
    ValidationErrorKind,
    ValidationFailure,
    VerificationResult,
)
from app.models.receipts import AppleReceiptData, GooglePlayReceiptData
from app.services.reward_catalog import RewardCatalog
from app.services.validation_pipeline import ValidationPipeline


def validate_request(body: dict[str, Any]) -> ValidateRequest:
    return ValidateRequest.model_validate(body)


class TestSuccessfulValidation:
    """Receipts that pass verification are minted."""

    @pytest.mark.asyncio
    async def test_google_play_receipt_minted(
        self,
        pipeline: ValidationPipeline,
        google_request_body: dict[str, Any],
        google_verifier: MagicMock,
        apple_verifier: MagicMock,
        mint_dispatcher: MagicMock,
        mint_response: dict[str, Any],
        sample_reward: Reward,
        now: datetime,
    ):
        outcome = await pipeline.handle(validate_request(google_request_body))

        assert isinstance(outcome, MintResult)
        assert outcome.response == mint_response
        assert outcome.status_code == 200

        google_verifier.verify_receipt.assert_awaited_once()
        apple_verifier.verify_receipt.assert_not_awaited()
        receipt, verified_at, window = google_verifier.verify_receipt.await_args.args
        assert isinstance(receipt, GooglePlayReceiptData)
        assert verified_at == now
        assert window == timedelta(minutes=5)

        mint_dispatcher.dispatch_mint.assert_awaited_once_with("0xABC", sample_reward)

    @pytest.mark.asyncio
    async def test_apple_receipt_minted(
        self,
        pipeline: ValidationPipeline,
        apple_request_body: dict[str, Any],
        google_verifier: MagicMock,
        apple_verifier: MagicMock,
    ):
        outcome = await pipeline.handle(validate_request(apple_request_body))

        assert isinstance(outcome, MintResult)
        apple_verifier.verify_receipt.assert_awaited_once()
        google_verifier.verify_receipt.assert_not_awaited()
        assert isinstance(apple_verifier.verify_receipt.await_args.args[0], AppleReceiptData)

    @pytest.mark.asyncio
    async def test_custom_freshness_window_passed_to_verifier(
        self,
        reward_catalog: RewardCatalog,
        apple_verifier: MagicMock,
        google_verifier: MagicMock,
        mint_dispatcher: MagicMock,
        google_request_body: dict[str, Any],
    ):
        pipeline = ValidationPipeline(
            catalog=reward_catalog,
            apple_verifier=apple_verifier,
            google_verifier=google_verifier,
            mint_dispatcher=mint_dispatcher,
            freshness_window=timedelta(minutes=1),
        )

        await pipeline.handle(validate_request(google_request_body))

        assert google_verifier.verify_receipt.await_args.args[2] == timedelta(minutes=1)


class TestUnknownProduct:
    """Products outside the catalog never reach a store."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body_fixture", ["google_request_body", "apple_request_body"])
    async def test_unknown_product_skips_store(
        self,
        request: pytest.FixtureRequest,
        pipeline: ValidationPipeline,
        apple_verifier: MagicMock,
        google_verifier: MagicMock,
        mint_dispatcher: MagicMock,
        body_fixture: str,
    ):
        body = request.getfixturevalue(body_fixture)
        body["receipt"]["receiptData"]["productID"] = "1000_tokens"

        outcome = await pipeline.handle(validate_request(body))

        assert isinstance(outcome, ValidationFailure)
        assert outcome.kind == ValidationErrorKind.UNKNOWN_PRODUCT
        assert outcome.status_code == 400
        assert outcome.message == "Invalid product ID, could not find reward."
        apple_verifier.verify_receipt.assert_not_awaited()
        google_verifier.verify_receipt.assert_not_awaited()
        mint_dispatcher.dispatch_mint.assert_not_awaited()


class TestVerificationFailures:
    """Store rejections map to 401 and never mint."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", list(FailureReason))
    async def test_rejected_receipt_not_minted(
        self,
        pipeline: ValidationPipeline,
        google_request_body: dict[str, Any],
        google_verifier: MagicMock,
        mint_dispatcher: MagicMock,
        reason: FailureReason,
    ):
        google_verifier.verify_receipt = AsyncMock(
            return_value=VerificationResult.failed(Provider.GOOGLE_PLAY, reason)
        )

        outcome = await pipeline.handle(validate_request(google_request_body))

        assert isinstance(outcome, ValidationFailure)
        assert outcome.kind == ValidationErrorKind.RECEIPT_INVALID
        assert outcome.reason == reason
        assert outcome.status_code == 401
        assert outcome.message == f"Unable to validate receipt: {reason.value}"
        mint_dispatcher.dispatch_mint.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unclassifiable_receipt(
        self,
        pipeline: ValidationPipeline,
        apple_verifier: MagicMock,
        google_verifier: MagicMock,
        mint_dispatcher: MagicMock,
    ):
        outcome = await pipeline.handle(
            validate_request({"receipt": {"receiptData": {"foo": "bar"}}, "toAddress": "0xABC"})
        )

        assert isinstance(outcome, ValidationFailure)
        assert outcome.kind == ValidationErrorKind.CLASSIFICATION_AMBIGUOUS
        assert outcome.status_code == 400
        apple_verifier.verify_receipt.assert_not_awaited()
        google_verifier.verify_receipt.assert_not_awaited()
        mint_dispatcher.dispatch_mint.assert_not_awaited()


class TestMintDispatchFailure:
    """Mint failures after a valid receipt."""

    @pytest.mark.asyncio
    async def test_mint_failure_is_sign_error(
        self,
        pipeline: ValidationPipeline,
        apple_request_body: dict[str, Any],
        mint_dispatcher: MagicMock,
    ):
        mint_dispatcher.dispatch_mint = AsyncMock(
            side_effect=MintDispatchError("Engine returned 500", status_code=500)
        )

        outcome = await pipeline.handle(validate_request(apple_request_body))

        assert isinstance(outcome, ValidationFailure)
        assert outcome.kind == ValidationErrorKind.MINT_DISPATCH_FAILED
        assert outcome.status_code == 400
        assert outcome.message == "Unable to sign payload."


class TestConcurrency:
    """Requests are independent of each other."""

    @pytest.mark.asyncio
    async def test_duplicate_receipts_both_mint(
        self,
        pipeline: ValidationPipeline,
        google_request_body: dict[str, Any],
        mint_dispatcher: MagicMock,
    ):
        """No replay ledger: two identical concurrent requests both dispatch."""
        outcomes = await asyncio.gather(
            pipeline.handle(validate_request(google_request_body)),
            pipeline.handle(validate_request(google_request_body)),
        )

        assert all(isinstance(outcome, MintResult) for outcome in outcomes)
        assert mint_dispatcher.dispatch_mint.await_count == 2

    @pytest.mark.asyncio
    async def test_failure_does_not_affect_other_request(
        self,
        pipeline: ValidationPipeline,
        google_request_body: dict[str, Any],
        apple_request_body: dict[str, Any],
        apple_verifier: MagicMock,
    ):
        apple_verifier.verify_receipt = AsyncMock(
            return_value=VerificationResult.failed(Provider.APPLE, FailureReason.PURCHASE_TOO_OLD)
        )

        apple_outcome, google_outcome = await asyncio.gather(
            pipeline.handle(validate_request(apple_request_body)),
            pipeline.handle(validate_request(google_request_body)),
        )

        assert isinstance(apple_outcome, ValidationFailure)
        assert apple_outcome.reason == FailureReason.PURCHASE_TOO_OLD
        assert isinstance(google_outcome, MintResult)
