"""
Validation Pipeline - Receipt in, mint authorization out.

Flow per request:
1. Classify the receipt (App Store or Google Play)
2. Resolve the reward for its product ID - unknown products never reach a store
3. Verify the receipt with the matching store
4. Ask the minting service to issue the reward

Every failure is returned as a ValidationFailure; nothing is retried and
nothing is remembered between requests.
"""

import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from structlog import get_logger

from app.exceptions import MintDispatchError, ReceiptClassificationError
from app.models.api import ValidateRequest
from app.models.domain import (
    MintResult,
    PipelineOutcome,
    ValidationErrorKind,
    ValidationFailure,
    VerificationResult,
)
from app.models.receipts import AppleReceiptData, GooglePlayReceiptData
from app.observability import metrics
from app.observability.tracing import trace_operation
from app.services.mint_dispatcher import MintDispatcher
from app.services.payment_provider import DEFAULT_FRESHNESS_WINDOW, ReceiptVerifier
from app.services.receipt_classifier import classify_receipt
from app.services.reward_catalog import RewardCatalog

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


class ValidationPipeline:
    """Receipt validation and reward dispatch for a single catalog."""

    def __init__(
        self,
        catalog: RewardCatalog,
        apple_verifier: ReceiptVerifier[AppleReceiptData],
        google_verifier: ReceiptVerifier[GooglePlayReceiptData],
        mint_dispatcher: MintDispatcher,
        freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.catalog = catalog
        self.apple_verifier = apple_verifier
        self.google_verifier = google_verifier
        self.mint_dispatcher = mint_dispatcher
        self.freshness_window = freshness_window
        self.clock = clock

    async def handle(self, request: ValidateRequest) -> PipelineOutcome:
        """
        Validate a receipt and, if it holds up, authorize its reward.

        Args:
            request: Receipt envelope and reward destination

        Returns:
            MintResult with the minting service's body, or ValidationFailure
        """
        try:
            receipt = classify_receipt(request.receipt)
        except ReceiptClassificationError as exc:
            logger.warning("receipt_rejected_unclassifiable", error=exc.message)
            return ValidationFailure(ValidationErrorKind.CLASSIFICATION_AMBIGUOUS)

        provider = receipt.provider
        reward = self.catalog.resolve(receipt.product_id)
        if reward is None:
            logger.warning(
                "receipt_rejected_unknown_product",
                provider=provider.value,
                product_id=receipt.product_id,
            )
            return ValidationFailure(ValidationErrorKind.UNKNOWN_PRODUCT)

        with trace_operation(
            "receipt_verification",
            provider=provider.value,
            product_id=receipt.product_id,
            transaction_id=receipt.transaction_id,
        ):
            start = time.time()
            verification = await self._verify(receipt)
            metrics.record_verification(
                provider.value,
                verification.reason.value if verification.reason else None,
                time.time() - start,
            )

        if not verification.ok:
            assert verification.reason is not None
            return ValidationFailure(ValidationErrorKind.RECEIPT_INVALID, verification.reason)

        with trace_operation("mint_dispatch", contract=reward.contract_address):
            start = time.time()
            try:
                response = await self.mint_dispatcher.dispatch_mint(request.to_address, reward)
            except MintDispatchError as exc:
                metrics.record_mint_dispatch(False, time.time() - start)
                logger.error(
                    "mint_dispatch_failed_after_verification",
                    provider=provider.value,
                    transaction_id=receipt.transaction_id,
                    error=exc.message,
                )
                return ValidationFailure(ValidationErrorKind.MINT_DISPATCH_FAILED)
            metrics.record_mint_dispatch(True, time.time() - start)

        logger.info(
            "reward_mint_authorized",
            provider=provider.value,
            product_id=receipt.product_id,
            transaction_id=receipt.transaction_id,
            amount=reward.amount,
        )
        return MintResult(response=response)

    async def _verify(self, receipt: AppleReceiptData | GooglePlayReceiptData) -> VerificationResult:
        now = self.clock()
        if isinstance(receipt, GooglePlayReceiptData):
            return await self.google_verifier.verify_receipt(receipt, now, self.freshness_window)
        return await self.apple_verifier.verify_receipt(receipt, now, self.freshness_window)
