"""
Receipt Verifier Protocol - Provider-agnostic interface.

NO DICTIONARIES - All data uses strongly typed models.
"""

from datetime import datetime, timedelta
from typing import Protocol, TypeVar

from structlog import get_logger

from app.models.domain import FailureReason, Provider, VerificationResult

logger = get_logger(__name__)

DEFAULT_FRESHNESS_WINDOW = timedelta(minutes=5)

ReceiptT = TypeVar("ReceiptT", contravariant=True)


class ReceiptVerifier(Protocol[ReceiptT]):
    """
    Receipt verifier protocol.

    Each store provider confirms a receipt with its own backend. Validation
    failures are returned, never raised, so callers handle every reason.
    """

    async def verify_receipt(
        self,
        receipt: ReceiptT,
        now: datetime,
        freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
    ) -> VerificationResult:
        """
        Confirm a receipt with the provider.

        Args:
            receipt: Receipt data claimed by the client
            now: Verification instant, timezone-aware
            freshness_window: Maximum purchase age accepted

        Returns:
            VerificationResult, failed with a reason when any check fails
        """
        ...


def is_fresh(
    purchase_time: datetime,
    now: datetime,
    freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
) -> bool:
    """A purchase is fresh unless it happened before now - window."""
    return purchase_time >= now - freshness_window


class UnconfiguredVerifier:
    """Stands in for a store whose credentials are missing; verifies nothing."""

    def __init__(self, provider: Provider, detail: str) -> None:
        self.provider = provider
        self.detail = detail

    async def verify_receipt(
        self,
        receipt: object,
        now: datetime,
        freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
    ) -> VerificationResult:
        logger.error(
            "receipt_verifier_not_configured",
            provider=self.provider.value,
            detail=self.detail,
        )
        return VerificationResult.failed(self.provider, FailureReason.PROVIDER_UNAVAILABLE)
