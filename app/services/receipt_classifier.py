"""
Receipt classification.

Clients do not say which store a receipt came from. Google Play receipts
carry a purchaseToken; everything else is treated as an App Store receipt
and must then satisfy the App Store shape.
"""

from collections.abc import Mapping

from pydantic import ValidationError
from structlog import get_logger

from app.exceptions import ReceiptClassificationError
from app.models.api import ReceiptEnvelope
from app.models.domain import Provider
from app.models.receipts import AppleReceiptData, ClassifiedReceipt, GooglePlayReceiptData

logger = get_logger(__name__)

GOOGLE_PLAY_MARKER = "purchaseToken"


def detect_provider(receipt_data: Mapping[str, object]) -> Provider:
    """Decide the provider from the structure of the receipt alone."""
    if GOOGLE_PLAY_MARKER in receipt_data:
        return Provider.GOOGLE_PLAY
    return Provider.APPLE


def classify_receipt(envelope: ReceiptEnvelope) -> ClassifiedReceipt:
    """
    Parse a receipt envelope into its provider-specific model.

    Args:
        envelope: Receipt as received from the client

    Returns:
        AppleReceiptData or GooglePlayReceiptData

    Raises:
        ReceiptClassificationError: If the receipt data is not an object, or
            does not satisfy the shape of the provider it was detected as
    """
    receipt_data = envelope.receipt_data
    if not isinstance(receipt_data, Mapping):
        raise ReceiptClassificationError("receiptData must be an object")

    provider = detect_provider(receipt_data)
    try:
        if provider == Provider.GOOGLE_PLAY:
            return GooglePlayReceiptData.model_validate(receipt_data)
        return AppleReceiptData.model_validate(receipt_data)
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
        logger.warning(
            "receipt_classification_failed",
            provider=provider.value,
            invalid_fields=fields,
        )
        raise ReceiptClassificationError(
            f"receipt does not match {provider.value} shape: {', '.join(fields)}"
        ) from exc
