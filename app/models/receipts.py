"""
Receipt Models - Provider-specific receipt payloads sent by mobile clients.

Field names on the wire are camelCase (as produced by the in-app purchase
SDKs); attributes are snake_case. Both models are frozen once parsed.
Only the fields a verification decision reads must be well formed.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidatorFunctionWrapHandler,
    field_validator,
)

from app.models.domain import Provider

# Informational fields: no decision reads them, so bad values become None
_APPLE_INFO_FIELDS = (
    "original_transaction_identifier",
    "purchase_date",
    "original_purchase_date",
    "subscription_expiration_date",
    "cancellation_date",
    "is_free_trial",
    "product_type",
    "is_introductory_price_period",
)
_GOOGLE_PLAY_INFO_FIELDS = ("purchase_date", "purchase_state")


def _lenient(v: Any, handler: ValidatorFunctionWrapHandler) -> Any:
    """Parse if possible; blank or unparseable values are dropped."""
    if isinstance(v, str) and not v.strip():
        return None
    try:
        value = handler(v)
    except ValidationError:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    return value


def _as_utc(v: datetime | None) -> datetime | None:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=UTC)
    return v.astimezone(UTC)


class AppleReceiptData(BaseModel):
    """Receipt data for an App Store purchase."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    quantity: int = Field(..., ge=1)
    product_id: str = Field(..., alias="productID", min_length=1, max_length=255)
    transaction_id: str = Field(..., alias="transactionID", min_length=1, max_length=255)
    original_transaction_identifier: str | None = Field(
        None, alias="originalTransactionIdentifier", max_length=255
    )
    purchase_date: datetime | None = Field(None, alias="purchaseDate")
    original_purchase_date: datetime | None = Field(None, alias="originalPurchaseDate")
    subscription_expiration_date: datetime | None = Field(
        None, alias="subscriptionExpirationDate"
    )
    cancellation_date: datetime | None = Field(None, alias="cancellationDate")
    is_free_trial: int | None = Field(None, alias="isFreeTrial", ge=0, le=1)
    product_type: int | None = Field(None, alias="productType")
    is_introductory_price_period: int | None = Field(
        None, alias="isIntroductoryPricePeriod", ge=0, le=1
    )

    @field_validator(*_APPLE_INFO_FIELDS, mode="wrap")
    @classmethod
    def lenient_info(cls, v: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        return _lenient(v, handler)

    @property
    def provider(self) -> Provider:
        return Provider.APPLE


class GooglePlayReceiptData(BaseModel):
    """Receipt data for a Google Play purchase."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    product_id: str = Field(..., alias="productID", min_length=1, max_length=255)
    order_id: str = Field(..., alias="orderID", min_length=1, max_length=255)
    transaction_id: str = Field(..., alias="transactionID", min_length=1, max_length=255)
    package_name: str = Field(..., alias="packageName", min_length=1, max_length=255)
    purchase_token: str = Field(..., alias="purchaseToken", min_length=1, max_length=4096)
    purchase_date: datetime | None = Field(None, alias="purchaseDate")
    purchase_state: int | None = Field(None, alias="purchaseState")

    @field_validator(*_GOOGLE_PLAY_INFO_FIELDS, mode="wrap")
    @classmethod
    def lenient_info(cls, v: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        return _lenient(v, handler)

    @field_validator("purchase_token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Validate purchase token."""
        if not v.strip():
            raise ValueError("Invalid purchase token")
        return v.strip()

    @property
    def provider(self) -> Provider:
        return Provider.GOOGLE_PLAY


ClassifiedReceipt = AppleReceiptData | GooglePlayReceiptData
