"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any


class Provider(str, Enum):
    """Storefront that issued a receipt."""

    APPLE = "apple"
    GOOGLE_PLAY = "google_play"


@dataclass(frozen=True)
class Reward:
    """Token grant issued for a purchased product."""

    contract_address: str  # ERC-20 contract the reward is minted from
    amount: str  # Decimal string, passed to the minting service unchanged

    def __post_init__(self) -> None:
        """Validate reward fields."""
        if not self.contract_address:
            raise ValueError("Contract address required")
        try:
            value = Decimal(self.amount)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"Amount must be a decimal string: {self.amount!r}") from exc
        if not value.is_finite() or value <= 0:
            raise ValueError(f"Amount must be positive: {self.amount}")


class FailureReason(str, Enum):
    """Why a provider refused to vouch for a receipt."""

    PRODUCT_MISMATCH = "ProductMismatch"
    QUANTITY_MISMATCH = "QuantityMismatch"
    PURCHASE_TOO_OLD = "PurchaseTooOld"
    ORDER_MISMATCH = "OrderMismatch"
    INVALID_PURCHASE_STATE = "InvalidPurchaseState"
    TRANSACTION_NOT_FOUND = "TransactionNotFound"
    PROVIDER_UNAVAILABLE = "ProviderUnavailable"
    SIGNATURE_INVALID = "SignatureInvalid"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a provider verification - Ok when reason is None."""

    provider: Provider
    reason: FailureReason | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def success(cls, provider: Provider) -> "VerificationResult":
        return cls(provider=provider)

    @classmethod
    def failed(cls, provider: Provider, reason: FailureReason) -> "VerificationResult":
        return cls(provider=provider, reason=reason)


class ValidationErrorKind(str, Enum):
    """Pipeline-level failure kinds."""

    CLASSIFICATION_AMBIGUOUS = "ClassificationAmbiguous"
    UNKNOWN_PRODUCT = "UnknownProduct"
    RECEIPT_INVALID = "ReceiptInvalid"
    MINT_DISPATCH_FAILED = "MintDispatchFailed"


@dataclass(frozen=True)
class ValidationFailure:
    """A request the pipeline refused, with the HTTP shape it maps to."""

    kind: ValidationErrorKind
    reason: FailureReason | None = None

    def __post_init__(self) -> None:
        """Receipt failures always carry a reason, other kinds never do."""
        if (self.kind == ValidationErrorKind.RECEIPT_INVALID) != (self.reason is not None):
            raise ValueError(f"Reason is required only for receipt failures: {self.kind}")

    @property
    def status_code(self) -> int:
        if self.kind == ValidationErrorKind.RECEIPT_INVALID:
            return 401
        return 400

    @property
    def message(self) -> str:
        if self.kind == ValidationErrorKind.UNKNOWN_PRODUCT:
            return "Invalid product ID, could not find reward."
        if self.kind == ValidationErrorKind.MINT_DISPATCH_FAILED:
            return "Unable to sign payload."
        if self.kind == ValidationErrorKind.CLASSIFICATION_AMBIGUOUS:
            return "Unable to classify receipt."
        assert self.reason is not None
        return f"Unable to validate receipt: {self.reason.value}"


@dataclass(frozen=True)
class MintResult:
    """Minting service response, relayed verbatim to the caller."""

    response: Any
    status_code: int = 200


PipelineOutcome = MintResult | ValidationFailure
