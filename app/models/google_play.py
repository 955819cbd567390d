"""
Google Play domain models - Immutable dataclasses for purchase verification.

NO DICTIONARIES - All data uses strongly typed models.
"""

from dataclasses import dataclass
from datetime import UTC, datetime


@dataclass(frozen=True)
class GooglePlayPurchaseToken:
    """Validated Google Play purchase token."""

    token: str
    product_id: str
    package_name: str

    def __post_init__(self) -> None:
        """Validate purchase token fields."""
        if not self.token:
            raise ValueError("Invalid purchase token")
        if not self.product_id:
            raise ValueError("Product ID required")
        if not self.package_name:
            raise ValueError("Package name required")


@dataclass(frozen=True)
class GooglePlayPurchaseVerification:
    """Purchase record returned by purchases.products.get."""

    order_id: str
    purchase_token: str
    product_id: str
    package_name: str
    purchase_time_millis: int
    purchase_state: int  # 0: purchased, 1: canceled, 2: pending
    acknowledgement_state: int  # 0: not acknowledged, 1: acknowledged
    consumption_state: int  # 0: not consumed, 1: consumed
    purchase_type: int | None = None  # None: real, 0: test, 1: promo, 2: rewarded

    @property
    def purchase_time(self) -> datetime:
        return datetime.fromtimestamp(self.purchase_time_millis / 1000, tz=UTC)

    def is_purchased(self) -> bool:
        """Check if the purchase completed (not canceled or pending)."""
        return self.purchase_state == 0

    def is_test_purchase(self) -> bool:
        """Check if this is a test purchase (license tester account)."""
        return self.purchase_type == 0
