"""
Apple StoreKit domain models - Immutable dataclasses for purchase verification.

NO DICTIONARIES - All data uses strongly typed models.

Apple App Store Server API v2 uses JWS (JSON Web Signature) format for
transaction data.
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AppleTransactionInfo:
    """Apple StoreKit transaction decoded from a signedTransactionInfo JWS."""

    transaction_id: str  # Unique transaction identifier
    original_transaction_id: str  # First transaction in subscription chain
    product_id: str  # Product identifier from App Store Connect
    bundle_id: str  # App's bundle ID
    purchase_date: datetime  # When purchase was made
    quantity: int  # Number of consumables purchased
    type: str  # "Auto-Renewable Subscription", "Non-Consumable", "Consumable"
    environment: str  # "Production" or "Sandbox"

    # Optional fields
    revocation_date: datetime | None = None  # If revoked

    def is_sandbox(self) -> bool:
        """Check if this is a sandbox (test) transaction."""
        return self.environment.lower() == "sandbox"


@dataclass(frozen=True)
class AppleStoreKitConfig:
    """Configuration for Apple App Store Server API."""

    key_id: str  # Key ID from App Store Connect
    issuer_id: str  # Issuer ID from App Store Connect
    private_key: str  # Private key (.p8 contents)
    bundle_id: str  # App bundle ID
    environment: str  # "production" or "sandbox"
    verify_signature: bool = False  # Check the x5c chain of every JWS
    root_certificate: bytes | None = None  # Apple root CA (DER or PEM)

    @property
    def api_base_url(self) -> str:
        """Get the API base URL for the configured environment."""
        if self.environment.lower() == "sandbox":
            return "https://api.storekit-sandbox.itunes.apple.com"
        return "https://api.storekit.itunes.apple.com"

    def __post_init__(self) -> None:
        """Validate configuration fields."""
        if not self.key_id:
            raise ValueError("StoreKit key_id is required")
        if not self.issuer_id:
            raise ValueError("StoreKit issuer_id is required")
        if not self.private_key:
            raise ValueError("StoreKit private_key is required")
        if not self.bundle_id:
            raise ValueError("StoreKit bundle_id is required")
        if self.environment.lower() not in ("production", "sandbox"):
            raise ValueError("Environment must be 'production' or 'sandbox'")
        if self.verify_signature and not self.root_certificate:
            raise ValueError("Signature verification requires an Apple root certificate")
