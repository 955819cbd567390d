"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# Validate Models
# ============================================================================


class ReceiptEnvelope(BaseModel):
    """Receipt as sent by the client - provider is not declared.

    receiptData is left untyped here; the classifier decides which
    provider shape it must satisfy.
    """

    model_config = ConfigDict(populate_by_name=True)

    receipt_data: Any = Field(..., alias="receiptData")


class ValidateRequest(BaseModel):
    """POST /engine/validate request body."""

    model_config = ConfigDict(populate_by_name=True)

    receipt: ReceiptEnvelope
    to_address: str = Field(..., alias="toAddress", min_length=1, max_length=255)

    @field_validator("to_address")
    @classmethod
    def validate_to_address(cls, v: str) -> str:
        """Destination is opaque, but must not be blank."""
        if not v.strip():
            raise ValueError("toAddress cannot be blank")
        return v.strip()


class MessageResponse(BaseModel):
    """Error body for /engine/validate."""

    message: str


# ============================================================================
# Health Check Models
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    version: str
    reward_products: int
    apple_configured: bool
    google_play_configured: bool
    apple_signature_verification: bool
