"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.

Receipt validation failures are NOT exceptions; verifiers return
VerificationResult values. These classes cover transport faults inside
provider clients and the mint dispatcher, and malformed receipts.
"""


class RewardEngineError(Exception):
    """Base exception for all reward engine errors."""

    pass


class ReceiptClassificationError(RewardEngineError):
    """Raised when a receipt does not match the shape of any provider."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Receipt classification failed: {message}")


class PaymentProviderError(RewardEngineError):
    """Raised when a store provider operation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Payment provider error: {message}")


class TransactionNotFoundError(PaymentProviderError):
    """Raised when the provider has no record of the transaction."""

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class SignatureVerificationError(PaymentProviderError):
    """Raised when a signed provider payload fails signature verification."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Signature verification failed: {message}")


class MintDispatchError(RewardEngineError):
    """Raised when the minting service call fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(f"Mint dispatch failed: {message}")
