"""
Apple StoreKit Provider Implementation.

NO DICTIONARIES - All data uses strongly typed models.

Uses Apple App Store Server API v2 for transaction verification.
https://developer.apple.com/documentation/appstoreserverapi
"""

import base64
import binascii
import time
from datetime import UTC, datetime, timedelta

import httpx
import jwt
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from structlog import get_logger

from app.exceptions import (
    PaymentProviderError,
    SignatureVerificationError,
    TransactionNotFoundError,
)
from app.models.apple_storekit import AppleStoreKitConfig, AppleTransactionInfo
from app.models.domain import FailureReason, Provider, VerificationResult
from app.models.receipts import AppleReceiptData
from app.services.payment_provider import DEFAULT_FRESHNESS_WINDOW, is_fresh

logger = get_logger(__name__)


def _load_certificate(data: bytes) -> x509.Certificate:
    if b"-----BEGIN CERTIFICATE-----" in data:
        return x509.load_pem_x509_certificate(data)
    return x509.load_der_x509_certificate(data)


class AppleStoreKitProvider:
    """
    Apple App Store Server API provider.

    Handles transaction lookup and receipt verification.
    """

    def __init__(self, config: AppleStoreKitConfig, timeout: float = 30.0) -> None:
        """
        Initialize Apple StoreKit provider.

        Args:
            config: StoreKit configuration with API credentials
            timeout: HTTP timeout for App Store Server API calls, in seconds
        """
        self.config = config
        self.timeout = timeout
        self._jwt_token: str | None = None
        self._jwt_expires_at: float = 0
        self._root_certificate = (
            _load_certificate(config.root_certificate) if config.root_certificate else None
        )

        logger.info(
            "apple_storekit_provider_initialized",
            bundle_id=config.bundle_id,
            environment=config.environment,
            verify_signature=config.verify_signature,
        )

    def _generate_jwt(self) -> str:
        """
        Generate JWT for App Store Server API authentication.

        The JWT is valid for up to 60 minutes.
        """
        now = time.time()

        # Reuse cached token if still valid (with 5 min buffer)
        if self._jwt_token and now < (self._jwt_expires_at - 300):
            return self._jwt_token

        # Key may be stored base64 encoded instead of as PEM text
        private_key = self.config.private_key
        if "-----BEGIN" not in private_key:
            try:
                private_key = base64.b64decode(private_key, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as exc:
                raise PaymentProviderError("Unreadable App Store private key") from exc

        expires_at = now + 3600  # 1 hour
        payload = {
            "iss": self.config.issuer_id,
            "iat": int(now),
            "exp": int(expires_at),
            "aud": "appstoreconnect-v1",
            "bid": self.config.bundle_id,
        }

        # Sign JWT with ES256 (Apple requires this algorithm)
        try:
            token = jwt.encode(
                payload,
                private_key,
                algorithm="ES256",
                headers={"kid": self.config.key_id},
            )
        except (ValueError, jwt.exceptions.PyJWTError) as exc:
            raise PaymentProviderError("Invalid App Store private key") from exc

        self._jwt_token = token
        self._jwt_expires_at = expires_at

        return token

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs: object,
    ) -> dict[str, object]:
        """Make authenticated request to App Store Server API."""
        url = f"{self.config.api_base_url}{endpoint}"
        headers = {
            "Authorization": f"Bearer {self._generate_jwt()}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient() as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    timeout=self.timeout,
                    **kwargs,  # type: ignore[arg-type]
                )
        except httpx.HTTPError as exc:
            logger.error("apple_storekit_transport_error", error=str(exc))
            raise PaymentProviderError(f"App Store Server API unreachable: {exc}") from exc

        if response.status_code == 401:
            raise PaymentProviderError("Invalid API credentials")
        elif response.status_code == 404:
            return {}
        elif response.status_code >= 400:
            logger.error(
                "apple_storekit_api_error",
                status=response.status_code,
                error=response.text,
            )
            raise PaymentProviderError(f"API error: {response.status_code}")

        try:
            result: dict[str, object] = response.json()
        except ValueError as exc:
            raise PaymentProviderError("App Store Server API returned invalid JSON") from exc
        return result

    def _verify_certificate_chain(self, signed_data: str) -> x509.Certificate:
        """
        Check the x5c chain of a JWS against the configured Apple root.

        Returns:
            Leaf certificate whose key signed the JWS
        """
        assert self._root_certificate is not None
        try:
            header = jwt.get_unverified_header(signed_data)
        except jwt.exceptions.DecodeError as exc:
            raise SignatureVerificationError(f"Invalid JWS header: {exc}") from exc

        chain = header.get("x5c")
        if not isinstance(chain, list) or len(chain) < 2:
            raise SignatureVerificationError("JWS header has no certificate chain")

        try:
            certs = [x509.load_der_x509_certificate(base64.b64decode(c)) for c in chain]
        except (ValueError, TypeError) as exc:
            raise SignatureVerificationError("Unreadable certificate in chain") from exc

        root_fingerprint = self._root_certificate.fingerprint(hashes.SHA256())
        try:
            for cert, issuer in zip(certs, certs[1:]):
                cert.verify_directly_issued_by(issuer)
            if certs[-1].fingerprint(hashes.SHA256()) != root_fingerprint:
                certs[-1].verify_directly_issued_by(self._root_certificate)
        except (InvalidSignature, ValueError, TypeError) as exc:
            raise SignatureVerificationError("Certificate chain does not lead to Apple root") from exc

        return certs[0]

    def _decode_jws(self, signed_data: str) -> dict[str, object]:
        """
        Decode JWS signed data from Apple.

        Signatures are only checked when verify_signature is configured.
        Otherwise the payload is trusted on the strength of the HTTPS
        connection to Apple.
        """
        if self.config.verify_signature:
            leaf = self._verify_certificate_chain(signed_data)
            try:
                verified: dict[str, object] = jwt.decode(
                    signed_data,
                    key=leaf.public_key(),  # type: ignore[arg-type]
                    algorithms=["ES256"],
                    options={"verify_aud": False},
                )
            except jwt.exceptions.PyJWTError as exc:
                raise SignatureVerificationError(str(exc)) from exc
            return verified

        try:
            payload: dict[str, object] = jwt.decode(
                signed_data,
                options={"verify_signature": False},
            )
            return payload
        except jwt.exceptions.DecodeError as e:
            raise PaymentProviderError(f"Invalid JWS data: {e}")

    def _parse_transaction_info(
        self, data: dict[str, object], transaction_id: str
    ) -> AppleTransactionInfo:
        """Parse transaction info from decoded JWS payload; transaction_id is the one looked up."""

        def parse_timestamp(ms: object) -> datetime:
            return datetime.fromtimestamp(int(ms) / 1000, tz=UTC)  # type: ignore[call-overload]

        try:
            return AppleTransactionInfo(
                transaction_id=str(data.get("transactionId", transaction_id)),
                original_transaction_id=str(data.get("originalTransactionId", "")),
                product_id=str(data["productId"]),
                bundle_id=str(data.get("bundleId", "")),
                purchase_date=parse_timestamp(data["purchaseDate"]),
                quantity=int(data["quantity"]),  # type: ignore[call-overload]
                type=str(data.get("type", "Consumable")),
                environment=str(data.get("environment", "Production")),
                revocation_date=parse_timestamp(data["revocationDate"])
                if data.get("revocationDate")
                else None,
            )
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
            raise PaymentProviderError(f"Malformed transaction payload: {exc}") from exc

    async def get_transaction_info(
        self,
        transaction_id: str,
    ) -> AppleTransactionInfo:
        """
        Get transaction information from App Store Server API.

        Args:
            transaction_id: The transaction ID to look up

        Returns:
            Transaction information

        Raises:
            TransactionNotFoundError: If Apple has no such transaction
            SignatureVerificationError: If the signed payload fails verification
            PaymentProviderError: If lookup fails
        """
        logger.info(
            "getting_apple_transaction_info",
            transaction_id=transaction_id,
        )

        result = await self._make_request(
            "GET",
            f"/inApps/v1/transactions/{transaction_id}",
        )

        # Result contains signedTransactionInfo as JWS
        signed_data = result.get("signedTransactionInfo")
        if not signed_data or not isinstance(signed_data, str):
            raise TransactionNotFoundError(transaction_id)

        transaction_data = self._decode_jws(signed_data)
        transaction = self._parse_transaction_info(transaction_data, transaction_id)

        logger.info(
            "apple_transaction_info_retrieved",
            transaction_id=transaction.transaction_id,
            product_id=transaction.product_id,
            environment=transaction.environment,
        )

        return transaction

    async def verify_receipt(
        self,
        receipt: AppleReceiptData,
        now: datetime,
        freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
    ) -> VerificationResult:
        """
        Confirm an App Store receipt against Apple's record of the transaction.

        Checks, in order: product ID, quantity, purchase freshness.
        """
        try:
            transaction = await self.get_transaction_info(receipt.transaction_id)
        except TransactionNotFoundError:
            logger.warning("apple_transaction_not_found", transaction_id=receipt.transaction_id)
            return VerificationResult.failed(Provider.APPLE, FailureReason.TRANSACTION_NOT_FOUND)
        except SignatureVerificationError as exc:
            logger.warning("apple_signature_invalid", error=exc.message)
            return VerificationResult.failed(Provider.APPLE, FailureReason.SIGNATURE_INVALID)
        except PaymentProviderError as exc:
            logger.error("apple_verification_unavailable", error=exc.message)
            return VerificationResult.failed(Provider.APPLE, FailureReason.PROVIDER_UNAVAILABLE)

        if transaction.product_id != receipt.product_id:
            reason = FailureReason.PRODUCT_MISMATCH
        elif transaction.quantity != receipt.quantity:
            reason = FailureReason.QUANTITY_MISMATCH
        elif not is_fresh(transaction.purchase_date, now, freshness_window):
            reason = FailureReason.PURCHASE_TOO_OLD
        else:
            logger.info(
                "apple_receipt_verified",
                transaction_id=transaction.transaction_id,
                product_id=transaction.product_id,
                sandbox=transaction.is_sandbox(),
            )
            return VerificationResult.success(Provider.APPLE)

        logger.warning(
            "apple_receipt_rejected",
            transaction_id=receipt.transaction_id,
            reason=reason.value,
        )
        return VerificationResult.failed(Provider.APPLE, reason)
