"""
Google Play Provider Implementation.

NO DICTIONARIES - All data uses strongly typed models.
"""

import asyncio
import threading
from datetime import datetime, timedelta
from typing import Any

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from structlog import get_logger

from app.exceptions import PaymentProviderError
from app.models.domain import FailureReason, Provider, VerificationResult
from app.models.google_play import GooglePlayPurchaseToken, GooglePlayPurchaseVerification
from app.models.receipts import GooglePlayReceiptData
from app.services.payment_provider import DEFAULT_FRESHNESS_WINDOW, is_fresh

logger = get_logger(__name__)

ANDROID_PUBLISHER_SCOPE = "https://www.googleapis.com/auth/androidpublisher"


class GooglePlayProvider:
    """
    Google Play In-App Billing provider.

    Handles purchase lookup and receipt verification.
    """

    def __init__(
        self,
        service_account_json: str | dict[str, str],
        timeout: float = 30.0,
        service: Any | None = None,
    ) -> None:
        """
        Initialize Google Play provider.

        Args:
            service_account_json: Path to service account JSON or dict with credentials
            timeout: HTTP timeout for Google Play Developer API calls, in seconds
            service: Prebuilt androidpublisher client, skips credential loading
        """
        self.timeout = timeout
        # The client shares one httplib2 transport, which is not thread-safe
        self._execute_lock = threading.Lock()

        if service is not None:
            self.service = service
        else:
            # Load service account credentials
            if isinstance(service_account_json, str):
                self.credentials = service_account.Credentials.from_service_account_file(  # type: ignore[no-untyped-call]
                    service_account_json,
                    scopes=[ANDROID_PUBLISHER_SCOPE],
                )
            else:
                self.credentials = service_account.Credentials.from_service_account_info(  # type: ignore[no-untyped-call]
                    service_account_json,
                    scopes=[ANDROID_PUBLISHER_SCOPE],
                )

            # Build API client
            self.service = build(
                "androidpublisher", "v3", credentials=self.credentials, cache_discovery=False
            )

        logger.info("google_play_provider_initialized")

    def _execute(self, request: Any) -> dict[str, Any]:
        """Run one API request; calls on this client never overlap."""
        with self._execute_lock:
            result: dict[str, Any] = request.execute()
        return result

    async def get_purchase(
        self,
        purchase_token: GooglePlayPurchaseToken,
    ) -> GooglePlayPurchaseVerification:
        """
        Look up a one-time product purchase with Google Play.

        Args:
            purchase_token: Validated purchase token

        Returns:
            Purchase record as Google Play knows it

        Raises:
            PaymentProviderError: If the lookup fails
        """
        try:
            logger.info(
                "getting_google_play_purchase",
                product_id=purchase_token.product_id,
                package_name=purchase_token.package_name,
            )

            request = (
                self.service.purchases()
                .products()
                .get(
                    packageName=purchase_token.package_name,
                    productId=purchase_token.product_id,
                    token=purchase_token.token,
                )
            )
            # The API client is blocking; keep it off the event loop
            result = await asyncio.wait_for(
                asyncio.to_thread(self._execute, request), timeout=self.timeout
            )

            # purchaseType: None=real purchase, 0=test, 1=promo, 2=rewarded
            purchase_type = result.get("purchaseType")
            if purchase_type is not None:
                purchase_type = int(purchase_type)

            return GooglePlayPurchaseVerification(
                order_id=str(result.get("orderId", "")),
                purchase_token=purchase_token.token,
                product_id=purchase_token.product_id,
                package_name=purchase_token.package_name,
                purchase_time_millis=int(result["purchaseTimeMillis"]),
                purchase_state=int(result["purchaseState"]),
                acknowledgement_state=int(result.get("acknowledgementState", 0)),
                consumption_state=int(result.get("consumptionState", 0)),
                purchase_type=purchase_type,
            )

        except HttpError as exc:
            error_content = exc.content.decode("utf-8") if exc.content else str(exc)
            logger.error(
                "google_play_lookup_failed",
                status=exc.resp.status,
                error=error_content,
            )

            if exc.resp.status == 404:
                raise PaymentProviderError("Purchase not found or invalid token") from exc
            elif exc.resp.status == 410:
                raise PaymentProviderError("Purchase token expired") from exc
            else:
                raise PaymentProviderError(f"Google Play API error: {exc.resp.status}") from exc

        except TimeoutError as exc:
            logger.error("google_play_lookup_timeout", timeout=self.timeout)
            raise PaymentProviderError("Google Play API timed out") from exc

        except Exception as exc:
            logger.exception("google_play_lookup_unexpected_error")
            raise PaymentProviderError(f"Lookup failed: {exc}") from exc

    async def verify_receipt(
        self,
        receipt: GooglePlayReceiptData,
        now: datetime,
        freshness_window: timedelta = DEFAULT_FRESHNESS_WINDOW,
    ) -> VerificationResult:
        """
        Confirm a Google Play receipt against Google's record of the purchase.

        Checks, in order: purchase state, purchase freshness, order ID.
        """
        try:
            purchase = await self.get_purchase(
                GooglePlayPurchaseToken(
                    token=receipt.purchase_token,
                    product_id=receipt.product_id,
                    package_name=receipt.package_name,
                )
            )
        except PaymentProviderError as exc:
            logger.error("google_play_verification_unavailable", error=exc.message)
            return VerificationResult.failed(
                Provider.GOOGLE_PLAY, FailureReason.PROVIDER_UNAVAILABLE
            )

        if not purchase.is_purchased():
            reason = FailureReason.INVALID_PURCHASE_STATE
        elif not is_fresh(purchase.purchase_time, now, freshness_window):
            reason = FailureReason.PURCHASE_TOO_OLD
        elif purchase.order_id != receipt.order_id:
            reason = FailureReason.ORDER_MISMATCH
        else:
            logger.info(
                "google_play_receipt_verified",
                order_id=purchase.order_id,
                product_id=purchase.product_id,
                is_test=purchase.is_test_purchase(),
            )
            return VerificationResult.success(Provider.GOOGLE_PLAY)

        logger.warning(
            "google_play_receipt_rejected",
            order_id=receipt.order_id,
            purchase_state=purchase.purchase_state,
            reason=reason.value,
        )
        return VerificationResult.failed(Provider.GOOGLE_PLAY, reason)
