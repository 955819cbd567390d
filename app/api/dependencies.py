"""
FastAPI Dependencies - Pipeline construction from settings.

NO DICTIONARIES - All dependencies return typed objects.
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from structlog import get_logger

from app.config import Settings, settings
from app.models.apple_storekit import AppleStoreKitConfig
from app.models.domain import Provider
from app.models.receipts import AppleReceiptData, GooglePlayReceiptData
from app.services.apple_storekit_provider import AppleStoreKitProvider
from app.services.google_play_provider import GooglePlayProvider
from app.services.mint_dispatcher import MintDispatcher
from app.services.payment_provider import ReceiptVerifier, UnconfiguredVerifier
from app.services.reward_catalog import RewardCatalog
from app.services.validation_pipeline import ValidationPipeline

logger = get_logger(__name__)


def build_reward_catalog(config: Settings) -> RewardCatalog:
    """Catalog from REWARD_CATALOG_PATH, or the built-in one."""
    if config.reward_catalog_path:
        return RewardCatalog.from_json_file(config.reward_catalog_path)
    return RewardCatalog.default()


def build_apple_verifier(config: Settings) -> ReceiptVerifier[AppleReceiptData]:
    """
    App Store verifier from settings.

    Missing credentials do not stop the service; App Store receipts are
    then rejected as ProviderUnavailable.
    """
    try:
        private_key = Path(config.apple_private_key_path).read_text(encoding="utf-8")
        root_certificate = (
            Path(config.apple_root_ca_path).read_bytes()
            if config.apple_verify_jws_signature
            else None
        )
        storekit_config = AppleStoreKitConfig(
            key_id=config.apple_app_store_key_id,
            issuer_id=config.apple_app_store_issuer_id,
            private_key=private_key,
            bundle_id=config.apple_app_store_bundle_id,
            environment=config.apple_environment,
            verify_signature=config.apple_verify_jws_signature,
            root_certificate=root_certificate,
        )
        provider = AppleStoreKitProvider(storekit_config, timeout=config.provider_timeout_seconds)
    except (OSError, ValueError) as exc:
        logger.error("apple_storekit_not_configured", error=str(exc))
        return UnconfiguredVerifier(Provider.APPLE, str(exc))

    if not config.apple_verify_jws_signature:
        logger.warning(
            "apple_jws_signature_verification_disabled",
            detail="signedTransactionInfo is decoded without checking its signature",
        )
    return provider


def build_google_verifier(config: Settings) -> ReceiptVerifier[GooglePlayReceiptData]:
    """Google Play verifier from settings, see build_apple_verifier."""
    try:
        return GooglePlayProvider(
            service_account_json=config.google_service_account_file,
            timeout=config.provider_timeout_seconds,
        )
    except (OSError, ValueError) as exc:
        logger.error("google_play_not_configured", error=str(exc))
        return UnconfiguredVerifier(Provider.GOOGLE_PLAY, str(exc))


def build_mint_dispatcher(config: Settings) -> MintDispatcher:
    return MintDispatcher(
        engine_url=config.engine_base_url,
        chain_id=config.thirdweb_chain_id,
        backend_wallet=config.thirdweb_engine_backend_wallet,
        api_secret_key=config.thirdweb_api_secret_key,
        timeout=config.engine_timeout_seconds,
    )


def build_validation_pipeline(config: Settings) -> ValidationPipeline:
    """Assemble the pipeline and its collaborators."""
    return ValidationPipeline(
        catalog=build_reward_catalog(config),
        apple_verifier=build_apple_verifier(config),
        google_verifier=build_google_verifier(config),
        mint_dispatcher=build_mint_dispatcher(config),
        freshness_window=timedelta(seconds=config.receipt_freshness_seconds),
    )


@lru_cache(maxsize=1)
def get_validation_pipeline() -> ValidationPipeline:
    """
    FastAPI dependency returning the process-wide pipeline.

    Built on first use so credential files are read once.
    """
    return build_validation_pipeline(settings)
