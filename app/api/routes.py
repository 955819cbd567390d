"""
API Routes - FastAPI endpoints for receipt validation.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from structlog import get_logger

from app.api.dependencies import get_validation_pipeline
from app.config import settings
from app.models.api import HealthResponse, MessageResponse, ValidateRequest
from app.models.domain import MintResult
from app.services.payment_provider import UnconfiguredVerifier
from app.services.validation_pipeline import ValidationPipeline

logger = get_logger(__name__)

router = APIRouter()


@router.post(
    "/engine/validate",
    responses={
        400: {"model": MessageResponse},
        401: {"model": MessageResponse},
    },
)
async def validate(
    request: ValidateRequest,
    pipeline: ValidationPipeline = Depends(get_validation_pipeline),
) -> JSONResponse:
    """
    Validate a store receipt and mint its reward.

    Flow:
    1. Mobile app completes an in-app purchase
    2. App posts the receipt with the wallet address to reward
    3. Backend confirms the purchase with Apple or Google
    4. Backend asks Engine to mint the product's reward to the address

    Responses:
    - 200: Engine's response body, unchanged
    - 400: Unknown product, unclassifiable receipt, or mint failure
    - 401: Receipt failed verification
    """
    outcome = await pipeline.handle(request)

    if isinstance(outcome, MintResult):
        return JSONResponse(status_code=outcome.status_code, content=outcome.response)

    logger.info(
        "validate_request_rejected",
        kind=outcome.kind.value,
        reason=outcome.reason.value if outcome.reason else None,
        status_code=outcome.status_code,
    )
    return JSONResponse(
        status_code=outcome.status_code,
        content=MessageResponse(message=outcome.message).model_dump(),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(
    pipeline: ValidationPipeline = Depends(get_validation_pipeline),
) -> HealthResponse:
    """Liveness and configuration summary; never exposes credentials."""
    return HealthResponse(
        status="healthy",
        version=settings.api_version,
        reward_products=len(pipeline.catalog),
        apple_configured=not isinstance(pipeline.apple_verifier, UnconfiguredVerifier),
        google_play_configured=not isinstance(pipeline.google_verifier, UnconfiguredVerifier),
        apple_signature_verification=settings.apple_verify_jws_signature,
    )
