"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Header, Request, Response, UploadFile, status
from fastapi.responses import JSONResponse

from wastelens.api.middleware import verify_api_key
from wastelens.api.schemas import (
    CategoriesResponse,
    CategoryConfidence,
    CategoryInfo,
    ClassifyImageResponse,
    DisposalGuidance,
    ErrorResponse,
    HealthResponse,
)
from wastelens.errors import (
    ClassificationError,
    ClassificationTimeoutError,
    InvalidImageError,
    PoolBusyError,
)
from wastelens.ml.preprocessing import decode_image

if TYPE_CHECKING:
    from wastelens.config import Settings
    from wastelens.ml.heuristic import ClassificationResult, HeuristicClassifier
    from wastelens.ml.inference import ClassificationPool
    from wastelens.ml.tokens import RequestTokens

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])

_ERROR_STATUS: dict[type[ClassificationError], int] = {
    InvalidImageError: status.HTTP_400_BAD_REQUEST,
    PoolBusyError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ClassificationTimeoutError: status.HTTP_504_GATEWAY_TIMEOUT,
}


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_classifier(request: Request) -> HeuristicClassifier:
    classifier: HeuristicClassifier = request.app.state.classifier
    return classifier


def _get_pool(request: Request) -> ClassificationPool:
    pool: ClassificationPool = request.app.state.classification_pool
    return pool


def _get_tokens(request: Request) -> RequestTokens:
    tokens: RequestTokens = request.app.state.request_tokens
    return tokens


def _error(status_code: int, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail})


def _superseded(tokens: RequestTokens, client_id: str | None, token: int | None) -> bool:
    """Return True if a newer request from the same client has been issued."""
    if client_id is None or token is None:
        return False
    return not tokens.is_current(client_id, token)


def _classify_bytes(classifier: HeuristicClassifier, data: bytes, max_pixels: int) -> ClassificationResult:
    image = decode_image(data, max_pixels)
    return classifier.classify(image)


@router.post(
    "/classify-image",
    response_model=ClassifyImageResponse,
    responses={
        status.HTTP_204_NO_CONTENT: {"description": "Superseded by a newer request from the same client"},
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_CONTENT_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
        status.HTTP_504_GATEWAY_TIMEOUT: {"model": ErrorResponse},
    },
    summary="Classify a photo of waste",
)
async def classify_image(
    request: Request,
    file: UploadFile,
    x_client_id: Annotated[str | None, Header()] = None,
) -> ClassifyImageResponse | Response:
    """Rank the six waste categories for an uploaded image.

    Clients that send ``X-Client-Id`` only receive the result of their most
    recent upload; earlier in-flight requests are answered with 204.
    """
    tokens = _get_tokens(request)
    # Issued before the body is read so a rejected upload still supersedes older ones
    token = tokens.issue(x_client_id) if x_client_id is not None else None
    try:
        response = await _classify_upload(request, file)
        if _superseded(tokens, x_client_id, token):
            return Response(status_code=status.HTTP_204_NO_CONTENT)
        return response
    finally:
        if x_client_id is not None and token is not None:
            tokens.release(x_client_id, token)


async def _classify_upload(request: Request, file: UploadFile) -> ClassifyImageResponse | JSONResponse:
    settings = _get_settings(request)
    classifier = _get_classifier(request)
    pool = _get_pool(request)

    data = await file.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        return _error(
            status.HTTP_413_CONTENT_TOO_LARGE,
            f"Image file is too large (max {settings.max_file_size} bytes)",
        )

    try:
        result = await pool.run(_classify_bytes, classifier, data, settings.max_image_pixels)
    except ClassificationError as exc:
        logger.info("Classification of %s failed: %s", file.filename, exc.user_message)
        return _error(_ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR), exc.user_message)
    except Exception:
        logger.exception("Unexpected error classifying %s", file.filename)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, ClassificationError.user_message)

    top = result.top
    spec = classifier.categories.get(top.label)
    logger.info("Classified %s as %s (%.3f)", file.filename, top.label, top.confidence)
    return ClassifyImageResponse(
        tags=[CategoryConfidence(label=s.label, confidence=s.confidence) for s in result],
        top=DisposalGuidance(label=top.label, confidence=top.confidence, description=spec.description),
    )


@router.get(
    "/categories",
    response_model=CategoriesResponse,
    summary="List waste categories",
)
async def list_categories(request: Request) -> CategoriesResponse:
    """Return the configured categories with their disposal guidance."""
    classifier = _get_classifier(request)
    return CategoriesResponse(
        categories=[
            CategoryInfo(
                name=spec.name,
                description=spec.description,
                signals={str(signal): weight for signal, weight in spec.signals.items()},
                gain=spec.gain,
            )
            for spec in classifier.categories
        ]
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    classifier = _get_classifier(request)
    pool = _get_pool(request)
    return HealthResponse(
        status="ok",
        categories=len(classifier.categories),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )
