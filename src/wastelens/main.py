"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import numpy as np
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from wastelens.api.routes import router
from wastelens.config import Settings, get_settings
from wastelens.ml.categories import load_categories
from wastelens.ml.heuristic import HeuristicClassifier
from wastelens.ml.inference import ClassificationPool
from wastelens.ml.tokens import RequestTokens

logger = logging.getLogger(__name__)


def init_state(app: FastAPI, settings: Settings) -> None:
    """Build the process-wide classifier, pool, and token table."""
    categories = load_categories(settings.classes_file)
    app.state.settings = settings
    app.state.classifier = HeuristicClassifier(
        categories,
        jitter=settings.jitter,
        rng=np.random.default_rng(settings.jitter_seed),
        sample_target=settings.sample_target,
    )
    app.state.classification_pool = ClassificationPool(settings)
    app.state.request_tokens = RequestTokens()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting WasteLens (max_concurrent=%s, sample_target=%s, jitter=%s)",
        settings.max_concurrent,
        settings.sample_target,
        settings.jitter,
    )

    init_state(app, settings)

    logger.info("WasteLens ready")
    yield

    logger.info("Shutting down WasteLens")
    app.state.classification_pool.shutdown()
    logger.info("WasteLens shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="WasteLens",
        description="Waste photo classification with disposal guidance",
        version="0.1.0",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(router)
    return application


app = create_app()
