"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from facemeshx.api.routes import router
from facemeshx.config import get_settings
from facemeshx.ml.face_mesh import load_face_mesh
from facemeshx.ml.inference import InferencePool
from facemeshx.ml.model_manager import OnnxModelManager
from facemeshx.ml.pipeline import import_pipeline_factory

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: initialize on startup, clean up on shutdown."""
    settings = get_settings()
    app.state.settings = settings

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    logger.info(
        "Starting FaceMeshX (device=%s, max_concurrent=%s, detection=%s, mesh=%s)",
        settings.device,
        settings.max_concurrent,
        settings.face_detection_model,
        settings.face_mesh_model,
    )

    inference_pool = InferencePool(settings)
    model_manager = OnnxModelManager(settings)
    app.state.inference_pool = inference_pool
    app.state.model_manager = model_manager
    app.state.face_mesh = None

    if settings.pipeline_factory is None:
        logger.warning("FACEMESHX_PIPELINE_FACTORY not set, face estimation is disabled")
    else:
        factory = import_pipeline_factory(settings.pipeline_factory)
        app.state.face_mesh = await load_face_mesh(settings, model_manager, inference_pool, factory)

    logger.info("FaceMeshX ready")
    yield

    logger.info("Shutting down FaceMeshX")
    inference_pool.shutdown()
    model_manager.shutdown()
    logger.info("FaceMeshX shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    application = FastAPI(
        title="FaceMeshX",
        description="Face mesh estimation API: ROI tracking, dense landmarks and annotated regions",
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


def run() -> None:
    """Serve the application with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("facemeshx.main:app", host=settings.host, port=settings.port)
