"""API route definitions."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile, status

from facemeshx.api.middleware import verify_api_key
from facemeshx.api.schemas import (
    AnnotationsResponse,
    ErrorResponse,
    FacePrediction,
    HealthResponse,
    ModelInfo,
    ModelsResponse,
)
from facemeshx.ml.face_mesh import FaceMesh
from facemeshx.ml.inference import PoolSaturatedError
from facemeshx.ml.keypoints import NUM_KEYPOINTS
from facemeshx.ml.model_manager import MODEL_REGISTRY
from facemeshx.ml.preprocessing import ImageTooLargeError, decode_image
from facemeshx.ml.types import MaterializedPrediction

if TYPE_CHECKING:
    from facemeshx.config import Settings
    from facemeshx.ml.inference import InferencePool
    from facemeshx.ml.model_manager import ModelManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", dependencies=[Depends(verify_api_key)])


def _get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def _get_inference_pool(request: Request) -> InferencePool:
    pool: InferencePool = request.app.state.inference_pool
    return pool


def _get_model_manager(request: Request) -> ModelManager:
    manager: ModelManager = request.app.state.model_manager
    return manager


def _get_face_mesh(request: Request) -> FaceMesh:
    face_mesh: FaceMesh | None = getattr(request.app.state, "face_mesh", None)
    if face_mesh is None or not face_mesh.is_loaded:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Face mesh pipeline is not configured",
        )
    return face_mesh


@router.post(
    "/estimate-faces",
    response_model=list[FacePrediction] | None,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
    },
    summary="Estimate face meshes in an image",
)
async def estimate_faces(
    request: Request,
    file: UploadFile,
    flip_horizontal: bool = False,
) -> list[FacePrediction] | None:
    """Return the mesh and annotated regions of every face, or null if none was found."""
    face_mesh = _get_face_mesh(request)
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    image_bytes = await file.read()

    try:
        async with pool.slot():
            try:
                pixels = await pool.run_blocking(
                    decode_image, image_bytes, settings.max_file_size, settings.max_image_pixels
                )
            except ImageTooLargeError as exc:
                raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)) from None
            except ValueError as exc:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from None
            predictions = await face_mesh.estimate_faces(pixels, flip_horizontal=flip_horizontal)
    except PoolSaturatedError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Too many concurrent requests",
        ) from None

    if predictions is None:
        return None
    return [
        FacePrediction.from_prediction(prediction)
        for prediction in predictions
        if isinstance(prediction, MaterializedPrediction)
    ]


@router.get(
    "/annotations",
    response_model=AnnotationsResponse,
    summary="Mesh region index table",
)
async def annotations() -> AnnotationsResponse:
    """Return the region name -> mesh index table."""
    table = FaceMesh.get_annotations()
    return AnnotationsResponse(
        num_keypoints=NUM_KEYPOINTS,
        annotations={name: list(indices) for name, indices in table.items()},
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
)
async def health(request: Request) -> HealthResponse:
    """Return service health status."""
    settings = _get_settings(request)
    pool = _get_inference_pool(request)
    face_mesh: FaceMesh | None = getattr(request.app.state, "face_mesh", None)
    return HealthResponse(
        status="ok",
        gpu=settings.device == "cuda",
        pipeline_ready=face_mesh is not None and face_mesh.is_loaded,
        models_loaded=_get_model_manager(request).get_loaded_models(),
        concurrent_requests=pool.active_count,
        queue_depth=pool.queue_depth,
    )


@router.get(
    "/models",
    response_model=ModelsResponse,
    summary="List available models",
)
async def list_models(request: Request) -> ModelsResponse:
    """Return available models and whether the current configuration uses them."""
    settings = _get_settings(request)
    active_models = {settings.face_detection_model, settings.face_mesh_model}

    return ModelsResponse(
        models=[
            ModelInfo(
                name=spec.name,
                task=spec.task,
                status="active" if spec.name in active_models else "available",
                license=spec.license,
            )
            for spec in MODEL_REGISTRY.values()
        ]
    )
