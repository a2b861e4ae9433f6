"""Pydantic request/response schemas for the FaceMeshX API."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from facemeshx.ml.types import MaterializedPrediction


class BoundingBoxSchema(BaseModel):
    """Face bounding box in image pixels.

    After a horizontal flip the corners keep their labels, so ``topLeft`` may
    lie to the right of ``bottomRight``.
    """

    topLeft: list[float]  # noqa: N815
    bottomRight: list[float]  # noqa: N815


class FacePrediction(BaseModel):
    """A single face with its mesh and annotated regions."""

    faceInViewConfidence: float = Field(description="Mesh model face presence score (0.0-1.0)")  # noqa: N815
    boundingBox: BoundingBoxSchema  # noqa: N815
    mesh: list[list[float]] = Field(description="Landmarks in model input space")
    scaledMesh: list[list[float]] = Field(description="Landmarks in image pixel space")  # noqa: N815
    annotations: dict[str, list[list[float]]] = Field(description="Region name -> scaledMesh points")

    @classmethod
    def from_prediction(cls, prediction: MaterializedPrediction) -> FacePrediction:
        return cls(
            faceInViewConfidence=prediction.face_in_view_confidence,
            boundingBox=BoundingBoxSchema(
                topLeft=prediction.bounding_box.top_left,
                bottomRight=prediction.bounding_box.bottom_right,
            ),
            mesh=prediction.mesh,
            scaledMesh=prediction.scaled_mesh,
            annotations=prediction.annotations,
        )


class AnnotationsResponse(BaseModel):
    """Static mesh index table."""

    num_keypoints: int
    annotations: dict[str, list[int]]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    gpu: bool
    pipeline_ready: bool
    models_loaded: list[str]
    concurrent_requests: int
    queue_depth: int


class ModelInfo(BaseModel):
    """Information about an available model."""

    name: str
    task: str = Field(description="Model task: 'face_detection' or 'face_mesh'")
    status: str = Field(description="Model status: 'active' or 'available'")
    license: str


class ModelsResponse(BaseModel):
    """Response for the models listing endpoint."""

    models: list[ModelInfo]


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
