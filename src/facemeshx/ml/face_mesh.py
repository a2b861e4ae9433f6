"""Face estimation: drives the pipeline facade and shapes its output.

FaceMesh converts the input image, hands it to the facade, invalidates
tracked ROIs when a face's confidence drops below the configured threshold,
and turns the per-face tensors into either plain Python results (with
annotated regions) or caller-owned tensors.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

import numpy as np

from facemeshx.config import FaceMeshConfig
from facemeshx.ml.face_detector import FaceDetectorModel
from facemeshx.ml.keypoints import MESH_ANNOTATIONS, annotate_mesh
from facemeshx.ml.model_manager import ModelTask
from facemeshx.ml.tensors import Tensor, TensorScope, dispose_all, from_pixels, read_all
from facemeshx.ml.transforms import flip_horizontal as flip_prediction
from facemeshx.ml.types import (
    BoundingBox,
    MaterializedPrediction,
    TensorBoundingBox,
    TensorPrediction,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from onnxruntime import InferenceSession

    from facemeshx.config import Settings
    from facemeshx.ml.inference import InferencePool
    from facemeshx.ml.model_manager import ModelManager
    from facemeshx.ml.pipeline import MeshPipeline, PipelineFactory
    from facemeshx.ml.types import AnnotatedPrediction, Point, Prediction

logger = logging.getLogger(__name__)


def get_input_tensor_dimensions(image: Any) -> tuple[int, int]:
    """Return ``(height, width)`` of a tensor, pixel array or pixel source."""
    if isinstance(image, (Tensor, np.ndarray)):
        return image.shape[0], image.shape[1]
    return image.height, image.width


def _as_scalar(value: Any) -> float:
    return float(np.asarray(value, dtype=np.float64).item())


def _as_point(value: Any) -> Point:
    return np.asarray(value, dtype=np.float64).reshape(-1).tolist()


class FaceMesh:
    """Estimates dense face landmarks through a detector + mesh pipeline."""

    def __init__(
        self,
        model_manager: ModelManager,
        pool: InferencePool,
        pipeline_factory: PipelineFactory,
        config: FaceMeshConfig | None = None,
        *,
        detection_model: str = "blazeface_short_range",
        mesh_model: str = "facemesh_ultralite",
    ) -> None:
        self._model_manager = model_manager
        self._pool = pool
        self._pipeline_factory = pipeline_factory
        self._config = config or FaceMeshConfig()
        self._detection_model = detection_model
        self._mesh_model = mesh_model
        self._pipeline: MeshPipeline | None = None

    @property
    def config(self) -> FaceMeshConfig:
        return self._config

    @property
    def is_loaded(self) -> bool:
        return self._pipeline is not None

    @staticmethod
    def get_annotations() -> Mapping[str, Sequence[int]]:
        """Return the region name -> mesh index table."""
        return MESH_ANNOTATIONS

    # -- Loading ------------------------------------------------------------

    async def load(self) -> None:
        """Load both models concurrently and build the pipeline facade.

        If either load fails the error propagates and the instance stays
        unusable.
        """
        cfg = self._config
        detector, mesh_session = await asyncio.gather(
            self.load_face_model(cfg.max_faces, cfg.iou_threshold, cfg.score_threshold),
            self.load_mesh_model(),
        )
        self._pipeline = self._pipeline_factory(
            detector=detector,
            mesh_model=mesh_session,
            mesh_width=cfg.mesh_width,
            mesh_height=cfg.mesh_height,
            max_continuous_checks=cfg.max_continuous_checks,
            max_faces=cfg.max_faces,
        )
        logger.info(
            "FaceMesh ready (detection=%s, mesh=%s, mesh_size=%dx%d)",
            self._detection_model,
            self._mesh_model,
            cfg.mesh_width,
            cfg.mesh_height,
        )

    async def load_face_model(self, max_faces: int, iou_threshold: float, score_threshold: float) -> FaceDetectorModel:
        self._model_manager.check_task(self._detection_model, ModelTask.FACE_DETECTION)
        session = await self._pool.run_blocking(self._model_manager.get_session, self._detection_model)
        return FaceDetectorModel(
            model_name=self._detection_model,
            session=session,
            max_faces=max_faces,
            iou_threshold=iou_threshold,
            score_threshold=score_threshold,
        )

    async def load_mesh_model(self) -> InferenceSession:
        self._model_manager.check_task(self._mesh_model, ModelTask.FACE_MESH)
        return await self._pool.run_blocking(self._model_manager.get_session, self._mesh_model)

    # -- Estimation ---------------------------------------------------------

    def clear_pipeline_rois(self, confidence: float) -> None:
        """Drop tracked ROIs when a face's confidence is below the threshold."""
        if confidence < self._config.detection_confidence:
            logger.debug(
                "Face confidence %.3f below %.3f, clearing tracked ROIs",
                confidence,
                self._config.detection_confidence,
            )
            self._require_pipeline().clear_rois()

    async def estimate_faces(
        self,
        image: Any,
        return_tensors: bool = False,
        flip_horizontal: bool = False,
    ) -> list[AnnotatedPrediction] | None:
        """Estimate the landmarks of every face in ``image``.

        Args:
            image: HxWxC tensor, numpy pixel array, or a Pillow image.
            return_tensors: Return caller-owned tensors instead of plain lists.
                Tensor results carry no annotations.
            flip_horizontal: Mirror every spatial output about the vertical
                centerline of the image.

        Returns:
            One result per face in the facade's order, or None when the facade
            found no face.

        Raises:
            RuntimeError: If ``load()`` has not completed.
        """
        pipeline = self._require_pipeline()
        _, width = get_input_tensor_dimensions(image)

        with TensorScope() as scope:
            tensor = image if isinstance(image, Tensor) else scope.track(from_pixels(image))
            image_float = scope.track(tensor.to_float())
            batched = scope.track(image_float.expand_dims(0))
            predictions = await pipeline.predict(batched)

        if not predictions:
            return None

        outcomes = await asyncio.gather(
            *(self._annotate(prediction, width, return_tensors, flip_horizontal) for prediction in predictions),
            return_exceptions=True,
        )
        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if failures:
            for prediction in predictions:
                dispose_all(prediction.tensors())
            for outcome in outcomes:
                if isinstance(outcome, TensorPrediction):
                    dispose_all(outcome.tensors())
            raise failures[0]
        return list(outcomes)  # type: ignore[arg-type]

    async def _annotate(
        self,
        prediction: Prediction,
        width: int,
        return_tensors: bool,
        flip_horizontal: bool,
    ) -> AnnotatedPrediction:
        box = prediction.box
        if return_tensors:
            (flag_value,) = await read_all([prediction.flag])
            prediction.flag.dispose()
            confidence = _as_scalar(flag_value)
            self.clear_pipeline_rois(confidence)

            tensor_prediction = TensorPrediction(
                face_in_view_confidence=confidence,
                bounding_box=TensorBoundingBox(top_left=box.start_point, bottom_right=box.end_point),
                mesh=prediction.coords,
                scaled_mesh=prediction.scaled_coords,
            )
            if flip_horizontal:
                flipped = flip_prediction(tensor_prediction, width)
                dispose_all(tensor_prediction.tensors())
                return flipped
            return tensor_prediction

        flag_value, mesh, scaled_mesh, top_left, bottom_right = await read_all(prediction.tensors())
        dispose_all(prediction.tensors())
        confidence = _as_scalar(flag_value)
        self.clear_pipeline_rois(confidence)

        materialized = MaterializedPrediction(
            face_in_view_confidence=confidence,
            bounding_box=BoundingBox(top_left=_as_point(top_left), bottom_right=_as_point(bottom_right)),
            mesh=mesh,
            scaled_mesh=scaled_mesh,
        )
        if flip_horizontal:
            materialized = flip_prediction(materialized, width)
        return replace(materialized, annotations=annotate_mesh(materialized.scaled_mesh))

    def _require_pipeline(self) -> MeshPipeline:
        if self._pipeline is None:
            raise RuntimeError("FaceMesh.load() must complete before estimating faces")
        return self._pipeline


async def load_face_mesh(
    settings: Settings,
    model_manager: ModelManager,
    pool: InferencePool,
    pipeline_factory: PipelineFactory,
) -> FaceMesh:
    """Create a FaceMesh from settings and load its models."""
    face_mesh = FaceMesh(
        model_manager,
        pool,
        pipeline_factory,
        settings.face_mesh,
        detection_model=settings.face_detection_model,
        mesh_model=settings.face_mesh_model,
    )
    await face_mesh.load()
    return face_mesh
