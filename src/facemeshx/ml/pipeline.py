"""Pipeline facade interface.

The facade runs the detector and the mesh regressor and tracks face ROIs
between calls. FaceMesh only drives it through ``predict`` and
``clear_rois``.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from onnxruntime import InferenceSession

    from facemeshx.ml.face_detector import FaceDetectorModel
    from facemeshx.ml.tensors import Tensor
    from facemeshx.ml.types import Prediction


class MeshPipeline(Protocol):
    """Protocol for the two-stage detector + mesh facade."""

    async def predict(self, image: Tensor) -> list[Prediction] | None:
        """Run detection (or reuse tracked ROIs) and mesh regression.

        Args:
            image: 1xHxWx3 float32 tensor.

        Returns:
            One prediction per face, holding live tensors, or None.
        """
        ...

    def clear_rois(self) -> None:
        """Drop every tracked ROI so the next call runs full detection."""
        ...


class PipelineFactory(Protocol):
    """Builds a facade from the loaded models and forwarded options."""

    def __call__(
        self,
        detector: FaceDetectorModel,
        mesh_model: InferenceSession,
        mesh_width: int,
        mesh_height: int,
        max_continuous_checks: int,
        max_faces: int,
    ) -> MeshPipeline: ...


def import_pipeline_factory(path: str) -> PipelineFactory:
    """Resolve a ``"package.module:attribute"`` path to a pipeline factory."""
    module_name, sep, attribute = path.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"Pipeline factory must look like 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    try:
        factory: PipelineFactory = getattr(module, attribute)
    except AttributeError:
        raise ValueError(f"Module {module_name!r} has no attribute {attribute!r}") from None
    return factory
