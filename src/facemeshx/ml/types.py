"""Prediction types exchanged with the pipeline facade and returned to callers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from facemeshx.ml.tensors import Tensor

Point = list[float]


@dataclass(frozen=True)
class Box:
    """ROI corners as produced by the facade."""

    start_point: Tensor
    end_point: Tensor


@dataclass(frozen=True)
class Prediction:
    """One face as produced by the pipeline facade.

    All fields are live buffers. ``coords`` are in crop space,
    ``scaled_coords`` in original image pixels.
    """

    flag: Tensor
    coords: Tensor
    scaled_coords: Tensor
    box: Box

    def tensors(self) -> list[Tensor]:
        return [self.flag, self.coords, self.scaled_coords, self.box.start_point, self.box.end_point]


@dataclass(frozen=True)
class BoundingBox:
    """Face bounding box.

    Corners keep their labels after a horizontal flip, so ``top_left`` may end
    up to the right of ``bottom_right``.
    """

    top_left: Point
    bottom_right: Point


@dataclass(frozen=True)
class TensorBoundingBox:
    top_left: Tensor
    bottom_right: Tensor


@dataclass(frozen=True)
class MaterializedPrediction:
    """A face with every value read into plain Python lists."""

    face_in_view_confidence: float
    bounding_box: BoundingBox
    mesh: list[Point]
    scaled_mesh: list[Point]
    annotations: dict[str, list[Point]] = field(default_factory=dict)


@dataclass(frozen=True)
class TensorPrediction:
    """A face whose spatial fields are still live tensors.

    The caller owns ``mesh``, ``scaled_mesh`` and both bounding box corners
    and must dispose them.
    """

    face_in_view_confidence: float
    bounding_box: TensorBoundingBox
    mesh: Tensor
    scaled_mesh: Tensor

    def tensors(self) -> list[Tensor]:
        return [self.mesh, self.scaled_mesh, self.bounding_box.top_left, self.bounding_box.bottom_right]


AnnotatedPrediction = MaterializedPrediction | TensorPrediction
