"""Horizontal mirroring of predictions.

Every x coordinate maps to ``(width - 1) - x``; y and any trailing components
are left alone. Plain predictions come back as plain lists, tensor predictions
as new tensors.
"""

from __future__ import annotations

from dataclasses import replace
from functools import singledispatch
from typing import TYPE_CHECKING, Any

from facemeshx.ml.tensors import TensorScope
from facemeshx.ml.types import (
    BoundingBox,
    MaterializedPrediction,
    TensorBoundingBox,
    TensorPrediction,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from facemeshx.ml.types import AnnotatedPrediction, Point


def mirror_x(width: int) -> Callable[[Any], Any]:
    """Return the x mapping for an image ``width`` pixels wide.

    Works on scalars and numpy arrays alike.
    """
    edge = width - 1

    def _mirror(x: Any) -> Any:
        return edge - x

    return _mirror


def flip_point(point: Sequence[float], width: int) -> list[float]:
    x, *rest = point
    return [mirror_x(width)(x), *rest]


def flip_points(points: Sequence[Sequence[float]], width: int) -> list[Point]:
    mirror = mirror_x(width)
    return [[mirror(x), *rest] for x, *rest in points]


@singledispatch
def flip_horizontal(prediction: AnnotatedPrediction, width: int) -> AnnotatedPrediction:
    """Mirror a prediction about the vertical centerline of the image."""
    raise TypeError(f"Cannot flip {type(prediction).__name__}")


@flip_horizontal.register
def _(prediction: MaterializedPrediction, width: int) -> MaterializedPrediction:
    return replace(
        prediction,
        bounding_box=BoundingBox(
            top_left=flip_point(prediction.bounding_box.top_left, width),
            bottom_right=flip_point(prediction.bounding_box.bottom_right, width),
        ),
        mesh=flip_points(prediction.mesh, width),
        scaled_mesh=flip_points(prediction.scaled_mesh, width),
    )


@flip_horizontal.register
def _(prediction: TensorPrediction, width: int) -> TensorPrediction:
    # Returns new tensors; the input's tensors stay owned by whoever passed them in.
    mirror = mirror_x(width)
    with TensorScope() as scope:
        flipped = replace(
            prediction,
            bounding_box=TensorBoundingBox(
                top_left=scope.track(prediction.bounding_box.top_left.map_x(mirror)),
                bottom_right=scope.track(prediction.bounding_box.bottom_right.map_x(mirror)),
            ),
            mesh=scope.track(prediction.mesh.map_x(mirror)),
            scaled_mesh=scope.track(prediction.scaled_mesh.map_x(mirror)),
        )
        for tensor in flipped.tensors():
            scope.keep(tensor)
    return flipped
