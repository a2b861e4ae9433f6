"""Tests for horizontal flipping and mesh annotation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
import pytest

from facemeshx.ml.keypoints import MESH_ANNOTATIONS, NUM_KEYPOINTS, annotate_mesh
from facemeshx.ml.tensors import NumpyTensor
from facemeshx.ml.transforms import flip_horizontal, flip_point, flip_points
from facemeshx.ml.types import (
    BoundingBox,
    MaterializedPrediction,
    TensorBoundingBox,
    TensorPrediction,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from facemeshx.ml.tensors import Tensor


class _RecordingTensor(NumpyTensor):
    """Records every copy made by ``map_x``; optionally fails instead."""

    def __init__(self, data: Any, made: list[Tensor], fail: bool = False) -> None:
        super().__init__(data)
        self.made = made
        self.fail = fail

    def map_x(self, func: Callable[[Any], Any]) -> NumpyTensor:
        if self.fail:
            raise RuntimeError("out of device memory")
        mapped = super().map_x(func)
        self.made.append(mapped)
        return mapped


def _materialized(points: list[list[float]]) -> MaterializedPrediction:
    return MaterializedPrediction(
        face_in_view_confidence=0.99,
        bounding_box=BoundingBox(top_left=[100.0, 50.0], bottom_right=[300.0, 250.0]),
        mesh=points,
        scaled_mesh=[[x * 2, y * 2] for x, y in points],
    )


class TestFlipPoints:
    def test_known_point(self) -> None:
        assert flip_point([100.0, 50.0], 640) == [539.0, 50.0]

    def test_extra_components_kept(self) -> None:
        assert flip_points([[0.0, 1.0, -3.5]], 10) == [[9.0, 1.0, -3.5]]

    def test_edges_swap(self) -> None:
        assert flip_points([[0.0, 0.0], [639.0, 0.0]], 640) == [[639.0, 0.0], [0.0, 0.0]]


class TestFlipMaterialized:
    def test_flip_twice_restores(self) -> None:
        rng = np.random.default_rng(7)
        points = rng.uniform(0, 640, size=(50, 2)).tolist()
        original = _materialized(points)

        restored = flip_horizontal(flip_horizontal(original, 640), 640)

        assert np.allclose(restored.mesh, original.mesh)
        assert np.allclose(restored.scaled_mesh, original.scaled_mesh)
        assert restored.bounding_box == original.bounding_box

    def test_y_unchanged(self) -> None:
        points = [[float(i), float(i * 3)] for i in range(20)]
        original = _materialized(points)

        flipped = flip_horizontal(original, 333)

        assert [p[1] for p in flipped.mesh] == [p[1] for p in original.mesh]
        assert [p[1] for p in flipped.scaled_mesh] == [p[1] for p in original.scaled_mesh]
        assert flipped.bounding_box.top_left[1] == 50.0
        assert flipped.bounding_box.bottom_right[1] == 250.0

    def test_corners_keep_labels(self) -> None:
        flipped = flip_horizontal(_materialized([[0.0, 0.0]]), 640)

        assert flipped.bounding_box.top_left == [539.0, 50.0]
        assert flipped.bounding_box.bottom_right == [339.0, 250.0]
        assert flipped.bounding_box.top_left[0] > flipped.bounding_box.bottom_right[0]

    def test_input_untouched(self) -> None:
        original = _materialized([[1.0, 2.0]])
        flip_horizontal(original, 640)
        assert original.mesh == [[1.0, 2.0]]

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(TypeError):
            flip_horizontal(object(), 640)  # type: ignore[arg-type]


class TestFlipTensor:
    async def test_type_preserving(self) -> None:
        prediction = TensorPrediction(
            face_in_view_confidence=0.99,
            bounding_box=TensorBoundingBox(
                top_left=NumpyTensor([100.0, 50.0]),
                bottom_right=NumpyTensor([300.0, 250.0]),
            ),
            mesh=NumpyTensor([[100.0, 50.0, 1.0]]),
            scaled_mesh=NumpyTensor([[10.0, 20.0, 2.0]]),
        )

        flipped = flip_horizontal(prediction, 640)

        assert isinstance(flipped, TensorPrediction)
        assert await flipped.bounding_box.top_left.array() == [539.0, 50.0]
        assert await flipped.bounding_box.bottom_right.array() == [339.0, 250.0]
        assert await flipped.mesh.array() == [[539.0, 50.0, 1.0]]
        assert await flipped.scaled_mesh.array() == [[629.0, 20.0, 2.0]]
        assert all(not tensor.is_disposed for tensor in prediction.tensors())

    def test_partial_copies_released_on_failure(self) -> None:
        made: list[Tensor] = []
        prediction = TensorPrediction(
            face_in_view_confidence=0.99,
            bounding_box=TensorBoundingBox(
                top_left=_RecordingTensor([100.0, 50.0], made),
                bottom_right=_RecordingTensor([300.0, 250.0], made),
            ),
            mesh=_RecordingTensor([[100.0, 50.0]], made),
            scaled_mesh=_RecordingTensor([[10.0, 20.0]], made, fail=True),
        )

        with pytest.raises(RuntimeError, match="device memory"):
            flip_horizontal(prediction, 640)

        assert len(made) == 3
        assert all(tensor.is_disposed for tensor in made)
        assert all(not tensor.is_disposed for tensor in prediction.tensors())


class TestAnnotateMesh:
    def test_keys_and_order(self) -> None:
        mesh = [[float(i), float(-i)] for i in range(NUM_KEYPOINTS)]

        annotations = annotate_mesh(mesh)

        assert list(annotations) == list(MESH_ANNOTATIONS)
        assert annotations["lipsUpperOuter"][0] == [61.0, -61.0]
        assert [p[0] for p in annotations["silhouette"]] == [float(i) for i in MESH_ANNOTATIONS["silhouette"]]

    def test_custom_table(self) -> None:
        mesh = [[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]]
        assert annotate_mesh(mesh, {"b": [2, 0], "a": [1]}) == {"b": [[2.0, 2.0], [0.0, 0.0]], "a": [[1.0, 1.0]]}

    def test_table_indices_in_range(self) -> None:
        for indices in MESH_ANNOTATIONS.values():
            assert all(0 <= index < NUM_KEYPOINTS for index in indices)
