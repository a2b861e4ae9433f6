"""Shared fixtures: an in-memory pipeline facade and a loaded FaceMesh."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import MagicMock

import numpy as np
import pytest

from facemeshx.config import FaceMeshConfig, Settings
from facemeshx.ml.face_mesh import FaceMesh
from facemeshx.ml.inference import InferencePool
from facemeshx.ml.keypoints import NUM_KEYPOINTS
from facemeshx.ml.tensors import NumpyTensor
from facemeshx.ml.types import Box, Prediction

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from facemeshx.ml.tensors import Tensor


def make_mesh(start: float = 10.0, stop: float = 20.0, n: int = NUM_KEYPOINTS) -> np.ndarray:
    """N points spread evenly from (start, start) to (stop, stop)."""
    values = np.linspace(start, stop, n, dtype=np.float32)
    return np.stack([values, values], axis=1)


def make_prediction(
    confidence: float = 0.95,
    mesh: np.ndarray | None = None,
    scaled_mesh: np.ndarray | None = None,
    top_left: Sequence[float] = (5.0, 5.0),
    bottom_right: Sequence[float] = (25.0, 25.0),
) -> Prediction:
    mesh = make_mesh() if mesh is None else mesh
    scaled_mesh = mesh if scaled_mesh is None else scaled_mesh
    return Prediction(
        flag=NumpyTensor(confidence),
        coords=NumpyTensor(mesh, dtype=np.float32),
        scaled_coords=NumpyTensor(scaled_mesh, dtype=np.float32),
        box=Box(
            start_point=NumpyTensor(top_left, dtype=np.float32),
            end_point=NumpyTensor(bottom_right, dtype=np.float32),
        ),
    )


class FakePipeline:
    """Returns a fixed batch of predictions and counts ROI clears."""

    def __init__(self, faces: list[Prediction] | None = None, error: Exception | None = None) -> None:
        self.faces = faces
        self.error = error
        self.clear_calls = 0
        self.inputs: list[Tensor] = []

    async def predict(self, image: Tensor) -> list[Prediction] | None:
        self.inputs.append(image)
        if self.error is not None:
            raise self.error
        return self.faces

    def clear_rois(self) -> None:
        self.clear_calls += 1

    def all_tensors(self) -> list[Tensor]:
        return [tensor for face in self.faces or [] for tensor in face.tensors()]


@pytest.fixture()
def settings() -> Settings:
    return Settings(max_concurrent=2, models_dir="/tmp/facemeshx_test_models")


@pytest.fixture()
async def pool(settings: Settings) -> AsyncIterator[InferencePool]:
    inference_pool = InferencePool(settings)
    yield inference_pool
    inference_pool.shutdown()


@pytest.fixture()
def model_manager() -> MagicMock:
    manager = MagicMock()
    manager.get_session.side_effect = lambda name: MagicMock(name=f"session:{name}")
    return manager


@pytest.fixture()
def pipeline() -> FakePipeline:
    return FakePipeline([make_prediction()])


async def build_face_mesh(
    pipeline: FakePipeline,
    model_manager: Any,
    pool: InferencePool,
    config: FaceMeshConfig | None = None,
) -> FaceMesh:
    face_mesh = FaceMesh(model_manager, pool, lambda **_: pipeline, config)
    await face_mesh.load()
    return face_mesh


@pytest.fixture()
async def face_mesh(pipeline: FakePipeline, model_manager: MagicMock, pool: InferencePool) -> FaceMesh:
    return await build_face_mesh(pipeline, model_manager, pool)
