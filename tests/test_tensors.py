"""Tests for tensor buffers and scoped release."""

from __future__ import annotations

from typing import Any

import numpy as np
import pytest
from PIL import Image

from facemeshx.ml.tensors import (
    NumpyTensor,
    Tensor,
    TensorDisposedError,
    TensorScope,
    from_pixels,
    read_all,
)


class _BrokenTensor(NumpyTensor):
    async def array(self) -> Any:
        raise OSError("device lost")


class TestNumpyTensor:
    async def test_array_returns_plain_values(self) -> None:
        assert await NumpyTensor([[1, 2], [3, 4]]).array() == [[1, 2], [3, 4]]
        assert await NumpyTensor(0.5).array() == 0.5

    async def test_disposed_tensor_cannot_be_read(self) -> None:
        tensor = NumpyTensor([1.0])
        tensor.dispose()
        tensor.dispose()

        assert tensor.is_disposed
        with pytest.raises(TensorDisposedError):
            await tensor.array()
        with pytest.raises(TensorDisposedError):
            _ = tensor.shape

    def test_to_float_and_expand_dims(self) -> None:
        tensor = NumpyTensor(np.zeros((4, 5, 3), dtype=np.uint8))

        batched = tensor.to_float().expand_dims(0)

        assert batched.shape == (1, 4, 5, 3)
        assert batched.dtype == np.float32
        assert tensor.dtype == np.uint8

    async def test_map_x_copies(self) -> None:
        tensor = NumpyTensor([[1.0, 2.0], [3.0, 4.0]])

        mapped = tensor.map_x(lambda x: x * 10)

        assert await mapped.array() == [[10.0, 2.0], [30.0, 4.0]]
        assert await tensor.array() == [[1.0, 2.0], [3.0, 4.0]]

    def test_satisfies_protocol(self) -> None:
        assert isinstance(NumpyTensor([0.0]), Tensor)
        assert not isinstance(np.zeros(2), Tensor)


class TestFromPixels:
    def test_pillow_image_is_height_first(self) -> None:
        tensor = from_pixels(Image.new("RGB", (64, 32)))
        assert tensor.shape == (32, 64, 3)
        assert tensor.dtype == np.uint8

    def test_grayscale_expands_to_rgb(self) -> None:
        assert from_pixels(np.zeros((8, 6), dtype=np.uint8)).shape == (8, 6, 3)
        assert from_pixels(Image.new("L", (6, 8))).shape == (8, 6, 3)

    @pytest.mark.parametrize("mode", ["RGBA", "LA", "P"])
    def test_pillow_modes_become_rgb(self, mode: str) -> None:
        assert from_pixels(Image.new(mode, (6, 8))).shape == (8, 6, 3)

    async def test_alpha_channel_dropped_from_array(self) -> None:
        rgba = np.zeros((2, 2, 4), dtype=np.uint8)
        rgba[..., 0] = 10
        rgba[..., 3] = 255

        tensor = from_pixels(rgba)

        assert tensor.shape == (2, 2, 3)
        assert (await tensor.array())[0][0] == [10, 0, 0]


class TestTensorScope:
    def test_releases_on_normal_exit(self) -> None:
        with TensorScope() as scope:
            a = scope.track(NumpyTensor([1.0]))
            b = scope.track(NumpyTensor([2.0]))
        assert a.is_disposed
        assert b.is_disposed

    def test_releases_on_error(self) -> None:
        tensor = NumpyTensor([1.0])
        with pytest.raises(ValueError, match="boom"), TensorScope() as scope:
            scope.track(tensor)
            raise ValueError("boom")
        assert tensor.is_disposed

    def test_keep_transfers_ownership(self) -> None:
        with TensorScope() as scope:
            kept = scope.keep(scope.track(NumpyTensor([1.0])))
            dropped = scope.track(NumpyTensor([2.0]))
            assert scope.owned == [dropped]
        assert not kept.is_disposed
        assert dropped.is_disposed


class TestReadAll:
    async def test_reads_in_order(self) -> None:
        values = await read_all([NumpyTensor(1.0), NumpyTensor([2.0, 3.0])])
        assert values == [1.0, [2.0, 3.0]]

    async def test_failure_releases_siblings(self) -> None:
        good = NumpyTensor([1.0])
        broken = _BrokenTensor([2.0])

        with pytest.raises(OSError, match="device lost"):
            await read_all([good, broken])

        assert good.is_disposed
        assert broken.is_disposed
