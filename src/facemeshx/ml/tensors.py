"""Tensor buffers and their lifecycle.

The pipeline facade hands back live buffers that must be released
explicitly. ``Tensor`` is the interface the orchestration layer relies on,
``NumpyTensor`` is the in-process implementation, and ``TensorScope`` makes
sure every buffer allocated during a call is released on every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np
from PIL import Image

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from types import TracebackType

    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)


class TensorDisposedError(RuntimeError):
    """Raised when a released tensor is used."""


@runtime_checkable
class Tensor(Protocol):
    """Protocol for runtime-owned numeric buffers."""

    @property
    def shape(self) -> tuple[int, ...]:
        """Return the buffer shape."""
        ...

    @property
    def is_disposed(self) -> bool:
        """Return True once the buffer has been released."""
        ...

    async def array(self) -> Any:
        """Read the buffer into plain Python values (nested lists or a scalar)."""
        ...

    def dispose(self) -> None:
        """Release the buffer. Calling it again is a no-op."""
        ...

    def to_float(self) -> Tensor:
        """Return a float32 copy."""
        ...

    def expand_dims(self, axis: int = 0) -> Tensor:
        """Return a copy with a new axis of length 1."""
        ...

    def map_x(self, func: Callable[[NDArray[np.float32]], NDArray[np.float32]]) -> Tensor:
        """Return a copy with ``func`` applied to the x component (last axis, index 0)."""
        ...


class NumpyTensor:
    """Tensor backed by a numpy array."""

    __slots__ = ("_data",)

    def __init__(self, data: ArrayLike, dtype: np.dtype[Any] | type | None = None) -> None:
        self._data: NDArray[Any] | None = np.asarray(data, dtype=dtype)

    def __repr__(self) -> str:
        if self._data is None:
            return "NumpyTensor(<disposed>)"
        return f"NumpyTensor(shape={self._data.shape}, dtype={self._data.dtype})"

    @property
    def shape(self) -> tuple[int, ...]:
        return self._values().shape

    @property
    def dtype(self) -> np.dtype[Any]:
        return self._values().dtype

    @property
    def is_disposed(self) -> bool:
        return self._data is None

    def numpy(self) -> NDArray[Any]:
        """Return a copy of the underlying array."""
        return self._values().copy()

    async def array(self) -> Any:
        return self._values().tolist()

    def dispose(self) -> None:
        self._data = None

    def to_float(self) -> NumpyTensor:
        return NumpyTensor(self._values(), dtype=np.float32)

    def expand_dims(self, axis: int = 0) -> NumpyTensor:
        return NumpyTensor(np.expand_dims(self._values(), axis))

    def map_x(self, func: Callable[[NDArray[np.float32]], NDArray[np.float32]]) -> NumpyTensor:
        mapped = self._values().astype(np.float32, copy=True)
        mapped[..., 0] = func(mapped[..., 0])
        return NumpyTensor(mapped)

    def _values(self) -> NDArray[Any]:
        if self._data is None:
            raise TensorDisposedError("Tensor has already been disposed")
        return self._data


def from_pixels(image: Any) -> NumpyTensor:
    """Build an HxWx3 uint8 tensor from a pixel array or a Pillow image.

    Alpha is dropped and single-channel input is repeated across RGB.
    """
    if isinstance(image, Image.Image) and image.mode != "RGB":
        image = image.convert("RGB")
    pixels = np.asarray(image, dtype=np.uint8)
    if pixels.ndim == 2:
        pixels = pixels[..., np.newaxis]
    if pixels.shape[-1] == 1:
        pixels = np.repeat(pixels, 3, axis=-1)
    return NumpyTensor(pixels[..., :3])


def dispose_all(tensors: Iterable[Tensor]) -> None:
    """Release every tensor in ``tensors``."""
    for tensor in tensors:
        tensor.dispose()


async def read_all(tensors: list[Tensor]) -> list[Any]:
    """Materialize ``tensors`` concurrently.

    If any read fails, every tensor in the list is released before the error
    propagates.
    """
    try:
        return list(await asyncio.gather(*(tensor.array() for tensor in tensors)))
    except BaseException:
        dispose_all(tensors)
        raise


class TensorScope:
    """Owns the tensors allocated during a call and releases them on exit.

    Usage::

        with TensorScope() as scope:
            image = scope.track(from_pixels(frame))
            result = scope.keep(image.to_float())

    Tracked tensors are disposed when the block exits, whether it returns or
    raises. ``keep`` hands a tensor back to the caller instead.
    """

    def __init__(self) -> None:
        self._owned: list[Tensor] = []

    def __enter__(self) -> TensorScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    @property
    def owned(self) -> list[Tensor]:
        """Tensors currently owned by the scope."""
        return list(self._owned)

    def track(self, tensor: Tensor) -> Tensor:
        """Register ``tensor`` for release and return it."""
        self._owned.append(tensor)
        return tensor

    def keep(self, tensor: Tensor) -> Tensor:
        """Transfer ownership of ``tensor`` out of the scope."""
        self._owned = [owned for owned in self._owned if owned is not tensor]
        return tensor

    def release(self) -> None:
        """Dispose every owned tensor."""
        owned, self._owned = self._owned, []
        if owned:
            logger.debug("Releasing %d scoped tensors", len(owned))
        dispose_all(owned)
