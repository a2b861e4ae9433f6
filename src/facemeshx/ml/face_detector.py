"""Coarse face detector handle.

The detector session locates face ROIs; the pipeline facade runs it and
applies the thresholds carried here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from onnxruntime import InferenceSession


@dataclass(frozen=True)
class FaceDetectorModel:
    """A loaded detector session together with its post-processing options."""

    model_name: str
    session: InferenceSession
    max_faces: int
    iou_threshold: float
    score_threshold: float
