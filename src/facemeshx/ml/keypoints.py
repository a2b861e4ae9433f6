"""Semantic groupings of the 468-point face mesh.

Each entry maps a region name to mesh indices in contour order. "Left" and
"right" are from the subject's point of view.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

NUM_KEYPOINTS: int = 468

MESH_ANNOTATIONS: Mapping[str, tuple[int, ...]] = MappingProxyType(
    {
        "silhouette": (
            10, 338, 297, 332, 284, 251, 389, 356, 454, 323, 361, 288,
            397, 365, 379, 378, 400, 377, 152, 148, 176, 149, 150, 136,
            172, 58, 132, 93, 234, 127, 162, 21, 54, 103, 67, 109,
        ),  # fmt: skip
        "lipsUpperOuter": (61, 185, 40, 39, 37, 0, 267, 269, 270, 409, 291),
        "lipsLowerOuter": (146, 91, 181, 84, 17, 314, 405, 321, 375, 291),
        "lipsUpperInner": (78, 191, 80, 81, 82, 13, 312, 311, 310, 415, 308),
        "lipsLowerInner": (78, 95, 88, 178, 87, 14, 317, 402, 318, 324, 308),
        "rightEyeUpper0": (246, 161, 160, 159, 158, 157, 173),
        "rightEyeLower0": (33, 7, 163, 144, 145, 153, 154, 155, 133),
        "rightEyeUpper1": (247, 30, 29, 27, 28, 56, 190),
        "rightEyeLower1": (130, 25, 110, 24, 23, 22, 26, 112, 243),
        "rightEyeUpper2": (113, 225, 224, 223, 222, 221, 189),
        "rightEyeLower2": (226, 31, 228, 229, 230, 231, 232, 233, 244),
        "rightEyeLower3": (143, 111, 117, 118, 119, 120, 121, 128, 245),
        "rightEyebrowUpper": (156, 70, 63, 105, 66, 107, 55, 193),
        "rightEyebrowLower": (35, 124, 46, 53, 52, 65),
        "leftEyeUpper0": (466, 388, 387, 386, 385, 384, 398),
        "leftEyeLower0": (263, 249, 390, 373, 374, 380, 381, 382, 362),
        "leftEyeUpper1": (467, 260, 259, 257, 258, 286, 414),
        "leftEyeLower1": (359, 255, 339, 254, 253, 252, 256, 341, 463),
        "leftEyeUpper2": (342, 445, 444, 443, 442, 441, 413),
        "leftEyeLower2": (446, 261, 448, 449, 450, 451, 452, 453, 464),
        "leftEyeLower3": (372, 340, 346, 347, 348, 349, 350, 357, 465),
        "leftEyebrowUpper": (383, 300, 293, 334, 296, 336, 285, 417),
        "leftEyebrowLower": (265, 353, 276, 283, 282, 295),
        "midwayBetweenEyes": (168,),
        "noseTip": (1,),
        "noseBottom": (2,),
        "noseRightCorner": (98,),
        "noseLeftCorner": (327,),
        "rightCheek": (205,),
        "leftCheek": (425,),
    }
)


def annotate_mesh(
    scaled_mesh: Sequence[list[float]],
    annotations: Mapping[str, Sequence[int]] = MESH_ANNOTATIONS,
) -> dict[str, list[list[float]]]:
    """Select the points of each annotated region, in table and index order."""
    return {name: [scaled_mesh[index] for index in indices] for name, indices in annotations.items()}
