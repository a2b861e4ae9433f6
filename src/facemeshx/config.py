"""Environment-based configuration for FaceMeshX."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FaceMeshConfig(BaseModel):
    """Tunables for a single FaceMesh instance.

    ``detection_confidence`` gates ROI invalidation; ``max_faces``,
    ``iou_threshold`` and ``score_threshold`` go to the detector loader; the
    remaining fields are forwarded to the pipeline facade.
    """

    model_config = ConfigDict(frozen=True)

    mesh_width: int = Field(default=128, ge=1)
    mesh_height: int = Field(default=128, ge=1)
    max_continuous_checks: int = Field(default=5, ge=0)
    detection_confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    max_faces: int = Field(default=10, ge=1)
    iou_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    score_threshold: float = Field(default=0.75, ge=0.0, le=1.0)


class Settings(BaseSettings):
    """Application settings loaded from FACEMESHX_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FACEMESHX_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8082

    # Authentication (None = disabled)
    api_key: str | None = None

    # ML device
    device: Literal["cpu", "cuda", "openvino"] = "cpu"

    # Model selection
    face_detection_model: str = "blazeface_short_range"
    face_mesh_model: str = "facemesh_ultralite"
    models_dir: str = "models"
    models_repo_id: str = "facemeshx/facemeshx-models"

    # Pipeline facade, as "package.module:factory" (None = estimation disabled)
    pipeline_factory: str | None = None

    # Face mesh tunables, e.g. FACEMESHX_FACE_MESH__MAX_FACES=4
    face_mesh: FaceMeshConfig = Field(default_factory=FaceMeshConfig)

    # ONNX Runtime threading
    intra_op_threads: int = Field(default=0, ge=0)
    inter_op_threads: int = Field(default=1, ge=1)

    # Concurrency
    max_concurrent: int = Field(default=2, ge=1)

    # Input limits
    max_image_pixels: int = Field(default=16_777_216, ge=1)
    max_file_size: int = Field(default=209_715_200, ge=1)

    # CUDA arena size
    gpu_mem_limit: int = Field(default=2_147_483_648, ge=0)


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
