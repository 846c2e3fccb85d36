"""
Configuration management using Pydantic Settings.

Environment variables (prefix ``VISIONKIT_``):
- VISIONKIT_PROVIDERS: comma-separated execution providers, in preference order
- VISIONKIT_INTRA_OP_THREADS / VISIONKIT_INTER_OP_THREADS: runtime thread pools
- VISIONKIT_GRAPH_OPTIMIZATION: disable, basic, extended or all
- VISIONKIT_LOG_LEVEL: Python log level for stderr diagnostics
- VISIONKIT_MODELS_DIR: where downloaded models are cached
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from visionkit import MODELS_DIR


class Settings(BaseSettings):
    """Tool settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="VISIONKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Runtime
    providers: str = Field(default="CUDAExecutionProvider,CoreMLExecutionProvider,CPUExecutionProvider")
    intra_op_threads: Optional[int] = Field(default=None, ge=1)
    inter_op_threads: Optional[int] = Field(default=None, ge=1)
    graph_optimization: str = Field(default="all")

    # Logging
    log_level: str = Field(default="WARNING")

    # Models
    models_dir: Path = Field(default=MODELS_DIR)

    # Text detection
    det_limit_side_len: int = Field(default=960, ge=32)
    det_thresh: float = Field(default=0.3, ge=0.0, le=1.0)
    det_box_thresh: float = Field(default=0.6, ge=0.0, le=1.0)
    det_unclip_ratio: float = Field(default=1.5, gt=0.0)
    det_max_candidates: int = Field(default=1000, ge=1)

    def provider_list(self) -> list[str]:
        """Get providers as a list, dropping blanks."""
        return [p.strip() for p in self.providers.split(",") if p.strip()]

    def get_detector_config(self) -> dict:
        """Get text detector keyword arguments as dictionary."""
        return {
            "limit_side_len": self.det_limit_side_len,
            "thresh": self.det_thresh,
            "box_thresh": self.det_box_thresh,
            "unclip_ratio": self.det_unclip_ratio,
            "max_candidates": self.det_max_candidates,
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()
