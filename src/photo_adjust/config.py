"""Configuration handling for the photo adjustment pipeline.

Settings resolve with the priority: explicit argument, then environment
variable, then default. Invalid environment values are ignored.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from photo_adjust.models import AdjustmentParams, BatchConfig, PipelineConfig, PreviewQuality

if TYPE_CHECKING:
    from pathlib import Path

ENV_PREVIEW_QUALITY = "PHOTO_ADJUST_PREVIEW_QUALITY"
ENV_USE_WORKER = "PHOTO_ADJUST_USE_WORKER"
ENV_WORKER_TIMEOUT = "PHOTO_ADJUST_WORKER_TIMEOUT"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def get_preview_quality_from_env() -> PreviewQuality | None:
    """Read PHOTO_ADJUST_PREVIEW_QUALITY ("low", "medium" or "high").

    Returns:
        The preview quality if set and valid, None otherwise
    """
    value = os.getenv(ENV_PREVIEW_QUALITY)
    if value is None:
        return None
    try:
        return PreviewQuality(value.strip().lower())
    except ValueError:
        return None


def get_use_worker_from_env() -> bool | None:
    """Read PHOTO_ADJUST_USE_WORKER as a boolean flag."""
    value = os.getenv(ENV_USE_WORKER)
    if value is None:
        return None
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return None


def get_worker_timeout_from_env() -> float | None:
    """Read PHOTO_ADJUST_WORKER_TIMEOUT in seconds; must be positive."""
    value = os.getenv(ENV_WORKER_TIMEOUT)
    if value is None:
        return None
    try:
        timeout = float(value)
    except ValueError:
        return None
    return timeout if timeout > 0 else None


def create_pipeline_config(
    preview_quality: PreviewQuality | str | None = None,
    use_worker: bool | None = None,
    worker_timeout: float | None = None,
    history_capacity: int = 10,
    commit_debounce: float = 0.3,
    noise_seed: int | None = None,
) -> PipelineConfig:
    """Create a PipelineConfig with environment variable fallback.

    Args:
        preview_quality: Explicit preview quality, or None for environment/default
        use_worker: Explicit worker toggle, or None for environment/default
        worker_timeout: Explicit watchdog bound, or None for environment/default
        history_capacity: Maximum undo entries
        commit_debounce: Debounce window in seconds
        noise_seed: Optional seed for reproducible noise

    Returns:
        PipelineConfig with every setting resolved

    Raises:
        ValueError: If an explicit value is invalid
    """
    if preview_quality is None:
        quality = get_preview_quality_from_env() or PreviewQuality.MEDIUM
    else:
        quality = PreviewQuality(preview_quality)

    if use_worker is None:
        env_worker = get_use_worker_from_env()
        use_worker = env_worker if env_worker is not None else True

    if worker_timeout is None:
        worker_timeout = get_worker_timeout_from_env() or 30.0

    return PipelineConfig(
        preview_quality=quality,
        history_capacity=history_capacity,
        commit_debounce=commit_debounce,
        use_worker=use_worker,
        worker_timeout=worker_timeout,
        noise_seed=noise_seed,
    )


def create_config(
    params: AdjustmentParams | None = None,
    output_dir: Path | None = None,
    no_overwrite: bool = False,
    verbose: bool = False,
    parallel_workers: int | None = None,
    pipeline: PipelineConfig | None = None,
) -> BatchConfig:
    """Create the configuration for a command-line render.

    Args:
        params: Adjustments to apply (defaults are neutral)
        output_dir: Optional output directory for rendered files
        no_overwrite: Skip files whose output already exists
        verbose: Enable verbose logging
        parallel_workers: Number of worker processes (None = auto-detect)
        pipeline: Pipeline settings (resolved from the environment when None)

    Returns:
        BatchConfig ready for the orchestration layer
    """
    return BatchConfig(
        params=params or AdjustmentParams(),
        output_dir=output_dir,
        no_overwrite=no_overwrite,
        verbose=verbose,
        parallel_workers=parallel_workers,
        pipeline=pipeline or create_pipeline_config(),
    )
