"""Pytest configuration and shared fixtures."""

import numpy as np
import pytest


@pytest.fixture
def gradient_pixels():
    """Provide a 6x4 opaque RGBA gradient with distinct pixels."""
    height, width = 4, 6
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[..., 0] = np.arange(width, dtype=np.uint8)[np.newaxis, :] * 40
    pixels[..., 1] = np.arange(height, dtype=np.uint8)[:, np.newaxis] * 60
    pixels[..., 2] = 128
    pixels[..., 3] = 255
    return pixels


@pytest.fixture
def gradient_buffer(gradient_pixels):
    """Provide a PixelBuffer over the gradient pixels."""
    from photo_adjust.buffer import PixelBuffer

    return PixelBuffer(gradient_pixels.copy())


@pytest.fixture
def png_bytes(gradient_pixels):
    """Provide the gradient encoded as PNG."""
    from tests.strategies import encode_array

    return encode_array(gradient_pixels, "PNG")


@pytest.fixture
def sync_pipeline_config():
    """Provide a pipeline configuration without a worker process."""
    from photo_adjust.models import PipelineConfig, PreviewQuality

    return PipelineConfig(
        preview_quality=PreviewQuality.HIGH,
        history_capacity=10,
        commit_debounce=0.01,
        use_worker=False,
        worker_timeout=5.0,
        noise_seed=1234,
    )


@pytest.fixture
def sample_config(tmp_path):
    """Provide a sample batch configuration writing into a temp directory."""
    from photo_adjust.models import AdjustmentParams, BatchConfig, PipelineConfig

    return BatchConfig(
        params=AdjustmentParams(brightness=120),
        output_dir=tmp_path / "out",
        no_overwrite=False,
        verbose=False,
        parallel_workers=2,
        pipeline=PipelineConfig(use_worker=False, commit_debounce=0.0, noise_seed=7),
    )
