"""Unit tests for configuration handling."""

from pathlib import Path

import pytest

from photo_adjust.config import (
    create_config,
    create_pipeline_config,
    get_preview_quality_from_env,
    get_use_worker_from_env,
    get_worker_timeout_from_env,
)
from photo_adjust.models import AdjustmentParams, PipelineConfig, PreviewQuality


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PHOTO_ADJUST_PREVIEW_QUALITY",
        "PHOTO_ADJUST_USE_WORKER",
        "PHOTO_ADJUST_WORKER_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestEnvironmentReaders:
    """Tests for the environment variable readers."""

    def test_returns_none_when_unset(self) -> None:
        """Test that unset variables read as None."""
        assert get_preview_quality_from_env() is None
        assert get_use_worker_from_env() is None
        assert get_worker_timeout_from_env() is None

    def test_preview_quality_case_insensitive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that quality names are matched case-insensitively."""
        monkeypatch.setenv("PHOTO_ADJUST_PREVIEW_QUALITY", " High ")
        assert get_preview_quality_from_env() is PreviewQuality.HIGH

    def test_invalid_preview_quality(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that unknown quality names read as None."""
        monkeypatch.setenv("PHOTO_ADJUST_PREVIEW_QUALITY", "ultra")
        assert get_preview_quality_from_env() is None

    @pytest.mark.parametrize(
        "value, expected",
        [("1", True), ("yes", True), ("ON", True), ("0", False), ("off", False), ("maybe", None)],
    )
    def test_use_worker(self, monkeypatch: pytest.MonkeyPatch, value, expected) -> None:
        """Test boolean parsing of the worker toggle."""
        monkeypatch.setenv("PHOTO_ADJUST_USE_WORKER", value)
        assert get_use_worker_from_env() is expected

    @pytest.mark.parametrize(
        "value, expected", [("2.5", 2.5), ("0", None), ("-1", None), ("x", None)]
    )
    def test_worker_timeout(self, monkeypatch: pytest.MonkeyPatch, value, expected) -> None:
        """Test that only positive numbers are accepted as timeouts."""
        monkeypatch.setenv("PHOTO_ADJUST_WORKER_TIMEOUT", value)
        assert get_worker_timeout_from_env() == expected


class TestCreatePipelineConfig:
    """Tests for create_pipeline_config priority handling."""

    def test_defaults(self) -> None:
        """Test defaults when nothing is set."""
        config = create_pipeline_config()
        assert config.preview_quality is PreviewQuality.MEDIUM
        assert config.use_worker is True
        assert config.worker_timeout == 30.0

    def test_environment_over_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that environment values override defaults."""
        monkeypatch.setenv("PHOTO_ADJUST_PREVIEW_QUALITY", "low")
        monkeypatch.setenv("PHOTO_ADJUST_USE_WORKER", "false")
        monkeypatch.setenv("PHOTO_ADJUST_WORKER_TIMEOUT", "5")

        config = create_pipeline_config()
        assert config.preview_quality is PreviewQuality.LOW
        assert config.use_worker is False
        assert config.worker_timeout == 5.0

    def test_explicit_over_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that explicit arguments override the environment."""
        monkeypatch.setenv("PHOTO_ADJUST_PREVIEW_QUALITY", "low")
        monkeypatch.setenv("PHOTO_ADJUST_USE_WORKER", "false")

        config = create_pipeline_config(preview_quality="high", use_worker=True)
        assert config.preview_quality is PreviewQuality.HIGH
        assert config.use_worker is True

    def test_invalid_environment_falls_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that invalid environment values fall back to defaults."""
        monkeypatch.setenv("PHOTO_ADJUST_PREVIEW_QUALITY", "ultra")
        monkeypatch.setenv("PHOTO_ADJUST_WORKER_TIMEOUT", "soon")

        config = create_pipeline_config()
        assert config.preview_quality is PreviewQuality.MEDIUM
        assert config.worker_timeout == 30.0

    def test_invalid_explicit_value_raises(self) -> None:
        """Test that an invalid explicit value is an error."""
        with pytest.raises(ValueError):
            create_pipeline_config(preview_quality="ultra")

    def test_passes_through_history_settings(self) -> None:
        """Test history and noise settings are forwarded."""
        config = create_pipeline_config(history_capacity=3, commit_debounce=0.0, noise_seed=4)
        assert (config.history_capacity, config.commit_debounce, config.noise_seed) == (3, 0.0, 4)


class TestCreateConfig:
    """Tests for create_config."""

    def test_creates_config_with_all_parameters(self) -> None:
        """Test every argument ends up in the BatchConfig."""
        params = AdjustmentParams(contrast=140)
        pipeline = PipelineConfig(use_worker=False)

        config = create_config(
            params=params,
            output_dir=Path("/tmp/out"),
            no_overwrite=True,
            verbose=True,
            parallel_workers=3,
            pipeline=pipeline,
        )

        assert config.params is params
        assert config.output_dir == Path("/tmp/out")
        assert config.no_overwrite is True
        assert config.verbose is True
        assert config.parallel_workers == 3
        assert config.pipeline is pipeline

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test neutral params and an environment-resolved pipeline."""
        monkeypatch.setenv("PHOTO_ADJUST_PREVIEW_QUALITY", "high")
        config = create_config()

        assert config.params.is_default()
        assert config.pipeline.preview_quality is PreviewQuality.HIGH
