"""Batch rendering of many files with parallel worker processes."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from hashlib import blake2s
from time import perf_counter
from typing import TYPE_CHECKING

import numpy as np

from photo_adjust.codec import decode_image, encode_png
from photo_adjust.errors import ErrorHandler
from photo_adjust.filesystem import FileSystemHandler
from photo_adjust.logging_config import get_logger
from photo_adjust.models import BatchConfig, BatchResults, RenderResult, RenderStatus
from photo_adjust.stages import apply_stages

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path


class BatchProcessor:
    """Apply one set of adjustments to many files in parallel.

    A failure in one file never stops the batch; it is reported as a FAILED
    result. Worker count defaults to the CPU count, capped at 8.
    """

    def __init__(
        self,
        config: BatchConfig,
        logger: logging.Logger | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None,
    ):
        """Initialize with configuration and determine worker count.

        Args:
            config: Batch configuration
            logger: Optional logger instance
            progress_callback: Optional callback for progress updates (current, total, filename)
        """
        self.config = config
        self.logger = logger or get_logger(__name__)
        self.progress_callback = progress_callback

        if config.parallel_workers is not None:
            self.worker_count = config.parallel_workers
        else:
            cpu_count = os.cpu_count()
            self.worker_count = 4 if cpu_count is None else min(cpu_count, 8)

        self.logger.info(f"BatchProcessor initialized with {self.worker_count} workers")

    def process_batch(self, files: list[Path]) -> BatchResults:
        """Render files in parallel using ProcessPoolExecutor.

        Args:
            files: Input image paths

        Returns:
            BatchResults aggregated from every file
        """
        if not files:
            return BatchResults(
                results=[], total_files=0, successful=0, failed=0, skipped=0, total_time=0.0
            )

        start_time = perf_counter()
        results: list[RenderResult] = []
        planned_jobs = self._plan_output_paths(files)

        self.logger.info(f"Starting batch render of {len(planned_jobs)} files")

        with ProcessPoolExecutor(max_workers=self.worker_count) as executor:
            future_to_file = {
                executor.submit(
                    _process_single_file_worker,
                    file_path,
                    self.config,
                    output_path,
                ): file_path
                for file_path, output_path in planned_jobs
            }

            for completed_count, future in enumerate(as_completed(future_to_file), start=1):
                file_path = future_to_file[future]

                try:
                    result = future.result()
                except Exception as e:
                    self.logger.error(f"Worker process failed for {file_path.name}: {e}")
                    result = ErrorHandler(self.logger).handle_error(
                        e, {"input_path": file_path, "operation": "batch render"}
                    )

                results.append(result)
                self._log_result(result, completed_count, len(files))

                if self.progress_callback:
                    self.progress_callback(completed_count, len(files), file_path.name)

        total_time = perf_counter() - start_time
        successful = sum(1 for r in results if r.status == RenderStatus.SUCCESS)
        failed = sum(1 for r in results if r.status == RenderStatus.FAILED)
        skipped = sum(1 for r in results if r.status == RenderStatus.SKIPPED)

        self.logger.info(
            f"Batch render complete: {successful} successful, "
            f"{failed} failed, {skipped} skipped in {total_time:.2f}s"
        )

        return BatchResults(
            results=results,
            total_files=len(files),
            successful=successful,
            failed=failed,
            skipped=skipped,
            total_time=total_time,
        )

    def _log_result(self, result: RenderResult, completed: int, total: int) -> None:
        if result.status == RenderStatus.SUCCESS:
            self.logger.info(f"Rendered {result.input_path.name} ({completed}/{total})")
        elif result.status == RenderStatus.FAILED:
            self.logger.error(
                f"Failed to render {result.input_path.name}: "
                f"{result.error_message} ({completed}/{total})"
            )
        else:
            self.logger.info(f"Skipped {result.input_path.name} ({completed}/{total})")

    def _plan_output_paths(self, files: list[Path]) -> list[tuple[Path, Path]]:
        """Assign output paths, renaming when two inputs share a stem."""
        filesystem = FileSystemHandler()
        used_paths: set[Path] = set()
        planned_jobs: list[tuple[Path, Path]] = []

        for file_path in files:
            base_output_path = filesystem.get_output_path(file_path, self.config.output_dir)
            output_path = base_output_path
            duplicate_index = 0

            while output_path in used_paths:
                output_path = self._with_collision_suffix(
                    base_output_path, file_path, duplicate_index
                )
                duplicate_index += 1

            if output_path != base_output_path:
                self.logger.warning(
                    f"Output path collision for {file_path.name}; "
                    f"using {output_path.name} instead of {base_output_path.name}"
                )

            used_paths.add(output_path)
            planned_jobs.append((file_path, output_path))

        return planned_jobs

    @staticmethod
    def _with_collision_suffix(base_output_path: Path, file_path: Path, index: int) -> Path:
        """Build a collision-safe name from a hash of the source path."""
        try:
            source_key = str(file_path.resolve(strict=False))
        except (OSError, RuntimeError):
            source_key = str(file_path)
        source_hash = blake2s(source_key.encode("utf-8"), digest_size=4).hexdigest()
        ordinal_suffix = "" if index == 0 else f"_{index}"
        unique_name = (
            f"{base_output_path.stem}_{source_hash}{ordinal_suffix}{base_output_path.suffix}"
        )
        return base_output_path.with_name(unique_name)


def _process_single_file_worker(
    file_path: Path,
    config: BatchConfig,
    output_path: Path | None = None,
) -> RenderResult:
    """Render one file at full resolution (runs in a worker process).

    Stages run synchronously here; the worker process already provides the
    parallelism.

    Args:
        file_path: Input image path
        config: Batch configuration
        output_path: Pre-planned output path

    Returns:
        RenderResult for the file
    """
    logger = logging.getLogger(f"photo_adjust.worker-{os.getpid()}")
    filesystem = FileSystemHandler()
    error_handler = ErrorHandler(logger)
    start_time = perf_counter()

    try:
        validation = filesystem.validate_input_file(file_path)
        if not validation.valid:
            return RenderResult(
                input_path=file_path,
                output_path=None,
                status=RenderStatus.FAILED,
                error_message=validation.error_message,
            )

        target_path = output_path or filesystem.get_output_path(file_path, config.output_dir)

        if target_path.exists() and config.no_overwrite:
            return RenderResult(
                input_path=file_path,
                output_path=target_path,
                status=RenderStatus.SKIPPED,
                error_message="Output file already exists (no-overwrite enabled)",
            )

        output_validation = filesystem.validate_output_path(target_path, config.no_overwrite)
        if not output_validation.valid:
            return RenderResult(
                input_path=file_path,
                output_path=None,
                status=RenderStatus.FAILED,
                error_message=output_validation.error_message,
            )

        source = decode_image(filesystem.read_file(file_path))
        rng = np.random.default_rng(config.pipeline.noise_seed)
        rendered = apply_stages(source, config.params, rng)
        image = encode_png(rendered)
        filesystem.write_file(target_path, image.data)

        return RenderResult(
            input_path=file_path,
            output_path=target_path,
            status=RenderStatus.SUCCESS,
            width=image.width,
            height=image.height,
            processing_time=perf_counter() - start_time,
        )

    except Exception as e:
        return error_handler.handle_error(
            e,
            {
                "input_path": file_path,
                "operation": "batch render",
                "processing_time": perf_counter() - start_time,
            },
        )
