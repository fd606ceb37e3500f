"""Render orchestrator for the command line.

Coordinates single-file renders through :class:`AdjustmentPipeline` and
batch renders through :class:`BatchProcessor`, then optionally saves each
output to an :class:`EditStore` and records the applied adjustments in a
``.params.json`` sidecar beside the rendered file.
"""

from __future__ import annotations

import asyncio
import json
from time import perf_counter
from typing import TYPE_CHECKING

from photo_adjust.batch_processor import BatchProcessor
from photo_adjust.errors import ErrorHandler
from photo_adjust.filesystem import FileSystemHandler
from photo_adjust.logging_config import get_logger
from photo_adjust.models import (
    AdjustmentParams,
    BatchResults,
    RenderResult,
    RenderStatus,
)
from photo_adjust.pipeline import AdjustmentPipeline

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable
    from pathlib import Path

    from photo_adjust.models import BatchConfig, EncodedImage
    from photo_adjust.storage import EditStore


class RenderOrchestrator:
    """Render one or many files with a fixed set of adjustments."""

    def __init__(
        self,
        config: BatchConfig,
        logger: logging.Logger | None = None,
        progress_callback: Callable[[int, int, str], None] | None = None,
        store: EditStore | None = None,
    ):
        """Initialize orchestrator with configuration.

        Args:
            config: Render configuration
            logger: Optional logger instance
            progress_callback: Optional callback for progress updates (current, total, filename)
            store: Optional edit store that receives every successful render
        """
        self.config = config
        self.logger = logger or get_logger(__name__)
        self.progress_callback = progress_callback
        self.store = store

        self.filesystem = FileSystemHandler()
        self.error_handler = ErrorHandler(self.logger)
        self._batch_processor: BatchProcessor | None = None

        self.logger.info("RenderOrchestrator initialized")

    def render_single(self, input_path: Path) -> RenderResult:
        """Render a single file at full resolution.

        Flow: validate input, plan the output path, honour no-overwrite,
        validate the output, load the image into a pipeline, apply the
        configured adjustments, generate the final image and write it.

        Args:
            input_path: Path to the input image

        Returns:
            RenderResult with status and details
        """
        start_time = perf_counter()

        try:
            self.logger.info(f"Starting render of {input_path.name}")

            validation = self.filesystem.validate_input_file(input_path)
            if not validation.valid:
                self.logger.error(
                    f"Input validation failed for {input_path.name}: {validation.error_message}"
                )
                return RenderResult(
                    input_path=input_path,
                    output_path=None,
                    status=RenderStatus.FAILED,
                    error_message=validation.error_message,
                    processing_time=perf_counter() - start_time,
                )

            output_path = self.filesystem.get_output_path(input_path, self.config.output_dir)

            if output_path.exists() and self.config.no_overwrite:
                self.logger.info(f"Skipping {input_path.name}: output file already exists")
                return RenderResult(
                    input_path=input_path,
                    output_path=output_path,
                    status=RenderStatus.SKIPPED,
                    error_message="Output file already exists (no-overwrite enabled)",
                    processing_time=perf_counter() - start_time,
                )

            output_validation = self.filesystem.validate_output_path(
                output_path, self.config.no_overwrite
            )
            if not output_validation.valid:
                self.logger.error(
                    f"Output validation failed for {output_path}: {output_validation.error_message}"
                )
                return RenderResult(
                    input_path=input_path,
                    output_path=None,
                    status=RenderStatus.FAILED,
                    error_message=output_validation.error_message,
                    processing_time=perf_counter() - start_time,
                )

            data = self.filesystem.read_file(input_path)
            image = asyncio.run(self._render_final(data))
            self.filesystem.write_file(output_path, image.data)

            result = RenderResult(
                input_path=input_path,
                output_path=output_path,
                status=RenderStatus.SUCCESS,
                width=image.width,
                height=image.height,
                processing_time=perf_counter() - start_time,
            )
            self._persist_params(result)
            self._save_to_store(input_path, image.data)

            self.logger.info(
                f"Rendered {input_path.name} -> {output_path.name} "
                f"({result.processing_time:.2f}s)"
            )
            return result

        except Exception as e:
            self.logger.exception(f"Unexpected error rendering {input_path.name}")
            return self.error_handler.handle_error(
                e,
                {
                    "input_path": input_path,
                    "operation": "single render",
                    "processing_time": perf_counter() - start_time,
                },
            )

    def render_batch(self, input_paths: list[Path]) -> BatchResults:
        """Render many files in parallel with per-file error isolation.

        Args:
            input_paths: Input image paths

        Returns:
            BatchResults aggregated from every file
        """
        if not input_paths:
            self.logger.warning("Empty batch provided for rendering")
            return BatchResults(
                results=[],
                total_files=0,
                successful=0,
                failed=0,
                skipped=0,
                total_time=0.0,
            )

        self.logger.info(f"Starting batch render of {len(input_paths)} files")

        if self._batch_processor is None:
            self._batch_processor = BatchProcessor(self.config, self.logger, self.progress_callback)

        batch_results = self._batch_processor.process_batch(input_paths)

        for result in batch_results.results:
            if result.status == RenderStatus.SUCCESS and result.output_path is not None:
                self._persist_params(result)
                self._save_stored_output(result)

        self.logger.info(
            f"Batch render complete: {batch_results.successful} successful, "
            f"{batch_results.failed} failed, {batch_results.skipped} skipped "
            f"in {batch_results.total_time:.2f}s "
            f"(success rate: {batch_results.success_rate():.1f}%)"
        )

        return batch_results

    async def _render_final(self, data: bytes) -> EncodedImage:
        """Load ``data`` into a fresh pipeline and render the configured params."""
        pipeline = AdjustmentPipeline(self.config.pipeline, self.logger)
        try:
            pipeline.initialize(data)
            changes = self.config.params.changes_from(AdjustmentParams())
            if changes:
                await pipeline.update_adjustments(**changes)
            return await pipeline.generate_final_image()
        finally:
            pipeline.destroy()

    def _save_stored_output(self, result: RenderResult) -> None:
        if self.store is None or result.output_path is None:
            return
        try:
            data = result.output_path.read_bytes()
        except OSError as e:
            self.logger.warning(f"Could not read {result.output_path} for the edit store: {e}")
            return
        self._save_to_store(result.input_path, data)

    def _save_to_store(self, input_path: Path, data: bytes) -> None:
        """Save a rendered image to the edit store, if one is configured.

        A store failure is logged and does not fail the render.
        """
        if self.store is None:
            return
        try:
            self.store.save(input_path.stem, data, self.config.params)
        except Exception as e:
            self.logger.warning(f"Failed to save {input_path.name} to the edit store: {e}")

    def _persist_params(self, result: RenderResult) -> None:
        """Write the applied adjustments next to the output as ``.params.json``."""
        if not result.output_path:
            return

        try:
            params_path = result.output_path.with_suffix(".params.json")
            params_data = {
                "input_file": str(result.input_path),
                "output_file": str(result.output_path),
                "width": result.width,
                "height": result.height,
                "processing_time": result.processing_time,
                "adjustments": self.config.params.to_dict(),
            }
            with open(params_path, "w", encoding="utf-8") as f:
                json.dump(params_data, f, indent=2)

            self.logger.debug(f"Persisted adjustments to {params_path}")

        except Exception as e:
            # The render itself already succeeded.
            self.logger.warning(f"Failed to persist adjustments for {result.input_path.name}: {e}")
