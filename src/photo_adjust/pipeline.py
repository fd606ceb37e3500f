"""Pipeline orchestrator: preview/final rendering, undo/redo and lifecycle.

The pipeline decodes a source image once and keeps it as the read-only
source of truth, plus a downscaled preview copy. Adjustment updates render
the preview through the task executor; the final render reruns the stages on
the full-resolution source without touching preview state.

Update calls are coalesced through a single pending slot: while a render is
running, newer calls overwrite the slot and only the most recent params are
rendered next. Every caller whose request was superseded receives the image
of the latest render.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from time import perf_counter
from typing import TYPE_CHECKING, Any

from photo_adjust.codec import decode_image, encode_png, scale_buffer
from photo_adjust.errors import InvalidStateError, ProcessingError
from photo_adjust.executor import TaskExecutor
from photo_adjust.history import HistoryManager
from photo_adjust.logging_config import (
    get_logger,
    log_operation_complete,
    log_operation_error,
    log_operation_start,
)
from photo_adjust.models import (
    DISCRETE_PARAMS,
    AdjustmentParams,
    HistoryEntry,
    PipelineConfig,
    PipelineState,
    PreviewQuality,
    ProcessingRequest,
    QualityTier,
)

if TYPE_CHECKING:
    import logging

    from photo_adjust.buffer import PixelBuffer
    from photo_adjust.models import EncodedImage


@dataclass(frozen=True)
class PipelineHandle:
    """Describes a successfully initialized pipeline.

    Attributes:
        width: Full-resolution source width
        height: Full-resolution source height
        preview_width: Width of the preview buffer
        preview_height: Height of the preview buffer
        initial_image: The unadjusted preview, also the first history entry
    """

    width: int
    height: int
    preview_width: int
    preview_height: int
    initial_image: EncodedImage


class AdjustmentPipeline:
    """Apply adjustments to one image at preview and final quality.

    State machine: UNINITIALIZED -> READY <-> PROCESSING, and READY ->
    DESTROYED (terminal). Rendering calls made before :meth:`initialize` or
    after :meth:`destroy` raise :class:`InvalidStateError`.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.logger = logger or get_logger(__name__)
        self.history = HistoryManager(
            capacity=self.config.history_capacity,
            debounce=self.config.commit_debounce,
            logger=self.logger,
        )

        self._state = PipelineState.UNINITIALIZED
        self._source: PixelBuffer | None = None
        self._preview_source: PixelBuffer | None = None
        self._preview_quality = self.config.preview_quality
        self._params = AdjustmentParams()
        self._rendered_params = self._params
        self._current_image: EncodedImage | None = None
        self._executor: TaskExecutor | None = None
        self._request_ids = itertools.count(1)

        # Single-slot register of the latest requested params.
        self._pending: AdjustmentParams | None = None
        self._pending_discrete = False
        self._waiters: list[asyncio.Future[EncodedImage]] = []
        self._drain_task: asyncio.Task[None] | None = None
        self._render_lock = asyncio.Lock()

    # Introspection -------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def adjustments(self) -> AdjustmentParams:
        return self._params

    @property
    def current_image(self) -> EncodedImage | None:
        """The most recent authoritative preview image."""
        return self._current_image

    @property
    def preview_quality(self) -> PreviewQuality:
        return self._preview_quality

    @property
    def executor(self) -> TaskExecutor | None:
        return self._executor

    # Lifecycle -----------------------------------------------------------

    def initialize(self, data: bytes) -> PipelineHandle:
        """Decode a source image and prepare it for editing.

        Adjustments are reset to defaults and history restarts with the
        unadjusted preview as its first entry.

        Args:
            data: Encoded source image bytes

        Returns:
            Handle describing the loaded image

        Raises:
            DecodeError: If the bytes cannot be decoded (no state is changed)
            InvalidStateError: If the pipeline is destroyed or rendering
        """
        if self._state is PipelineState.DESTROYED:
            raise InvalidStateError("Cannot initialize a destroyed pipeline")
        if self._state is PipelineState.PROCESSING:
            raise InvalidStateError("Cannot initialize while a render is in progress")

        log_operation_start(self.logger, "image load", size=f"{len(data)} bytes")
        start_time = perf_counter()
        try:
            source = decode_image(data)
            preview = scale_buffer(source, self._preview_quality.factor)
            initial_image = encode_png(preview)
        except Exception as e:
            log_operation_error(self.logger, "image load", e)
            raise

        if self._executor is None:
            self._executor = TaskExecutor(
                use_worker=self.config.use_worker,
                worker_timeout=self.config.worker_timeout,
                noise_seed=self.config.noise_seed,
                logger=self.logger,
            )
            self._executor.start()

        self._source = source
        self._preview_source = preview
        self._params = AdjustmentParams()
        self._rendered_params = self._params
        self._current_image = initial_image
        self.history.clear()
        self.history.commit(HistoryEntry(initial_image, self._params))
        self._state = PipelineState.READY

        log_operation_complete(
            self.logger,
            "image load",
            success=True,
            duration=perf_counter() - start_time,
            source=f"{source.width}x{source.height}",
            preview=f"{preview.width}x{preview.height}",
            mode=self._executor.mode,
        )

        return PipelineHandle(
            width=source.width,
            height=source.height,
            preview_width=preview.width,
            preview_height=preview.height,
            initial_image=initial_image,
        )

    def destroy(self) -> None:
        """Release buffers and terminate the task executor. Idempotent."""
        if self._state is PipelineState.DESTROYED:
            return
        self._state = PipelineState.DESTROYED

        if self._drain_task is not None and not self._drain_task.done():
            self._drain_task.cancel()
        self._drain_task = None
        self._fail_waiters(InvalidStateError("Pipeline was destroyed"))
        self._pending = None

        self.history.clear()
        if self._executor is not None:
            self._executor.shutdown()
            self._executor = None
        for buffer in (self._source, self._preview_source):
            if buffer is not None:
                buffer.release()
        self._source = None
        self._preview_source = None
        self._current_image = None
        self.logger.debug("Pipeline destroyed")

    def set_preview_quality(self, quality: PreviewQuality | str) -> None:
        """Change the preview resolution used by subsequent updates.

        Raises:
            ValueError: If the quality name is unknown
            InvalidStateError: If the pipeline is destroyed
        """
        quality = PreviewQuality(quality)
        if self._state is PipelineState.DESTROYED:
            raise InvalidStateError("Pipeline was destroyed")
        self._preview_quality = quality
        if self._source is not None:
            self._preview_source = scale_buffer(self._source, quality.factor)
            self.logger.debug(
                f"Preview quality set to {quality.value}: "
                f"{self._preview_source.width}x{self._preview_source.height}"
            )

    # Adjustments ---------------------------------------------------------

    async def update_adjustments(self, **partial: Any) -> EncodedImage:
        """Merge partial params and render a preview.

        Rotation, flips, crop and filter changes are committed to history as
        soon as they render; slider changes are committed once input has been
        idle for the debounce window.

        Args:
            **partial: AdjustmentParams fields to change

        Returns:
            The latest authoritative preview image

        Raises:
            InvalidStateError: If the pipeline is not initialized or destroyed
            TypeError: If a field name is unknown
            AllocationError: If the render ran out of memory
        """
        self._require_ready()
        self._params = self._params.merged(**partial)
        discrete = not DISCRETE_PARAMS.isdisjoint(partial)
        return await self._submit(self._params, discrete)

    async def reset_adjustments(self) -> EncodedImage:
        """Render with default params; committed to history immediately."""
        self._require_ready()
        self._params = AdjustmentParams()
        return await self._submit(self._params, discrete=True)

    async def generate_final_image(self) -> EncodedImage:
        """Render the current params at full source resolution.

        Preview state, the pending slot and history are left untouched.

        Raises:
            InvalidStateError: If the pipeline is not initialized or destroyed
            AllocationError: If the render ran out of memory
        """
        self._require_ready()
        params = self._params

        async with self._render_lock:
            self._require_ready()
            source, executor = self._loaded(self._source)

            log_operation_start(
                self.logger, "final render", size=f"{source.width}x{source.height}"
            )
            start_time = perf_counter()
            request = ProcessingRequest(
                request_id=next(self._request_ids),
                source=source.copy(),
                params=params,
                tier=QualityTier.FINAL,
            )
            self._state = PipelineState.PROCESSING
            try:
                result = await executor.run(request)
                self._require_live()
                if result is None:
                    raise ProcessingError("Final render produced no image")
                image = encode_png(result)
                result.release()
            except Exception as e:
                log_operation_error(self.logger, "final render", e)
                raise
            finally:
                self._settle()

        log_operation_complete(
            self.logger,
            "final render",
            success=True,
            duration=perf_counter() - start_time,
            size=f"{image.width}x{image.height}",
        )
        return image

    async def undo(self) -> EncodedImage | None:
        """Restore the previous history entry and its params."""
        return await self._step_history(forward=False)

    async def redo(self) -> EncodedImage | None:
        """Restore the next history entry and its params."""
        return await self._step_history(forward=True)

    async def _step_history(self, forward: bool) -> EncodedImage | None:
        self._require_ready()
        await self._wait_for_drain()
        self._require_ready()

        # A debounced render counts as the newest state before stepping.
        self.history.flush()
        entry = self.history.redo() if forward else self.history.undo()
        if entry is None:
            return None

        self._params = entry.params
        self._rendered_params = entry.params
        self._current_image = entry.image
        self.logger.debug(
            f"{'Redo' if forward else 'Undo'} to history entry "
            f"{self.history.cursor + 1}/{len(self.history)}"
        )
        return entry.image

    # Internals -----------------------------------------------------------

    def _require_live(self) -> None:
        if self._state is PipelineState.DESTROYED:
            raise InvalidStateError("Pipeline was destroyed")

    def _require_ready(self) -> None:
        self._require_live()
        if self._state is PipelineState.UNINITIALIZED:
            raise InvalidStateError("Pipeline is not initialized")

    def _loaded(self, source: PixelBuffer | None) -> tuple[PixelBuffer, TaskExecutor]:
        if source is None or self._executor is None:
            raise InvalidStateError("Pipeline has no loaded image")
        return source, self._executor

    def _settle(self) -> None:
        if self._state is PipelineState.PROCESSING:
            self._state = PipelineState.READY

    async def _submit(self, params: AdjustmentParams, discrete: bool) -> EncodedImage:
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[EncodedImage] = loop.create_future()
        self._pending = params
        self._pending_discrete = self._pending_discrete or discrete
        self._waiters.append(waiter)

        if self._drain_task is None or self._drain_task.done():
            self._drain_task = loop.create_task(self._drain())
        return await waiter

    async def _wait_for_drain(self) -> None:
        task = self._drain_task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def _drain(self) -> None:
        """Render pending params until the slot stays empty."""
        while self._pending is not None and self._state is not PipelineState.DESTROYED:
            params, self._pending = self._pending, None
            discrete, self._pending_discrete = self._pending_discrete, False
            waiters, self._waiters = self._waiters, []

            try:
                image = await self._render_preview(params)
            except asyncio.CancelledError:
                for waiter in waiters:
                    if not waiter.done():
                        waiter.set_exception(InvalidStateError("Pipeline was destroyed"))
                raise
            except Exception as e:
                log_operation_error(self.logger, "preview render", e)
                if self._pending is None:
                    # The last rendered state stays current.
                    self._params = self._rendered_params
                for waiter in waiters:
                    if not waiter.done():
                        waiter.set_exception(e)
                continue

            if image is None or self._pending is not None:
                # Superseded: these callers receive the next render instead.
                self._waiters = waiters + self._waiters
                self._pending_discrete = self._pending_discrete or discrete
                if self._pending is None:
                    self._pending = self._params
                continue

            entry = HistoryEntry(image, params)
            if discrete:
                self.history.commit_now(entry)
            else:
                self.history.schedule_commit(entry)
            self._current_image = image
            self._rendered_params = params

            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(image)

    async def _render_preview(self, params: AdjustmentParams) -> EncodedImage | None:
        async with self._render_lock:
            self._require_ready()
            preview_source, executor = self._loaded(self._preview_source)

            request = ProcessingRequest(
                request_id=next(self._request_ids),
                source=preview_source.copy(),
                params=params,
                tier=QualityTier.PREVIEW,
            )
            self._state = PipelineState.PROCESSING
            start_time = perf_counter()
            try:
                result = await executor.run(request)
                self._require_live()
            finally:
                self._settle()

            if result is None:
                return None
            image = encode_png(result)
            result.release()

        self.logger.debug(
            f"Preview request {request.request_id} rendered "
            f"{image.width}x{image.height} in {perf_counter() - start_time:.3f}s"
        )
        return image

    def _fail_waiters(self, error: Exception) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(error)
