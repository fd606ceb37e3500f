"""Task executor running the stage sequence in a worker process or in-line."""

from __future__ import annotations

import asyncio
from concurrent.futures import ProcessPoolExecutor
from typing import TYPE_CHECKING

import numpy as np

from photo_adjust.errors import AllocationError, ExecutorFault, InvalidStateError
from photo_adjust.logging_config import get_logger, log_degradation
from photo_adjust.models import QualityTier
from photo_adjust.stages import apply_stages

if TYPE_CHECKING:
    import logging

    from photo_adjust.buffer import PixelBuffer
    from photo_adjust.models import AdjustmentParams, ProcessingRequest


def _run_stages_worker(
    buffer: PixelBuffer, params: AdjustmentParams, seed: int | None
) -> PixelBuffer:
    """Worker entry point (module level so it can be pickled)."""
    return apply_stages(buffer, params, np.random.default_rng(seed))


class TaskExecutor:
    """Run render requests off the event loop, with synchronous fallback.

    The executor owns a single-process ``ProcessPoolExecutor``. Each request
    carries an id; preview results whose id is no longer the most recently
    dispatched one are discarded and reported as ``None``.

    The first worker failure switches the executor to synchronous execution
    for the rest of its life. A worker that does not answer within
    ``worker_timeout`` seconds is discarded and replaced, and the request it
    held is rendered synchronously instead.
    """

    def __init__(
        self,
        use_worker: bool = True,
        worker_timeout: float = 30.0,
        noise_seed: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.use_worker = use_worker
        self.worker_timeout = worker_timeout
        self.noise_seed = noise_seed
        self.logger = logger or get_logger(__name__)
        self._pool: ProcessPoolExecutor | None = None
        self._degraded = False
        self._closed = False
        self._latest_id = 0

    @property
    def degraded(self) -> bool:
        """True once the worker path has been abandoned."""
        return self._degraded

    @property
    def mode(self) -> str:
        return "worker" if self._pool is not None else "synchronous"

    @property
    def latest_request_id(self) -> int:
        return self._latest_id

    def start(self) -> None:
        """Create the worker pool, falling back to synchronous mode on failure."""
        if self._closed:
            raise InvalidStateError("Task executor has been shut down")
        if not self.use_worker or self._degraded or self._pool is not None:
            return
        try:
            self._pool = ProcessPoolExecutor(max_workers=1)
        except (OSError, ValueError, NotImplementedError) as e:
            self._degrade(e)
            return
        self.logger.debug("Task executor started with a worker process")

    def shutdown(self) -> None:
        """Terminate the worker pool; the executor cannot be used afterwards."""
        self._closed = True
        self._discard_pool()

    async def run(self, request: ProcessingRequest) -> PixelBuffer | None:
        """Render a request.

        The request's source buffer is moved into the executor; callers must
        not read it after submission.

        Args:
            request: The render request

        Returns:
            The rendered buffer, or None if a newer preview request was
            dispatched while this one was running

        Raises:
            InvalidStateError: If the executor has been shut down
            AllocationError: If memory runs out during the pass
        """
        if self._closed:
            raise InvalidStateError("Task executor has been shut down")

        tracked = request.tier is QualityTier.PREVIEW
        if tracked:
            self._latest_id = request.request_id

        buffer = request.source.take()
        result = await self._execute(buffer, request)

        if tracked and request.request_id != self._latest_id:
            self.logger.debug(
                f"Discarding stale result for request {request.request_id} "
                f"(latest is {self._latest_id})"
            )
            result.release()
            return None
        return result

    async def _execute(self, buffer: PixelBuffer, request: ProcessingRequest) -> PixelBuffer:
        if self._pool is None:
            return self._run_sync(buffer, request.params)

        try:
            result = await self._run_in_worker(buffer, request.params)
        except TimeoutError:
            self.logger.warning(
                f"Worker did not respond to request {request.request_id} within "
                f"{self.worker_timeout:.1f}s; replacing it"
            )
            self._discard_pool()
            self.start()
            return self._run_sync(buffer, request.params)
        except ExecutorFault as e:
            self._degrade(e)
            return self._run_sync(buffer, request.params)

        # The worker rendered a copy; the local pixels are no longer needed.
        buffer.release()
        return result

    async def _run_in_worker(self, buffer: PixelBuffer, params: AdjustmentParams) -> PixelBuffer:
        loop = asyncio.get_running_loop()
        try:
            future = loop.run_in_executor(
                self._pool, _run_stages_worker, buffer, params, self.noise_seed
            )
            return await asyncio.wait_for(future, timeout=self.worker_timeout)
        except (TimeoutError, AllocationError):
            raise
        except Exception as e:
            raise ExecutorFault(f"Worker failed: {type(e).__name__}: {e}") from e

    def _run_sync(self, buffer: PixelBuffer, params: AdjustmentParams) -> PixelBuffer:
        return apply_stages(buffer, params, np.random.default_rng(self.noise_seed))

    def _degrade(self, reason: Exception) -> None:
        self._degraded = True
        self._discard_pool()
        log_degradation(self.logger, "task executor", reason)

    def _discard_pool(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=False, cancel_futures=True)
            self._pool = None
