"""Photo Adjust.

A non-destructive photo adjustment pipeline: geometry, tone, colour and
effect stages rendered at preview and final quality, with undo/redo history
and a local store of saved edits.
"""

__version__ = "0.1.0"

from photo_adjust.batch_processor import BatchProcessor
from photo_adjust.buffer import PixelBuffer
from photo_adjust.config import create_config, create_pipeline_config
from photo_adjust.errors import (
    AllocationError,
    DecodeError,
    ExecutorFault,
    InvalidStateError,
    PipelineError,
    StorageError,
    StorageQuotaError,
)
from photo_adjust.history import HistoryManager
from photo_adjust.logging_config import (
    get_logger,
    log_operation_complete,
    log_operation_error,
    log_operation_start,
    set_log_level,
    setup_logging,
)
from photo_adjust.models import (
    AdjustmentParams,
    BatchResults,
    CropRect,
    EncodedImage,
    FilterPreset,
    HistoryEntry,
    PipelineConfig,
    PipelineState,
    PreviewQuality,
    QualityTier,
    RenderResult,
    RenderStatus,
)
from photo_adjust.pipeline import AdjustmentPipeline, PipelineHandle
from photo_adjust.storage import EditStore

__all__ = [
    "AdjustmentParams",
    "AdjustmentPipeline",
    "AllocationError",
    "BatchProcessor",
    "BatchResults",
    "CropRect",
    "DecodeError",
    "EditStore",
    "EncodedImage",
    "ExecutorFault",
    "FilterPreset",
    "HistoryEntry",
    "HistoryManager",
    "InvalidStateError",
    "PipelineConfig",
    "PipelineError",
    "PipelineHandle",
    "PipelineState",
    "PixelBuffer",
    "PreviewQuality",
    "QualityTier",
    "RenderResult",
    "RenderStatus",
    "StorageError",
    "StorageQuotaError",
    "create_config",
    "create_pipeline_config",
    "get_logger",
    "log_operation_complete",
    "log_operation_error",
    "log_operation_start",
    "set_log_level",
    "setup_logging",
]
