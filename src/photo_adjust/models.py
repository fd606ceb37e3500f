"""Core data models for the photo adjustment pipeline."""

from __future__ import annotations

import base64
import math
import time
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from photo_adjust.buffer import PixelBuffer


class FilterPreset(Enum):
    """Named colour filter applied at the start of the Effects stage."""

    NONE = "none"
    GRAYSCALE = "grayscale"
    SEPIA = "sepia"
    INVERT = "invert"
    WARM = "warm"
    COOL = "cool"
    VINTAGE = "vintage"
    DRAMATIC = "dramatic"
    NOIR = "noir"
    FADE = "fade"


class QualityTier(Enum):
    """Resolution level at which a render pass runs."""

    PREVIEW = "preview"
    FINAL = "final"


class PreviewQuality(Enum):
    """Downscale level of the preview buffer."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def factor(self) -> float:
        """Scale factor applied to the source dimensions."""
        return _PREVIEW_FACTORS[self]


_PREVIEW_FACTORS = {
    PreviewQuality.LOW: 0.5,
    PreviewQuality.MEDIUM: 0.75,
    PreviewQuality.HIGH: 1.0,
}


class PipelineState(Enum):
    """Lifecycle state of an AdjustmentPipeline."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    PROCESSING = "processing"
    DESTROYED = "destroyed"


class RenderStatus(Enum):
    """Status of a file render operation."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in the coordinate space of the rotated/flipped buffer.

    Negative offsets are clamped to zero and sizes to at least one pixel;
    clamping against the actual buffer happens in the Geometry stage.
    """

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", max(0, int(self.x)))
        object.__setattr__(self, "y", max(0, int(self.y)))
        object.__setattr__(self, "width", max(1, int(self.width)))
        object.__setattr__(self, "height", max(1, int(self.height)))

    @classmethod
    def parse(cls, text: str) -> CropRect:
        """Parse an ``X,Y,W,H`` string.

        Raises:
            ValueError: If the text does not hold four integers
        """
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Crop must be X,Y,W,H, got {text!r}")
        x, y, width, height = (int(p) for p in parts)
        return cls(x, y, width, height)


# Valid range for every numeric adjustment. Values outside are clamped.
PARAM_RANGES: dict[str, tuple[float, float]] = {
    "brightness": (0.0, 200.0),
    "contrast": (0.0, 200.0),
    "clarity": (-100.0, 100.0),
    "sharpen": (0.0, 100.0),
    "saturation": (0.0, 200.0),
    "vibrance": (-100.0, 100.0),
    "temperature": (-100.0, 100.0),
    "vignette": (0.0, 100.0),
    "noise": (0.0, 100.0),
    "blur": (0.0, 100.0),
}

# Parameters whose change is a discrete user action (committed to history at once).
DISCRETE_PARAMS = frozenset(
    {"rotation", "flip_horizontal", "flip_vertical", "crop", "filter_preset"}
)


@dataclass(frozen=True)
class AdjustmentParams:
    """Immutable set of adjustments, grouped by stage.

    Attributes:
        rotation: Clockwise rotation in degrees, normalized to [0, 360)
        flip_horizontal: Mirror left to right
        flip_vertical: Mirror top to bottom
        crop: Optional crop applied after rotation and flips
        brightness: Multiplicative brightness, 100 is neutral (0-200)
        contrast: Contrast, 100 is neutral (0-200)
        clarity: Push channels away from the pixel mean (-100 to 100)
        sharpen: Unsharp mask amount (0-100)
        saturation: Saturation scale, 100 is neutral (0-200)
        vibrance: Saturation boost weighted towards muted pixels (-100 to 100)
        hue: Hue rotation in degrees, wrapped to [0, 360)
        temperature: Warm (positive) or cool (negative) shift (-100 to 100)
        filter_preset: Named filter preset
        vignette: Corner darkening amount (0-100)
        noise: Additive noise amount (0-100)
        blur: Box blur amount (0-100)
    """

    rotation: float = 0.0
    flip_horizontal: bool = False
    flip_vertical: bool = False
    crop: CropRect | None = None
    brightness: float = 100.0
    contrast: float = 100.0
    clarity: float = 0.0
    sharpen: float = 0.0
    saturation: float = 100.0
    vibrance: float = 0.0
    hue: float = 0.0
    temperature: float = 0.0
    filter_preset: FilterPreset = FilterPreset.NONE
    vignette: float = 0.0
    noise: float = 0.0
    blur: float = 0.0

    def __post_init__(self) -> None:
        """Clamp every numeric field into range; never reject."""
        for name, (low, high) in PARAM_RANGES.items():
            value = float(getattr(self, name))
            if math.isnan(value):
                value = _DEFAULTS[name]
            object.__setattr__(self, name, min(high, max(low, value)))

        for name in ("rotation", "hue"):
            value = float(getattr(self, name))
            value = 0.0 if not math.isfinite(value) else value % 360.0
            # Tiny negative angles round up to a full turn.
            if value >= 360.0:
                value = 0.0
            object.__setattr__(self, name, value)

        object.__setattr__(self, "flip_horizontal", bool(self.flip_horizontal))
        object.__setattr__(self, "flip_vertical", bool(self.flip_vertical))

        if not isinstance(self.filter_preset, FilterPreset):
            object.__setattr__(self, "filter_preset", FilterPreset(self.filter_preset))
        if isinstance(self.crop, dict):
            object.__setattr__(self, "crop", CropRect(**self.crop))
        elif self.crop is not None and not isinstance(self.crop, CropRect):
            object.__setattr__(self, "crop", CropRect(*self.crop))

    def merged(self, **partial: Any) -> AdjustmentParams:
        """Return a copy with the given fields replaced (and re-clamped).

        Raises:
            TypeError: If a field name is unknown
        """
        return replace(self, **partial)

    def is_default(self) -> bool:
        return self == AdjustmentParams()

    def changes_from(self, other: AdjustmentParams) -> dict[str, Any]:
        """Fields whose value differs from ``other``, as a partial update."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) != getattr(other, f.name)
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible primitives."""
        data = asdict(self)
        data["filter_preset"] = self.filter_preset.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AdjustmentParams:
        """Build params from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


_DEFAULTS = {f.name: f.default for f in fields(AdjustmentParams)}


@dataclass(frozen=True)
class ProcessingRequest:
    """One render pass: a source buffer plus the params to apply to it.

    Attributes:
        request_id: Monotonically increasing token used for staleness checks
        source: Buffer owned by the request until the executor takes it
        params: Adjustments to apply
        tier: Quality tier the pass runs at
    """

    request_id: int
    source: PixelBuffer
    params: AdjustmentParams
    tier: QualityTier = QualityTier.PREVIEW


@dataclass(frozen=True)
class EncodedImage:
    """A rendered image in a standard raster container."""

    data: bytes
    width: int
    height: int
    mime_type: str = "image/png"

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass(frozen=True)
class HistoryEntry:
    """A committed render together with the params that produced it."""

    image: EncodedImage
    params: AdjustmentParams
    timestamp: float = field(default_factory=time.time)


@dataclass
class PipelineConfig:
    """Configuration for an AdjustmentPipeline.

    Attributes:
        preview_quality: Downscale level of the preview buffer
        history_capacity: Maximum number of undo entries (default 10)
        commit_debounce: Idle time in seconds before a slider change is committed
        use_worker: Run stages in a worker process when available
        worker_timeout: Watchdog bound in seconds for a worker response
        noise_seed: Optional seed for reproducible noise
    """

    preview_quality: PreviewQuality = PreviewQuality.MEDIUM
    history_capacity: int = 10
    commit_debounce: float = 0.3
    use_worker: bool = True
    worker_timeout: float = 30.0
    noise_seed: int | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not isinstance(self.preview_quality, PreviewQuality):
            self.preview_quality = PreviewQuality(self.preview_quality)
        if self.history_capacity < 1:
            raise ValueError(f"history_capacity must be at least 1, got {self.history_capacity}")
        if self.commit_debounce < 0:
            raise ValueError(f"commit_debounce must not be negative, got {self.commit_debounce}")
        if self.worker_timeout <= 0:
            raise ValueError(f"worker_timeout must be positive, got {self.worker_timeout}")


@dataclass
class BatchConfig:
    """Configuration for rendering files from the command line.

    Attributes:
        params: Adjustments applied to every file
        output_dir: Optional output directory (default: beside the input)
        no_overwrite: Skip files whose output already exists
        verbose: Enable verbose logging
        parallel_workers: Number of worker processes (None = auto-detect)
        pipeline: Pipeline settings used for each render
    """

    params: AdjustmentParams = field(default_factory=AdjustmentParams)
    output_dir: Path | None = None
    no_overwrite: bool = False
    verbose: bool = False
    parallel_workers: int | None = None
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)

    def __post_init__(self) -> None:
        if self.parallel_workers is not None and self.parallel_workers < 1:
            raise ValueError(f"parallel_workers must be at least 1, got {self.parallel_workers}")


@dataclass
class RenderResult:
    """Result of rendering a single file.

    Attributes:
        input_path: Path to the input image
        output_path: Path to the written PNG (None if failed)
        status: Render status
        error_message: Error message if rendering failed
        width: Output width in pixels
        height: Output height in pixels
        processing_time: Time taken in seconds
    """

    input_path: Path
    output_path: Path | None
    status: RenderStatus
    error_message: str | None = None
    width: int = 0
    height: int = 0
    processing_time: float = 0.0


@dataclass
class BatchResults:
    """Aggregated results of a batch render."""

    results: list[RenderResult]
    total_files: int
    successful: int
    failed: int
    skipped: int
    total_time: float

    def success_rate(self) -> float:
        """Calculate success rate as percentage (0.0 to 100.0)."""
        if self.total_files == 0:
            return 0.0
        return (self.successful / self.total_files) * 100.0


@dataclass
class ValidationResult:
    """Result of a validation operation."""

    valid: bool
    error_message: str | None = None


@dataclass
class SavedEdit:
    """An edit persisted by the EditStore.

    Attributes:
        edit_id: Unique identifier (uuid4 hex)
        name: User-facing name
        image_file: File name of the compressed image inside the store
        thumbnail_file: File name of the thumbnail inside the store
        mime_type: MIME type of the compressed image
        timestamp: Creation time (seconds since the epoch)
        size_bytes: Combined size of image and thumbnail
        params: Adjustments that produced the image, if known
    """

    edit_id: str
    name: str
    image_file: str
    thumbnail_file: str
    mime_type: str
    timestamp: float
    size_bytes: int
    params: dict[str, Any] | None = None
