"""Local store of saved edits with compression and quota recovery."""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import asdict
from typing import TYPE_CHECKING, Any

from photo_adjust.codec import JPEG_MIME, compress_image, create_thumbnail
from photo_adjust.errors import InvalidFileError, StorageError, StorageQuotaError
from photo_adjust.filesystem import FileSystemHandler
from photo_adjust.logging_config import get_logger
from photo_adjust.models import EncodedImage, SavedEdit

if TYPE_CHECKING:
    import logging
    from pathlib import Path

    from photo_adjust.models import AdjustmentParams


class EditStore:
    """Directory-backed store of saved edits, newest first.

    Each edit is kept as a compressed image plus a thumbnail, listed in a
    JSON index. At most ``MAX_EDITS`` are retained. When a save would exceed
    the optional byte quota, older edits are evicted: first down to the
    ``RECOVERY_KEEP`` most recent, then down to the new edit alone.
    """

    MAX_EDITS = 20
    RECOVERY_KEEP = 5
    INDEX_FILE = "index.json"

    def __init__(
        self,
        root: Path,
        quota_bytes: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if quota_bytes is not None and quota_bytes < 1:
            raise ValueError(f"quota_bytes must be positive, got {quota_bytes}")
        self.root = root
        self.quota_bytes = quota_bytes
        self.logger = logger or get_logger(__name__)
        self.filesystem = FileSystemHandler()

    @property
    def index_path(self) -> Path:
        return self.root / self.INDEX_FILE

    def list_edits(self) -> list[SavedEdit]:
        """Return saved edits, newest first. A damaged index reads as empty."""
        if not self.index_path.exists():
            return []
        try:
            raw = json.loads(self.index_path.read_text(encoding="utf-8"))
            if not isinstance(raw, list):
                raise ValueError("index is not a list")
            return [SavedEdit(**item) for item in raw]
        except (OSError, ValueError, TypeError) as e:
            self.logger.warning(f"Ignoring unreadable edit index {self.index_path}: {e}")
            return []

    def save(
        self,
        name: str,
        data: bytes,
        params: AdjustmentParams | None = None,
        max_size: int = 1600,
        quality: float = 0.8,
    ) -> str:
        """Compress and store an image.

        Args:
            name: User-facing name of the edit
            data: Encoded image bytes (e.g. a rendered PNG)
            params: Adjustments that produced the image
            max_size: Maximum width of the stored image
            quality: JPEG quality in [0, 1] for non-PNG images

        Returns:
            The id of the new edit

        Raises:
            DecodeError: If the image cannot be decoded
            StorageQuotaError: If even the new edit alone exceeds the quota
            StorageError: If the store cannot be written
        """
        edit_id = uuid.uuid4().hex
        compressed = compress_image(data, max_width=max_size, quality=quality)
        thumbnail = create_thumbnail(data, max_size=200, quality=0.5)

        extension = ".jpg" if compressed.mime_type == JPEG_MIME else ".png"
        thumb_extension = ".jpg" if thumbnail.mime_type == JPEG_MIME else ".png"
        edit = SavedEdit(
            edit_id=edit_id,
            name=name,
            image_file=f"{edit_id}{extension}",
            thumbnail_file=f"{edit_id}_thumb{thumb_extension}",
            mime_type=compressed.mime_type,
            timestamp=time.time(),
            size_bytes=len(compressed.data) + len(thumbnail.data),
            params=params.to_dict() if params is not None else None,
        )
        new_files = {edit.image_file: compressed.data, edit.thumbnail_file: thumbnail.data}

        edits = [edit, *self.list_edits()][: self.MAX_EDITS]
        try:
            self._persist(edits, new_files)
        except StorageQuotaError:
            self.logger.warning("Edit store quota exceeded, removing older edits")
            if len(edits) > self.RECOVERY_KEEP:
                try:
                    self._persist(edits[: self.RECOVERY_KEEP], new_files)
                except StorageQuotaError:
                    self._persist([edit], new_files)
            else:
                self._persist([edit], new_files)

        self.logger.info(f"Saved edit {name!r} as {edit_id}")
        return edit_id

    def load(self, edit_id: str, thumbnail: bool = False) -> EncodedImage:
        """Load a stored image (or its thumbnail).

        Raises:
            StorageError: If the edit does not exist or cannot be read
        """
        edit = self._find(edit_id)
        file_name = edit.thumbnail_file if thumbnail else edit.image_file
        try:
            data = (self.root / file_name).read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to read saved edit {edit_id}: {e}") from e

        mime_type = JPEG_MIME if file_name.endswith(".jpg") else "image/png"
        # Dimensions are not indexed; callers decode when they need them.
        return EncodedImage(data=data, width=0, height=0, mime_type=mime_type)

    def delete(self, edit_id: str) -> bool:
        """Delete an edit; returns False if it did not exist."""
        edits = self.list_edits()
        remaining = [e for e in edits if e.edit_id != edit_id]
        if len(remaining) == len(edits):
            return False
        self._persist(remaining, {})
        return True

    def clear(self) -> None:
        """Delete every saved edit."""
        self._persist([], {})

    def _find(self, edit_id: str) -> SavedEdit:
        for edit in self.list_edits():
            if edit.edit_id == edit_id:
                return edit
        raise StorageError(f"No saved edit with id {edit_id}")

    def _persist(self, edits: list[SavedEdit], new_files: dict[str, bytes]) -> None:
        """Write new files and the index, then remove files the store dropped.

        Only files named by the previous index are removed; anything else in
        the directory belongs to the user and is left alone.
        """
        total = sum(e.size_bytes for e in edits)
        if self.quota_bytes is not None and total > self.quota_bytes:
            raise StorageQuotaError(
                f"Edit store needs {total} bytes but the quota is {self.quota_bytes}"
            )

        owned = {name for e in self.list_edits() for name in (e.image_file, e.thumbnail_file)}
        listed = {name for e in edits for name in (e.image_file, e.thumbnail_file)}
        index: list[dict[str, Any]] = [asdict(e) for e in edits]
        try:
            for file_name, payload in new_files.items():
                if file_name in listed:
                    self.filesystem.write_file(self.root / file_name, payload)
            self.filesystem.write_file(
                self.index_path, json.dumps(index, indent=2).encode("utf-8")
            )
        except InvalidFileError as e:
            raise StorageError(f"Failed to write edit store {self.root}: {e}") from e

        for file_name in sorted(owned - listed):
            path = self.root / file_name
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                self.logger.warning(f"Could not remove stale edit file {path}: {e}")
