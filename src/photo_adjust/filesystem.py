"""File system operations with path validation for rendered images."""

from __future__ import annotations

import contextlib
import os
from typing import TYPE_CHECKING

from photo_adjust.errors import InvalidFileError, SecurityError
from photo_adjust.models import ValidationResult

if TYPE_CHECKING:
    from pathlib import Path


class FileSystemHandler:
    """Handle file reads and writes with validation.

    Rejects path traversal, unsupported extensions and oversized inputs, and
    writes outputs atomically through a temporary file.
    """

    # Maximum input file size: 200MB
    MAX_FILE_SIZE = 200 * 1024 * 1024

    VALID_EXTENSIONS = {
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".bmp",
        ".tif",
        ".tiff",
        ".webp",
    }

    OUTPUT_SUFFIX = "_edited"
    OUTPUT_EXTENSION = ".png"

    def validate_input_file(self, path: Path) -> ValidationResult:
        """Validate that an input file exists, is readable and is a raster image.

        Args:
            path: Path to the input file

        Returns:
            ValidationResult indicating whether the file is valid
        """
        try:
            resolved_path = path.resolve(strict=False)
        except (OSError, RuntimeError) as e:
            return ValidationResult(valid=False, error_message=f"Invalid path: {e}")

        if ".." in path.parts:
            return ValidationResult(
                valid=False,
                error_message="Path traversal detected: path contains '..'",
            )

        if not resolved_path.exists():
            return ValidationResult(valid=False, error_message=f"File not found: {path}")

        if not resolved_path.is_file():
            return ValidationResult(valid=False, error_message=f"Path is not a file: {path}")

        if not os.access(resolved_path, os.R_OK):
            return ValidationResult(valid=False, error_message=f"File is not readable: {path}")

        if resolved_path.suffix.lower() not in self.VALID_EXTENSIONS:
            expected = ", ".join(sorted(self.VALID_EXTENSIONS))
            return ValidationResult(
                valid=False,
                error_message=f"Invalid file extension: {resolved_path.suffix}. "
                f"Expected one of {expected}",
            )

        try:
            file_size = resolved_path.stat().st_size
        except OSError as e:
            return ValidationResult(valid=False, error_message=f"Cannot read file size: {e}")
        if file_size > self.MAX_FILE_SIZE:
            max_mb = self.MAX_FILE_SIZE / (1024 * 1024)
            actual_mb = file_size / (1024 * 1024)
            return ValidationResult(
                valid=False,
                error_message=f"File too large: {actual_mb:.1f}MB (maximum: {max_mb:.0f}MB)",
            )

        return ValidationResult(valid=True)

    def validate_output_path(self, path: Path, no_overwrite: bool) -> ValidationResult:
        """Validate that an output path is writable.

        Args:
            path: Path to the output file
            no_overwrite: If True, reject paths where a file already exists

        Returns:
            ValidationResult indicating whether the output path is valid
        """
        try:
            resolved_path = path.resolve(strict=False)
        except (OSError, RuntimeError) as e:
            return ValidationResult(valid=False, error_message=f"Invalid output path: {e}")

        if ".." in path.parts:
            return ValidationResult(
                valid=False,
                error_message="Path traversal detected in output path: contains '..'",
            )

        if no_overwrite and resolved_path.exists():
            return ValidationResult(
                valid=False,
                error_message=f"Output file already exists: {path}",
            )

        # Walk up to the nearest existing directory; it must be writable.
        ancestor = resolved_path.parent
        while not ancestor.exists() and ancestor != ancestor.parent:
            ancestor = ancestor.parent
        if not os.access(ancestor, os.W_OK):
            return ValidationResult(
                valid=False,
                error_message=f"Output directory is not writable: {ancestor}",
            )

        return ValidationResult(valid=True)

    def read_file(self, path: Path) -> bytes:
        """Read an input file after validating it.

        Raises:
            InvalidFileError: If file validation or the read fails
            SecurityError: If the path attempts traversal
        """
        validation = self.validate_input_file(path)
        if not validation.valid:
            error_msg = validation.error_message or "Unknown validation error"
            if "traversal" in error_msg.lower():
                raise SecurityError(error_msg)
            raise InvalidFileError(error_msg)

        try:
            return path.resolve().read_bytes()
        except OSError as e:
            raise InvalidFileError(f"Failed to read file {path}: {e}") from e

    def write_file(self, path: Path, data: bytes) -> None:
        """Write a file atomically via a temporary sibling.

        Raises:
            SecurityError: If the path attempts traversal
            InvalidFileError: If the write fails
        """
        validation = self.validate_output_path(path, no_overwrite=False)
        if not validation.valid:
            error_msg = validation.error_message or "Unknown validation error"
            if "traversal" in error_msg.lower():
                raise SecurityError(error_msg)
            raise InvalidFileError(error_msg)

        resolved_path = path.resolve(strict=False)
        self.ensure_directory(resolved_path.parent)

        temp_path = resolved_path.with_suffix(resolved_path.suffix + ".tmp")
        try:
            temp_path.write_bytes(data)
            temp_path.replace(resolved_path)
        except OSError as e:
            if temp_path.exists():
                with contextlib.suppress(OSError):
                    temp_path.unlink()
            raise InvalidFileError(f"Failed to write file {path}: {e}") from e

    def get_output_path(self, input_path: Path, output_dir: Path | None) -> Path:
        """Build ``<stem>_edited.png`` beside the input or in ``output_dir``."""
        output_filename = f"{input_path.stem}{self.OUTPUT_SUFFIX}{self.OUTPUT_EXTENSION}"
        if output_dir is not None:
            return output_dir / output_filename
        return input_path.parent / output_filename

    def ensure_directory(self, path: Path) -> None:
        """Create a directory (and parents) if missing.

        Raises:
            InvalidFileError: If directory creation fails
        """
        try:
            path.resolve(strict=False).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InvalidFileError(f"Failed to create directory {path}: {e}") from e
