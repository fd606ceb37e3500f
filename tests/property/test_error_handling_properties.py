"""Property-based tests for error handling.

These tests validate universal properties that should hold across all inputs.
"""

import logging
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from photo_adjust.batch_processor import _process_single_file_worker
from photo_adjust.errors import (
    AllocationError,
    DecodeError,
    ErrorHandler,
    ExecutorFault,
    InvalidFileError,
    SecurityError,
    StorageError,
)
from photo_adjust.models import BatchConfig, RenderStatus

error_types = st.sampled_from(
    [
        AllocationError,
        DecodeError,
        ExecutorFault,
        InvalidFileError,
        SecurityError,
        StorageError,
        MemoryError,
        ValueError,
        RuntimeError,
    ]
)

file_names = st.text(
    alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd")), min_size=1, max_size=20
)


# Property: Errors Become Failed Results
@given(error_type=error_types, name=file_names, message=st.text(max_size=50))
@settings(max_examples=100)
@pytest.mark.property_test
def test_any_error_becomes_failed_result(error_type, name, message):
    """Property: Errors Become Failed Results

    Every exception is turned into a FAILED result that carries a non-empty
    message and the input path, without raising.
    """
    input_path = Path(f"{name}.png")
    handler = ErrorHandler(logging.getLogger("test.errors"))

    result = handler.handle_error(error_type(message), {"input_path": input_path})

    assert result.status is RenderStatus.FAILED
    assert result.output_path is None
    assert result.input_path == input_path
    assert result.error_message
    if error_type not in (ValueError, RuntimeError):
        assert input_path.name in result.error_message


# Property: Undecodable Files Never Crash a Batch
@given(content=st.binary(max_size=512), extension=st.sampled_from([".png", ".jpg", ".webp"]))
@settings(max_examples=50, deadline=None)
@pytest.mark.property_test
def test_garbage_input_fails_cleanly(content, extension):
    """Property: Undecodable Files Never Crash a Batch

    Random bytes behind an image extension yield a FAILED result with a
    descriptive message and no output file.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        source = Path(tmpdir) / f"random{extension}"
        source.write_bytes(content)

        result = _process_single_file_worker(source, BatchConfig())

        assert result.status is RenderStatus.FAILED
        assert "random" in result.error_message
        assert not (Path(tmpdir) / "random_edited.png").exists()
