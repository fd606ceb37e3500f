"""Unit tests for EditStore."""

import json
import logging
from unittest.mock import patch

import numpy as np
import pytest

from photo_adjust.codec import JPEG_MIME, PNG_MIME, decode_image
from photo_adjust.errors import StorageError, StorageQuotaError
from photo_adjust.models import AdjustmentParams, CropRect, EncodedImage
from photo_adjust.storage import EditStore
from tests.strategies import encode_array


@pytest.fixture
def store(tmp_path):
    return EditStore(tmp_path / "edits")


@pytest.fixture
def fixed_size_compression():
    """Make every compressed image and thumbnail exactly 50 bytes."""
    compressed = EncodedImage(data=b"x" * 50, width=1, height=1, mime_type=PNG_MIME)
    with (
        patch("photo_adjust.storage.compress_image", return_value=compressed),
        patch("photo_adjust.storage.create_thumbnail", return_value=compressed),
    ):
        yield


class TestSaveAndLoad:
    """Test saving and loading edits."""

    def test_empty_store(self, store):
        """Test a store with no index lists nothing."""
        assert store.list_edits() == []

    def test_save_png(self, store, png_bytes):
        """Test a PNG edit is stored losslessly with its params."""
        params = AdjustmentParams(saturation=140, crop=CropRect(0, 0, 4, 2))
        edit_id = store.save("beach", png_bytes, params)

        [edit] = store.list_edits()
        assert edit.edit_id == edit_id
        assert edit.name == "beach"
        assert edit.mime_type == PNG_MIME
        assert AdjustmentParams.from_dict(edit.params) == params

        loaded = store.load(edit_id)
        assert loaded.mime_type == PNG_MIME
        assert np.array_equal(decode_image(loaded.data).pixels, decode_image(png_bytes).pixels)

    def test_save_jpeg_is_recompressed(self, store, gradient_pixels):
        """Test non-PNG input is stored as JPEG."""
        edit_id = store.save("jpeg", encode_array(gradient_pixels, "JPEG"))

        assert store.list_edits()[0].image_file.endswith(".jpg")
        assert store.load(edit_id).mime_type == JPEG_MIME

    def test_thumbnail_is_downscaled(self, store):
        """Test thumbnails are at most 200 pixels wide."""
        data = encode_array(np.full((100, 400, 4), 90, dtype=np.uint8))
        edit_id = store.save("wide", data, max_size=300)

        assert decode_image(store.load(edit_id).data).size == (300, 75)
        assert decode_image(store.load(edit_id, thumbnail=True).data).size == (200, 50)

    def test_newest_first(self, store, png_bytes):
        """Test edits are listed newest first."""
        first = store.save("first", png_bytes)
        second = store.save("second", png_bytes)
        assert [e.edit_id for e in store.list_edits()] == [second, first]

    def test_load_unknown_id(self, store):
        """Test loading a missing edit raises StorageError."""
        with pytest.raises(StorageError, match="No saved edit"):
            store.load("nope")


class TestDeleteAndClear:
    """Test removing edits."""

    def test_delete(self, store, png_bytes):
        """Test delete removes the index entry and the files."""
        keep = store.save("keep", png_bytes)
        drop = store.save("drop", png_bytes)

        assert store.delete(drop) is True
        assert [e.edit_id for e in store.list_edits()] == [keep]
        assert not any(drop in path.name for path in store.root.iterdir())

    def test_delete_missing(self, store, png_bytes):
        """Test deleting an unknown id reports False."""
        store.save("only", png_bytes)
        assert store.delete("nope") is False
        assert len(store.list_edits()) == 1

    def test_clear(self, store, png_bytes):
        """Test clear leaves only an empty index."""
        store.save("a", png_bytes)
        store.save("b", png_bytes)
        store.clear()

        assert store.list_edits() == []
        assert [path.name for path in store.root.iterdir()] == [EditStore.INDEX_FILE]


class TestLimits:
    """Test the edit cap and quota recovery."""

    def test_max_edits(self, store, fixed_size_compression):
        """Test only the newest MAX_EDITS edits are retained."""
        ids = [store.save(f"edit {i}", b"") for i in range(EditStore.MAX_EDITS + 2)]

        edits = store.list_edits()
        assert len(edits) == EditStore.MAX_EDITS
        assert edits[0].edit_id == ids[-1]
        assert ids[0] not in {e.edit_id for e in edits}
        assert len(list(store.root.iterdir())) == EditStore.MAX_EDITS * 2 + 1

    def test_quota_keeps_recent_edits(self, tmp_path, fixed_size_compression, caplog):
        """Test exceeding the quota trims the store to the most recent edits."""
        caplog.set_level(logging.WARNING)
        store = EditStore(tmp_path, quota_bytes=1000)
        ids = [store.save(f"edit {i}", b"") for i in range(11)]

        edits = store.list_edits()
        assert [e.edit_id for e in edits] == ids[::-1][: EditStore.RECOVERY_KEEP]
        assert "quota exceeded" in caplog.text

    def test_quota_falls_back_to_new_edit_only(self, tmp_path, fixed_size_compression):
        """Test the store keeps only the new edit when nothing else fits."""
        store = EditStore(tmp_path, quota_bytes=150)
        store.save("old", b"")
        new = store.save("new", b"")

        assert [e.edit_id for e in store.list_edits()] == [new]

    def test_quota_too_small_for_one_edit(self, tmp_path, fixed_size_compression):
        """Test an edit larger than the whole quota is rejected."""
        store = EditStore(tmp_path, quota_bytes=50)
        with pytest.raises(StorageQuotaError):
            store.save("huge", b"")
        assert store.list_edits() == []

    def test_invalid_quota(self, tmp_path):
        """Test a non-positive quota is rejected."""
        with pytest.raises(ValueError):
            EditStore(tmp_path, quota_bytes=0)


class TestDamagedIndex:
    """Test recovery from a damaged index."""

    @pytest.mark.parametrize("content", ["not json", json.dumps({"a": 1}), json.dumps([{}])])
    def test_damaged_index_reads_empty(self, tmp_path, content, caplog):
        """Test an unreadable index is ignored with a warning."""
        caplog.set_level(logging.WARNING)
        (tmp_path / EditStore.INDEX_FILE).write_text(content, encoding="utf-8")

        assert EditStore(tmp_path).list_edits() == []
        assert "unreadable edit index" in caplog.text

    def test_save_replaces_damaged_index(self, tmp_path, png_bytes):
        """Test saving over a damaged index starts a fresh one."""
        (tmp_path / EditStore.INDEX_FILE).write_text("garbage", encoding="utf-8")
        store = EditStore(tmp_path)
        edit_id = store.save("fresh", png_bytes)

        assert [e.edit_id for e in store.list_edits()] == [edit_id]


class TestSharedDirectory:
    """Test a store rooted in a directory that also holds user files."""

    def test_user_files_survive_save_delete_and_clear(self, tmp_path, png_bytes):
        """Test only files created by the store are ever removed."""
        photo = tmp_path / "holiday.jpg"
        photo.write_bytes(b"user photo")
        rendered = tmp_path / "holiday_edited.png"
        rendered.write_bytes(png_bytes)
        store = EditStore(tmp_path)

        first = store.save("holiday", png_bytes)
        store.save("second", png_bytes)
        assert photo.read_bytes() == b"user photo"
        assert rendered.read_bytes() == png_bytes

        store.delete(first)
        assert photo.exists() and rendered.exists()

        store.clear()
        assert sorted(path.name for path in tmp_path.iterdir()) == [
            "holiday.jpg",
            "holiday_edited.png",
            EditStore.INDEX_FILE,
        ]

    def test_evicted_edits_are_removed(self, tmp_path, fixed_size_compression):
        """Test edits dropped by the cap lose their files but user files stay."""
        (tmp_path / "notes.txt").write_text("keep me", encoding="utf-8")
        store = EditStore(tmp_path)
        ids = [store.save(f"edit {i}", b"") for i in range(EditStore.MAX_EDITS + 1)]

        assert not any(ids[0] in path.name for path in tmp_path.iterdir())
        assert (tmp_path / "notes.txt").read_text(encoding="utf-8") == "keep me"
