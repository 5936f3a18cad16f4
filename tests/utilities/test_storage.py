"""
Tests for local upload storage.
"""

import pytest

from utilities.storage import LocalFileStorage


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(str(tmp_path / "nested" / "uploads"), base_url="/uploads/")


class TestLocalFileStorage:
    """Test cases for LocalFileStorage."""

    def test_creates_directory(self, storage):
        assert storage.upload_dir.is_dir()

    def test_save_returns_unique_urls(self, storage):
        first = storage.save("book.pdf", b"one")
        second = storage.save("book.pdf", b"two")

        assert first != second
        assert first.startswith("/uploads/")
        assert first.endswith("-book.pdf")
        assert (storage.upload_dir / first.rsplit("/", 1)[1]).read_bytes() == b"one"

    def test_save_sanitizes_filename(self, storage):
        url = storage.save("../../etc/my book?.pdf", b"x")

        stored_name = url.rsplit("/", 1)[1]
        assert "/" not in stored_name
        assert stored_name.endswith("-my_book_.pdf")
        assert (storage.upload_dir / stored_name).exists()

    def test_save_without_filename(self, storage):
        url = storage.save(None, b"x")
        assert url.endswith("-upload")

    def test_delete(self, storage):
        url = storage.save("book.pdf", b"x")

        assert storage.delete(url) is True
        assert storage.delete(url) is False

    def test_delete_foreign_url(self, storage):
        assert storage.delete("https://example.com/book.pdf") is False
