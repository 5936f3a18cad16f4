"""
Local file storage for uploaded book attachments.
Files are written under a directory and referenced by URL.
"""

import re
import uuid
from pathlib import Path
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class LocalFileStorage:
    """
    Stores uploads on the local filesystem.

    Each stored file gets a unique name; the returned URL is the public
    mount point joined with that name.
    """

    def __init__(self, upload_dir: str, base_url: str = "/uploads"):
        """
        Initialize the storage.

        Args:
            upload_dir: Directory receiving uploaded files (created if missing)
            base_url: URL prefix under which the directory is served
        """
        self.upload_dir = Path(upload_dir)
        self.base_url = base_url.rstrip("/")
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def save(self, filename: Optional[str], content: bytes) -> str:
        """
        Write an uploaded file.

        Args:
            filename: Original client-side file name
            content: File bytes

        Returns:
            URL referencing the stored file
        """
        safe_name = _UNSAFE_CHARS.sub("_", Path(filename or "upload").name) or "upload"
        stored_name = f"{uuid.uuid4().hex}-{safe_name}"
        (self.upload_dir / stored_name).write_bytes(content)
        logger.info("Stored upload", file=stored_name, size=len(content))
        return f"{self.base_url}/{stored_name}"

    def delete(self, url: str) -> bool:
        """
        Remove a previously stored file.

        Returns:
            True if a file was removed, False if the URL is not ours or the
            file is already gone
        """
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            return False
        path = self.upload_dir / Path(url[len(prefix):]).name
        if not path.exists():
            return False
        path.unlink()
        logger.info("Deleted upload", file=path.name)
        return True
