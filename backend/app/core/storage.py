"""Local filesystem content storage.

Layout under the content root::

    uploads/<epoch-millis>-<original filename>   raw uploads
    <video_id>/<profile>.<ext>                   transcoded renditions
"""

import os
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

UPLOADS_DIR = "uploads"
COPY_CHUNK_SIZE = 1024 * 1024

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass
class StorageResult:
    """Result of a storage operation."""
    success: bool
    key: str
    path: str
    file_size: int = 0
    error_message: Optional[str] = None
    # client error (e.g. size limit) rather than a storage fault
    rejected: bool = False


def sanitize_filename(filename: Optional[str]) -> str:
    """Reduce a client-supplied filename to a safe basename."""
    name = os.path.basename((filename or "").replace("\\", "/"))
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).lstrip(".")
    return name or "upload"


def _copy_limited(src: BinaryIO, dst: BinaryIO, max_size: Optional[int]) -> Optional[int]:
    """Copy in chunks; None once more than ``max_size`` bytes were read."""
    copied = 0
    while True:
        chunk = src.read(COPY_CHUNK_SIZE)
        if not chunk:
            return copied
        copied += len(chunk)
        if max_size is not None and copied > max_size:
            return None
        dst.write(chunk)


class LocalStorage:
    """Local filesystem storage backend rooted at ``CONTENT_ROOT``."""

    def __init__(self, root: str | os.PathLike):
        # stored paths are absolute
        self.base_path = Path(root).resolve()

    def ensure_root(self) -> None:
        (self.base_path / UPLOADS_DIR).mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        """Get full path for a key."""
        return self.base_path / key

    def upload_key(self, filename: Optional[str], now_ms: Optional[int] = None) -> str:
        """Build the storage key for a raw upload."""
        millis = now_ms if now_ms is not None else int(time.time() * 1000)
        return f"{UPLOADS_DIR}/{millis}-{sanitize_filename(filename)}"

    def save_upload(
        self,
        fileobj: BinaryIO,
        filename: Optional[str],
        max_size: Optional[int] = None,
    ) -> StorageResult:
        """Persist an uploaded file object under ``uploads/``.

        The destination is created exclusively; a key collision gets a numeric
        suffix instead of overwriting another upload.
        """
        key = self.upload_key(filename)
        try:
            (self.base_path / UPLOADS_DIR).mkdir(parents=True, exist_ok=True)
            dest_path, key = self._open_exclusive(key)
            with dest_path.open("wb") as f:
                file_size = _copy_limited(fileobj, f, max_size)

            if file_size is None:
                dest_path.unlink(missing_ok=True)
                return StorageResult(
                    success=False,
                    key=key,
                    path="",
                    error_message=f"File exceeds maximum size of {max_size} bytes",
                    rejected=True,
                )

            return StorageResult(
                success=True,
                key=key,
                path=str(dest_path),
                file_size=file_size,
            )
        except OSError as e:
            return StorageResult(
                success=False,
                key=key,
                path="",
                error_message=str(e),
            )

    def _open_exclusive(self, key: str) -> tuple[Path, str]:
        candidate = key
        for attempt in range(1, 100):
            path = self._get_full_path(candidate)
            try:
                path.touch(exist_ok=False)
                return path, candidate
            except FileExistsError:
                directory, _, name = key.rpartition("/")
                candidate = f"{directory}/{attempt}-{name}"
        raise FileExistsError(f"Could not allocate a unique key for {key}")

    def variant_dir(self, video_id: uuid.UUID) -> Path:
        """Directory holding every rendition of one video."""
        return self.base_path / str(video_id)

    def variant_path(self, video_id: uuid.UUID, profile_name: str, extension: str) -> Path:
        """Deterministic output path for one rendition."""
        return self.variant_dir(video_id) / f"{profile_name}.{extension}"

    def delete(self, path: str | os.PathLike) -> bool:
        """Delete a stored file."""
        try:
            Path(path).unlink()
            return True
        except FileNotFoundError:
            return False
