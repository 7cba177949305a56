"""HTTP byte-range streaming for stored renditions.

Supports a single range per request: ``bytes=start-end``, ``bytes=start-``
and the suffix form ``bytes=-N``. Anything else, and any range that does not
overlap the file, is rejected before the file is opened.
"""

import mimetypes
import os
import re
from dataclasses import dataclass
from typing import Iterator, Optional

from fastapi.responses import StreamingResponse

CHUNK_SIZE = 1024 * 1024
DEFAULT_MEDIA_TYPE = "video/mp4"

_DIGITS_RE = re.compile(r"[0-9]+")


class RangeNotSatisfiableError(Exception):
    """The Range header is malformed or outside the file."""

    def __init__(self, file_size: int, reason: str):
        self.file_size = file_size
        self.reason = reason
        super().__init__(reason)

    @property
    def content_range(self) -> str:
        return f"bytes */{self.file_size}"


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte window within a file."""

    start: int
    end: int
    file_size: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def content_range(self) -> str:
        return f"bytes {self.start}-{self.end}/{self.file_size}"


def parse_range_header(header: str, file_size: int) -> ByteRange:
    """Parse a single-range ``Range`` header against a file size.

    ``end`` defaults to the last byte and is clamped to it when it points past
    the end of the file.

    Raises:
        RangeNotSatisfiableError: If the header is malformed, asks for more
            than one range, or does not overlap the file
    """
    unit, sep, ranges = header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        raise RangeNotSatisfiableError(file_size, "Range unit must be bytes")
    if "," in ranges:
        raise RangeNotSatisfiableError(file_size, "Multiple ranges are not supported")

    start_s, dash, end_s = ranges.strip().partition("-")
    start_s, end_s = start_s.strip(), end_s.strip()
    if not dash:
        raise RangeNotSatisfiableError(file_size, "Malformed range")

    if start_s == "":
        # Suffix range: the last N bytes.
        if not _DIGITS_RE.fullmatch(end_s):
            raise RangeNotSatisfiableError(file_size, "Malformed suffix range")
        suffix = int(end_s)
        if suffix == 0 or file_size == 0:
            raise RangeNotSatisfiableError(file_size, "Empty suffix range")
        return ByteRange(max(0, file_size - suffix), file_size - 1, file_size)

    if not _DIGITS_RE.fullmatch(start_s) or (end_s and not _DIGITS_RE.fullmatch(end_s)):
        raise RangeNotSatisfiableError(file_size, "Range bounds must be numeric")

    start = int(start_s)
    end = int(end_s) if end_s else file_size - 1

    if end_s and start > end:
        raise RangeNotSatisfiableError(file_size, "Range start is after range end")
    if start >= file_size:
        raise RangeNotSatisfiableError(file_size, "Range start is beyond end of file")

    return ByteRange(start, min(end, file_size - 1), file_size)


def media_type_for(path: str) -> str:
    media_type, _ = mimetypes.guess_type(path)
    if media_type and media_type.startswith("video/"):
        return media_type
    return DEFAULT_MEDIA_TYPE


def iter_file(path: str, start: int, length: int, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield exactly ``length`` bytes from ``start`` (fewer if the file shrank)."""
    with open(path, "rb") as f:
        f.seek(start)
        remaining = length
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def build_stream_response(path: str, range_header: Optional[str]) -> StreamingResponse:
    """Full-body 200 or partial-content 206 response for ``path``.

    Raises:
        FileNotFoundError: If the file disappeared
        RangeNotSatisfiableError: If the Range header cannot be served
    """
    file_size = os.stat(path).st_size
    media_type = media_type_for(path)

    if not range_header:
        headers = {
            "Content-Length": str(file_size),
            "Accept-Ranges": "bytes",
        }
        return StreamingResponse(
            iter_file(path, 0, file_size),
            status_code=200,
            headers=headers,
            media_type=media_type,
        )

    byte_range = parse_range_header(range_header, file_size)
    headers = {
        "Content-Range": byte_range.content_range,
        "Accept-Ranges": "bytes",
        "Content-Length": str(byte_range.length),
    }
    return StreamingResponse(
        iter_file(path, byte_range.start, byte_range.length),
        status_code=206,
        headers=headers,
        media_type=media_type,
    )
