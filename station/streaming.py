"""
Range-aware file streaming for demo playback.

Only single byte ranges are supported ("bytes=<start>-<end>"); anything the
parser cannot read is answered with 416 rather than falling back to the
whole file.
"""

import os
from pathlib import Path
from typing import Iterator, Optional, Tuple

from flask import Response
from werkzeug.http import parse_range_header

from shared.constants import AUDIO_MIMETYPES, DEFAULT_STREAM_CHUNK_SIZE, FALLBACK_MIMETYPE
from shared.errors import NotFound, RangeNotSatisfiable


def guess_mimetype(path: Path) -> str:
    return AUDIO_MIMETYPES.get(path.suffix.lower(), FALLBACK_MIMETYPE)


def parse_range(header: str, size: int) -> Tuple[int, int]:
    """
    Parse a Range header against a file size.

    Args:
        header: Raw header value, e.g. "bytes=0-1023"
        size: File size in bytes

    Returns:
        Inclusive (start, end) byte offsets

    Raises:
        RangeNotSatisfiable: malformed header, or either bound outside [0, size)
    """
    rng = parse_range_header(header.strip())
    if rng is None or rng.units != "bytes" or len(rng.ranges) != 1:
        raise RangeNotSatisfiable(size)

    start, stop = rng.ranges[0]
    if start < 0:
        # suffix ranges ("bytes=-500") are not supported
        raise RangeNotSatisfiable(size)
    end = stop - 1 if stop is not None else size - 1
    if start >= size or end >= size:
        raise RangeNotSatisfiable(size)
    return start, end


def iter_file(path: Path, start: int, length: int,
              chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield exactly ``length`` bytes of a file beginning at ``start``."""
    with open(path, "rb") as f:
        f.seek(start)
        remaining = length
        while remaining > 0:
            chunk = f.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def file_response(path: Path, range_header: Optional[str] = None,
                  chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE) -> Response:
    """
    Build a streaming response for a file, honoring a single byte range.

    A missing file or anything that is not a regular file raises NotFound.
    """
    if not path.is_file():
        raise NotFound(f"File not found: {path.name}")
    size = os.path.getsize(path)
    headers = {
        "Accept-Ranges": "bytes",
        "Content-Type": guess_mimetype(path),
    }

    if not range_header:
        headers["Content-Length"] = str(size)
        return Response(iter_file(path, 0, size, chunk_size), status=200,
                        headers=headers, direct_passthrough=True)

    start, end = parse_range(range_header, size)
    length = end - start + 1
    headers["Content-Range"] = f"bytes {start}-{end}/{size}"
    headers["Content-Length"] = str(length)
    return Response(iter_file(path, start, length, chunk_size), status=206,
                    headers=headers, direct_passthrough=True)
