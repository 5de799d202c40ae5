"""
Proctorly Range Streaming
Serves an archived recording as a whole (200) or as an inclusive byte
slice (206) for seek/resume, reading the file in bounded chunks.

Out-of-bounds policy: ranges are never clamped. A range whose start or end
falls outside the object, or that cannot be parsed, raises RangeError
(416 with ``Content-Range: bytes */<size>``).
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional, Tuple

from proctorly.core.config import settings
from proctorly.core.exceptions import RangeError
from proctorly.services.media_store import MediaHandle

logger = logging.getLogger("proctorly.streaming")

_RANGE_RE = re.compile(r"^bytes=(\d+)-(\d*)$")


@dataclass
class StreamResult:
    status_code: int
    headers: Dict[str, str]
    body: AsyncIterator[bytes] = field(repr=False)
    media_type: str = "application/octet-stream"


def parse_range(range_header: str, total_size: int) -> Tuple[int, int]:
    """
    Parse ``bytes=start-end`` (end optional) into an inclusive (start, end).

    Only the single first-byte-pos form is accepted; suffix and
    multi-range requests are rejected.
    """
    match = _RANGE_RE.match(range_header.strip())
    if not match:
        raise RangeError(f"Malformed range: {range_header!r}", total_size=total_size)

    start = int(match.group(1))
    end = int(match.group(2)) if match.group(2) else total_size - 1

    if start > end or end >= total_size:
        raise RangeError(
            f"Range {start}-{end} not satisfiable for {total_size} bytes",
            total_size=total_size,
        )
    return start, end


async def iter_file_range(handle: MediaHandle, start: int, length: int,
                          chunk_size: int) -> AsyncIterator[bytes]:
    """
    Yield ``length`` bytes from ``start``, one bounded read at a time.

    Reads run in the default executor so the event loop is free between
    chunks. The file is opened on first iteration and closed when the
    iterator finishes, is closed, or is cancelled.
    """
    loop = asyncio.get_running_loop()
    f = await loop.run_in_executor(None, handle.open)
    try:
        if start:
            await loop.run_in_executor(None, f.seek, start)
        remaining = length
        while remaining > 0:
            data = await loop.run_in_executor(None, f.read, min(chunk_size, remaining))
            if not data:
                break
            remaining -= len(data)
            yield data
    finally:
        f.close()


def serve(handle: MediaHandle, range_header: Optional[str] = None,
          chunk_size: Optional[int] = None) -> StreamResult:
    chunk_size = chunk_size or settings.STREAM_CHUNK_SIZE
    total_size = handle.total_size

    if not range_header:
        return StreamResult(
            status_code=200,
            headers={
                "Content-Length": str(total_size),
                "Content-Type": handle.media_type,
                "Accept-Ranges": "bytes",
            },
            body=iter_file_range(handle, 0, total_size, chunk_size),
            media_type=handle.media_type,
        )

    start, end = parse_range(range_header, total_size)
    length = end - start + 1
    logger.debug(f"Serving bytes {start}-{end}/{total_size} of {handle.path.name}")
    return StreamResult(
        status_code=206,
        headers={
            "Content-Range": f"bytes {start}-{end}/{total_size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(length),
            "Content-Type": handle.media_type,
        },
        body=iter_file_range(handle, start, length, chunk_size),
        media_type=handle.media_type,
    )
