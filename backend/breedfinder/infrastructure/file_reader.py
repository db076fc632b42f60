"""File Ingestion — user-supplied picture → base64 data URL.

Invariants:
    - read_data_url() either returns a complete data URL or raises
    - Failures raise ReadError("failed") (missing, unreadable, not an image, too large)
    - Cancellation propagates; the effect running the read reports it as an
      "aborted" ReadError message
    - The event loop never blocks: disk IO runs in a worker thread

Design Decisions:
    - asyncio.to_thread over aiofiles: one read per picture, no extra dependency
    - Media type from the file extension (mimetypes), like a browser FileReader
"""

import asyncio
import base64
import logging
import mimetypes
from pathlib import Path

from breedfinder.core.errors import ReadError

logger = logging.getLogger(__name__)

MAX_PICTURE_BYTES = 10 * 1024 * 1024


class FileReader:
    """Reads pictures from the local filesystem."""

    def __init__(self, max_bytes: int = MAX_PICTURE_BYTES):
        self.max_bytes = max_bytes

    async def read_data_url(self, path: Path) -> str:
        media_type = guess_media_type(path)
        if media_type is None:
            raise ReadError(ReadError.FAILED, f"{path.name} is not a picture")
        try:
            raw = await asyncio.to_thread(self._read_bytes, path)
        except asyncio.CancelledError:
            logger.info(f"Picture read aborted: {path}")
            raise
        except OSError as e:
            raise ReadError(ReadError.FAILED, e.strerror or str(e))
        encoded = base64.b64encode(raw).decode("ascii")
        return f"data:{media_type};base64,{encoded}"

    def _read_bytes(self, path: Path) -> bytes:
        size = path.stat().st_size
        if size > self.max_bytes:
            raise OSError(f"{path.name} is larger than {self.max_bytes} bytes")
        return path.read_bytes()


def guess_media_type(path: Path) -> str | None:
    media_type, _ = mimetypes.guess_type(path.name)
    if media_type and media_type.startswith("image/"):
        return media_type
    return None
