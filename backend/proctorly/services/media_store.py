"""
Proctorly Media Store
Disk-backed archive for session recordings.
"""

import logging
import os
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional

from proctorly.core.config import settings
from proctorly.core.exceptions import NotFound, ValidationError

logger = logging.getLogger("proctorly.media")

COPY_CHUNK_SIZE = 1024 * 1024


@dataclass
class MediaHandle:
    """An archived object located on disk; open() yields a fresh read handle."""
    path: Path
    total_size: int
    media_type: str

    def open(self) -> BinaryIO:
        return open(self.path, "rb")


@dataclass
class StoredMedia:
    path: Path
    filename: str
    size: int


def _safe_component(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", value)


class MediaStore:
    def __init__(self, root: Optional[Path] = None, max_bytes: Optional[int] = None,
                 media_type: Optional[str] = None):
        self.root = Path(root) if root is not None else settings.upload_path
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_upload_bytes
        self.media_type = media_type or settings.MEDIA_TYPE

    def contains(self, path) -> bool:
        """True when path resolves to a location inside the archive root."""
        try:
            Path(path).resolve().relative_to(self.root.resolve())
        except ValueError:
            return False
        return True

    def open(self, path) -> MediaHandle:
        if not path or not self.contains(path):
            raise NotFound("Video recording not found")
        p = Path(path).resolve()
        if not p.is_file():
            raise NotFound("Video file not found on disk")
        return MediaHandle(path=p, total_size=p.stat().st_size, media_type=self.media_type)

    def save(self, subject_id: str, source: BinaryIO, content_type: Optional[str]) -> StoredMedia:
        """Copy an uploaded recording into the archive in bounded chunks."""
        if not content_type or not content_type.startswith("video/"):
            raise ValidationError("Only video files are allowed")

        self.root.mkdir(parents=True, exist_ok=True)
        filename = f"recording_{_safe_component(subject_id)}_{int(time.time() * 1000)}.webm"
        dest = self.root / filename

        written = 0
        try:
            with open(dest, "wb") as out:
                while True:
                    chunk = source.read(COPY_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise ValidationError(
                            f"Recording exceeds the {self.max_bytes // (1024 * 1024)}MB limit"
                        )
                    out.write(chunk)
        except BaseException:
            self.discard(dest)
            raise

        logger.info(f"Stored recording {filename} ({written} bytes) for {subject_id}")
        return StoredMedia(path=dest, filename=filename, size=written)

    def discard(self, path) -> bool:
        """Best-effort removal of a stored or partially written object."""
        if not self.contains(path):
            logger.warning(f"Refusing to remove {path}: outside {self.root}")
            return False
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to clean up file {path}: {e}")
            return False


# ── Singleton accessor ───────────────────────────────────

_media_store: Optional[MediaStore] = None


def get_media_store() -> MediaStore:
    global _media_store
    if _media_store is None:
        _media_store = MediaStore()
    return _media_store
