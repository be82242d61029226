from __future__ import annotations

import time
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from rfq_sheet.core.config import settings
from rfq_sheet.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)

_CHUNK_SIZE = 64 * 1024


class UploadTooLargeError(ValueError):
    def __init__(self, *, limit: int) -> None:
        super().__init__(f"Upload exceeds {limit} bytes")
        self.limit = limit


@asynccontextmanager
async def scratch_upload(
    upload: UploadFile, *, max_bytes: int, root: Path | None = None
) -> AsyncIterator[Path]:
    """
    Stream an upload into a private scratch file and yield its path.

    The file is removed when the block exits, whether the caller succeeded or not.
    Raises `UploadTooLargeError` as soon as more than `max_bytes` have been read.
    """
    base = root or settings.upload_scratch_path
    base.mkdir(parents=True, exist_ok=True)
    path = base / f"{uuid.uuid4().hex}.pdf"
    start = time.monotonic()
    try:
        byte_size = 0
        with path.open("wb") as fh:
            while True:
                chunk = await upload.read(_CHUNK_SIZE)
                if not chunk:
                    break
                byte_size += len(chunk)
                if byte_size > max_bytes:
                    raise UploadTooLargeError(limit=max_bytes)
                await run_in_threadpool(fh.write, chunk)
        log_event(
            logger,
            "scratch.put",
            scratch_path=str(path),
            byte_size=byte_size,
            duration_ms=monotonic_ms(start),
        )
        yield path
    finally:
        _discard(path)


def _discard(path: Path) -> None:
    if not path.exists():
        return
    try:
        path.unlink()
    except OSError:
        log_exception(logger, "scratch.delete.failure", scratch_path=str(path))
        raise
    log_event(logger, "scratch.delete", scratch_path=str(path))
