"""
docapi — Image Upload Service
===============================

What:  Validates uploaded images, plans where they are stored, and resizes
       and stores them in the background.
How:   python-magic sniffs the real content type, Pillow re-encodes to a
       width-bounded JPEG in a worker thread, aiofiles writes the result, and
       tenacity retries transient OSErrors on the write.
Who:   Called by the create/update handlers of collections configured with
       an image folder.

Lifecycle of an uploaded image:
    1. Handler receives multipart upload with an `image` file
    2. validate()  → size and MIME checks (400 on failure, before any DB write)
    3. plan()      → public/images/<folder>/<epoch_ms>-<hex8>.jpg
    4. Handler stores the absolute URL on the document and writes it
    5. schedule()  → background task: decode → resize → JPEG → write
    6. Task failure is logged by _on_done; the response has already gone out

Directory Structure:
    <static_root>/
    └── public/
        └── images/
            └── products/
                ├── 1718000000000-3f9a1c2e.jpg
                └── 1718000004521-b04d77a1.jpg
"""

import asyncio
import io
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Optional, Set

import aiofiles
import magic
from PIL import Image, ImageOps, UnidentifiedImageError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docapi.config import settings
from docapi.exceptions import BadRequestError, FileStorageError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/webp"}

FOLDER_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# libmagic only needs the header bytes
SNIFF_BYTES = 2048


class ImageService:
    """
    Image validation, storage planning and background processing.

    Background tasks are kept in `_tasks` until they finish so they are not
    garbage-collected mid-flight; `drain()` waits for them at shutdown.
    """

    def __init__(self, static_root: Optional[str] = None):
        self._static_root = Path(static_root).resolve() if static_root else None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def root(self) -> Path:
        return self._static_root or settings.static_path

    # ── Validation ────────────────────────────────────────────────────────

    def validate(self, buffer: bytes, filename: str = "image") -> str:
        """
        Check an uploaded image before anything is written.

        Returns:
            Detected MIME type (e.g., "image/png")

        Raises:
            BadRequestError for empty, oversized, or non-image uploads
            FileStorageError if libmagic itself fails
        """
        if not buffer:
            raise BadRequestError(message="The uploaded image is empty.", field="image")

        if len(buffer) > settings.max_image_size:
            max_mb = settings.max_image_size / (1024 * 1024)
            raise BadRequestError(
                message=f"Image exceeds the maximum size of {max_mb:.0f}MB.",
                field="image",
                context={"size": len(buffer)},
            )

        try:
            mime_type = magic.from_buffer(buffer[:SNIFF_BYTES], mime=True)
        except magic.MagicException as e:
            logger.error("MIME type detection failed for %s: %s", filename, str(e))
            raise FileStorageError(
                message="Could not verify the image type. Please try again.",
                context={"error": str(e)},
            ) from e

        if mime_type not in ALLOWED_MIME_TYPES:
            raise BadRequestError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    "Please upload a JPEG, PNG or WebP image."
                ),
                field="image",
                context={"detected_mime": mime_type},
            )
        return mime_type

    # ── Paths ─────────────────────────────────────────────────────────────

    def plan(self, folder: str) -> str:
        """Relative storage path for a new image: public/images/<folder>/<epoch_ms>-<hex8>.jpg"""
        if not FOLDER_PATTERN.match(folder):
            raise ValueError(f"Invalid image folder name: {folder!r}")
        return f"public/images/{folder}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.jpg"

    def resolve(self, relative_path: str) -> Path:
        root = self.root
        target = (root / relative_path).resolve()
        if root not in target.parents:
            raise ValueError(f"Image path escapes the static root: {relative_path!r}")
        return target

    # ── Processing ────────────────────────────────────────────────────────

    @staticmethod
    def _render(buffer: bytes, width: int, quality: int) -> bytes:
        """Decode, orient, shrink to `width` (never enlarge) and encode as JPEG."""
        with Image.open(io.BytesIO(buffer)) as source:
            image = ImageOps.exif_transpose(source)
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            if image.width > width:
                height = max(1, round(image.height * width / image.width))
                image = image.resize((width, height), Image.Resampling.LANCZOS)
            output = io.BytesIO()
            image.save(output, format="JPEG", quality=quality)
            return output.getvalue()

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential(multiplier=settings.retry_min_wait, max=settings.retry_max_wait),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _write(self, target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target, "wb") as f:
            await f.write(data)

    async def resize_and_store(
        self,
        buffer: bytes,
        relative_path: str,
        width: Optional[int] = None,
    ) -> Path:
        """
        Resize `buffer` and write it to `relative_path` under the static root.

        Raises:
            FileStorageError if the image cannot be decoded or written after
            all retry attempts.
        """
        target = self.resolve(relative_path)
        width = width or settings.image_width

        try:
            data = await asyncio.to_thread(self._render, buffer, width, settings.image_quality)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            # OSError: truncated or otherwise unreadable image data
            raise FileStorageError(
                message="Uploaded image could not be decoded",
                context={"path": relative_path, "error": str(e)},
            ) from e

        try:
            await self._write(target, data)
        except OSError as e:
            raise FileStorageError(
                message="Failed to store processed image",
                context={"path": str(target), "os_error": str(e)},
            ) from e

        logger.info("Image stored: %s (%d bytes, width<=%d)", relative_path, len(data), width)
        return target

    # ── Background tasks ──────────────────────────────────────────────────

    def schedule(
        self,
        buffer: bytes,
        relative_path: str,
        width: Optional[int] = None,
    ) -> asyncio.Task:
        """
        Start resize_and_store without awaiting it.

        The caller never sees the outcome; failures are reported through the
        log by `_on_done`.
        """
        task = asyncio.create_task(
            self.resize_and_store(buffer, relative_path, width),
            name=f"resize:{relative_path}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background image task cancelled: %s", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background image task failed: %s: %s",
                task.get_name(),
                exc,
                exc_info=exc,
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every scheduled image task (used at shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


image_service = ImageService()
