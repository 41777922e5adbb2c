"""
File content loader.

Fetches an uploaded file from object storage, decodes it as text and bounds
its length so the prompt size stays predictable. A failed fetch is a soft
failure: the loader reports it on the returned LoadedFile and never raises.
"""
import asyncio
from typing import Optional, Protocol

from supabase import Client

from flowbot.core.errors import FileLoadError
from flowbot.core.logging import get_logger
from flowbot.core.metrics import record_degraded, record_file_size
from flowbot.services.assistant.schema import LoadedFile

logger = get_logger(__name__)

TRUNCATION_MARKER = "\n[truncated]"


class ObjectStorage(Protocol):
    def download(self, path: str) -> bytes:
        """Return the blob at path; raise if it does not exist."""
        ...


class SupabaseObjectStorage:
    """ObjectStorage backed by a Supabase Storage bucket."""

    def __init__(self, client: Client, bucket: str = "user-files"):
        self.client = client
        self.bucket = bucket

    def download(self, path: str) -> bytes:
        return self.client.storage.from_(self.bucket).download(path)


def decode_text(blob: bytes) -> str:
    """Decode as UTF-8 (BOM tolerated); undecodable bytes become U+FFFD."""
    return blob.decode("utf-8-sig", errors="replace")


def truncate_text(text: str, max_chars: int) -> tuple[str, bool]:
    if len(text) <= max_chars:
        return text, False
    return text[:max_chars] + TRUNCATION_MARKER, True


class FileContentLoader:
    """Loads the text of a referenced file for the text prompt."""

    def __init__(
        self,
        storage: Optional[ObjectStorage],
        max_chars: int = 4000,
        timeout_seconds: float = 10.0,
    ):
        self.storage = storage
        self.max_chars = max_chars
        self.timeout_seconds = timeout_seconds

    async def _fetch(self, file_ref: str) -> bytes:
        if self.storage is None:
            raise FileLoadError(file_ref, "Object storage is not configured")
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.storage.download, file_ref),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise FileLoadError(
                file_ref, f"Download timed out after {self.timeout_seconds}s", cause=exc
            ) from exc
        except Exception as exc:
            raise FileLoadError(file_ref, f"Download failed: {exc}", cause=exc) from exc

    async def load(self, file_ref: Optional[str]) -> LoadedFile:
        """
        Load and bound the text of file_ref.

        Returns:
            LoadedFile with load_succeeded=True and empty text when no file was
            referenced, load_succeeded=False when the fetch failed.
        """
        if not file_ref or not file_ref.strip():
            return LoadedFile()

        try:
            blob = await self._fetch(file_ref)
        except FileLoadError as exc:
            record_degraded("file_load")
            logger.warning(
                "file_load_failed",
                file_ref=file_ref,
                error=exc.message,
                error_type=type(exc.cause).__name__ if exc.cause else type(exc).__name__,
            )
            return LoadedFile(source_ref=file_ref, load_succeeded=False)

        record_file_size(len(blob))
        text, truncated = truncate_text(decode_text(blob), self.max_chars)
        logger.info(
            "file_loaded",
            file_ref=file_ref,
            size_bytes=len(blob),
            text_chars=len(text),
            truncated=truncated,
        )
        return LoadedFile(
            raw_text=text,
            source_ref=file_ref,
            load_succeeded=True,
            truncated=truncated,
        )
