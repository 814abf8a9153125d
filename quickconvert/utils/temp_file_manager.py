"""
Temporary File Management for uploads and conversion artifacts.

One TempFileManager owns one directory. It provides:
- Unique naming (kind prefix + millisecond timestamp + random suffix)
- Streaming upload storage with a size ceiling
- Best-effort deletion, immediate or delayed
- Context manager support for consuming request inputs
- An expiry sweep for artifacts that are never downloaded
"""

import asyncio
import os
import re
import shutil
import tempfile
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from fastapi import UploadFile

from ..config import DEFAULT_TEMP_DIR
from ..models import UploadedFile
from .error_handling import ErrorCode, QuickConvertError
from .logging_config import get_logger
from .mime_detector import get_mime_detector

logger = get_logger()

UPLOAD_CHUNK_SIZE = 1024 * 1024

_SAFE_EXTENSION = re.compile(r"\.[a-z0-9]{1,10}")


class TempFileError(QuickConvertError):
    """Raised when the store cannot write a file."""
    error_code = ErrorCode.INTERNAL_ERROR


class FileTooLargeError(QuickConvertError):
    """Raised when an upload exceeds the per-file size ceiling."""
    error_code = ErrorCode.FILE_TOO_LARGE


class TempFileManager:
    """
    Temporary file store shared by every request of one application.

    Paths handed out by the manager are never reused, so concurrent requests
    need no locking as long as each one only touches the paths it allocated.
    """

    def __init__(self, base_dir: str = DEFAULT_TEMP_DIR):
        """
        Initialize the temporary file manager.

        Args:
            base_dir: Directory holding uploads and artifacts
        """
        self.base_dir = Path(base_dir)
        self._pending: Dict[str, asyncio.TimerHandle] = {}

        self.base_dir.mkdir(parents=True, exist_ok=True)

    # Lifecycle

    def start(self):
        """Make sure the directory exists before serving requests."""
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Temporary file store ready at {self.base_dir}")

    def shutdown(self):
        """Run every pending delayed deletion immediately."""
        pending = list(self._pending.items())
        self._pending.clear()
        for path, handle in pending:
            handle.cancel()
            self.delete(path)
        if pending:
            logger.info(f"Flushed {len(pending)} pending deletions on shutdown")

    # Naming

    def generate_filename(self, prefix: str = "temp", extension: Optional[str] = None) -> str:
        """
        Generate a unique filename.

        Args:
            prefix: Filename prefix (the conversion kind's prefix for artifacts)
            extension: File extension, with or without the dot

        Returns:
            ``<prefix>_<epoch millis>_<8 hex chars><.ext>``
        """
        ext = extension or ""
        if ext and not ext.startswith("."):
            ext = f".{ext}"
        timestamp = int(time.time() * 1000)
        return f"{prefix}_{timestamp}_{uuid.uuid4().hex[:8]}{ext}"

    def allocate(self, prefix: str = "temp", extension: Optional[str] = None) -> str:
        """Return a fresh path inside the store. Nothing is created on disk."""
        return str(self.base_dir / self.generate_filename(prefix, extension))

    @contextmanager
    def scratch_dir(self, prefix: str = "work"):
        """
        Yield a private working directory inside the store, removed on exit.

        External tools that write next to their output (page renders, office
        exports) run here so stray files never mix with downloadable artifacts.
        """
        path = tempfile.mkdtemp(prefix=f"{prefix}_", dir=self.base_dir)
        try:
            yield path
        finally:
            shutil.rmtree(path, ignore_errors=True)

    @contextmanager
    def producing(self, file_path: str):
        """Delete a partly written output if the block raises."""
        try:
            yield file_path
        except BaseException:
            self.delete(file_path)
            raise

    # Uploads

    async def save_upload(self, upload: UploadFile, max_size: int) -> UploadedFile:
        """
        Stream an upload into the store.

        Args:
            upload: Incoming multipart file
            max_size: Per-file size ceiling in bytes

        Returns:
            UploadedFile describing the stored copy

        Raises:
            FileTooLargeError: If the upload exceeds max_size (nothing is left on disk)
            TempFileError: If the file cannot be written
        """
        filename = upload.filename or "upload"
        extension = Path(filename).suffix.lower()
        if not _SAFE_EXTENSION.fullmatch(extension):
            extension = ""

        path = self.allocate("upload", extension)
        size = 0
        try:
            with open(path, "wb") as out:
                while True:
                    chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_size:
                        raise FileTooLargeError(
                            f"File too large. Maximum file size is {max_size // (1024 * 1024)}MB."
                        )
                    out.write(chunk)
        except FileTooLargeError:
            self.delete(path)
            raise
        except OSError as e:
            self.delete(path)
            logger.error(f"Failed to store upload {filename}: {e}")
            raise TempFileError(f"Failed to store upload: {e}")
        finally:
            await upload.close()

        content_type = get_mime_detector().resolve_content_type(upload.content_type, filename, path)
        logger.debug(f"Stored upload {filename} ({size} bytes, {content_type}) at {path}")
        return UploadedFile(filename=filename, content_type=content_type, size=size, path=path,
                            declared_type=upload.content_type or "")

    # Deletion

    def delete(self, file_path: str) -> bool:
        """Delete one file. A missing file is not an error; failures are logged."""
        try:
            os.remove(file_path)
            logger.debug(f"Cleaned up temporary file: {file_path}")
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to cleanup temp file {file_path}: {e}")
            return False

    def delete_many(self, file_paths: Iterable[str]):
        for path in file_paths:
            self.delete(path)

    @contextmanager
    def consuming(self, files: Iterable[UploadedFile]):
        """
        Delete the given inputs when the block exits, however it exits.

        Usage:
            with manager.consuming(request.files):
                ...  # run the recipe
        """
        paths = [f.path for f in files]
        try:
            yield paths
        finally:
            self.delete_many(paths)

    async def delete_after_delay(self, file_path: str, delay: float):
        """Schedule deletion on the running event loop and return immediately."""
        loop = asyncio.get_running_loop()
        previous = self._pending.pop(file_path, None)
        if previous is not None:
            previous.cancel()
        self._pending[file_path] = loop.call_later(delay, self._run_scheduled_delete, file_path)
        logger.debug(f"Scheduled deletion of {file_path} in {delay}s")

    def _run_scheduled_delete(self, file_path: str):
        self._pending.pop(file_path, None)
        self.delete(file_path)

    def is_scheduled(self, file_path: str) -> bool:
        return file_path in self._pending

    # Lookup

    def resolve(self, name: str) -> Optional[str]:
        """
        Map a download name to a path inside the store.

        Returns None for anything that is not a bare file name or does not
        exist.
        """
        if not name or name in (".", "..") or Path(name).name != name or "\\" in name:
            return None
        path = self.base_dir / name
        if not path.is_file():
            return None
        return str(path)

    def list_files(self) -> List[str]:
        """Names of all regular files currently in the store."""
        return sorted(p.name for p in self.base_dir.iterdir() if p.is_file())

    def sweep_expired(self, max_age: float) -> int:
        """Delete files older than max_age seconds. Returns how many were removed."""
        cutoff = time.time() - max_age
        removed = 0
        for path in self.base_dir.iterdir():
            try:
                if path.is_file() and path.stat().st_mtime < cutoff:
                    if self.delete(str(path)):
                        removed += 1
            except FileNotFoundError:
                continue
        if removed:
            logger.info(f"Expired {removed} unclaimed files from {self.base_dir}")
        return removed

    async def run_sweeper(self, interval: float, max_age: float):
        """Periodically sweep expired files until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                await asyncio.to_thread(self.sweep_expired, max_age)
            except OSError as e:
                logger.warning(f"Expiry sweep failed: {e}")

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the store."""
        files = self.list_files()
        total_size = 0
        for name in files:
            try:
                total_size += (self.base_dir / name).stat().st_size
            except FileNotFoundError:
                continue

        return {
            "base_dir": str(self.base_dir),
            "file_count": len(files),
            "total_size_bytes": total_size,
            "pending_deletions": len(self._pending),
        }
