"""
Temporary file handling for downloaded videos.
Downloads, size checks, and best-effort cleanup.
"""

import time
import uuid
import logging
import aiofiles
import httpx
from pathlib import Path
from typing import Optional

from config import settings
from utils.exceptions import DownloadFailedError

logger = logging.getLogger(__name__)


class FileService:
    """Service for the temp files a transcription job creates."""

    def __init__(self, temp_dir: Optional[Path] = None, timeout: Optional[float] = None):
        self.temp_dir = Path(temp_dir or settings.temp_dir)
        self.timeout = timeout or settings.download_timeout_seconds

    def get_temp_file_path(self, extension: str = "mp4") -> Path:
        """Unique path in the temp directory for a new download."""
        filename = f"post-video-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.{extension}"
        return self.temp_dir / filename

    async def download_file(
        self,
        url: str,
        output_path: Path,
        chunk_size: int = 1024 * 1024  # 1MB chunks
    ) -> int:
        """
        Stream a remote file to disk.

        Returns:
            Number of bytes written

        Raises:
            DownloadFailedError: on any network or disk failure
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        total_size = 0
        try:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    async with aiofiles.open(output_path, 'wb') as out_file:
                        async for chunk in response.aiter_bytes(chunk_size):
                            total_size += len(chunk)
                            await out_file.write(chunk)
        except Exception as e:
            logger.error(f"Failed to download {url}: {e}")
            await self.cleanup_file(output_path)
            raise DownloadFailedError(f"Failed to download file: {str(e)}")

        logger.info(f"Downloaded {output_path.name} ({total_size} bytes)")
        return total_size

    async def cleanup_file(self, file_path: Path) -> bool:
        """Delete a file if it exists. Failures are logged, never raised."""
        path = Path(file_path)
        try:
            if path.exists():
                path.unlink()
                logger.info(f"Deleted temp file: {path.name}")
                return True
        except OSError as e:
            logger.error(f"Failed to cleanup file {path}: {e}")
        return False

    def get_file_size(self, file_path: Path) -> int:
        """Size in bytes, 0 if the file cannot be read."""
        try:
            return Path(file_path).stat().st_size
        except OSError:
            return 0

    def is_file_size_valid(self, file_path: Path, max_size_mb: Optional[int] = None) -> bool:
        """Whether the file fits under the limit (the Whisper API cap by default)."""
        max_mb = max_size_mb if max_size_mb is not None else settings.max_video_size_mb
        return self.get_file_size(file_path) <= max_mb * 1024 * 1024
