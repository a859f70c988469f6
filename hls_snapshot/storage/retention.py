"""
Retention of captured frames.

Keeps only the newest frames of each stream directory, by modification time.
"""

from pathlib import Path
from typing import Optional

from ..utils.config import StreamConfig
from ..utils.logger import get_logger


logger = get_logger(__name__)


class RetentionManager:
    """
    Enforces the per-stream frame cap.

    Policy is keep-newest: files are ordered by mtime and all but the
    newest `keep_frames` are deleted. The directory is listed fresh on
    every run; cleanup is best-effort and never raises.
    """

    def __init__(self, config: StreamConfig):
        """
        Initialize retention manager.

        Args:
            config: Capture settings (output_dir, keep_frames)
        """
        self.config = config
        self.keep = max(1, config.keep_frames)

    def _list_frames(self, stream_dir: Path) -> list[tuple[float, str, Path]]:
        entries = []
        for path in stream_dir.iterdir():
            try:
                stat = path.stat()
            except FileNotFoundError:
                # Removed by a concurrent run
                continue
            if path.is_file():
                entries.append((stat.st_mtime, path.name, path))
        entries.sort()
        return entries

    def enforce_retention(self, stream_id: str, protected_path: Optional[Path] = None) -> list[Path]:
        """
        Delete all but the newest frames of a stream.

        Args:
            stream_id: Stream identifier
            protected_path: File that must survive regardless of its mtime

        Returns:
            Paths that were deleted
        """
        stream_dir = self.config.stream_dir(stream_id)

        try:
            entries = self._list_frames(stream_dir)
        except OSError as e:
            logger.error(f"[{stream_id}] Cleanup skipped, cannot list {stream_dir}: {e}")
            return []

        protected = Path(protected_path) if protected_path else None
        deleted = []

        for _, _, path in entries[:-self.keep]:
            if protected is not None and path == protected:
                continue
            try:
                path.unlink()
                deleted.append(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"[{stream_id}] Failed to delete {path.name}: {e}")

        if deleted:
            logger.debug(f"[{stream_id}] Cleaned up {len(deleted)} old frames")

        return deleted
