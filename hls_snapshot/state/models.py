"""
Data models for the HLS snapshot pipeline.

Defines capture stages, captured frames and per-stream statistics.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional


class CaptureStage(Enum):
    """Stages of a single capture attempt, in execution order."""

    RESOLVE = "resolve"   # Fetch playlist and pick the segment
    FETCH = "fetch"       # Download the segment
    EXTRACT = "extract"   # Decode one frame with FFmpeg
    PERSIST = "persist"   # Write the JPEG to disk
    CLEANUP = "cleanup"   # Apply retention


def timestamp_now() -> datetime:
    """Current local time, timezone-aware, truncated to the second."""
    return datetime.now().astimezone().replace(microsecond=0)


@dataclass
class CapturedFrame:
    """
    A JPEG frame written to <output_dir>/<stream_id>/<timestamp>.jpeg.
    """

    stream_id: str
    path: Path
    captured_at: datetime = field(default_factory=timestamp_now)
    size: int = 0

    def __post_init__(self):
        if isinstance(self.path, str):
            self.path = Path(self.path)

    @staticmethod
    def filename_for(captured_at: datetime) -> str:
        """RFC 3339 file name for a capture time."""
        return f"{captured_at.isoformat(timespec='seconds')}.jpeg"

    def to_dict(self) -> dict:
        return {
            'stream_id': self.stream_id,
            'path': str(self.path),
            'captured_at': self.captured_at.isoformat(),
            'size': self.size,
        }


@dataclass
class StreamStats:
    """Running counters for one stream, owned by the orchestrator."""

    stream_id: str

    attempts: int = 0
    successes: int = 0
    failures: int = 0
    skipped: int = 0

    last_stage: Optional[CaptureStage] = None
    last_error: Optional[str] = None
    last_frame: Optional[Path] = None
    last_success_at: Optional[datetime] = None

    def mark_started(self) -> None:
        self.attempts += 1
        self.last_stage = None

    def mark_stage(self, stage: CaptureStage) -> None:
        self.last_stage = stage

    def mark_succeeded(self, frame: CapturedFrame) -> None:
        """Record a frame written by an attempt."""
        self.successes += 1
        self.last_error = None
        self.last_frame = frame.path
        self.last_success_at = frame.captured_at

    def mark_failed(self, error: str) -> None:
        self.failures += 1
        self.last_error = error

    def mark_skipped(self) -> None:
        self.skipped += 1

    def to_dict(self) -> dict:
        """Convert to dictionary for status logging."""
        return {
            'stream_id': self.stream_id,
            'attempts': self.attempts,
            'successes': self.successes,
            'failures': self.failures,
            'skipped': self.skipped,
            'last_stage': self.last_stage.value if self.last_stage else None,
            'last_error': self.last_error,
            'last_frame': str(self.last_frame) if self.last_frame else None,
            'last_success_at': self.last_success_at.isoformat() if self.last_success_at else None,
        }
