"""
Capture module for the HLS snapshot pipeline.

Handles playlist resolution, segment download, FFmpeg frame extraction
and the polling timer.
"""

from .segment_fetcher import SegmentFetcher, parse_latest_segment
from .frame_extractor import FrameExtractor
from .orchestrator import CaptureOrchestrator

__all__ = [
    'SegmentFetcher',
    'parse_latest_segment',
    'FrameExtractor',
    'CaptureOrchestrator',
]
