"""
HLS Snapshot Pipeline

Periodically captures a still frame from live HLS streams and keeps a
bounded number of frames per stream on disk.
"""

__version__ = "1.0.0"

from .utils.config import load_config, get_config, Config, StreamConfig
from .utils.logger import setup_logging, get_logger
from .capture.orchestrator import CaptureOrchestrator
from .main import Pipeline, main

__all__ = [
    'load_config',
    'get_config',
    'Config',
    'StreamConfig',
    'setup_logging',
    'get_logger',
    'CaptureOrchestrator',
    'Pipeline',
    'main',
]
