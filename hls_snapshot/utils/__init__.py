"""
Utilities module for the HLS snapshot pipeline.
"""

from .config import load_config, get_config, Config, StreamConfig
from .logger import setup_logging, setup_from_config, get_logger
from .exceptions import (
    PipelineError,
    ConfigurationError,
    CaptureError,
    TransportError,
    HTTPStatusError,
    PlaylistFormatError,
    ExtractionError,
    FilesystemError,
)

__all__ = [
    'load_config',
    'get_config',
    'Config',
    'StreamConfig',
    'setup_logging',
    'setup_from_config',
    'get_logger',
    'PipelineError',
    'ConfigurationError',
    'CaptureError',
    'TransportError',
    'HTTPStatusError',
    'PlaylistFormatError',
    'ExtractionError',
    'FilesystemError',
]
