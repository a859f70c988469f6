"""
Storage module for the HLS snapshot pipeline.

Handles retention of captured frames on disk.
"""

from .retention import RetentionManager

__all__ = ['RetentionManager']
