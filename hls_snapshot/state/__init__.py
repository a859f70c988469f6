"""
State module for the HLS snapshot pipeline.
"""

from .models import CaptureStage, CapturedFrame, StreamStats

__all__ = ['CaptureStage', 'CapturedFrame', 'StreamStats']
