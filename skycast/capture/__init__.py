"""Acquisition sources."""

from skycast.capture.base import BaseCapture, CaptureError
from skycast.capture.snapshot import SnapshotCapture

__all__ = ["BaseCapture", "CaptureError", "SnapshotCapture"]
