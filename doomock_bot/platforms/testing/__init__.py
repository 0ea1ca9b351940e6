"""
Test doubles for the platform ports: nothing here talks to Telegram.
"""

from .mock_scheduler import MockJob, MockJobScheduler
from .recording_response_service import RecordingResponseService

__all__ = [
    "MockJob",
    "MockJobScheduler",
    "RecordingResponseService",
]
