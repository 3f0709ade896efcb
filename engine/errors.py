"""
Error taxonomy for the voice-to-task pipeline.
"""

from typing import Optional


class VoiceTaskError(Exception):
    """Base class for pipeline errors surfaced to callers."""


class PermissionDenied(VoiceTaskError):
    """Microphone access was refused by the platform."""


class DeviceUnavailable(VoiceTaskError):
    """No usable input device, or the audio backend is not installed."""


class NoAudioProvided(VoiceTaskError):
    """The submission carried no audio bytes."""


class EmptyTranscript(VoiceTaskError):
    """Transcription returned blank text. The user should re-record."""


class TranscriptionServiceError(VoiceTaskError):
    """The speech-to-text call failed or returned a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ExtractionDegraded(Exception):
    """Model-based extraction failed. Never leaves FieldExtractor."""
