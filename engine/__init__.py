"""
Voice-to-Task Engine

Recording → transcript → structured task fields.

Model-based extraction with a deterministic rule-based fallback, and a
shared date resolution rule set for both paths.

No FastAPI or database dependency.
"""

__version__ = "1.0.0"

from .core import VoicePipeline, build_pipeline
from .config import EngineConfig, load_config
from .models import (
    TaskPriority,
    TaskStatus,
    TimeContext,
    ExtractedTaskFields,
    ModelDerived,
    FallbackDerived,
    AudioBlob,
    VoiceResult,
)
from .errors import (
    VoiceTaskError,
    PermissionDenied,
    DeviceUnavailable,
    NoAudioProvided,
    EmptyTranscript,
    TranscriptionServiceError,
)
from .datetimes import DateTimeResolver, resolve_due_date
from .extractor import FieldExtractor
from .fallback import FallbackExtractor
