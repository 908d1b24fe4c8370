"""Offline text-to-speech on top of locally stored sherpa-onnx models."""

from offline_tts.errors import (
    AcquisitionError,
    DegradedModeError,
    EngineError,
    ModelNotFoundError,
    NativeBackendUnavailable,
    OfflineTTSError,
)
from offline_tts.models import Readiness, SynthesisOptions, VoiceState, WordBoundary
from offline_tts.services import OfflineVoiceController

__all__ = [
    "AcquisitionError",
    "DegradedModeError",
    "EngineError",
    "ModelNotFoundError",
    "NativeBackendUnavailable",
    "OfflineTTSError",
    "OfflineVoiceController",
    "Readiness",
    "SynthesisOptions",
    "VoiceState",
    "WordBoundary",
]
