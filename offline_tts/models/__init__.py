from .catalog import ARCHITECTURE_ALIASES, LanguageTag, ModelArchitecture, ModelDescriptor
from .domain import (
    ExtraRole,
    Rate,
    Readiness,
    ResolvedPaths,
    SynthesisOptions,
    SynthesisResult,
    VoiceState,
    WordBoundary,
)
from .environment import EnvironmentCheck

__all__ = [
    "ARCHITECTURE_ALIASES",
    "EnvironmentCheck",
    "ExtraRole",
    "LanguageTag",
    "ModelArchitecture",
    "ModelDescriptor",
    "Rate",
    "Readiness",
    "ResolvedPaths",
    "SynthesisOptions",
    "SynthesisResult",
    "VoiceState",
    "WordBoundary",
]
