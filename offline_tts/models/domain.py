from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

import numpy as np


Rate = Literal["slow", "medium", "fast"]


class VoiceState(Enum):
    UNCONFIGURED = "unconfigured"
    RESOLVING = "resolving"
    ACQUIRING = "acquiring"
    READY = "ready"
    FAILED = "failed"
    INITIALIZED = "initialized"
    MOCK_READY = "mock_ready"


class ExtraRole(str, Enum):
    """Architecture-specific files that may accompany model + tokens."""

    LEXICON = "lexicon"
    DICT_DIR = "dict_dir"
    PHONEME_DATA = "phoneme_data"
    VOICE_EMBEDDINGS = "voice_embeddings"


@dataclass(frozen=True)
class Readiness:
    """Whether synthesis uses the real engine or placeholder audio."""

    status: Literal["ready", "degraded"]
    reason: Optional[str] = None

    @classmethod
    def ready(cls) -> "Readiness":
        return cls(status="ready")

    @classmethod
    def degraded(cls, reason: str) -> "Readiness":
        return cls(status="degraded", reason=reason)

    @property
    def is_ready(self) -> bool:
        return self.status == "ready"


@dataclass
class ResolvedPaths:
    """On-disk view of one voice directory."""

    voice_dir: Path
    model_path: Path
    tokens_path: Path
    extras: dict[ExtraRole, Path] = field(default_factory=dict)
    vocoder_path: Optional[Path] = None
    missing: list[str] = field(default_factory=list)

    @property
    def is_ready(self) -> bool:
        return not self.missing


@dataclass
class SynthesisOptions:
    rate: Rate = "medium"
    speaker_index: int = 0
    use_word_boundary: bool = True


@dataclass
class SynthesisResult:
    """Mono float32 samples produced by one generate call."""

    samples: np.ndarray
    sample_rate: int
    # Backend-supplied (word, start_s, end_s) triples, when the backend has them.
    native_boundaries: Optional[list[tuple[str, float, float]]] = None

    @property
    def num_samples(self) -> int:
        return int(len(self.samples))


@dataclass(frozen=True)
class WordBoundary:
    text: str
    offset_ms: float
    duration_ms: float

    @property
    def end_ms(self) -> float:
        return self.offset_ms + self.duration_ms
