from __future__ import annotations

from typing import Optional

import numpy as np

from .base import SpeechEngine
from ..audio import noise
from ..models import SynthesisResult
from ..word_boundaries import estimate_duration_ms


class PlaceholderEngine(SpeechEngine):
    """Stand-in used when the real backend or model files are unavailable.

    Produces very quiet noise lasting roughly as long as the text would
    take to speak (at least ``min_duration_s``), so callers that only check
    for audio bytes keep working. This is NOT speech.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        *,
        min_duration_s: float = 1.0,
        gain: float = 0.005,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self._min_duration_s = min_duration_s
        self._gain = gain
        self._rng = rng

    def generate(self, text: str, *, speed: float = 1.0, speaker_index: int = 0) -> SynthesisResult:
        speed = speed if speed > 0 else 1.0
        duration_s = max(self._min_duration_s, estimate_duration_ms(text) / 1000.0 / speed)
        samples = noise(duration_s, self.sample_rate, gain=self._gain, rng=self._rng)
        return SynthesisResult(samples=samples, sample_rate=self.sample_rate)
