from typing import Protocol

from offline_tts.models import SynthesisResult


class SpeechEngine(Protocol):
    sample_rate: int

    def generate(self, text: str, *, speed: float, speaker_index: int = 0) -> SynthesisResult:
        """Synthesize plain text into mono float32 samples.

        Blocking. Callers must not invoke this concurrently on one engine.
        """
        ...
