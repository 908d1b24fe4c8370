"""Word timing for synthesized audio.

Offline backends rarely report word timings. When they do, the timings are
passed through after converting to milliseconds. Otherwise the audio
duration is divided evenly across whitespace-delimited words. The estimate
is an approximation for highlighting and captions, not a phonetic
alignment.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from offline_tts.audio import duration_ms
from offline_tts.models import SynthesisResult, WordBoundary


def split_words(text: str) -> list[str]:
    return text.split()


def estimate_word_boundaries(text: str, num_samples: int, sample_rate: int) -> list[WordBoundary]:
    words = split_words(text)
    if not words:
        return []

    total_ms = duration_ms(num_samples, sample_rate)
    per_word = total_ms / len(words)

    boundaries: list[WordBoundary] = []
    for i, word in enumerate(words):
        offset = i * per_word
        # The last span absorbs rounding so spans sum to the audio duration.
        end = total_ms if i == len(words) - 1 else (i + 1) * per_word
        boundaries.append(WordBoundary(text=word, offset_ms=offset, duration_ms=end - offset))
    return boundaries


def rescale_native_boundaries(
    raw: Iterable[tuple[str, float, float]],
    unit_ms: float = 1000.0,
) -> list[WordBoundary]:
    """Convert backend (word, start, end) triples into millisecond boundaries.

    ``unit_ms`` is the number of milliseconds in one backend time unit
    (1000 for seconds).
    """
    return [
        WordBoundary(text=word, offset_ms=start * unit_ms, duration_ms=(end - start) * unit_ms)
        for word, start, end in raw
    ]


def boundaries_for(text: str, result: SynthesisResult) -> list[WordBoundary]:
    if result.native_boundaries:
        return rescale_native_boundaries(result.native_boundaries)
    return estimate_word_boundaries(text, result.num_samples, result.sample_rate)


def estimate_duration_ms(
    text: str,
    words_per_minute: float = 150.0,
    words: Optional[Sequence[str]] = None,
) -> float:
    """Rough spoken duration of text at a constant speaking rate.

    Longer words count for more time, clamped to 0.5x..2x of an average
    five-letter word.
    """
    ms_per_word = 60_000.0 / words_per_minute
    total = 0.0
    for word in words if words is not None else split_words(text):
        factor = max(0.5, min(2.0, len(word) / 5))
        total += ms_per_word * factor
    return total
