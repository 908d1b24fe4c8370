from __future__ import annotations

import numpy as np
import pytest

from offline_tts.models import SynthesisResult
from offline_tts.word_boundaries import (
    boundaries_for,
    estimate_duration_ms,
    estimate_word_boundaries,
    rescale_native_boundaries,
)


def test_estimated_boundaries_cover_the_whole_clip() -> None:
    boundaries = estimate_word_boundaries("the quick brown fox", num_samples=48000, sample_rate=24000)

    assert [b.text for b in boundaries] == ["the", "quick", "brown", "fox"]
    assert boundaries[0].offset_ms == 0.0
    for prev, nxt in zip(boundaries, boundaries[1:]):
        assert nxt.offset_ms == pytest.approx(prev.end_ms)
    assert boundaries[-1].end_ms == pytest.approx(2000.0)
    assert sum(b.duration_ms for b in boundaries) == pytest.approx(2000.0)


def test_estimated_boundaries_ignore_extra_whitespace() -> None:
    boundaries = estimate_word_boundaries("  hello \n world  ", num_samples=16000, sample_rate=16000)

    assert [b.text for b in boundaries] == ["hello", "world"]
    assert boundaries[1].offset_ms == pytest.approx(500.0)


def test_no_words_means_no_boundaries() -> None:
    assert estimate_word_boundaries("   ", num_samples=16000, sample_rate=16000) == []


def test_native_boundaries_are_converted_to_milliseconds() -> None:
    boundaries = rescale_native_boundaries([("hi", 0.0, 0.25), ("there", 0.25, 0.75)])

    assert boundaries[0].offset_ms == 0.0
    assert boundaries[0].duration_ms == pytest.approx(250.0)
    assert boundaries[1].offset_ms == pytest.approx(250.0)
    assert boundaries[1].duration_ms == pytest.approx(500.0)


def test_boundaries_for_prefers_native_timings() -> None:
    result = SynthesisResult(
        samples=np.zeros(16000, dtype=np.float32),
        sample_rate=16000,
        native_boundaries=[("hello", 0.1, 0.4)],
    )

    boundaries = boundaries_for("hello", result)

    assert len(boundaries) == 1
    assert boundaries[0].offset_ms == pytest.approx(100.0)


def test_boundaries_for_falls_back_to_estimate() -> None:
    result = SynthesisResult(samples=np.zeros(8000, dtype=np.float32), sample_rate=16000)

    boundaries = boundaries_for("one two", result)

    assert [b.duration_ms for b in boundaries] == [pytest.approx(250.0), pytest.approx(250.0)]


def test_duration_estimate_weights_word_length() -> None:
    # 150 wpm -> 400 ms for an average five-letter word.
    assert estimate_duration_ms("hello") == pytest.approx(400.0)
    assert estimate_duration_ms("a") == pytest.approx(200.0)
    assert estimate_duration_ms("x" * 30) == pytest.approx(800.0)
    assert estimate_duration_ms("") == 0.0
