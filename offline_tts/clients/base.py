from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Protocol

from offline_tts.models import SynthesisOptions, WordBoundary


@dataclass
class ProviderVoice:
    """Metadata for a single voice exposed to the abstract client layer."""

    id: str
    name: str
    language: str
    sample_rate_hz: int
    gender: str = "Unknown"
    provider: str = "sherpaonnx"


class BaseSpeechClient(Protocol):
    """Contract the abstract client layer consumes.

    Text reaching these methods is already plain: SSML and markdown are
    stripped by the caller.
    """

    def list_voices(self) -> list[ProviderVoice]:
        """Return the voices this client can synthesize."""

    async def set_voice(self, voice_id: str) -> None:
        """Select a voice, acquiring its assets if needed."""

    async def synthesize(
        self, text: str, options: SynthesisOptions | None = None
    ) -> bytes:
        """Return a complete WAV container for the text."""

    async def synthesize_stream(
        self, text: str, options: SynthesisOptions | None = None
    ) -> tuple[AsyncIterator[bytes], list[WordBoundary]]:
        """Return WAV bytes as a chunk stream plus word timings."""

    async def check_readiness(self) -> bool:
        """Initialize lazily and report whether synthesis can proceed."""
