from __future__ import annotations

import asyncio
from pathlib import Path
from typing import AsyncIterator, Optional

import numpy as np

from offline_tts import metrics as app_metrics
from offline_tts.assets import AssetResolver
from offline_tts.audio import to_wav
from offline_tts.catalog import ModelCatalog
from offline_tts.clients.base import BaseSpeechClient, ProviderVoice
from offline_tts.engines import PlaceholderEngine, SpeechEngine, configure, instantiate, speed_for
from offline_tts.errors import (
    AcquisitionError,
    DegradedModeError,
    EngineError,
    NativeBackendUnavailable,
)
from offline_tts.logging_utils import get_logger
from offline_tts.models import (
    EnvironmentCheck,
    ModelDescriptor,
    Readiness,
    ResolvedPaths,
    SynthesisOptions,
    SynthesisResult,
    VoiceState,
    WordBoundary,
)
from offline_tts.native import NativeBackendLoader
from offline_tts.word_boundaries import boundaries_for

from .acquisition import AcquisitionManager


logger = get_logger(__name__)


class OfflineVoiceController(BaseSpeechClient):
    """Drives one voice through resolve -> acquire -> load -> synthesize.

    Voice state moves ``unconfigured -> resolving -> [acquiring ->] ready ->
    initialized``. If acquisition fails or the native backend is missing the
    controller settles in ``mock_ready`` and synthesizes quiet placeholder
    audio instead of raising, and ``readiness`` reports the reason.
    Pass ``strict=True`` to have those failures raised instead.
    """

    def __init__(
        self,
        *,
        catalog: ModelCatalog,
        resolver: AssetResolver,
        acquisition: AcquisitionManager,
        backend_loader: NativeBackendLoader,
        models_dir: Path | str,
        default_voice: str = "mms_eng",
        strict: bool = False,
        num_threads: int = 1,
        execution_provider: str = "cpu",
        degraded_sample_rate_hz: int = 16000,
    ) -> None:
        self._catalog = catalog
        self._resolver = resolver
        self._acquisition = acquisition
        self._backend_loader = backend_loader
        self._models_dir = Path(models_dir)
        self._default_voice = default_voice
        self._strict = strict
        self._num_threads = num_threads
        self._execution_provider = execution_provider
        self._placeholder = PlaceholderEngine(sample_rate=degraded_sample_rate_hz)

        self._state = VoiceState.UNCONFIGURED
        self._readiness = Readiness.degraded("no voice selected")
        self._voice_id: Optional[str] = None
        self._descriptor: Optional[ModelDescriptor] = None
        self._paths: Optional[ResolvedPaths] = None
        self._engine: Optional[SpeechEngine] = None

    @property
    def state(self) -> VoiceState:
        return self._state

    @property
    def readiness(self) -> Readiness:
        return self._readiness

    @property
    def voice_id(self) -> Optional[str]:
        return self._voice_id

    @property
    def paths(self) -> Optional[ResolvedPaths]:
        return self._paths

    def list_voices(self) -> list[ProviderVoice]:
        return self._catalog.list_voices()

    def environment_check(self) -> EnvironmentCheck:
        return self._backend_loader.check_environment()

    async def set_voice(self, voice_id: str) -> None:
        await self._initialize(voice_id, raise_errors=self._strict)

    async def _initialize(self, voice_id: str, *, raise_errors: bool) -> None:
        # Unknown ids are configuration errors: raise before touching disk.
        descriptor = self._catalog.lookup(voice_id)

        self._engine = None
        self._paths = None
        self._voice_id = voice_id
        self._descriptor = descriptor
        self._state = VoiceState.RESOLVING
        logger.info("Setting voice %s (%s)", voice_id, descriptor.architecture.value)

        paths = self._resolver.resolve(self._models_dir, descriptor)
        if not paths.is_ready:
            self._state = VoiceState.ACQUIRING
            try:
                paths = await self._acquisition.ensure_ready(self._models_dir, descriptor)
            except AcquisitionError as exc:
                self._state = VoiceState.FAILED
                self._degrade(f"model acquisition failed: {exc}")
                if raise_errors:
                    raise
                return

        self._state = VoiceState.READY
        self._paths = paths

        try:
            handle = self._backend_loader.load()
        except NativeBackendUnavailable as exc:
            self._degrade(str(exc))
            if raise_errors:
                raise
            return

        try:
            config = configure(paths, descriptor.architecture)
            engine = await asyncio.to_thread(
                instantiate,
                handle,
                config,
                num_threads=self._num_threads,
                provider=self._execution_provider,
            )
        except EngineError as exc:
            self._degrade(f"engine initialization failed: {exc}")
            if raise_errors:
                raise
            return

        self._engine = engine
        self._state = VoiceState.INITIALIZED
        self._readiness = Readiness.ready()
        app_metrics.set_degraded(voice_id, False)
        logger.info("Voice %s initialized (sample rate %d Hz)", voice_id, engine.sample_rate)

    async def check_readiness(self) -> bool:
        """Lazily initialize the default voice if none is set.

        A voice left in ``mock_ready`` by an earlier failure is initialized
        again, so a download or backend problem that has since cleared up
        is picked up here. Returns True even when degraded, since synthesis
        still yields valid audio; in strict mode returns the real readiness.
        """
        if self._voice_id is None:
            await self.set_voice(self._default_voice)
        elif self._state is VoiceState.MOCK_READY:
            logger.info("Retrying initialization of degraded voice %s", self._voice_id)
            await self._initialize(self._voice_id, raise_errors=False)
        if self._strict:
            return self._readiness.is_ready
        return True

    async def synthesize(self, text: str, options: SynthesisOptions | None = None) -> bytes:
        result = await self._generate(text, options or SynthesisOptions())
        return to_wav(result.samples, result.sample_rate)

    async def synthesize_stream(
        self, text: str, options: SynthesisOptions | None = None
    ) -> tuple[AsyncIterator[bytes], list[WordBoundary]]:
        options = options or SynthesisOptions()
        result = await self._generate(text, options)
        wav = to_wav(result.samples, result.sample_rate)
        boundaries = boundaries_for(text, result) if options.use_word_boundary else []
        return self._iter_chunks(wav, result.sample_rate), boundaries

    async def _generate(self, text: str, options: SynthesisOptions) -> SynthesisResult:
        if self._voice_id is None:
            await self.set_voice(self._default_voice)

        model_id = self._voice_id or self._default_voice
        if self._engine is None or self._descriptor is None:
            reason = self._readiness.reason or "engine not initialized"
            if self._strict:
                raise DegradedModeError(reason)
            logger.warning("Voice %s degraded (%s); returning placeholder audio", model_id, reason)
            app_metrics.record_synthesis(model_id, "degraded")
            return self._placeholder.generate(text)

        if not text.strip():
            # Nothing to speak: an empty but well-formed clip.
            return SynthesisResult(
                samples=np.zeros(0, dtype=np.float32),
                sample_rate=self._engine.sample_rate,
            )

        speed = speed_for(options.rate, self._descriptor.architecture)
        logger.info(
            "Generating audio with speed %.2f (rate=%s, speaker=%d)",
            speed,
            options.rate,
            options.speaker_index,
        )
        result = await asyncio.to_thread(
            self._engine.generate,
            text,
            speed=speed,
            speaker_index=options.speaker_index,
        )
        app_metrics.record_synthesis(model_id, "native")
        return result

    def _degrade(self, reason: str) -> None:
        self._engine = None
        self._state = VoiceState.MOCK_READY
        self._readiness = Readiness.degraded(reason)
        if self._voice_id:
            app_metrics.set_degraded(self._voice_id, True)
        logger.warning("Voice %s running in degraded mode: %s", self._voice_id, reason)

    async def _iter_chunks(self, data: bytes, sample_rate: int) -> AsyncIterator[bytes]:
        # ~100ms of 16-bit mono audio per chunk; the header rides in the first.
        chunk_size = int(sample_rate * 2 * 0.1) or 1024
        for offset in range(0, len(data), chunk_size):
            yield data[offset : offset + chunk_size]
