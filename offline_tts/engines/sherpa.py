from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Any, Union

import numpy as np

from .base import SpeechEngine
from ..errors import EngineError
from ..logging_utils import get_logger
from ..models import ExtraRole, ModelArchitecture, Rate, ResolvedPaths, SynthesisResult
from ..native import BackendHandle


logger = get_logger(__name__)


# Neural vocoders distort audibly outside a narrow speed band, so each
# architecture gets its own conservative multipliers instead of 1.0-centred
# engine defaults.
RATE_SPEEDS: dict[ModelArchitecture, dict[str, float]] = {
    ModelArchitecture.SINGLE_STAGE: {"slow": 0.5, "medium": 0.7, "fast": 0.9},
    ModelArchitecture.TWO_STAGE_VOCODER: {"slow": 0.5, "medium": 0.7, "fast": 0.9},
    ModelArchitecture.EMBEDDING_MULTISPEAKER: {"slow": 0.7, "medium": 0.85, "fast": 1.0},
}


def speed_for(rate: Rate | str | None, architecture: ModelArchitecture) -> float:
    table = RATE_SPEEDS[architecture]
    return table.get(rate or "medium", table["medium"])


@dataclass(frozen=True)
class SingleStageConfig:
    model: str
    tokens: str
    lexicon: str = ""
    data_dir: str = ""
    dict_dir: str = ""


@dataclass(frozen=True)
class TwoStageVocoderConfig:
    acoustic_model: str
    vocoder: str
    tokens: str
    data_dir: str = ""
    dict_dir: str = ""


@dataclass(frozen=True)
class EmbeddingMultispeakerConfig:
    model: str
    voices: str
    tokens: str
    data_dir: str


EngineConfig = Union[SingleStageConfig, TwoStageVocoderConfig, EmbeddingMultispeakerConfig]


def _extra(paths: ResolvedPaths, role: ExtraRole) -> str:
    path = paths.extras.get(role)
    return str(path) if path is not None else ""


def configure(paths: ResolvedPaths, architecture: ModelArchitecture) -> EngineConfig:
    """Build the architecture-specific engine config from resolved paths."""
    if architecture is ModelArchitecture.SINGLE_STAGE:
        return SingleStageConfig(
            model=str(paths.model_path),
            tokens=str(paths.tokens_path),
            lexicon=_extra(paths, ExtraRole.LEXICON),
            data_dir=_extra(paths, ExtraRole.PHONEME_DATA),
            dict_dir=_extra(paths, ExtraRole.DICT_DIR),
        )
    if architecture is ModelArchitecture.TWO_STAGE_VOCODER:
        if paths.vocoder_path is None:
            raise EngineError("two-stage model requires a vocoder path")
        # No lexicon: it is incompatible with this architecture.
        return TwoStageVocoderConfig(
            acoustic_model=str(paths.model_path),
            vocoder=str(paths.vocoder_path),
            tokens=str(paths.tokens_path),
            data_dir=_extra(paths, ExtraRole.PHONEME_DATA),
            dict_dir=_extra(paths, ExtraRole.DICT_DIR),
        )
    if architecture is ModelArchitecture.EMBEDDING_MULTISPEAKER:
        voices = _extra(paths, ExtraRole.VOICE_EMBEDDINGS)
        data_dir = _extra(paths, ExtraRole.PHONEME_DATA)
        if not voices or not data_dir:
            raise EngineError("multi-speaker model requires voice embeddings and phoneme data")
        return EmbeddingMultispeakerConfig(
            model=str(paths.model_path),
            voices=voices,
            tokens=str(paths.tokens_path),
            data_dir=data_dir,
        )
    raise EngineError(f"Unsupported architecture '{architecture}'")


def _model_config(sherpa: Any, config: EngineConfig, *, num_threads: int, provider: str) -> Any:
    common = {"num_threads": num_threads, "provider": provider, "debug": False}
    if isinstance(config, SingleStageConfig):
        vits = sherpa.OfflineTtsVitsModelConfig(
            model=config.model,
            lexicon=config.lexicon,
            tokens=config.tokens,
            data_dir=config.data_dir,
            dict_dir=config.dict_dir,
        )
        return sherpa.OfflineTtsModelConfig(vits=vits, **common)
    if isinstance(config, TwoStageVocoderConfig):
        matcha = sherpa.OfflineTtsMatchaModelConfig(
            acoustic_model=config.acoustic_model,
            vocoder=config.vocoder,
            tokens=config.tokens,
            data_dir=config.data_dir,
            dict_dir=config.dict_dir,
        )
        return sherpa.OfflineTtsModelConfig(matcha=matcha, **common)
    kokoro = sherpa.OfflineTtsKokoroModelConfig(
        model=config.model,
        voices=config.voices,
        tokens=config.tokens,
        data_dir=config.data_dir,
    )
    return sherpa.OfflineTtsModelConfig(kokoro=kokoro, **common)


class SherpaEngine(SpeechEngine):
    """A configured sherpa-onnx OfflineTts instance."""

    def __init__(self, tts: Any, config: EngineConfig) -> None:
        self._tts = tts
        self.config = config
        self.sample_rate = int(getattr(tts, "sample_rate", 0) or 0)
        self.num_speakers = int(getattr(tts, "num_speakers", 0) or 0)
        self._lock = Lock()

    def generate(self, text: str, *, speed: float, speaker_index: int = 0) -> SynthesisResult:
        if not text or not text.strip():
            raise ValueError("text must not be empty")
        if speaker_index < 0 or (self.num_speakers > 1 and speaker_index >= self.num_speakers):
            raise EngineError(
                f"speaker index {speaker_index} out of range (model has {self.num_speakers} speakers)"
            )

        with self._lock:
            try:
                audio = self._tts.generate(text, sid=speaker_index, speed=speed)
            except RuntimeError as exc:
                raise EngineError(f"generation failed: {exc}") from exc

        samples = np.asarray(audio.samples, dtype=np.float32)
        if samples.size == 0:
            raise EngineError("backend produced no audio")
        return SynthesisResult(samples=samples, sample_rate=int(audio.sample_rate))


def instantiate(
    handle: BackendHandle,
    config: EngineConfig,
    *,
    num_threads: int = 1,
    provider: str = "cpu",
    max_num_sentences: int = 1,
) -> SherpaEngine:
    sherpa = handle.module
    try:
        tts_config = sherpa.OfflineTtsConfig(
            model=_model_config(sherpa, config, num_threads=num_threads, provider=provider),
            max_num_sentences=max_num_sentences,
        )
    except (AttributeError, TypeError) as exc:
        # Older sherpa-onnx builds lack some model config classes or fields.
        version = getattr(sherpa, "__version__", "unknown")
        raise EngineError(
            f"sherpa-onnx {version} does not support {type(config).__name__}: {exc}"
        ) from exc
    if not tts_config.validate():
        raise EngineError(f"sherpa-onnx rejected engine config: {config}")

    logger.info("Creating OfflineTts (%s)", type(config).__name__)
    try:
        tts = sherpa.OfflineTts(tts_config)
    except RuntimeError as exc:
        raise EngineError(f"failed to create OfflineTts: {exc}") from exc
    return SherpaEngine(tts, config)
