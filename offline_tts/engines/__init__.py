from .base import SpeechEngine
from .placeholder import PlaceholderEngine
from .sherpa import (
    RATE_SPEEDS,
    EmbeddingMultispeakerConfig,
    EngineConfig,
    SherpaEngine,
    SingleStageConfig,
    TwoStageVocoderConfig,
    configure,
    instantiate,
    speed_for,
)

__all__ = [
    "RATE_SPEEDS",
    "EmbeddingMultispeakerConfig",
    "EngineConfig",
    "PlaceholderEngine",
    "SherpaEngine",
    "SingleStageConfig",
    "SpeechEngine",
    "TwoStageVocoderConfig",
    "configure",
    "instantiate",
    "speed_for",
]
