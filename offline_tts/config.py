from __future__ import annotations

import os
from dataclasses import dataclass


def _default_models_dir() -> str:
    return os.path.join(os.path.expanduser("~"), ".offline-tts", "models")


@dataclass
class AppConfig:
    """Library configuration loaded from environment.

    Model storage, the native backend location and the degraded-mode
    policy are all controlled from here so that callers can tune them via
    .env without touching code.
    """

    models_dir: str = os.getenv("OFFLINE_TTS_MODELS_DIR") or _default_models_dir()
    default_voice: str = os.getenv("OFFLINE_TTS_DEFAULT_VOICE", "mms_eng")

    # When disabled, a voice whose files are missing goes straight to
    # degraded mode instead of hitting the network.
    auto_download: bool = os.getenv("OFFLINE_TTS_AUTO_DOWNLOAD", "1") != "0"
    download_timeout_seconds: float = float(
        os.getenv("OFFLINE_TTS_DOWNLOAD_TIMEOUT", "60")
    )

    # Shared vocoder for two-stage (acoustic model + vocoder) voices.
    vocoder_url: str = os.getenv(
        "OFFLINE_TTS_VOCODER_URL",
        "https://github.com/k2-fsa/sherpa-onnx/releases/download/"
        "vocoder-models/vocos-22khz-univ.onnx",
    )

    # Strict mode surfaces acquisition/native failures instead of
    # falling back to placeholder audio.
    strict: bool = os.getenv("OFFLINE_TTS_STRICT", "0") != "0"

    num_threads: int = int(os.getenv("OFFLINE_TTS_NUM_THREADS", "1"))
    execution_provider: str = os.getenv("OFFLINE_TTS_EXECUTION_PROVIDER", "cpu")

    # Optional explicit directory holding the sherpa-onnx shared libraries;
    # if unset the loader looks inside the installed sherpa_onnx package.
    native_lib_dir: str | None = os.getenv("SHERPA_ONNX_LIB_DIR") or None

    degraded_sample_rate_hz: int = int(
        os.getenv("OFFLINE_TTS_DEGRADED_SAMPLE_RATE", "16000")
    )

    log_level: str = os.getenv("OFFLINE_TTS_LOG_LEVEL", "INFO")


settings = AppConfig()
