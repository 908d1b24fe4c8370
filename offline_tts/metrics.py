from __future__ import annotations

from prometheus_client import Counter, Gauge

from offline_tts.logging_utils import get_logger


logger = get_logger(__name__)


OFFLINE_TTS_ACQUISITIONS_TOTAL = Counter(
    "offline_tts_acquisitions_total",
    "Model asset acquisitions by model and result (cache_hit, downloaded, failed).",
    ["model", "result"],
)

OFFLINE_TTS_DOWNLOAD_BYTES_TOTAL = Counter(
    "offline_tts_download_bytes_total",
    "Total number of bytes downloaded for model assets.",
    ["model"],
)

OFFLINE_TTS_SYNTHESES_TOTAL = Counter(
    "offline_tts_syntheses_total",
    "Total synthesis calls by model and mode (native or degraded).",
    ["model", "mode"],
)

OFFLINE_TTS_NATIVE_LOAD_FAILURES_TOTAL = Counter(
    "offline_tts_native_load_failures_total",
    "Total number of failed native backend load attempts.",
    ["platform"],
)

OFFLINE_TTS_DEGRADED = Gauge(
    "offline_tts_degraded",
    "1 if the voice currently synthesizes placeholder audio, else 0.",
    ["model"],
)


def record_acquisition(model_id: str, result: str) -> None:
    OFFLINE_TTS_ACQUISITIONS_TOTAL.labels(model=model_id, result=result).inc()


def record_download_bytes(model_id: str, num_bytes: int) -> None:
    OFFLINE_TTS_DOWNLOAD_BYTES_TOTAL.labels(model=model_id).inc(num_bytes)


def record_synthesis(model_id: str, mode: str) -> None:
    OFFLINE_TTS_SYNTHESES_TOTAL.labels(model=model_id, mode=mode).inc()


def record_native_load_failure(platform_key: str) -> None:
    OFFLINE_TTS_NATIVE_LOAD_FAILURES_TOTAL.labels(platform=platform_key).inc()


def set_degraded(model_id: str, degraded: bool) -> None:
    OFFLINE_TTS_DEGRADED.labels(model=model_id).set(1.0 if degraded else 0.0)
