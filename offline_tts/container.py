from __future__ import annotations

from functools import lru_cache

from offline_tts.assets import AssetResolver
from offline_tts.catalog import ModelCatalog
from offline_tts.config import settings
from offline_tts.native import NativeBackendLoader
from offline_tts.services import AcquisitionManager, OfflineVoiceController


@lru_cache(maxsize=1)
def get_catalog() -> ModelCatalog:
    return ModelCatalog.default()


@lru_cache(maxsize=1)
def get_asset_resolver() -> AssetResolver:
    return AssetResolver()


@lru_cache(maxsize=1)
def get_acquisition_manager() -> AcquisitionManager:
    return AcquisitionManager(
        resolver=get_asset_resolver(),
        vocoder_url=settings.vocoder_url,
        auto_download=settings.auto_download,
        timeout_seconds=settings.download_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_backend_loader() -> NativeBackendLoader:
    """Return the process-wide native backend loader.

    The loader caches its first outcome, so the library path is configured
    at most once per process.
    """
    return NativeBackendLoader(native_lib_dir=settings.native_lib_dir)


@lru_cache(maxsize=1)
def get_voice_controller() -> OfflineVoiceController:
    return OfflineVoiceController(
        catalog=get_catalog(),
        resolver=get_asset_resolver(),
        acquisition=get_acquisition_manager(),
        backend_loader=get_backend_loader(),
        models_dir=settings.models_dir,
        default_voice=settings.default_voice,
        strict=settings.strict,
        num_threads=settings.num_threads,
        execution_provider=settings.execution_provider,
        degraded_sample_rate_hz=settings.degraded_sample_rate_hz,
    )
