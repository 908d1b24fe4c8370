from __future__ import annotations

import json
from importlib import resources
from typing import Any, Iterable, Mapping

from offline_tts.clients.base import ProviderVoice
from offline_tts.errors import ModelNotFoundError
from offline_tts.logging_utils import get_logger
from offline_tts.models import ModelDescriptor


logger = get_logger(__name__)

PROVIDER_ID = "sherpaonnx"


def load_catalog_entries() -> dict[str, Any]:
    """Read the model listing shipped inside the package."""
    text = resources.files("offline_tts").joinpath("data/models.json").read_text("utf-8")
    return json.loads(text)


def _descriptor_from_entry(model_id: str, entry: Mapping[str, Any]) -> ModelDescriptor:
    data = dict(entry)
    data.setdefault("id", model_id)
    # Upstream listings name these fields differently.
    if "languages" not in data and "language" in data:
        data["languages"] = data.pop("language")
    if "architecture" not in data and "model_type" in data:
        data["architecture"] = data.pop("model_type")
    if "compressed" not in data and "compression" in data:
        data["compressed"] = data.pop("compression")
    return ModelDescriptor.model_validate(data)


def normalize_language_code(code: str) -> str:
    """Best-effort BCP-47 tag for a catalog language code."""
    if "-" in code:
        return code
    if code == "eng":
        return "en-US"
    if len(code) == 3:
        return f"{code[:2]}-{code[:2].upper()}"
    if len(code) == 2:
        return f"{code}-{code.upper()}"
    return code


class ModelCatalog:
    """Read-only mapping from model id to ModelDescriptor."""

    def __init__(self, descriptors: Iterable[ModelDescriptor]) -> None:
        self._models: dict[str, ModelDescriptor] = {d.id: d for d in descriptors}

    @classmethod
    def from_entries(cls, entries: Mapping[str, Mapping[str, Any]]) -> "ModelCatalog":
        return cls(_descriptor_from_entry(model_id, e) for model_id, e in entries.items())

    @classmethod
    def default(cls) -> "ModelCatalog":
        catalog = cls.from_entries(load_catalog_entries())
        logger.info("Loaded model catalog (%d models)", len(catalog))
        return catalog

    def lookup(self, model_id: str) -> ModelDescriptor:
        try:
            return self._models[model_id]
        except KeyError:
            raise ModelNotFoundError(model_id) from None

    def list_models(self) -> list[ModelDescriptor]:
        return list(self._models.values())

    def list_voices(self, sample_rate_hz: int = 22050) -> list[ProviderVoice]:
        voices: list[ProviderVoice] = []
        for d in self._models.values():
            code = d.languages[0].lang_code if d.languages else "en-US"
            voices.append(
                ProviderVoice(
                    id=d.id,
                    name=d.display_name,
                    language=normalize_language_code(code),
                    sample_rate_hz=sample_rate_hz,
                    gender=d.gender,
                    provider=PROVIDER_ID,
                )
            )
        return voices

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)
