from __future__ import annotations

from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ModelArchitecture(str, Enum):
    SINGLE_STAGE = "single-stage"
    TWO_STAGE_VOCODER = "two-stage-vocoder"
    EMBEDDING_MULTISPEAKER = "embedding-multispeaker"


# Upstream model_type names as they appear in sherpa-onnx model listings.
ARCHITECTURE_ALIASES: dict[str, ModelArchitecture] = {
    "vits": ModelArchitecture.SINGLE_STAGE,
    "mms": ModelArchitecture.SINGLE_STAGE,
    "matcha": ModelArchitecture.TWO_STAGE_VOCODER,
    "kokoro": ModelArchitecture.EMBEDDING_MULTISPEAKER,
}


class LanguageTag(BaseModel):
    model_config = ConfigDict(frozen=True)

    lang_code: str
    language_name: str = ""
    country: str = ""


class ModelDescriptor(BaseModel):
    """Immutable catalog entry for one offline model."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Catalog model id")
    url: str = Field(..., description="Archive URL or base URL for per-file downloads")
    architecture: ModelArchitecture
    compressed: bool = Field(False, description="True if url points to a tar archive")
    languages: List[LanguageTag] = Field(default_factory=list)
    developer: str = ""
    description: str = ""
    name: Optional[str] = None
    gender: Literal["Male", "Female", "Unknown"] = "Unknown"
    num_speakers: int = Field(1, ge=1)

    @field_validator("architecture", mode="before")
    @classmethod
    def _normalize_architecture(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() in ARCHITECTURE_ALIASES:
            return ARCHITECTURE_ALIASES[value.lower()]
        return value

    @field_validator("languages", mode="before")
    @classmethod
    def _normalize_languages(cls, value: Any) -> Any:
        # Accept both {"lang_code", ...} and the merged-models
        # {"Iso Code", "Language Name", "Country"} shapes.
        if not isinstance(value, list):
            return value
        out = []
        for item in value:
            if isinstance(item, dict) and "Iso Code" in item:
                out.append(
                    {
                        "lang_code": item["Iso Code"],
                        "language_name": item.get("Language Name", ""),
                        "country": item.get("Country", ""),
                    }
                )
            else:
                out.append(item)
        return out

    @property
    def display_name(self) -> str:
        return self.name or self.id
