from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from offline_tts.models import ExtraRole, ModelArchitecture, ModelDescriptor, ResolvedPaths


Role = Union[str, ExtraRole]

MODEL_ROLE = "model"
TOKENS_ROLE = "tokens"


@dataclass(frozen=True)
class FileSpec:
    """One entry of a voice directory and how to recognise it in an archive."""

    role: Role
    filename: str
    is_dir: bool = False
    # Files match on name suffix, directories on exact name.
    pattern: str = ""

    def matches(self, name: str, is_dir: bool) -> bool:
        if is_dir != self.is_dir:
            return False
        pattern = self.pattern or self.filename
        return name == pattern if self.is_dir else name.endswith(pattern)


MODEL = FileSpec(MODEL_ROLE, "model.onnx", pattern=".onnx")
TOKENS = FileSpec(TOKENS_ROLE, "tokens.txt")
LEXICON = FileSpec(ExtraRole.LEXICON, "lexicon.txt")
PHONEME_DATA = FileSpec(ExtraRole.PHONEME_DATA, "espeak-ng-data", is_dir=True)
DICT_DIR = FileSpec(ExtraRole.DICT_DIR, "dict", is_dir=True)
VOICE_EMBEDDINGS = FileSpec(ExtraRole.VOICE_EMBEDDINGS, "voices.bin")

# Every extra that is picked up when present, required or not.
KNOWN_EXTRAS: tuple[FileSpec, ...] = (LEXICON, PHONEME_DATA, DICT_DIR, VOICE_EMBEDDINGS)

ARCHITECTURE_FILES: dict[ModelArchitecture, tuple[FileSpec, ...]] = {
    ModelArchitecture.SINGLE_STAGE: (MODEL, TOKENS),
    ModelArchitecture.TWO_STAGE_VOCODER: (MODEL, TOKENS),
    ModelArchitecture.EMBEDDING_MULTISPEAKER: (MODEL, TOKENS, VOICE_EMBEDDINGS, PHONEME_DATA),
}

# Extra requirements that depend on where a model comes from rather than
# on its architecture.
PROVENANCE_FILES: dict[str, tuple[FileSpec, ...]] = {
    "piper": (PHONEME_DATA,),
    "ljs": (LEXICON,),
}

# Shared, voice-independent vocoder stored once at the storage root.
VOCODER_FILENAME = "vocos-22khz-univ.onnx"
VOCODER_ARCHITECTURES = frozenset({ModelArchitecture.TWO_STAGE_VOCODER})


def required_files(descriptor: ModelDescriptor) -> tuple[FileSpec, ...]:
    specs = list(ARCHITECTURE_FILES[descriptor.architecture])
    for spec in PROVENANCE_FILES.get(descriptor.developer.lower(), ()):
        if spec not in specs:
            specs.append(spec)
    return tuple(specs)


def needs_vocoder(descriptor: ModelDescriptor) -> bool:
    return descriptor.architecture in VOCODER_ARCHITECTURES


def entry_present(path: Path, is_dir: bool) -> bool:
    """True if a file is non-empty or a directory has at least one entry."""
    try:
        if is_dir:
            return path.is_dir() and any(path.iterdir())
        return path.is_file() and path.stat().st_size > 0
    except OSError:
        return False


class AssetResolver:
    """Maps a model descriptor to its expected on-disk layout.

    Only inspects the filesystem; never creates or modifies anything.
    """

    def voice_dir(self, base_dir: Path | str, descriptor: ModelDescriptor) -> Path:
        return Path(base_dir) / descriptor.id

    def resolve(self, base_dir: Path | str, descriptor: ModelDescriptor) -> ResolvedPaths:
        base = Path(base_dir)
        voice_dir = self.voice_dir(base, descriptor)

        missing: list[str] = []
        for spec in required_files(descriptor):
            if not entry_present(voice_dir / spec.filename, spec.is_dir):
                missing.append(spec.filename)

        extras: dict[ExtraRole, Path] = {}
        for spec in KNOWN_EXTRAS:
            path = voice_dir / spec.filename
            if entry_present(path, spec.is_dir):
                extras[ExtraRole(spec.role)] = path

        vocoder_path = None
        if needs_vocoder(descriptor):
            vocoder_path = base / VOCODER_FILENAME
            if not entry_present(vocoder_path, is_dir=False):
                missing.append(VOCODER_FILENAME)

        return ResolvedPaths(
            voice_dir=voice_dir,
            model_path=voice_dir / MODEL.filename,
            tokens_path=voice_dir / TOKENS.filename,
            extras=extras,
            vocoder_path=vocoder_path,
            missing=missing,
        )
