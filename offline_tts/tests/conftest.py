from __future__ import annotations

import importlib.machinery
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable

import numpy as np
import pytest

from offline_tts.native import NativeBackendLoader, Platform


class FakeConfig:
    """Records the keyword arguments a sherpa-onnx config was built with."""

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.__dict__.update(kwargs)


class FakeTtsConfig(FakeConfig):
    valid = True

    def validate(self) -> bool:
        return self.valid


class FakeOfflineTts:
    sample_rate = 22050
    num_speakers = 1

    def __init__(self, config: FakeTtsConfig) -> None:
        self.config = config
        self.calls: list[dict[str, Any]] = []

    def generate(self, text: str, sid: int = 0, speed: float = 1.0) -> SimpleNamespace:
        self.calls.append({"text": text, "sid": sid, "speed": speed})
        samples = np.full(self.sample_rate // 10, 0.1, dtype=np.float32)
        return SimpleNamespace(samples=samples, sample_rate=self.sample_rate)


@pytest.fixture
def fake_sherpa() -> SimpleNamespace:
    """A stand-in for the sherpa_onnx module that never touches native code."""
    created: list[FakeOfflineTts] = []

    class _Tts(FakeOfflineTts):
        def __init__(self, config: FakeTtsConfig) -> None:
            super().__init__(config)
            created.append(self)

    return SimpleNamespace(
        OfflineTtsVitsModelConfig=FakeConfig,
        OfflineTtsMatchaModelConfig=FakeConfig,
        OfflineTtsKokoroModelConfig=FakeConfig,
        OfflineTtsModelConfig=FakeConfig,
        OfflineTtsConfig=FakeTtsConfig,
        OfflineTts=_Tts,
        created=created,
    )


@pytest.fixture
def sherpa_package_dir(tmp_path: Path) -> Path:
    """An installed-looking sherpa_onnx package with its native module in lib/."""
    pkg = tmp_path / "site-packages" / "sherpa_onnx"
    lib = pkg / "lib"
    lib.mkdir(parents=True)
    suffix = importlib.machinery.EXTENSION_SUFFIXES[0]
    (lib / f"_sherpa_onnx{suffix}").write_bytes(b"\x7fELF")
    return pkg


@pytest.fixture
def available_loader(
    fake_sherpa: SimpleNamespace, sherpa_package_dir: Path
) -> NativeBackendLoader:
    return NativeBackendLoader(
        platform=Platform.LINUX_X64,
        environ={},
        find_spec=lambda name: SimpleNamespace(submodule_search_locations=[str(sherpa_package_dir)]),
        importer=lambda name: fake_sherpa,
    )


@pytest.fixture
def missing_loader() -> NativeBackendLoader:
    def _importer(name: str) -> Any:
        raise AssertionError("import must not be attempted when the package is missing")

    return NativeBackendLoader(
        platform=Platform.LINUX_X64,
        environ={},
        find_spec=lambda name: None,
        importer=_importer,
    )


@pytest.fixture
def write_file() -> Callable[..., Path]:
    def _write(path: Path, content: bytes = b"data") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _write
