from __future__ import annotations

import asyncio
import io
import tarfile
import time
from pathlib import Path
from typing import Callable

import pytest
import requests

from offline_tts.assets import MODEL, TOKENS, VOCODER_FILENAME, AssetResolver
from offline_tts.errors import AcquisitionError
from offline_tts.models import ExtraRole, ModelArchitecture, ModelDescriptor
from offline_tts.services.acquisition import AcquisitionManager, _install, find_archive_entries

VOCODER_URL = "https://models.example/vocoders/vocos-22khz-univ.onnx"


def _build_manager(*, auto_download: bool = True) -> AcquisitionManager:
    return AcquisitionManager(
        resolver=AssetResolver(),
        vocoder_url=VOCODER_URL,
        auto_download=auto_download,
        timeout_seconds=1.0,
    )


def _descriptor(
    model_id: str = "demo-single-stage",
    *,
    url: str = "https://models.example/demo",
    architecture: ModelArchitecture = ModelArchitecture.SINGLE_STAGE,
    compressed: bool = False,
    developer: str = "",
) -> ModelDescriptor:
    return ModelDescriptor(
        id=model_id,
        url=url,
        architecture=architecture,
        compressed=compressed,
        developer=developer,
    )


def _fake_download(calls: list[str], payloads: dict[str, bytes] | None = None):
    def _download(self: AcquisitionManager, url: str, dest: Path, *, model_id: str) -> int:
        calls.append(url)
        data = (payloads or {}).get(url, f"payload for {url}".encode())
        dest.write_bytes(data)
        return len(data)

    return _download


def _build_archive(path: Path, members: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:bz2") as tar:
        for name, data in members.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    path.write_bytes(buf.getvalue())
    return buf.getvalue()


@pytest.mark.asyncio
async def test_uncompressed_model_downloads_each_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[str] = []
    monkeypatch.setattr(AcquisitionManager, "_download", _fake_download(calls))

    paths = await _build_manager().ensure_ready(tmp_path, _descriptor())

    assert paths.is_ready
    assert calls == [
        "https://models.example/demo/model.onnx",
        "https://models.example/demo/tokens.txt",
    ]
    assert (tmp_path / "demo-single-stage" / "model.onnx").read_bytes().startswith(b"payload")


@pytest.mark.asyncio
async def test_ready_directory_is_a_cache_hit(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, write_file: Callable[..., Path]
) -> None:
    write_file(tmp_path / "demo-single-stage" / "model.onnx")
    write_file(tmp_path / "demo-single-stage" / "tokens.txt")
    calls: list[str] = []
    monkeypatch.setattr(AcquisitionManager, "_download", _fake_download(calls))

    paths = await _build_manager().ensure_ready(tmp_path, _descriptor())

    assert paths.is_ready
    assert calls == []


@pytest.mark.asyncio
async def test_only_missing_files_are_downloaded(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, write_file: Callable[..., Path]
) -> None:
    write_file(tmp_path / "demo-single-stage" / "tokens.txt", b"existing tokens")
    calls: list[str] = []
    monkeypatch.setattr(AcquisitionManager, "_download", _fake_download(calls))

    await _build_manager().ensure_ready(tmp_path, _descriptor())

    assert calls == ["https://models.example/demo/model.onnx"]
    assert (tmp_path / "demo-single-stage" / "tokens.txt").read_bytes() == b"existing tokens"


@pytest.mark.asyncio
async def test_disabled_auto_download_reports_missing_files(tmp_path: Path) -> None:
    with pytest.raises(AcquisitionError) as excinfo:
        await _build_manager(auto_download=False).ensure_ready(tmp_path, _descriptor())

    assert excinfo.value.model_id == "demo-single-stage"
    assert excinfo.value.missing == ["model.onnx", "tokens.txt"]
    assert not (tmp_path / "demo-single-stage").exists()


@pytest.mark.asyncio
async def test_network_failure_leaves_existing_files_untouched(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, write_file: Callable[..., Path]
) -> None:
    tokens = write_file(tmp_path / "demo-single-stage" / "tokens.txt", b"keep me")

    def _failing_download(self: AcquisitionManager, url: str, dest: Path, *, model_id: str) -> int:
        raise requests.ConnectionError("network unreachable")

    monkeypatch.setattr(AcquisitionManager, "_download", _failing_download)

    with pytest.raises(AcquisitionError) as excinfo:
        await _build_manager().ensure_ready(tmp_path, _descriptor())

    assert "network unreachable" in str(excinfo.value)
    assert tokens.read_bytes() == b"keep me"
    assert not (tmp_path / "demo-single-stage" / "model.onnx").exists()


@pytest.mark.asyncio
async def test_compressed_archive_is_extracted_into_canonical_layout(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    archive_url = "https://models.example/vits-piper-demo.tar.bz2"
    archive = _build_archive(
        tmp_path / "upstream.tar.bz2",
        {
            "vits-piper-demo/en_US-demo.int8.onnx": b"quantized",
            "vits-piper-demo/en_US-demo.onnx": b"full precision",
            "vits-piper-demo/tokens.txt": b"a 1\nb 2\n",
            "vits-piper-demo/espeak-ng-data/phontab": b"phonemes",
            "vits-piper-demo/README.md": b"readme",
        },
    )
    models_dir = tmp_path / "models"
    calls: list[str] = []
    monkeypatch.setattr(
        AcquisitionManager, "_download", _fake_download(calls, {archive_url: archive})
    )
    descriptor = _descriptor(
        "piper-demo", url=archive_url, compressed=True, developer="piper"
    )

    paths = await _build_manager().ensure_ready(models_dir, descriptor)

    voice = models_dir / "piper-demo"
    assert paths.is_ready
    assert calls == [archive_url]
    assert (voice / "model.onnx").read_bytes() == b"full precision"
    assert (voice / "tokens.txt").read_bytes() == b"a 1\nb 2\n"
    assert (voice / "espeak-ng-data" / "phontab").read_bytes() == b"phonemes"
    assert paths.extras[ExtraRole.PHONEME_DATA] == voice / "espeak-ng-data"
    # The archive and the extraction scratch space are cleaned up.
    assert sorted(p.name for p in voice.iterdir()) == ["espeak-ng-data", "model.onnx", "tokens.txt"]


@pytest.mark.asyncio
async def test_archive_missing_required_files_fails(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    archive_url = "https://models.example/broken.tar.bz2"
    archive = _build_archive(tmp_path / "broken.tar.bz2", {"broken/model.onnx": b"weights"})
    monkeypatch.setattr(
        AcquisitionManager, "_download", _fake_download([], {archive_url: archive})
    )

    with pytest.raises(AcquisitionError) as excinfo:
        await _build_manager().ensure_ready(
            tmp_path / "models", _descriptor("broken", url=archive_url, compressed=True)
        )

    assert excinfo.value.missing == ["tokens.txt"]


@pytest.mark.asyncio
async def test_two_stage_voice_fetches_shared_vocoder(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, write_file: Callable[..., Path]
) -> None:
    write_file(tmp_path / "demo-matcha" / "model.onnx")
    write_file(tmp_path / "demo-matcha" / "tokens.txt")
    calls: list[str] = []
    monkeypatch.setattr(AcquisitionManager, "_download", _fake_download(calls))
    descriptor = _descriptor(
        "demo-matcha",
        url="https://models.example/demo-matcha",
        architecture=ModelArchitecture.TWO_STAGE_VOCODER,
    )

    paths = await _build_manager().ensure_ready(tmp_path, descriptor)

    assert calls == [VOCODER_URL]
    assert paths.vocoder_path == tmp_path / VOCODER_FILENAME
    assert paths.vocoder_path.is_file()


def test_find_archive_entries_prefers_shallow_full_precision_files(tmp_path: Path) -> None:
    root = tmp_path / "extracted"
    (root / "model" / "nested").mkdir(parents=True)
    (root / "model" / "tokens.txt").write_text("top")
    (root / "model" / "nested" / "tokens.txt").write_text("nested")
    (root / "model" / "voice.int8.onnx").write_bytes(b"q")
    (root / "model" / "voice.onnx").write_bytes(b"f")

    found = find_archive_entries(root, [MODEL, TOKENS])

    assert found[TOKENS] == root / "model" / "tokens.txt"
    assert found[MODEL] == root / "model" / "voice.onnx"


def test_real_download_streams_through_part_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    class _Response:
        def __enter__(self) -> "_Response":
            return self

        def __exit__(self, *exc: object) -> None:
            return None

        def raise_for_status(self) -> None:
            return None

        def iter_content(self, chunk_size: int):
            yield b"abc"
            yield b""
            yield b"def"

    manager = _build_manager()
    monkeypatch.setattr(manager._session, "get", lambda url, stream, timeout: _Response())

    dest = tmp_path / "model.onnx"
    written = manager._download("https://models.example/model.onnx", dest, model_id="demo")

    assert written == 6
    assert dest.read_bytes() == b"abcdef"
    assert not (tmp_path / "model.onnx.part").exists()


def test_empty_download_is_rejected(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    class _EmptyResponse:
        def __enter__(self) -> "_EmptyResponse":
            return self

        def __exit__(self, *exc: object) -> None:
            return None

        def raise_for_status(self) -> None:
            return None

        def iter_content(self, chunk_size: int):
            return iter(())

    manager = _build_manager()
    monkeypatch.setattr(manager._session, "get", lambda url, stream, timeout: _EmptyResponse())

    with pytest.raises(AcquisitionError):
        manager._download("https://models.example/model.onnx", tmp_path / "model.onnx", model_id="demo")

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_concurrent_acquisitions_of_one_model_download_once(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[str] = []

    def _slow_download(self: AcquisitionManager, url: str, dest: Path, *, model_id: str) -> int:
        calls.append(url)
        time.sleep(0.05)
        dest.write_bytes(b"weights")
        return len(b"weights")

    monkeypatch.setattr(AcquisitionManager, "_download", _slow_download)
    manager = _build_manager()

    first, second = await asyncio.gather(
        manager.ensure_ready(tmp_path, _descriptor()),
        manager.ensure_ready(tmp_path, _descriptor()),
    )

    assert first.is_ready and second.is_ready
    assert sorted(calls) == [
        "https://models.example/demo/model.onnx",
        "https://models.example/demo/tokens.txt",
    ]


def test_failed_install_leaves_no_staging_entry(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, write_file: Callable[..., Path]
) -> None:
    src = write_file(tmp_path / "extracted" / "voice.onnx", b"weights")
    dest = tmp_path / "voice" / "model.onnx"
    dest.parent.mkdir()

    def _partial_copy(source: Path, target: Path) -> None:
        Path(target).write_bytes(b"wei")
        raise OSError("No space left on device")

    monkeypatch.setattr("offline_tts.services.acquisition.shutil.copyfile", _partial_copy)

    with pytest.raises(OSError, match="No space left"):
        _install(src, dest, is_dir=False)

    assert list(dest.parent.iterdir()) == []
