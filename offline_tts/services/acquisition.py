from __future__ import annotations

import asyncio
import os
import shutil
import tarfile
import tempfile
from pathlib import Path
from threading import Lock, RLock
from typing import Dict, Iterable, Optional
from urllib.parse import urlparse

import requests

from offline_tts import metrics as app_metrics
from offline_tts.assets import (
    KNOWN_EXTRAS,
    MODEL,
    TOKENS,
    VOCODER_FILENAME,
    AssetResolver,
    FileSpec,
    entry_present,
    needs_vocoder,
    required_files,
)
from offline_tts.errors import AcquisitionError
from offline_tts.logging_utils import get_logger
from offline_tts.models import ModelDescriptor, ResolvedPaths


logger = get_logger(__name__)

_CHUNK_SIZE = 1 << 16


class AcquisitionManager:
    """Downloads and lays out model assets when a voice directory is incomplete.

    Writes always go to temporary names that are atomically renamed into
    place, and entries that already verify are never rewritten, so a failed
    acquisition leaves any previously-ready files untouched. Acquisitions of
    the same model id within one process are serialized; a waiting caller
    re-checks the directory and usually takes the cache-hit path.
    """

    def __init__(
        self,
        *,
        resolver: AssetResolver,
        vocoder_url: str,
        auto_download: bool = True,
        timeout_seconds: float = 60.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._resolver = resolver
        self._vocoder_url = vocoder_url
        self._auto_download = auto_download
        self._timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        self._locks: Dict[str, Lock] = {}
        self._locks_guard = RLock()

    def _lock_for(self, model_id: str) -> Lock:
        with self._locks_guard:
            lock = self._locks.get(model_id)
            if lock is None:
                lock = Lock()
                self._locks[model_id] = lock
            return lock

    async def ensure_ready(self, base_dir: Path | str, descriptor: ModelDescriptor) -> ResolvedPaths:
        """Return resolved paths for a fully-populated voice directory."""
        base = Path(base_dir)
        paths = self._resolver.resolve(base, descriptor)
        if paths.is_ready:
            app_metrics.record_acquisition(descriptor.id, "cache_hit")
            return paths

        if not self._auto_download:
            app_metrics.record_acquisition(descriptor.id, "failed")
            raise AcquisitionError(
                descriptor.id,
                "model assets missing and automatic download is disabled",
                missing=paths.missing,
            )

        return await asyncio.to_thread(self._ensure_ready_locked, base, descriptor)

    def _ensure_ready_locked(self, base: Path, descriptor: ModelDescriptor) -> ResolvedPaths:
        with self._lock_for(descriptor.id):
            paths = self._resolver.resolve(base, descriptor)
            if paths.is_ready:
                app_metrics.record_acquisition(descriptor.id, "cache_hit")
                return paths

            logger.info(
                "Acquiring model %s (compressed=%s, missing=%s)",
                descriptor.id,
                descriptor.compressed,
                ", ".join(paths.missing),
            )
            try:
                self._acquire(base, descriptor, paths)
            except AcquisitionError:
                app_metrics.record_acquisition(descriptor.id, "failed")
                raise
            except (requests.RequestException, tarfile.TarError, OSError) as exc:
                app_metrics.record_acquisition(descriptor.id, "failed")
                logger.error("Acquisition of %s failed: %s", descriptor.id, exc)
                raise AcquisitionError(descriptor.id, str(exc)) from exc

            paths = self._resolver.resolve(base, descriptor)
            if not paths.is_ready:
                app_metrics.record_acquisition(descriptor.id, "failed")
                raise AcquisitionError(
                    descriptor.id,
                    "model assets incomplete after acquisition",
                    missing=paths.missing,
                )

            app_metrics.record_acquisition(descriptor.id, "downloaded")
            logger.info("Model %s ready in %s", descriptor.id, paths.voice_dir)
            return paths

    def _acquire(self, base: Path, descriptor: ModelDescriptor, paths: ResolvedPaths) -> None:
        voice_dir = paths.voice_dir
        voice_dir.mkdir(parents=True, exist_ok=True)

        voice_missing = [m for m in paths.missing if m != VOCODER_FILENAME]
        if voice_missing:
            if descriptor.compressed:
                self._acquire_archive(descriptor, voice_dir)
            else:
                self._acquire_files(descriptor, voice_dir)

        if needs_vocoder(descriptor) and VOCODER_FILENAME in paths.missing:
            # One vocoder at the storage root serves every two-stage voice.
            logger.info("Downloading shared vocoder to %s", base)
            self._download(self._vocoder_url, base / VOCODER_FILENAME, model_id=descriptor.id)

    def _acquire_files(self, descriptor: ModelDescriptor, voice_dir: Path) -> None:
        base_url = descriptor.url.rstrip("/")
        for spec in required_files(descriptor):
            dest = voice_dir / spec.filename
            if entry_present(dest, spec.is_dir):
                continue
            if spec.is_dir:
                raise AcquisitionError(
                    descriptor.id,
                    f"directory '{spec.filename}' cannot be fetched from an uncompressed source",
                )
            self._download(f"{base_url}/{spec.filename}", dest, model_id=descriptor.id)

    def _acquire_archive(self, descriptor: ModelDescriptor, voice_dir: Path) -> None:
        archive_path = voice_dir / _archive_name(descriptor.url)
        self._download(descriptor.url, archive_path, model_id=descriptor.id)
        try:
            with tempfile.TemporaryDirectory(prefix=".extract-", dir=voice_dir) as tmp:
                extract_dir = Path(tmp)
                logger.info("Extracting %s", archive_path.name)
                with tarfile.open(archive_path, "r:*") as tar:
                    tar.extractall(extract_dir, filter="data")
                specs = _unique((MODEL, TOKENS, *required_files(descriptor), *KNOWN_EXTRAS))
                found = find_archive_entries(extract_dir, specs)
                for spec, src in found.items():
                    dest = voice_dir / spec.filename
                    if entry_present(dest, spec.is_dir):
                        continue
                    logger.info("Installing %s -> %s", src.relative_to(extract_dir), dest.name)
                    _install(src, dest, is_dir=spec.is_dir)
        finally:
            archive_path.unlink(missing_ok=True)

    def _download(self, url: str, dest: Path, *, model_id: str) -> int:
        """Stream url into dest via a .part file; returns the byte count."""
        part = dest.with_name(dest.name + ".part")
        logger.info("Downloading %s", url)
        total = 0
        try:
            with self._session.get(url, stream=True, timeout=self._timeout_seconds) as resp:
                resp.raise_for_status()
                with open(part, "wb") as fh:
                    for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                        if chunk:
                            fh.write(chunk)
                            total += len(chunk)
            if total == 0:
                raise AcquisitionError(model_id, f"empty response from {url}")
            os.replace(part, dest)
        finally:
            part.unlink(missing_ok=True)
        app_metrics.record_download_bytes(model_id, total)
        logger.info("Downloaded %d bytes to %s", total, dest)
        return total


def _archive_name(url: str) -> str:
    name = os.path.basename(urlparse(url).path)
    return name or "model.tar.bz2"


def _unique(specs: Iterable[FileSpec]) -> list[FileSpec]:
    out: list[FileSpec] = []
    for spec in specs:
        if spec not in out:
            out.append(spec)
    return out


def _model_rank(path: Path) -> tuple[int, int, int]:
    name = path.name
    return (
        0 if name == MODEL.filename else 1,
        1 if "int8" in name else 0,
        len(path.parts),
    )


def find_archive_entries(root: Path, specs: Iterable[FileSpec]) -> dict[FileSpec, Path]:
    """Locate the best match for each FileSpec inside an extracted archive tree."""
    candidates: dict[FileSpec, list[Path]] = {spec: [] for spec in specs}
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames.sort()
        for spec in candidates:
            if spec.is_dir:
                candidates[spec].extend(current / d for d in dirnames if spec.matches(d, True))
            else:
                candidates[spec].extend(current / f for f in sorted(filenames) if spec.matches(f, False))

    found: dict[FileSpec, Path] = {}
    for spec, paths in candidates.items():
        if not paths:
            continue
        if spec is MODEL:
            found[spec] = min(paths, key=_model_rank)
        else:
            # os.walk is top-down, so the first match is the shallowest.
            found[spec] = min(paths, key=lambda p: len(p.parts))
    return found


def _install(src: Path, dest: Path, *, is_dir: bool) -> None:
    staging = dest.with_name(f".{dest.name}.staging")
    try:
        if is_dir:
            shutil.rmtree(staging, ignore_errors=True)
            shutil.copytree(src, staging)
            # Only reached for an empty or broken entry.
            if dest.is_dir():
                shutil.rmtree(dest)
            elif dest.exists():
                dest.unlink()
        else:
            shutil.copyfile(src, staging)
        os.replace(staging, dest)
    finally:
        if staging.is_dir():
            shutil.rmtree(staging, ignore_errors=True)
        else:
            staging.unlink(missing_ok=True)
