from __future__ import annotations

import importlib
import importlib.machinery
import importlib.util
import os
import platform as _platform
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from threading import RLock
from types import ModuleType
from typing import Any, Callable, MutableMapping, NoReturn, Optional

from offline_tts import metrics as app_metrics
from offline_tts.errors import NativeBackendUnavailable
from offline_tts.logging_utils import get_logger
from offline_tts.models import EnvironmentCheck


logger = get_logger(__name__)

BACKEND_MODULE = "sherpa_onnx"
BACKEND_DISTRIBUTION = "sherpa-onnx"
NATIVE_MODULE_PREFIX = "_sherpa_onnx"


class Platform(Enum):
    DARWIN_ARM64 = "darwin-arm64"
    DARWIN_X64 = "darwin-x64"
    LINUX_ARM64 = "linux-arm64"
    LINUX_X64 = "linux-x64"
    WIN_X64 = "win32-x64"

    @classmethod
    def current(cls) -> Optional["Platform"]:
        return cls.from_host(_platform.system(), _platform.machine())

    @classmethod
    def from_host(cls, system: str, machine: str) -> Optional["Platform"]:
        os_key = _SYSTEMS.get(system.lower())
        arch_key = _MACHINES.get(machine.lower())
        if os_key is None or arch_key is None:
            return None
        try:
            return cls(f"{os_key}-{arch_key}")
        except ValueError:
            return None


_SYSTEMS = {"darwin": "darwin", "linux": "linux", "windows": "win32"}
_MACHINES = {
    "x86_64": "x64",
    "amd64": "x64",
    "arm64": "arm64",
    "aarch64": "arm64",
}


@dataclass(frozen=True)
class PlatformTarget:
    wheel_tag: str
    library_path_var: str
    path_separator: str

    @property
    def package_id(self) -> str:
        return f"{BACKEND_DISTRIBUTION} ({self.wheel_tag})"


PLATFORM_TARGETS: dict[Platform, PlatformTarget] = {
    Platform.DARWIN_ARM64: PlatformTarget("macosx_11_0_arm64", "DYLD_LIBRARY_PATH", ":"),
    Platform.DARWIN_X64: PlatformTarget("macosx_10_15_x86_64", "DYLD_LIBRARY_PATH", ":"),
    Platform.LINUX_ARM64: PlatformTarget("manylinux_2_17_aarch64", "LD_LIBRARY_PATH", ":"),
    Platform.LINUX_X64: PlatformTarget("manylinux_2_17_x86_64", "LD_LIBRARY_PATH", ":"),
    Platform.WIN_X64: PlatformTarget("win_amd64", "PATH", ";"),
}


@dataclass
class BackendHandle:
    """Opaque handle to the loaded native backend module."""

    module: ModuleType | Any
    library_path: Path
    platform: Platform


def is_native_module(name: str) -> bool:
    return name.startswith(NATIVE_MODULE_PREFIX) and any(
        name.endswith(suffix) for suffix in importlib.machinery.EXTENSION_SUFFIXES
    )


class NativeBackendLoader:
    """Finds and loads the sherpa-onnx native backend for this host.

    Construct one per process (see ``offline_tts.container``). The first
    ``load()`` result, success or failure, is cached; ``reset()`` clears it
    for tests.
    """

    def __init__(
        self,
        *,
        native_lib_dir: str | Path | None = None,
        platform: Optional[Platform] = None,
        module_name: str = BACKEND_MODULE,
        environ: Optional[MutableMapping[str, str]] = None,
        importer: Callable[[str], Any] = importlib.import_module,
        find_spec: Callable[[str], Any] = importlib.util.find_spec,
    ) -> None:
        self._native_lib_dir = Path(native_lib_dir) if native_lib_dir else None
        self._platform = platform if platform is not None else Platform.current()
        self._module_name = module_name
        self._environ = environ if environ is not None else os.environ
        self._importer = importer
        self._find_spec = find_spec
        self._lock = RLock()
        self._handle: Optional[BackendHandle] = None
        self._failure: Optional[NativeBackendUnavailable] = None
        self._dll_directory: Any = None

    @property
    def platform(self) -> Optional[Platform]:
        return self._platform

    @property
    def platform_key(self) -> str:
        if self._platform is not None:
            return self._platform.value
        return f"{_platform.system().lower()}-{_platform.machine().lower()}"

    def check_environment(self) -> EnvironmentCheck:
        target = PLATFORM_TARGETS.get(self._platform) if self._platform else None
        check = EnvironmentCheck(
            platform_key=self.platform_key,
            expected_package=target.package_id if target else None,
        )
        if target is None:
            check.issues.append(f"Unsupported platform: {check.platform_key}")
            return check

        try:
            package_dirs = self._package_dirs()
            check.has_main_package = bool(package_dirs)
            if not check.has_main_package:
                check.issues.append(f"{BACKEND_DISTRIBUTION} Python package not found")
                check.recommendations.append(f"Install the backend: pip install {BACKEND_DISTRIBUTION}")

            lib_dir = self._find_library_dir(package_dirs)
            check.has_platform_package = lib_dir is not None
            if lib_dir is None:
                check.issues.append(f"Platform package {target.package_id} not found")
                check.recommendations.append(
                    f"Install a {BACKEND_DISTRIBUTION} wheel built for {target.wheel_tag}"
                    " or set SHERPA_ONNX_LIB_DIR"
                )
            else:
                check.found_library_path = str(lib_dir)
                check.has_native_module = any(is_native_module(p.name) for p in lib_dir.iterdir())
                if not check.has_native_module:
                    check.issues.append(f"Native module {NATIVE_MODULE_PREFIX} not found in {lib_dir}")
                    check.recommendations.append(
                        f"Reinstall the backend: pip install --force-reinstall {BACKEND_DISTRIBUTION}"
                    )
        except OSError as exc:
            check.issues.append(f"Environment check failed: {exc}")
            return check

        check.can_run = check.has_main_package and check.has_platform_package and check.has_native_module
        return check

    def load(self) -> BackendHandle:
        with self._lock:
            if self._handle is not None:
                return self._handle
            if self._failure is not None:
                raise self._failure

            check = self.check_environment()
            platform = self._platform
            target = PLATFORM_TARGETS.get(platform) if platform is not None else None
            if not check.can_run or platform is None or target is None:
                self._fail(check)

            lib_dir = Path(check.found_library_path or "")
            self._configure_library_path(lib_dir, platform, target)
            try:
                module = self._importer(self._module_name)
            except (ImportError, OSError) as exc:
                check.can_run = False
                check.issues.append(f"Could not import {self._module_name}: {exc}")
                self._fail(check, cause=exc)

            if not hasattr(module, "OfflineTts"):
                check.can_run = False
                check.issues.append(f"{self._module_name} does not provide OfflineTts")
                self._fail(check)

            self._handle = BackendHandle(module=module, library_path=lib_dir, platform=platform)
            logger.info("Loaded native backend %s from %s", self._module_name, lib_dir)
            return self._handle

    def reset(self) -> None:
        with self._lock:
            self._handle = None
            self._failure = None

    def diagnostics(self) -> dict[str, Any]:
        check = self.check_environment()
        target = PLATFORM_TARGETS.get(self._platform) if self._platform else None
        env_vars: dict[str, Optional[str]] = {}
        if target is not None:
            env_vars[target.library_path_var] = self._environ.get(target.library_path_var)
        return {
            "platform": check.platform_key,
            "expected_package": check.expected_package,
            "has_main_package": check.has_main_package,
            "has_platform_package": check.has_platform_package,
            "has_native_module": check.has_native_module,
            "environment_variables": env_vars,
            "recommendations": list(check.recommendations),
            "can_run": check.can_run,
        }

    def _fail(self, check: EnvironmentCheck, cause: Optional[BaseException] = None) -> NoReturn:
        failure = NativeBackendUnavailable(check)
        self._failure = failure
        app_metrics.record_native_load_failure(check.platform_key)
        logger.warning("Native backend unavailable: %s", check.summary())
        for hint in check.recommendations:
            logger.warning("  %s", hint)
        raise failure from cause

    def _package_dirs(self) -> list[Path]:
        try:
            spec = self._find_spec(self._module_name)
        except (ImportError, ValueError):
            return []
        if spec is None:
            return []
        return [Path(p) for p in (spec.submodule_search_locations or [])]

    def _find_library_dir(self, package_dirs: list[Path]) -> Optional[Path]:
        candidates: list[Path] = []
        if self._native_lib_dir is not None:
            candidates.append(self._native_lib_dir)
        for pkg in package_dirs:
            candidates.extend([pkg / "lib", pkg])
        for candidate in candidates:
            if candidate.is_dir():
                return candidate
        return None

    def _configure_library_path(self, lib_dir: Path, platform: Platform, target: PlatformTarget) -> None:
        var = target.library_path_var
        current = self._environ.get(var, "")
        entries = [e for e in current.split(target.path_separator) if e]
        if str(lib_dir) not in entries:
            self._environ[var] = target.path_separator.join([str(lib_dir), *entries])
            logger.info("Set %s to include %s", var, lib_dir)
        if platform is Platform.WIN_X64 and hasattr(os, "add_dll_directory"):
            self._dll_directory = os.add_dll_directory(str(lib_dir))
