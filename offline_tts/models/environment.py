from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class EnvironmentCheck:
    """Result of probing the host for the native inference backend."""

    can_run: bool = False
    has_main_package: bool = False
    has_platform_package: bool = False
    has_native_module: bool = False
    platform_key: str = "unknown"
    expected_package: Optional[str] = None
    found_library_path: Optional[str] = None
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def summary(self) -> str:
        if self.can_run:
            return f"native backend available ({self.platform_key})"
        return "; ".join(self.issues) or "native backend unavailable"
