from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from offline_tts.models.environment import EnvironmentCheck


class OfflineTTSError(Exception):
    """Base class for errors raised by the offline synthesis pipeline."""


class ModelNotFoundError(OfflineTTSError, ValueError):
    """The requested model id is not in the catalog.

    This is a configuration error: it is surfaced immediately and never
    retried or degraded.
    """

    def __init__(self, model_id: str) -> None:
        self.model_id = model_id
        super().__init__(f"Unknown model '{model_id}'")


class AcquisitionError(OfflineTTSError):
    """Model assets could not be downloaded, extracted or verified."""

    def __init__(
        self,
        model_id: str,
        message: str,
        *,
        missing: Sequence[str] = (),
    ) -> None:
        self.model_id = model_id
        self.missing = list(missing)
        detail = message
        if self.missing:
            detail = f"{message} (missing: {', '.join(self.missing)})"
        super().__init__(f"[{model_id}] {detail}")


class NativeBackendUnavailable(OfflineTTSError):
    """The native inference backend cannot be loaded on this host."""

    def __init__(self, environment_check: "EnvironmentCheck", message: str | None = None) -> None:
        self.environment_check = environment_check
        issues = "; ".join(environment_check.issues) or "unknown reason"
        super().__init__(message or f"Native backend unavailable: {issues}")


class EngineError(OfflineTTSError):
    """Engine configuration was rejected or generation failed."""


class DegradedModeError(OfflineTTSError):
    """Raised in strict mode when synthesis would use placeholder audio."""
