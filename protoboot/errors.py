"""Error taxonomy shared by every bootstrap component.

Every error raised here is fatal: the orchestration run stops and the
command line frontend turns the error into a nonzero exit status. The only
non-error outcome that halts a workflow is :class:`ConfigCreated`.
"""
from __future__ import annotations

from enum import Enum
from pathlib import Path


class BootstrapError(RuntimeError):
    """Base class for fatal bootstrap failures."""


class ConfigErrorKind(str, Enum):
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    PARSE_ERROR = "parse-error"
    MISSING_KEY = "missing-key"
    INVALID_ENTRY = "invalid-entry"
    UNKNOWN_TARGET = "unknown-target"
    UNWRITABLE = "unwritable"


class ConfigError(BootstrapError):
    """Raised for missing, duplicate or malformed configuration."""

    def __init__(
        self,
        kind: ConfigErrorKind,
        message: str,
        *,
        path: Path | None = None,
        line: int | None = None,
    ) -> None:
        location = ""
        if path is not None:
            location = f"{path}"
            if line is not None:
                location = f"{location}:{line}"
            location = f"{location}: "
        super().__init__(f"{location}{message}")
        self.kind = kind
        self.path = path
        self.line = line


class VersionErrorKind(str, Enum):
    MALFORMED = "malformed"
    UNSUPPORTED = "unsupported"


class VersionError(BootstrapError):
    """Raised when a version string cannot drive any acquisition strategy."""

    def __init__(self, kind: VersionErrorKind, version: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.version = version


class DirectoryError(BootstrapError):
    """Raised when a directory chain cannot be created."""

    def __init__(self, path: Path, segment: Path, reason: str) -> None:
        super().__init__(f"Cannot create directory '{path}': '{segment}' {reason}")
        self.path = path
        self.segment = segment


class StageError(BootstrapError):
    """Raised when a pipeline stage fails for a build target."""

    def __init__(self, target: str, stage: str, detail: str) -> None:
        super().__init__(f"{target}: {stage} failed: {detail}")
        self.target = target
        self.stage = stage
        self.detail = detail


class InstallStateError(BootstrapError):
    """Raised when install/upgrade is requested in the wrong install state."""


class ConfigCreated(Exception):
    """Signals that a default config file was just written and must be reviewed."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(message)
        self.path = path
        self.message = message
