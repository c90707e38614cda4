"""Idempotent creation of directory chains, one segment at a time."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable

from .console import Console
from .errors import DirectoryError


class DirectoryEnsurer:
    """Create missing directories segment by segment.

    A single recursive ``mkdir`` can be rejected on some drive/volume layouts
    when the chain starts at a new drive-relative root, so each prefix of the
    path is checked and created on its own.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console("none")

    def ensure(self, path: Path | str) -> Path:
        target = Path(path)
        if target.is_dir():
            return target
        parts = target.parts
        current: Path | None = None
        for part in parts:
            current = Path(part) if current is None else current / part
            if current.is_dir():
                continue
            if current.exists():
                raise DirectoryError(target, current, "exists and is not a directory")
            self._console.debug(f"Making {current}")
            try:
                current.mkdir()
            except FileExistsError:
                if not current.is_dir():
                    raise DirectoryError(target, current, "exists and is not a directory") from None
            except OSError as exc:
                raise DirectoryError(target, current, f"could not be created: {exc.strerror or exc}") from exc
        return target

    def ensure_all(self, paths: Iterable[Path | str]) -> None:
        for path in paths:
            self.ensure(path)


def ensure_directory(path: Path | str) -> Path:
    return DirectoryEnsurer().ensure(path)
