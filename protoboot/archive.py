"""Extraction of downloaded release archives."""
from __future__ import annotations

from pathlib import Path
import shutil
import tarfile
import tempfile

from .console import Console

# release tarballs of both layers are gzip compressed
_SUFFIX_FORMATS: list[tuple[str, str]] = [
    (".tar.gz", "gztar"),
    (".tgz", "gztar"),
    (".tar", "tar"),
]

_TAR_MODES: dict[str, str] = {
    "gztar": "r:gz",
    "tar": "r:",
}


class ArchiveError(RuntimeError):
    """Raised when an archive cannot be read or extracted."""


def resolve_archive_format(archive: Path) -> str:
    filename = archive.name.lower()
    for suffix, fmt in sorted(_SUFFIX_FORMATS, key=lambda item: len(item[0]), reverse=True):
        if filename.endswith(suffix):
            return fmt
    raise ArchiveError(f"Unable to determine archive format of '{archive}'")


class ArchiveExtractor:
    """Extract archives so that a partially extracted tree never appears in place.

    Members are unpacked into a temporary directory next to the destination
    and each top-level entry is then moved into the destination, replacing any
    leftover from an interrupted earlier extraction.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console("none")

    def extract_archive(self, *, archive_path: Path | str, destination_dir: Path | str) -> list[Path]:
        """Extract *archive_path* into *destination_dir*; return the top-level entries."""
        archive = Path(archive_path).expanduser()
        dest = Path(destination_dir).expanduser()

        if not archive.is_file():
            raise ArchiveError(f"Archive '{archive}' does not exist")
        archive_format = resolve_archive_format(archive)
        dest.mkdir(parents=True, exist_ok=True)

        staging = Path(tempfile.mkdtemp(prefix=".extracting-", dir=dest))
        try:
            try:
                self._extract_into(archive, archive_format, staging)
            except (tarfile.TarError, EOFError, OSError) as exc:
                raise ArchiveError(f"Cannot extract '{archive}': {exc}") from exc
            entries = []
            for item in sorted(staging.iterdir()):
                target = dest / item.name
                if target.is_dir() and not target.is_symlink():
                    shutil.rmtree(target)
                elif target.exists() or target.is_symlink():
                    target.unlink()
                item.replace(target)
                entries.append(target)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        self._console.info(f"Extracted {archive.name} to {dest}")
        return entries

    def _extract_into(self, archive: Path, archive_format: str, dest: Path) -> None:
        if archive_format not in _TAR_MODES:
            raise ArchiveError(f"Unsupported archive format: {archive_format}")
        with tarfile.open(archive, _TAR_MODES[archive_format]) as tar:
            tar.extractall(path=dest, filter="data")
