"""Classification of version strings into acquisition strategies."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Union
import re

from .errors import StageError, VersionError, VersionErrorKind

ROLLING_SENTINEL = "bleeding"
HEAD_SENTINEL = "HEAD"
INHERIT_SENTINEL = "Rakudo-decides"

_MONTHLY_RELEASE = re.compile(r"\d{4}\.\d{2}")
_DOTTED_RELEASE = re.compile(r"(\d+)\.(\d+)\.(\d+)")
_REVISION = re.compile(r"\d{5,6}")
_DIGITS = re.compile(r"\d+")

# Upstream publishes every third minor release on the supported channel.
RELEASE_CHANNELS: Dict[int, str] = {
    3: "supported",
    6: "supported",
    9: "supported",
    12: "supported",
}
DEFAULT_CHANNEL = "devel"


class StrategyKind(str, Enum):
    RELEASE_TARBALL = "release-tarball"
    SOURCE_REVISION = "source-revision"
    ROLLING_BRANCH = "rolling-branch"
    INHERITED = "inherited-from-dependency"


@dataclass(frozen=True, slots=True)
class ReleaseTarball:
    version: str
    channel: str | None = None

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.RELEASE_TARBALL


@dataclass(frozen=True, slots=True)
class SourceRevision:
    revision: str

    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.SOURCE_REVISION


@dataclass(frozen=True, slots=True)
class RollingBranch:
    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.ROLLING_BRANCH


@dataclass(frozen=True, slots=True)
class InheritedFromDependency:
    @property
    def kind(self) -> StrategyKind:
        return StrategyKind.INHERITED


AcquisitionStrategy = Union[ReleaseTarball, SourceRevision, RollingBranch, InheritedFromDependency]


def release_channel(version: str) -> str | None:
    """Distribution channel for a dotted three-part release, ``None`` otherwise."""
    match = _DOTTED_RELEASE.fullmatch(version)
    if match is None:
        return None
    return RELEASE_CHANNELS.get(int(match.group(2)), DEFAULT_CHANNEL)


def classify(version: str) -> AcquisitionStrategy:
    if _MONTHLY_RELEASE.fullmatch(version) or _DOTTED_RELEASE.fullmatch(version):
        return ReleaseTarball(version=version, channel=release_channel(version))
    if version == ROLLING_SENTINEL:
        return RollingBranch()
    if version == HEAD_SENTINEL or _REVISION.fullmatch(version):
        return SourceRevision(revision=version)
    if version == INHERIT_SENTINEL:
        return InheritedFromDependency()
    raise VersionError(
        VersionErrorKind.MALFORMED,
        version,
        f"Version '{version}' is not a release such as '2010.04' or '2.3.0', "
        f"a revision such as '45822', '{HEAD_SENTINEL}', '{ROLLING_SENTINEL}' or '{INHERIT_SENTINEL}'",
    )


def is_moving(strategy: AcquisitionStrategy) -> bool:
    """True for versions whose content changes upstream without a new version string."""
    if isinstance(strategy, RollingBranch):
        return True
    return isinstance(strategy, SourceRevision) and strategy.revision == HEAD_SENTINEL


def read_pinned_revision(marker: Path, *, target: str = "") -> SourceRevision:
    """Adopt the revision recorded in a dependency's pinned-revision marker file."""
    try:
        text = marker.read_text(encoding="utf-8")
    except OSError as exc:
        raise StageError(target or marker.name, "acquire", f"cannot read pinned revision from '{marker}': {exc}") from exc
    first_line = text.splitlines()[0] if text else ""
    match = _DIGITS.search(first_line)
    if match is None:
        raise VersionError(
            VersionErrorKind.MALFORMED,
            first_line,
            f"Cannot extract a revision number from '{marker}' (first line: '{first_line}')",
        )
    return SourceRevision(revision=match.group(0))
