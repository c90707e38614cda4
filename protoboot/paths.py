"""Directory layout derived from a single root path."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePath, PureWindowsPath
from typing import Dict
import os
import platform

from .errors import ConfigError, ConfigErrorKind

CONFIG_FILE_NAME = "proto.conf"
SHORT_NAME_LENGTH = 6


def is_windows() -> bool:
    return platform.system().lower() == "windows"


def executable_name(name: str, *, windows: bool | None = None) -> str:
    """Return *name* with the platform's executable suffix."""
    if windows is None:
        windows = is_windows()
    return f"{name}.exe" if windows else name


def home_directory() -> Path:
    if is_windows():
        drive = os.environ.get("HOMEDRIVE")
        home_path = os.environ.get("HOMEPATH")
        if drive and home_path:
            return Path(drive + home_path)
    home = os.environ.get("HOME")
    if home:
        return Path(home)
    return Path.home()


def default_root() -> Path:
    return home_directory() / ".perl6"


def default_config_path() -> Path:
    return derive(default_root()).config_file


@dataclass(frozen=True, slots=True)
class PathLayout:
    """Every directory the bootstrapper uses, relative to ``root``.

    ``root/lib``              module library
    ``root/proto``            state and config holder
    ``root/proto/cache``      download cache
    ``root/parrot``           Parrot build tree
    ``root/rakudo``           Rakudo build tree
    ``root/parrot_install``   install tree shared by both layers
    """

    root: Path

    @property
    def library(self) -> Path:
        return self.root / "lib"

    @property
    def state_dir(self) -> Path:
        return self.root / "proto"

    @property
    def cache(self) -> Path:
        return self.state_dir / "cache"

    @property
    def config_file(self) -> Path:
        return self.state_dir / CONFIG_FILE_NAME

    @property
    def install_root(self) -> Path:
        return self.root / "parrot_install"

    def _build_dirs(self) -> Dict[str, Path]:
        return {
            "parrot": self.root / "parrot",
            "rakudo": self.root / "rakudo",
        }

    def _install_dirs(self) -> Dict[str, Path]:
        return {"parrot": self.install_root}

    def build_dir_for(self, target_name: str) -> Path:
        try:
            return self._build_dirs()[target_name]
        except KeyError:
            raise ConfigError(ConfigErrorKind.UNKNOWN_TARGET, f"No build directory for target '{target_name}'") from None

    def install_dir_for(self, target_name: str) -> Path:
        try:
            return self._install_dirs()[target_name]
        except KeyError:
            raise ConfigError(ConfigErrorKind.UNKNOWN_TARGET, f"No install directory for target '{target_name}'") from None

    def perl6_executable(self, *, windows: bool | None = None) -> Path:
        return self.install_root / "bin" / executable_name("perl6", windows=windows)

    def all_directories(self) -> Dict[str, Path]:
        directories = {
            "library": self.library,
            "cache": self.cache,
            "state": self.state_dir,
            "install:parrot": self.install_root,
        }
        for name, path in self._build_dirs().items():
            directories[f"build:{name}"] = path
        return directories


def derive(root: Path | str) -> PathLayout:
    return PathLayout(root=Path(root))


def _short_segment(segment: str) -> str:
    compact = "".join(segment.split())
    return compact[:SHORT_NAME_LENGTH].upper() + "~1"


def shortened_for_tool_invocation(path: PurePath | str, *, windows: bool | None = None) -> str:
    """Replace whitespace-containing segments with 8.3-style short names.

    Only for arguments handed to external build tools that split unquoted
    paths on spaces. The result is lossy and must not be used to read or write
    files. Identity on non-Windows platforms.
    """
    if windows is None:
        windows = is_windows()
    text = str(path)
    if not windows or not any(ch.isspace() for ch in text):
        return text
    pure = PureWindowsPath(text)
    parts = list(pure.parts)
    start = 1 if pure.anchor else 0
    for index in range(start, len(parts)):
        if any(ch.isspace() for ch in parts[index]):
            parts[index] = _short_segment(parts[index])
    return str(PureWindowsPath(*parts))
