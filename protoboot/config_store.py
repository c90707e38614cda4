"""Loading and saving of the human-editable ``proto.conf`` settings file.

The file is line oriented::

    # whole-file comment lines
    ---

    # comment lines for the setting below
    Parrot version: 2.3.0

Comments stay attached to the setting that follows them. Settings are loaded
in file order but saved sorted by name, so a load/save round trip preserves
content, not ordering.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Sequence, Tuple
import os
import re
import tempfile

from .directories import DirectoryEnsurer
from .errors import ConfigCreated, ConfigError, ConfigErrorKind
from .paths import PathLayout, derive, is_windows, shortened_for_tool_invocation

Settings = Dict[str, str]
CommentBlock = Dict[str, List[str]]

FILE_COMMENT_KEY = "/"
SEPARATOR = "---"
KEY_VALUE_SEPARATOR = ": "
_SEPARATOR_LINE = re.compile(r"---\s*")

CONFIG_VERSION = "proto.conf version"
LIBRARY = "Perl 6 library"
CACHE = "Proto projects cache"
RAKUDO_BUILD_DIR = "Rakudo build directory"
RAKUDO_VERSION = "Rakudo version"
PARROT_BUILD_DIR = "Parrot build directory"
PARROT_INSTALL_DIR = "Parrot install directory"
PARROT_VERSION = "Parrot version"
PERL6_EXECUTABLE = "Perl 6 executable"
MAKE_UTILITY = "Make utility"
PERL5_EXECUTABLE = "Perl 5 executable"
TEST_WHEN_BUILDING = "Test when building"
TEST_FAILURE_POLICY = "Test failure policy"
PROJECT_DEVELOPER = "Perl 6 project developer"

DEFAULT_CONFIG_VERSION = "2010-04-21"
DEFAULT_RAKUDO_VERSION = "2010.04"
DEFAULT_PARROT_VERSION = "2.3.0"

DEFAULT_COMMENTS: Dict[str, List[str]] = {
    CONFIG_VERSION: [
        "proto.conf version -- version number of this file's layout.",
        "Used to decide whether the file needs upgrading; never edit it by hand.",
    ],
    CACHE: [
        "Proto projects cache -- base directory in which each project",
        "gets its own download directory.",
    ],
    RAKUDO_BUILD_DIR: ["Rakudo build directory -- Rakudo source is compiled here."],
    RAKUDO_VERSION: [
        "Rakudo version -- 'bleeding' (requires git) or a monthly release",
        "such as '2010.04'.",
    ],
    PARROT_BUILD_DIR: ["Parrot build directory -- Parrot source is compiled here."],
    PARROT_INSTALL_DIR: [
        "Parrot install directory -- Parrot and Rakudo are installed here.",
    ],
    PARROT_VERSION: [
        "Parrot version -- 'Rakudo-decides' (use the revision Rakudo asks for),",
        "'HEAD' or a revision number such as 45822 (both require subversion),",
        "or a release number such as '2.3.0'.",
    ],
    PERL6_EXECUTABLE: ["Perl 6 executable -- how to run perl6, with a possible file extension."],
    LIBRARY: [
        "Perl 6 library -- directory, created if missing, that holds the",
        "projects installed by proto. Projects already installed have to be",
        "moved along if this path is changed.",
    ],
    MAKE_UTILITY: [
        "Make utility -- the command that builds Parrot, Rakudo and",
        "application projects from their Makefile.",
    ],
    PERL5_EXECUTABLE: [
        "Perl 5 executable -- the perl that runs Parrot's and Rakudo's Configure.pl.",
    ],
    TEST_WHEN_BUILDING: [
        "Test when building -- whether to run the test suites of projects",
        "right after building them. Values other than 'yes' mean 'no'.",
    ],
    TEST_FAILURE_POLICY: [
        "Test failure policy -- 'die' halts the build on a failing test suite,",
        "any other value keeps going. Only used when 'Test when building' is 'yes'.",
    ],
    PROJECT_DEVELOPER: [
        "Perl 6 project developer -- 'yes' to try read-write checkouts of",
        "project repositories first, falling back to a normal download.",
    ],
}


def load_config(path: Path) -> Tuple[Settings, CommentBlock]:
    """Parse *path* into settings (file order) and their comment blocks."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(ConfigErrorKind.NOT_FOUND, "configuration file does not exist", path=path) from None
    except OSError as exc:
        raise ConfigError(ConfigErrorKind.NOT_FOUND, f"cannot read configuration file: {exc}", path=path) from exc

    settings: Settings = {}
    comments: CommentBlock = {}
    collected: List[str] = []
    seen_separator = False

    for number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        if line.startswith("#"):
            comment = line[1:]
            collected.append(comment[1:] if comment.startswith(" ") else comment)
            continue
        if _SEPARATOR_LINE.fullmatch(line):
            if seen_separator or settings:
                raise ConfigError(
                    ConfigErrorKind.PARSE_ERROR,
                    f"'{SEPARATOR}' must appear once, before any setting",
                    path=path,
                    line=number,
                )
            seen_separator = True
            if collected:
                comments[FILE_COMMENT_KEY] = collected
            collected = []
            continue
        key, sep, value = line.partition(KEY_VALUE_SEPARATOR)
        if not sep and line.endswith(":"):
            key, sep, value = line[:-1], ":", ""
        if not sep or not key.strip():
            raise ConfigError(
                ConfigErrorKind.PARSE_ERROR,
                f"expected 'key: value', a '#' comment or '{SEPARATOR}', got '{line}'",
                path=path,
                line=number,
            )
        if key in settings:
            raise ConfigError(ConfigErrorKind.PARSE_ERROR, f"duplicate setting '{key}'", path=path, line=number)
        settings[key] = value
        if collected:
            comments[key] = collected
        collected = []

    return settings, comments


def _validate_entries(path: Path, settings: Mapping[str, str], comments: Mapping[str, Sequence[str]]) -> None:
    for key, value in settings.items():
        problem = None
        if not key.strip():
            problem = "empty setting name"
        elif key.startswith("#"):
            problem = f"setting name '{key}' starts with '#'"
        elif KEY_VALUE_SEPARATOR in key:
            problem = f"setting name '{key}' contains '{KEY_VALUE_SEPARATOR}'"
        elif any(ch in key for ch in "\r\n"):
            problem = f"setting name {key!r} contains a line break"
        elif any(ch in value for ch in "\r\n"):
            problem = f"value of '{key}' contains a line break"
        if problem:
            raise ConfigError(ConfigErrorKind.INVALID_ENTRY, problem, path=path)
    for owner, lines in comments.items():
        for line in lines:
            if any(ch in line for ch in "\r\n"):
                raise ConfigError(ConfigErrorKind.INVALID_ENTRY, f"comment for '{owner}' contains a line break", path=path)


def render_config(settings: Mapping[str, str], comments: Mapping[str, Sequence[str]] | None = None) -> str:
    comments = comments or {}
    lines: List[str] = [f"# {comment}" for comment in comments.get(FILE_COMMENT_KEY, [])]
    lines.append(SEPARATOR)
    for key in sorted(settings):
        lines.append("")
        lines.extend(f"# {comment}" for comment in comments.get(key, []))
        lines.append(f"{key}{KEY_VALUE_SEPARATOR}{settings[key]}")
    return "\n".join(lines) + "\n"


def save_config(
    path: Path,
    settings: Mapping[str, str],
    comments: Mapping[str, Sequence[str]] | None = None,
) -> None:
    """Write *settings* sorted by name, each preceded by its comments."""
    path = Path(path)
    _validate_entries(path, settings, comments or {})
    content = render_config(settings, comments)
    temp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
        ) as handle:
            temp_name = handle.name
            handle.write(content)
        os.replace(temp_name, path)
    except OSError as exc:
        if temp_name is not None:
            Path(temp_name).unlink(missing_ok=True)
        raise ConfigError(ConfigErrorKind.UNWRITABLE, f"cannot write configuration file: {exc}", path=path) from exc


@dataclass(frozen=True, slots=True)
class BootstrapConfig:
    """Typed view of the settings the orchestrator consumes."""

    library: Path
    cache: Path
    rakudo_build_dir: Path
    rakudo_version: str
    parrot_build_dir: Path
    parrot_install_dir: Path
    parrot_version: str
    perl6_executable: Path
    make_utility: str
    perl_interpreter: str

    REQUIRED_KEYS = (
        LIBRARY,
        CACHE,
        RAKUDO_BUILD_DIR,
        RAKUDO_VERSION,
        PARROT_BUILD_DIR,
        PARROT_INSTALL_DIR,
        PARROT_VERSION,
        PERL6_EXECUTABLE,
        MAKE_UTILITY,
        PERL5_EXECUTABLE,
    )

    @classmethod
    def from_settings(cls, settings: Mapping[str, str], *, source: Path | None = None) -> "BootstrapConfig":
        missing = [key for key in cls.REQUIRED_KEYS if key not in settings]
        if missing:
            raise ConfigError(
                ConfigErrorKind.MISSING_KEY,
                f"missing required setting(s): {', '.join(repr(key) for key in missing)}",
                path=source,
            )
        empty = [key for key in (MAKE_UTILITY, PERL5_EXECUTABLE, PERL6_EXECUTABLE) if not settings[key].strip()]
        if empty:
            raise ConfigError(
                ConfigErrorKind.MISSING_KEY,
                f"setting(s) must not be empty: {', '.join(repr(key) for key in empty)}",
                path=source,
            )
        return cls(
            library=Path(settings[LIBRARY]),
            cache=Path(settings[CACHE]),
            rakudo_build_dir=Path(settings[RAKUDO_BUILD_DIR]),
            rakudo_version=settings[RAKUDO_VERSION],
            parrot_build_dir=Path(settings[PARROT_BUILD_DIR]),
            parrot_install_dir=Path(settings[PARROT_INSTALL_DIR]),
            parrot_version=settings[PARROT_VERSION],
            perl6_executable=Path(settings[PERL6_EXECUTABLE]),
            make_utility=settings[MAKE_UTILITY],
            perl_interpreter=settings[PERL5_EXECUTABLE],
        )


def check_layout(config: BootstrapConfig, layout: PathLayout) -> List[Tuple[str, Path, Path]]:
    """Return ``(setting, stored, derived)`` for every stored path that differs from the layout."""
    expected = [
        (LIBRARY, config.library, layout.library),
        (CACHE, config.cache, layout.cache),
        (RAKUDO_BUILD_DIR, config.rakudo_build_dir, layout.build_dir_for("rakudo")),
        (PARROT_BUILD_DIR, config.parrot_build_dir, layout.build_dir_for("parrot")),
        (PARROT_INSTALL_DIR, config.parrot_install_dir, layout.install_dir_for("parrot")),
    ]
    return [(key, stored, derived) for key, stored, derived in expected if stored != derived]


class ConfigStore:
    """Owns the settings and comments of one ``proto.conf`` for the process lifetime."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.settings: Settings = {}
        self.comments: CommentBlock = {}

    @property
    def layout(self) -> PathLayout:
        # proto.conf lives in <root>/proto/
        return derive(self.path.parent.parent)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Tuple[Settings, CommentBlock]:
        self.settings, self.comments = load_config(self.path)
        return self.settings, self.comments

    def save(self) -> None:
        save_config(self.path, self.settings, self.comments)

    def bootstrap_config(self) -> BootstrapConfig:
        return BootstrapConfig.from_settings(self.settings, source=self.path)

    def create_default(
        self,
        *,
        make_utility: str,
        perl_interpreter: str,
        perl6_override: str | None = None,
        windows: bool | None = None,
    ) -> None:
        """Write a default config derived from the layout, then halt with :class:`ConfigCreated`."""
        if self.path.exists():
            raise ConfigError(ConfigErrorKind.ALREADY_EXISTS, "cannot configure: file already exists", path=self.path)
        if windows is None:
            windows = is_windows()
        layout = self.layout
        DirectoryEnsurer().ensure_all([layout.library, layout.cache])

        if perl6_override:
            perl6 = perl6_override
        else:
            perl6 = shortened_for_tool_invocation(layout.perl6_executable(windows=windows), windows=windows)

        self.settings = {
            CONFIG_VERSION: DEFAULT_CONFIG_VERSION,
            RAKUDO_VERSION: DEFAULT_RAKUDO_VERSION,
            PARROT_VERSION: DEFAULT_PARROT_VERSION,
            CACHE: str(layout.cache),
            RAKUDO_BUILD_DIR: str(layout.build_dir_for("rakudo")),
            PARROT_BUILD_DIR: str(layout.build_dir_for("parrot")),
            PARROT_INSTALL_DIR: str(layout.install_dir_for("parrot")),
            PERL6_EXECUTABLE: perl6,
            LIBRARY: str(layout.library),
            MAKE_UTILITY: make_utility,
            PERL5_EXECUTABLE: perl_interpreter,
            TEST_WHEN_BUILDING: "no",
            TEST_FAILURE_POLICY: "die",
            PROJECT_DEVELOPER: "no",
        }
        self.comments = {
            FILE_COMMENT_KEY: [
                f"{self.path} -- created by proto",
                'This file contains settings as "key: value" pairs, and comments.',
                "You are welcome to edit it by hand.",
            ],
            **{key: list(lines) for key, lines in DEFAULT_COMMENTS.items()},
        }
        self.save()
        raise ConfigCreated(self.path, self._created_message())

    def _created_message(self) -> str:
        return (
            "*** CONFIG FILE CREATED ***\n\n"
            f"A configuration file you may want to review was written to\n'{self.path}'.\n\n"
            "The default settings suit most installations. The most important ones are:\n"
            f"{LIBRARY:<22} -> {self.settings[LIBRARY]}\n"
            f"{PERL6_EXECUTABLE:<22} -> {self.settings[PERL6_EXECUTABLE]}\n\n"
            "These settings are used to bootstrap Perl 6 when you run 'install rakudo'."
        )
