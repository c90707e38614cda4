"""Detection of the local build tools used to compile Parrot and Rakudo."""
from __future__ import annotations

from typing import List, Sequence, Tuple
import shutil

from .command_runner import CommandRunner

MAKE_CANDIDATES: List[Tuple[str, Sequence[str]]] = [
    ("make", ["--version"]),
    ("nmake", ["/HELP"]),
    ("mingw32-make", ["--version"]),
]
FALLBACK_MAKE = "make"
FALLBACK_PERL = "perl"


def detect_make_utility(runner: CommandRunner) -> str | None:
    """Return the first make flavour that runs successfully, or ``None``."""
    for command, arguments in MAKE_CANDIDATES:
        result = runner.run([command, *arguments], check=False)
        if result.returncode == 0:
            return command
    return None


def detect_perl_interpreter() -> str:
    return shutil.which("perl") or FALLBACK_PERL
