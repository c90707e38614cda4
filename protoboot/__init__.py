"""Bootstrap a Perl 6 toolchain (Parrot and Rakudo) from source."""
from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__", "main"]


def main(argv=None) -> int:
    from .cli import main as cli_main

    return cli_main(argv)
