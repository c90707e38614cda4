"""Command line interface for the Perl 6 bootstrapper."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace, RawDescriptionHelpFormatter
from pathlib import Path
from typing import Dict, Iterable, List
import os
import sys

from .archive import ArchiveExtractor
from .command_runner import CommandRunner, SubprocessCommandRunner
from .config_store import BootstrapConfig, ConfigStore, check_layout
from .console import Console
from .directories import DirectoryEnsurer
from .errors import BootstrapError, ConfigCreated, ConfigError, ConfigErrorKind
from .network import Downloader
from .orchestrator import BuildOrchestrator
from .paths import default_config_path
from .source_control import SourceControl
from .stages import StageRunner
from .targets import RAKUDO, build_targets
from .toolchain import FALLBACK_MAKE, detect_make_utility, detect_perl_interpreter

PERL6_OVERRIDE_ENV = "PERL6EXE"

HELP_TEXTS: Dict[str, str] = {
    "configure": """\
protoboot configure proto

Writes a default proto.conf next to the Perl 6 library and stops so you can
review it. Nothing is downloaded or built. The file must not exist yet;
edit it by hand afterwards if the defaults do not suit you. If the PERL6EXE
environment variable is set, its value is stored as the Perl 6 executable.""",
    "install": """\
protoboot install <target>

Downloads, configures, builds and verifies <target> together with everything
it depends on. Targets are 'parrot' and 'rakudo'; installing rakudo builds
parrot first. Stages that already completed in an earlier run are skipped,
so an interrupted install can simply be started again. Refuses to run when
the target is already installed; use 'upgrade' for that.""",
    "upgrade": """\
protoboot upgrade <target>

Brings an installed <target> up to the versions named in proto.conf. Moving
versions ('bleeding' for rakudo, 'HEAD' for parrot) are fetched again;
everything else is rebuilt only when its inputs changed.""",
    "help": """\
protoboot help [command]

Shows general help, or the detailed help of one command.""",
}


def _build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="protoboot",
        description="Bootstrap a Perl 6 toolchain (Parrot and Rakudo) from source",
        formatter_class=RawDescriptionHelpFormatter,
        epilog="Run 'protoboot help <command>' for details on a command.",
    )
    parser.add_argument("--config", type=Path, help="Path to proto.conf (default: ~/.perl6/proto/proto.conf)")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only show errors")
    subparsers = parser.add_subparsers(dest="command")

    configure_parser = subparsers.add_parser("configure", help="Create a default configuration file")
    configure_parser.add_argument("subject", choices=["proto"], help="What to configure")

    install_parser = subparsers.add_parser("install", help="Build and install a target")
    install_parser.add_argument("target", help="Target to install (parrot or rakudo)")

    upgrade_parser = subparsers.add_parser("upgrade", help="Rebuild an installed target")
    upgrade_parser.add_argument("target", help="Target to upgrade (parrot or rakudo)")

    help_parser = subparsers.add_parser("help", help="Show help for a command")
    help_parser.add_argument("topic", nargs="?", help="Command to describe")
    return parser


def _console_for(args: Namespace) -> Console:
    if args.verbose:
        return Console("debug")
    if args.quiet:
        return Console("error")
    return Console("info")


def _requested_command(argv: List[str]) -> str | None:
    """First positional argument, skipping the values of global options."""
    skip_value = False
    for arg in argv:
        if skip_value:
            skip_value = False
            continue
        if arg == "--config":
            skip_value = True
            continue
        if arg.startswith("-"):
            continue
        return arg
    return None


def main(argv: Iterable[str] | None = None, *, runner: CommandRunner | None = None) -> int:
    parser = _build_parser()
    arguments = list(sys.argv[1:] if argv is None else argv)
    requested = _requested_command(arguments)
    if requested is not None and requested not in HELP_TEXTS:
        print(f"Unknown command '{requested}'")
        parser.print_help()
        return 0
    args = parser.parse_args(arguments)
    console = _console_for(args)

    if args.command is None:
        parser.print_help()
        return 0
    if args.command == "help":
        return _handle_help(parser, args.topic)

    store = ConfigStore(args.config or default_config_path())
    runner = runner or SubprocessCommandRunner()
    try:
        if args.command == "configure":
            return _handle_configure(store, runner, console)
        if args.command == "install":
            return _handle_build(store, runner, console, args.target, upgrade=False)
        if args.command == "upgrade":
            return _handle_build(store, runner, console, args.target, upgrade=True)
    except ConfigCreated as created:
        print(created.message)
        return 0
    except BootstrapError as exc:
        console.error(str(exc))
        return 1
    raise ValueError(f"Unknown command: {args.command}")


def _handle_help(parser: ArgumentParser, topic: str | None) -> int:
    if topic is None:
        parser.print_help()
        return 0
    text = HELP_TEXTS.get(topic)
    if text is None:
        print(f"No help for '{topic}'. Commands: {', '.join(HELP_TEXTS)}")
        parser.print_help()
        return 0
    print(text)
    return 0


def _handle_configure(store: ConfigStore, runner: CommandRunner, console: Console) -> int:
    make_utility = detect_make_utility(runner)
    if make_utility is None:
        console.warn(f"No working make utility found; writing '{FALLBACK_MAKE}', edit the config to change it")
        make_utility = FALLBACK_MAKE
    override = os.environ.get(PERL6_OVERRIDE_ENV) or None
    if override:
        console.info(f"Using {PERL6_OVERRIDE_ENV}={override} as the Perl 6 executable")
    store.create_default(
        make_utility=make_utility,
        perl_interpreter=detect_perl_interpreter(),
        perl6_override=override,
    )
    return 0


def _load_config(store: ConfigStore, console: Console) -> BootstrapConfig:
    if not store.exists():
        raise ConfigError(ConfigErrorKind.NOT_FOUND, "no configuration yet; first run 'protoboot configure proto'", path=store.path)
    store.load()
    config = store.bootstrap_config()
    for key, stored, derived in check_layout(config, store.layout):
        console.warn(f"'{key}' is {stored}, the standard location would be {derived}")
    DirectoryEnsurer(console).ensure_all([config.library, config.cache])
    return config


def _handle_build(store: ConfigStore, runner: CommandRunner, console: Console, target: str, *, upgrade: bool) -> int:
    override = os.environ.get(PERL6_OVERRIDE_ENV)
    if override and target == RAKUDO:
        console.info(f"{PERL6_OVERRIDE_ENV} is set to {override}; not building {RAKUDO}")
        return 0

    config = _load_config(store, console)
    ensurer = DirectoryEnsurer(console)
    stage_runner = StageRunner(
        runner=runner,
        downloader=Downloader(console),
        source_control=SourceControl(runner, console),
        extractor=ArchiveExtractor(console),
        ensurer=ensurer,
        console=console,
    )
    orchestrator = BuildOrchestrator(build_targets(config), stage_runner, console)
    if upgrade:
        orchestrator.upgrade_target(target)
    else:
        orchestrator.install_target(target)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
