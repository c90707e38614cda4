"""Build targets: the Parrot virtual machine and the Rakudo runtime on top of it."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List

from .config_store import BootstrapConfig
from .errors import VersionError, VersionErrorKind
from .paths import executable_name, is_windows, shortened_for_tool_invocation
from .versions import AcquisitionStrategy, ReleaseTarball, StrategyKind

PARROT = "parrot"
RAKUDO = "rakudo"

PARROT_TARBALL_URL = "http://ftp.parrot.org/releases/{channel}/{version}/parrot-{version}.tar.gz"
PARROT_SVN_URL = "https://svn.parrot.org/parrot/trunk"
RAKUDO_TARBALL_URL = "http://cloud.github.com/downloads/rakudo/rakudo/rakudo-{version}.tar.gz"
RAKUDO_GIT_URL = "https://github.com/rakudo/rakudo.git"

BUILD_CONTROL_FILE = "Makefile"
PERL6_SMOKE_PROGRAM = "say 'Perl 6 rocks!'"
PERL6_SMOKE_OUTPUT = "Perl 6 rocks!\n"


@dataclass(slots=True)
class TargetRecipe:
    """How one layer is fetched, configured, built and checked."""

    supported: FrozenSet[StrategyKind]
    archive_name: str
    tree_name: str
    unpack_marker: str
    configure_command: List[str]
    compile_command: List[str]
    artifact: Path
    verify_command: List[str]
    verify_expected: str
    tarball_url: str | None = None
    git_url: str | None = None
    svn_url: str | None = None
    pinned_revision_marker: str | None = None
    build_control_file: str = BUILD_CONTROL_FILE


@dataclass(slots=True)
class BuildTarget:
    name: str
    version_spec: str
    build_dir: Path
    recipe: TargetRecipe
    install_dir: Path | None = None
    # build-order dependency: its artifact must be installed before this target configures
    depends_on: "BuildTarget | None" = field(default=None, repr=False, compare=False)
    # target whose pinned-revision marker decides this target's revision
    revision_source: "BuildTarget | None" = field(default=None, repr=False, compare=False)

    def check_supported(self, strategy: AcquisitionStrategy) -> None:
        if strategy.kind not in self.recipe.supported:
            allowed = ", ".join(sorted(kind.value for kind in self.recipe.supported))
            raise VersionError(
                VersionErrorKind.UNSUPPORTED,
                self.version_spec,
                f"{self.name} version '{self.version_spec}' selects {strategy.kind.value}, "
                f"but {self.name} can only be acquired as: {allowed}",
            )

    def source_dir(self, strategy: AcquisitionStrategy) -> Path:
        """Directory holding the source tree that gets configured and built."""
        if isinstance(strategy, ReleaseTarball):
            return self.build_dir / self.recipe.tree_name.format(version=strategy.version)
        return self.build_dir

    def archive_path(self, strategy: ReleaseTarball) -> Path:
        return self.build_dir / self.recipe.archive_name.format(version=strategy.version)

    def tarball_url(self, strategy: ReleaseTarball) -> str:
        if self.recipe.tarball_url is None:
            raise VersionError(VersionErrorKind.UNSUPPORTED, strategy.version, f"{self.name} has no release tarballs")
        return self.recipe.tarball_url.format(version=strategy.version, channel=strategy.channel)

    def pinned_revision_path(self, strategy: AcquisitionStrategy) -> Path | None:
        if self.recipe.pinned_revision_marker is None:
            return None
        return self.source_dir(strategy) / self.recipe.pinned_revision_marker

    def download_logs(self) -> tuple[Path, Path]:
        parent = self.build_dir.parent
        return parent / f"{self.name}-download.log", parent / f"{self.name}-download.err"


def parrot_target(config: BootstrapConfig, *, windows: bool | None = None) -> BuildTarget:
    if windows is None:
        windows = is_windows()
    install_dir = config.parrot_install_dir
    bin_dir = install_dir / "bin"
    prefix = shortened_for_tool_invocation(install_dir, windows=windows).replace("\\", "/")
    configure = [config.perl_interpreter, "Configure.pl", f"--prefix={prefix}"]
    if not windows:
        configure.append("--optimize")
    recipe = TargetRecipe(
        supported=frozenset({StrategyKind.RELEASE_TARBALL, StrategyKind.SOURCE_REVISION, StrategyKind.INHERITED}),
        archive_name="parrot-{version}.tar.gz",
        tree_name="parrot-{version}",
        unpack_marker="VERSION",
        configure_command=configure,
        compile_command=[config.make_utility, "install"],
        artifact=bin_dir / executable_name("parrot", windows=windows),
        verify_command=[str(bin_dir / executable_name("parrot_config", windows=windows)), "prefix"],
        verify_expected=f"{prefix}\n",
        tarball_url=PARROT_TARBALL_URL,
        svn_url=PARROT_SVN_URL,
    )
    return BuildTarget(
        name=PARROT,
        version_spec=config.parrot_version,
        build_dir=config.parrot_build_dir,
        install_dir=install_dir,
        recipe=recipe,
    )


def rakudo_target(config: BootstrapConfig, parrot: BuildTarget, *, windows: bool | None = None) -> BuildTarget:
    if windows is None:
        windows = is_windows()
    parrot_config = config.parrot_install_dir / "bin" / executable_name("parrot_config", windows=windows)
    recipe = TargetRecipe(
        supported=frozenset({StrategyKind.RELEASE_TARBALL, StrategyKind.ROLLING_BRANCH}),
        archive_name="rakudo-{version}.tar.gz",
        tree_name="rakudo-{version}",
        unpack_marker="build/PARROT_REVISION",
        configure_command=[
            config.perl_interpreter,
            "Configure.pl",
            f"--parrot-config={shortened_for_tool_invocation(parrot_config, windows=windows)}",
        ],
        compile_command=[config.make_utility, "install"],
        artifact=config.perl6_executable,
        verify_command=[str(config.perl6_executable), "-e", PERL6_SMOKE_PROGRAM],
        verify_expected=PERL6_SMOKE_OUTPUT,
        tarball_url=RAKUDO_TARBALL_URL,
        git_url=RAKUDO_GIT_URL,
        pinned_revision_marker="build/PARROT_REVISION",
    )
    return BuildTarget(
        name=RAKUDO,
        version_spec=config.rakudo_version,
        build_dir=config.rakudo_build_dir,
        recipe=recipe,
        depends_on=parrot,
    )


def build_targets(config: BootstrapConfig, *, windows: bool | None = None) -> Dict[str, BuildTarget]:
    """Both layers in build order, base layer first."""
    parrot = parrot_target(config, windows=windows)
    rakudo = rakudo_target(config, parrot, windows=windows)
    parrot.revision_source = rakudo
    return {PARROT: parrot, RAKUDO: rakudo}
