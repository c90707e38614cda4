"""Pipeline stages and their filesystem satisfaction predicates.

Every stage of a target has a named predicate (``<stage>_satisfied``) that
only looks at the filesystem, and a named action (``execute_<stage>``) that
produces what the predicate looks for. The orchestrator runs an action only
when its predicate is false and checks the predicate again afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List
import shutil

from .archive import ArchiveError, ArchiveExtractor
from .command_runner import CommandError, CommandRunner
from .console import Console
from .directories import DirectoryEnsurer
from .errors import StageError
from .network import Downloader, NetworkError
from .source_control import SourceControl
from .targets import BuildTarget
from .versions import (
    AcquisitionStrategy,
    InheritedFromDependency,
    ReleaseTarball,
    RollingBranch,
    SourceRevision,
)

ACQUISITION_MARKER = ".protoboot-acquired"
CONFIGURE_LOGS = ("proto-configure.log", "proto-configure-error.log")
COMPILE_LOGS = ("proto-make.log", "proto-make-error.log")


class PipelineStage(str, Enum):
    ACQUIRE = "acquire"
    UNPACK = "unpack"
    CONFIGURE = "configure"
    COMPILE = "compile"
    VERIFY = "verify"


PIPELINE: List[PipelineStage] = [
    PipelineStage.ACQUIRE,
    PipelineStage.UNPACK,
    PipelineStage.CONFIGURE,
    PipelineStage.COMPILE,
    PipelineStage.VERIFY,
]


@dataclass(slots=True)
class TargetRun:
    """One target's pass through the pipeline during a single orchestration run."""

    target: BuildTarget
    strategy: AcquisitionStrategy
    executed: List[PipelineStage] = field(default_factory=list)
    verified: bool = False

    @property
    def source_dir(self) -> Path:
        return self.target.source_dir(self.strategy)

    @property
    def build_control_file(self) -> Path:
        return self.source_dir / self.target.recipe.build_control_file


def acquisition_label(strategy: AcquisitionStrategy) -> str:
    if isinstance(strategy, SourceRevision):
        return strategy.revision
    if isinstance(strategy, RollingBranch):
        return "bleeding"
    if isinstance(strategy, ReleaseTarball):
        return strategy.version
    return "inherited"


def _mtime_ns(path: Path) -> int:
    return path.stat().st_mtime_ns


class StageRunner:
    def __init__(
        self,
        *,
        runner: CommandRunner,
        downloader: Downloader,
        source_control: SourceControl,
        extractor: ArchiveExtractor,
        ensurer: DirectoryEnsurer | None = None,
        console: Console | None = None,
    ) -> None:
        self._runner = runner
        self._downloader = downloader
        self._source_control = source_control
        self._extractor = extractor
        self._ensurer = ensurer or DirectoryEnsurer(console)
        self._console = console or Console("none")
        self._predicates: Dict[PipelineStage, Callable[[TargetRun], bool]] = {
            PipelineStage.ACQUIRE: self.acquire_satisfied,
            PipelineStage.UNPACK: self.unpack_satisfied,
            PipelineStage.CONFIGURE: self.configure_satisfied,
            PipelineStage.COMPILE: self.compile_satisfied,
            PipelineStage.VERIFY: self.verify_satisfied,
        }
        self._actions: Dict[PipelineStage, Callable[[TargetRun], None]] = {
            PipelineStage.ACQUIRE: self.execute_acquire,
            PipelineStage.UNPACK: self.execute_unpack,
            PipelineStage.CONFIGURE: self.execute_configure,
            PipelineStage.COMPILE: self.execute_compile,
            PipelineStage.VERIFY: self.execute_verify,
        }

    def is_satisfied(self, stage: PipelineStage, run: TargetRun) -> bool:
        return self._predicates[stage](run)

    def execute(self, stage: PipelineStage, run: TargetRun) -> None:
        self._actions[stage](run)
        run.executed.append(stage)

    def note_satisfied(self, stage: PipelineStage, run: TargetRun) -> None:
        """Report a stage that is skipped because its result is already on disk."""
        name = run.target.name
        strategy = run.strategy
        if stage is PipelineStage.ACQUIRE and isinstance(strategy, ReleaseTarball):
            archive = run.target.archive_path(strategy)
            self._console.info(f"{name}: {archive.name} already downloaded ({archive.stat().st_size} bytes)")
            return
        self._console.debug(f"{name}: {stage.value} already satisfied")

    # --- Satisfaction predicates ---

    def acquire_satisfied(self, run: TargetRun) -> bool:
        strategy = run.strategy
        if isinstance(strategy, ReleaseTarball):
            archive = run.target.archive_path(strategy)
            return archive.is_file() and archive.stat().st_size > 0
        if isinstance(strategy, InheritedFromDependency):
            return False
        checkout = run.target.build_dir
        if not checkout.is_dir() or not any(checkout.iterdir()):
            return False
        if self.recorded_acquisition(run.target) != acquisition_label(strategy):
            return False
        if isinstance(strategy, RollingBranch):
            return self._source_control.is_git_repository(checkout)
        return self._source_control.is_svn_working_copy(checkout)

    def unpack_satisfied(self, run: TargetRun) -> bool:
        if not isinstance(run.strategy, ReleaseTarball):
            return True
        return (run.source_dir / run.target.recipe.unpack_marker).is_file()

    def configure_satisfied(self, run: TargetRun) -> bool:
        control = run.build_control_file
        if not control.is_file():
            return False
        marker = run.target.build_dir / ACQUISITION_MARKER
        if not isinstance(run.strategy, ReleaseTarball) and marker.is_file():
            # a fresh checkout invalidates the previous configuration
            if _mtime_ns(marker) > _mtime_ns(control):
                return False
        dependency = run.target.depends_on
        if dependency is None:
            return True
        dependency_artifact = dependency.recipe.artifact
        if not dependency_artifact.is_file():
            return False
        return _mtime_ns(control) >= _mtime_ns(dependency_artifact)

    def compile_satisfied(self, run: TargetRun) -> bool:
        artifact = run.target.recipe.artifact
        control = run.build_control_file
        if not artifact.is_file() or not control.is_file():
            return False
        return _mtime_ns(artifact) >= _mtime_ns(control)

    def verify_satisfied(self, run: TargetRun) -> bool:
        return run.verified or PipelineStage.COMPILE not in run.executed

    def recorded_acquisition(self, target: BuildTarget) -> str | None:
        marker = target.build_dir / ACQUISITION_MARKER
        try:
            lines = marker.read_text(encoding="utf-8").splitlines()
        except OSError:
            return None
        return lines[0] if lines else None

    # --- Actions ---

    def execute_acquire(self, run: TargetRun) -> None:
        target = run.target
        strategy = run.strategy
        stage = PipelineStage.ACQUIRE.value
        if isinstance(strategy, InheritedFromDependency):
            raise StageError(target.name, stage, "inherited version was not resolved before acquisition")

        if isinstance(strategy, ReleaseTarball):
            self._ensurer.ensure(target.build_dir)
            url = target.tarball_url(strategy)
            archive = target.archive_path(strategy)
            self._console.info(f"Downloading {archive.name} from {url}")
            try:
                self._downloader.mirror(url, archive)
            except NetworkError as exc:
                raise StageError(target.name, stage, str(exc)) from exc
            return

        stdout_log, stderr_log = target.download_logs()
        self._ensurer.ensure(target.build_dir.parent)
        try:
            if isinstance(strategy, RollingBranch):
                if target.recipe.git_url is None:
                    raise StageError(target.name, stage, "no git repository configured")
                if target.build_dir.exists():
                    self._console.info(f"Removing {target.build_dir} for a fresh clone")
                    shutil.rmtree(target.build_dir)
                self._source_control.clone(
                    target.recipe.git_url, target.build_dir, stdout_log=stdout_log, stderr_log=stderr_log
                )
                commit = self._source_control.head_commit(target.build_dir)
                if commit:
                    self._console.info(f"{target.name} cloned at {commit}")
            else:
                if target.recipe.svn_url is None:
                    raise StageError(target.name, stage, "no subversion repository configured")
                self._source_control.checkout(
                    target.recipe.svn_url,
                    strategy.revision,
                    target.build_dir,
                    stdout_log=stdout_log,
                    stderr_log=stderr_log,
                )
            (target.build_dir / ACQUISITION_MARKER).write_text(acquisition_label(strategy) + "\n", encoding="utf-8")
        except CommandError as exc:
            raise StageError(target.name, stage, str(exc)) from exc
        except OSError as exc:
            raise StageError(target.name, stage, f"{exc.filename or target.build_dir}: {exc.strerror or exc}") from exc

    def execute_unpack(self, run: TargetRun) -> None:
        strategy = run.strategy
        if not isinstance(strategy, ReleaseTarball):
            return
        archive = run.target.archive_path(strategy)
        try:
            self._extractor.extract_archive(archive_path=archive, destination_dir=run.target.build_dir)
        except ArchiveError as exc:
            raise StageError(run.target.name, PipelineStage.UNPACK.value, str(exc)) from exc

    def _run_build_tool(self, run: TargetRun, stage: PipelineStage, command: List[str], logs: tuple[str, str]) -> None:
        source_dir = run.source_dir
        if not source_dir.is_dir():
            raise StageError(run.target.name, stage.value, f"source directory '{source_dir}' does not exist")
        if run.target.install_dir is not None:
            self._ensurer.ensure(run.target.install_dir)
        self._console.info(f"{run.target.name}: {stage.value} in {source_dir}")
        try:
            self._runner.run(
                command,
                cwd=source_dir,
                note=stage.value,
                stdout_log=source_dir / logs[0],
                stderr_log=source_dir / logs[1],
            )
        except CommandError as exc:
            raise StageError(run.target.name, stage.value, str(exc)) from exc

    def execute_configure(self, run: TargetRun) -> None:
        self._run_build_tool(run, PipelineStage.CONFIGURE, run.target.recipe.configure_command, CONFIGURE_LOGS)

    def execute_compile(self, run: TargetRun) -> None:
        self._run_build_tool(run, PipelineStage.COMPILE, run.target.recipe.compile_command, COMPILE_LOGS)

    def execute_verify(self, run: TargetRun) -> None:
        recipe = run.target.recipe
        stage = PipelineStage.VERIFY.value
        result = self._runner.run(recipe.verify_command, note=stage, check=False)
        if result.returncode != 0:
            raise StageError(
                run.target.name,
                stage,
                f"'{self._runner.format_command(recipe.verify_command)}' exited with {result.returncode}: {result.stderr.strip()}",
            )
        if result.stdout != recipe.verify_expected:
            raise StageError(
                run.target.name,
                stage,
                f"'{self._runner.format_command(recipe.verify_command)}' printed {result.stdout!r}, "
                f"expected {recipe.verify_expected!r}",
            )
        run.verified = True
