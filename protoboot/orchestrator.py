"""Dependency-ordered, resumable orchestration of the build pipeline."""
from __future__ import annotations

from enum import Enum
from typing import Dict, List, Mapping
import os

from .console import Console
from .errors import BootstrapError, ConfigError, ConfigErrorKind, InstallStateError, StageError
from .stages import ACQUISITION_MARKER, PIPELINE, PipelineStage, StageRunner, TargetRun
from .targets import BuildTarget
from .versions import InheritedFromDependency, classify, is_moving, read_pinned_revision


class TargetState(str, Enum):
    NOT_STARTED = "not-started"
    ACQUIRED = "acquired"
    UNPACKED = "unpacked"
    CONFIGURED = "configured"
    BUILT = "built"
    VERIFIED = "verified"
    FAILED = "failed"


_STATE_AFTER: Dict[PipelineStage, TargetState] = {
    PipelineStage.ACQUIRE: TargetState.ACQUIRED,
    PipelineStage.UNPACK: TargetState.UNPACKED,
    PipelineStage.CONFIGURE: TargetState.CONFIGURED,
    PipelineStage.COMPILE: TargetState.BUILT,
    PipelineStage.VERIFY: TargetState.VERIFIED,
}


def is_installed(target: BuildTarget) -> bool:
    artifact = target.recipe.artifact
    return artifact.is_file() and os.access(artifact, os.X_OK)


class BuildOrchestrator:
    """Drive build targets through ``acquire -> unpack -> configure -> compile -> verify``.

    *targets* maps names to targets in build order; a target's
    ``depends_on`` chain is always driven to ``VERIFIED`` before the target
    itself configures. Any failure marks the target ``FAILED`` and propagates,
    so nothing after it runs.
    """

    def __init__(self, targets: Mapping[str, BuildTarget], stage_runner: StageRunner, console: Console | None = None) -> None:
        self._targets = dict(targets)
        self._stages = stage_runner
        self._console = console or Console("none")
        self.states: Dict[str, TargetState] = {name: TargetState.NOT_STARTED for name in self._targets}
        self.runs: Dict[str, TargetRun] = {}

    def target(self, name: str) -> BuildTarget:
        try:
            return self._targets[name]
        except KeyError:
            known = ", ".join(self._targets)
            raise ConfigError(ConfigErrorKind.UNKNOWN_TARGET, f"Unknown target '{name}' (known: {known})") from None

    def chain(self, name: str) -> List[BuildTarget]:
        """*name* preceded by everything it depends on, base layer first."""
        ordered: List[BuildTarget] = []
        current: BuildTarget | None = self.target(name)
        while current is not None:
            if any(member is current for member in ordered):
                raise ConfigError(ConfigErrorKind.UNKNOWN_TARGET, f"Dependency cycle through '{current.name}'")
            ordered.insert(0, current)
            current = current.depends_on
        return ordered

    def _prepare_run(self, target: BuildTarget) -> TargetRun:
        run = self.runs.get(target.name)
        if run is not None:
            return run
        strategy = classify(target.version_spec)
        target.check_supported(strategy)
        run = TargetRun(target=target, strategy=strategy)
        self.runs[target.name] = run
        return run

    def _drive(self, run: TargetRun, stages: List[PipelineStage]) -> None:
        name = run.target.name
        for stage in stages:
            if self._stages.is_satisfied(stage, run):
                self._stages.note_satisfied(stage, run)
            else:
                self._console.debug(f"{name}: running {stage.value}")
                self._stages.execute(stage, run)
                if not self._stages.is_satisfied(stage, run):
                    raise StageError(name, stage.value, "stage finished but its result is not present on disk")
            self.states[name] = _STATE_AFTER[stage]

    def _resolve_inherited(self, run: TargetRun) -> None:
        target = run.target
        source = target.revision_source
        if source is None:
            raise StageError(target.name, PipelineStage.ACQUIRE.value, "version defers to a dependency, but none is defined")
        source_run = self._prepare_run(source)
        self._console.info(f"{target.name}: reading the revision {source.name} asks for")
        self._drive(source_run, [PipelineStage.ACQUIRE, PipelineStage.UNPACK])
        marker = source.pinned_revision_path(source_run.strategy)
        if marker is None:
            raise StageError(target.name, PipelineStage.ACQUIRE.value, f"{source.name} records no pinned revision")
        run.strategy = read_pinned_revision(marker, target=target.name)
        target.check_supported(run.strategy)
        self._console.info(f"{target.name}: using revision {run.strategy.revision} chosen by {source.name}")

    def run_target(self, target: BuildTarget) -> TargetRun:
        """Drive one target to ``VERIFIED``; its dependencies must already be verified."""
        dependency = target.depends_on
        if dependency is not None and self.states.get(dependency.name) is not TargetState.VERIFIED:
            raise StageError(target.name, PipelineStage.CONFIGURE.value, f"{dependency.name} is not verified yet")
        try:
            run = self._prepare_run(target)
            if isinstance(run.strategy, InheritedFromDependency):
                self._resolve_inherited(run)
            self._drive(run, PIPELINE)
        except BootstrapError:
            self.states[target.name] = TargetState.FAILED
            self._console.warn(f"{target.name} failed; nothing after it will run")
            raise
        self._console.info(f"{target.name} is ready ({', '.join(s.value for s in run.executed) or 'nothing to do'})")
        return run

    def run_chain(self, name: str) -> List[TargetRun]:
        chain = self.chain(name)
        # reject bad versions anywhere in the chain before any stage runs
        for target in chain:
            try:
                self._prepare_run(target)
            except BootstrapError:
                self.states[target.name] = TargetState.FAILED
                self._console.warn(f"{target.name} cannot be built")
                raise
        return [self.run_target(target) for target in chain]

    def install_target(self, name: str) -> List[TargetRun]:
        target = self.target(name)
        if is_installed(target):
            raise InstallStateError(f"{name} is already installed at {target.recipe.artifact}; use 'upgrade {name}'")
        self._console.info(f"Installing {name}")
        runs = self.run_chain(name)
        self._console.info(f"{name} has been installed: {target.recipe.artifact}")
        return runs

    def upgrade_target(self, name: str) -> List[TargetRun]:
        target = self.target(name)
        if not is_installed(target):
            raise InstallStateError(f"cannot upgrade {name}: install it first")
        for member in self.chain(name):
            self._invalidate_if_moving(member)
        self._console.info(f"Upgrading {name}")
        return self.run_chain(name)

    def _invalidate_if_moving(self, target: BuildTarget) -> None:
        strategy = classify(target.version_spec)
        if not is_moving(strategy):
            return
        self._console.info(f"{target.name}: '{target.version_spec}' moves upstream, fetching it again")
        marker = target.build_dir / ACQUISITION_MARKER
        try:
            marker.unlink(missing_ok=True)
        except OSError as exc:
            raise StageError(target.name, PipelineStage.ACQUIRE.value, f"cannot remove {marker}: {exc}") from exc
