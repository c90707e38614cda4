"""Utilities for executing external build, download and source-control commands."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Sequence
import os
import shlex
import subprocess

MISSING_EXECUTABLE_EXIT = 127


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    stdout_log: Path | None = None
    stderr_log: Path | None = None


class CommandError(RuntimeError):
    """Raised when a command fails."""

    def __init__(self, result: CommandResult):
        message = f"Command failed with exit code {result.returncode}: {' '.join(map(shlex.quote, result.command))}"
        if result.stderr_log is not None:
            message = f"{message}\nsee {result.stderr_log}"
            if result.stdout_log is not None:
                message = f"{message} and {result.stdout_log}"
        else:
            message = (
                f"{message}\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )
        super().__init__(message)
        self.result = result


class CommandRunner:
    """Abstract command runner interface.

    Output is captured into the result unless *stdout_log*/*stderr_log* are
    given, in which case it is redirected into those files.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stdout_log: Path | None = None,
        stderr_log: Path | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return " ".join(shlex.quote(str(part)) for part in command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`."""

    @staticmethod
    def _merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
        if env is None:
            return None
        merged = os.environ.copy()
        merged.update(env)
        return merged

    def _finalize(self, result: CommandResult, *, check: bool) -> CommandResult:
        if check and result.returncode != 0:
            raise CommandError(result)
        return result

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stdout_log: Path | None = None,
        stderr_log: Path | None = None,
    ) -> CommandResult:
        merged_env = self._merge_environment(env)
        args = [str(part) for part in command]
        if stdout_log is None and stderr_log is None:
            try:
                process = subprocess.run(
                    args,
                    cwd=str(cwd) if cwd else None,
                    env=merged_env,
                    capture_output=True,
                    text=True,
                    check=False,
                )
            except FileNotFoundError as exc:
                return self._finalize(
                    CommandResult(
                        command=args,
                        returncode=MISSING_EXECUTABLE_EXIT,
                        stdout="",
                        stderr=str(exc),
                    ),
                    check=check,
                )
            return self._finalize(
                CommandResult(
                    command=args,
                    returncode=process.returncode,
                    stdout=process.stdout,
                    stderr=process.stderr,
                ),
                check=check,
            )

        out_path = stdout_log or stderr_log
        err_path = stderr_log or stdout_log
        with open(out_path, "w", encoding="utf-8") as out_handle, open(
            err_path, "a" if err_path == out_path else "w", encoding="utf-8"
        ) as err_handle:
            try:
                process = subprocess.run(
                    args,
                    cwd=str(cwd) if cwd else None,
                    env=merged_env,
                    stdout=out_handle,
                    stderr=err_handle,
                    check=False,
                )
                returncode = process.returncode
            except FileNotFoundError as exc:
                err_handle.write(f"{exc}\n")
                returncode = MISSING_EXECUTABLE_EXIT

        return self._finalize(
            CommandResult(
                command=args,
                returncode=returncode,
                stdout="",
                stderr="",
                stdout_log=out_path,
                stderr_log=err_path,
            ),
            check=check,
        )


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    note: str | None
    stdout_log: str | None
    stderr_log: str | None


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them.

    Subclasses override :meth:`respond` to simulate side effects and exit codes.
    """

    def __init__(self) -> None:
        self.commands: List[RecordedCommand] = []

    @staticmethod
    def _record_entry(
        *,
        command: Sequence[str],
        cwd: Path | None,
        env: Mapping[str, str] | None,
        note: str | None,
        stdout_log: Path | None,
        stderr_log: Path | None,
    ) -> RecordedCommand:
        return RecordedCommand(
            command=[str(part) for part in command],
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env else {},
            note=note,
            stdout_log=str(stdout_log) if stdout_log else None,
            stderr_log=str(stderr_log) if stderr_log else None,
        )

    def respond(self, record: RecordedCommand) -> CommandResult:
        return CommandResult(command=record.command, returncode=0, stdout="", stderr="")

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stdout_log: Path | None = None,
        stderr_log: Path | None = None,
    ) -> CommandResult:
        record = self._record_entry(
            command=command,
            cwd=cwd,
            env=env,
            note=note,
            stdout_log=stdout_log,
            stderr_log=stderr_log,
        )
        self.commands.append(record)
        result = self.respond(record)
        if check and result.returncode != 0:
            raise CommandError(result)
        return result

