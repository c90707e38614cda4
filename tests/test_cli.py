from __future__ import annotations

from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
import io
import tempfile
import unittest
from unittest.mock import patch

from protoboot import cli
from protoboot.command_runner import CommandResult, RecordedCommand, RecordingCommandRunner
from protoboot.config_store import load_config, save_config
from protoboot.paths import derive


class NoMakeRunner(RecordingCommandRunner):
    def respond(self, record: RecordedCommand) -> CommandResult:
        return CommandResult(command=record.command, returncode=127, stdout="", stderr="not found")


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.layout = derive(Path(self.temp_dir.name) / ".perl6")
        self.config_path = self.layout.config_file
        self.runner = RecordingCommandRunner()
        env = patch.dict("os.environ", {"PERL6EXE": ""})
        env.start()
        self.addCleanup(env.stop)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _main(self, *argv: str, runner: RecordingCommandRunner | None = None) -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = cli.main(["--config", str(self.config_path), *argv], runner=runner or self.runner)
        return code, stdout.getvalue(), stderr.getvalue()

    def _configure(self) -> None:
        code, _, _ = self._main("configure", "proto")
        self.assertEqual(code, 0)

    def _set(self, key: str, value: str) -> None:
        settings, comments = load_config(self.config_path)
        settings[key] = value
        save_config(self.config_path, settings, comments)

    def test_no_command_prints_help(self) -> None:
        code, output, _ = self._main()
        self.assertEqual(code, 0)
        self.assertIn("usage: protoboot", output)

    def test_help_for_a_command(self) -> None:
        code, output, _ = self._main("help", "install")
        self.assertEqual(code, 0)
        self.assertIn("protoboot install <target>", output)

    def test_help_for_unknown_topic_falls_back_to_usage(self) -> None:
        code, output, _ = self._main("help", "frobnicate")
        self.assertEqual(code, 0)
        self.assertIn("No help for 'frobnicate'", output)

    def test_unknown_command_prints_help(self) -> None:
        code, output, _ = self._main("frobnicate", "rakudo")
        self.assertEqual(code, 0)
        self.assertIn("Unknown command 'frobnicate'", output)
        self.assertIn("usage: protoboot", output)
        self.assertEqual(self.runner.commands, [])

    def test_missing_target_is_a_usage_error(self) -> None:
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                cli.main(["install"])
        self.assertEqual(ctx.exception.code, 2)

    def test_configure_creates_config_and_stops(self) -> None:
        code, output, _ = self._main("configure", "proto")
        self.assertEqual(code, 0)
        self.assertIn("CONFIG FILE CREATED", output)
        settings, _ = load_config(self.config_path)
        self.assertEqual(settings["Make utility"], "make")
        self.assertEqual(self.runner.commands[0].command, ["make", "--version"])

    def test_configure_without_make_falls_back(self) -> None:
        code, _, errors = self._main("configure", "proto", runner=NoMakeRunner())
        self.assertEqual(code, 0)
        self.assertIn("[WARN]", errors)
        settings, _ = load_config(self.config_path)
        self.assertEqual(settings["Make utility"], "make")

    def test_configure_records_perl6_override(self) -> None:
        with patch.dict("os.environ", {"PERL6EXE": "/opt/perl6"}):
            self._configure()
        settings, _ = load_config(self.config_path)
        self.assertEqual(settings["Perl 6 executable"], "/opt/perl6")

    def test_configure_twice_is_an_error(self) -> None:
        self._configure()
        code, _, errors = self._main("configure", "proto")
        self.assertEqual(code, 1)
        self.assertIn("already exists", errors)

    def test_install_without_config_is_fatal(self) -> None:
        code, output, errors = self._main("install", "rakudo")
        self.assertEqual(code, 1)
        self.assertIn("configure proto", errors)
        self.assertNotIn("CONFIG FILE CREATED", output)
        self.assertFalse(self.config_path.exists())
        self.assertEqual(self.runner.commands, [])

    def test_upgrade_without_config_is_fatal(self) -> None:
        code, _, errors = self._main("upgrade", "parrot")
        self.assertEqual(code, 1)
        self.assertIn("[ERROR]", errors)
        self.assertFalse(self.config_path.exists())

    def test_install_unknown_target(self) -> None:
        self._configure()
        code, _, errors = self._main("install", "nqp")
        self.assertEqual(code, 1)
        self.assertIn("Unknown target 'nqp'", errors)

    def test_install_refuses_installed_rakudo(self) -> None:
        self._configure()
        perl6 = self.layout.perl6_executable()
        perl6.parent.mkdir(parents=True)
        perl6.write_text("")
        perl6.chmod(0o755)
        code, _, errors = self._main("install", "rakudo")
        self.assertEqual(code, 1)
        self.assertIn("already installed", errors)

    def test_bad_version_fails_before_building(self) -> None:
        self._configure()
        self._set("Rakudo version", "latest")
        runner = RecordingCommandRunner()
        code, _, errors = self._main("install", "rakudo", runner=runner)
        self.assertEqual(code, 1)
        self.assertIn("latest", errors)
        self.assertEqual(runner.commands, [])

    def test_missing_setting_is_reported(self) -> None:
        self._configure()
        settings, comments = load_config(self.config_path)
        del settings["Make utility"]
        save_config(self.config_path, settings, comments)
        code, _, errors = self._main("upgrade", "rakudo")
        self.assertEqual(code, 1)
        self.assertIn("Make utility", errors)

    def test_upgrade_requires_install(self) -> None:
        self._configure()
        code, _, errors = self._main("upgrade", "parrot")
        self.assertEqual(code, 1)
        self.assertIn("install it first", errors)

    def test_perl6_override_skips_rakudo(self) -> None:
        runner = RecordingCommandRunner()
        with patch.dict("os.environ", {"PERL6EXE": "/opt/perl6"}):
            code, output, _ = self._main("install", "rakudo", runner=runner)
        self.assertEqual(code, 0)
        self.assertIn("PERL6EXE", output)
        self.assertEqual(runner.commands, [])
        self.assertFalse(self.config_path.exists())

    def test_layout_mismatch_is_a_warning(self) -> None:
        self._configure()
        self._set("Perl 6 library", str(self.layout.root / "elsewhere"))
        code, _, errors = self._main("install", "nqp")
        self.assertEqual(code, 1)
        self.assertIn("[WARN] 'Perl 6 library'", errors)
        self.assertTrue((self.layout.root / "elsewhere").is_dir())


if __name__ == "__main__":
    unittest.main()
