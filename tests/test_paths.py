from __future__ import annotations

from pathlib import Path, PureWindowsPath
import unittest
from unittest.mock import patch

from protoboot.errors import ConfigError, ConfigErrorKind
from protoboot.paths import (
    default_root,
    derive,
    executable_name,
    home_directory,
    shortened_for_tool_invocation,
)


class PathLayoutTests(unittest.TestCase):
    def test_derive_is_deterministic(self) -> None:
        first = derive("/home/demo/.perl6")
        second = derive(Path("/home/demo/.perl6"))
        self.assertEqual(first, second)
        self.assertEqual(first.all_directories(), second.all_directories())

    def test_fixed_subdirectories(self) -> None:
        layout = derive("/home/demo/.perl6")
        root = Path("/home/demo/.perl6")
        self.assertEqual(layout.library, root / "lib")
        self.assertEqual(layout.cache, root / "proto" / "cache")
        self.assertEqual(layout.state_dir, root / "proto")
        self.assertEqual(layout.config_file, root / "proto" / "proto.conf")
        self.assertEqual(layout.build_dir_for("parrot"), root / "parrot")
        self.assertEqual(layout.build_dir_for("rakudo"), root / "rakudo")
        self.assertEqual(layout.install_dir_for("parrot"), root / "parrot_install")

    def test_every_directory_is_under_root(self) -> None:
        layout = derive("/srv/p6")
        for path in layout.all_directories().values():
            self.assertTrue(path.is_relative_to(Path("/srv/p6")), path)
        self.assertEqual(len(layout.all_directories()), 6)

    def test_unknown_target_names_are_rejected(self) -> None:
        layout = derive("/srv/p6")
        with self.assertRaises(ConfigError) as ctx:
            layout.build_dir_for("nqp")
        self.assertEqual(ctx.exception.kind, ConfigErrorKind.UNKNOWN_TARGET)
        # rakudo installs into parrot's tree
        with self.assertRaises(ConfigError):
            layout.install_dir_for("rakudo")

    def test_perl6_executable_lives_in_install_bin(self) -> None:
        layout = derive("/srv/p6")
        self.assertEqual(layout.perl6_executable(windows=False), Path("/srv/p6/parrot_install/bin/perl6"))
        self.assertEqual(layout.perl6_executable(windows=True).name, "perl6.exe")


class PlatformHelperTests(unittest.TestCase):
    def test_executable_name(self) -> None:
        self.assertEqual(executable_name("parrot", windows=False), "parrot")
        self.assertEqual(executable_name("parrot", windows=True), "parrot.exe")

    def test_home_directory_uses_home(self) -> None:
        with patch("protoboot.paths.is_windows", return_value=False), patch.dict(
            "os.environ", {"HOME": "/home/demo"}, clear=False
        ):
            self.assertEqual(home_directory(), Path("/home/demo"))
            self.assertEqual(default_root(), Path("/home/demo/.perl6"))

    def test_home_directory_on_windows_uses_drive_and_path(self) -> None:
        env = {"HOMEDRIVE": "C:", "HOMEPATH": "\\Users\\demo", "HOME": "/ignored"}
        with patch("protoboot.paths.is_windows", return_value=True), patch.dict("os.environ", env, clear=False):
            self.assertEqual(str(home_directory()), "C:\\Users\\demo")


class ShortPathTests(unittest.TestCase):
    def test_identity_off_windows(self) -> None:
        path = "/home/John Smith/.perl6/parrot_install"
        self.assertEqual(shortened_for_tool_invocation(path, windows=False), path)

    def test_segments_with_spaces_are_abbreviated(self) -> None:
        path = PureWindowsPath("C:/Documents and Settings/john/.perl6/parrot_install")
        shortened = shortened_for_tool_invocation(path, windows=True)
        self.assertEqual(shortened, "C:\\DOCUME~1\\john\\.perl6\\parrot_install")

    def test_paths_without_spaces_are_untouched(self) -> None:
        self.assertEqual(shortened_for_tool_invocation("C:\\perl6\\lib", windows=True), "C:\\perl6\\lib")

    def test_short_segments_keep_their_length(self) -> None:
        shortened = shortened_for_tool_invocation("C:\\My P6\\lib", windows=True)
        self.assertEqual(shortened, "C:\\MYP6~1\\lib")


if __name__ == "__main__":
    unittest.main()
