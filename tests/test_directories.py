from __future__ import annotations

from pathlib import Path
import tempfile
import unittest
from unittest.mock import patch

from protoboot.directories import DirectoryEnsurer, ensure_directory
from protoboot.errors import DirectoryError


class DirectoryEnsurerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_creates_every_missing_segment(self) -> None:
        target = self.root / "a" / "b" / "c"
        self.assertEqual(ensure_directory(target), target)
        self.assertTrue(target.is_dir())

    def test_existing_directory_is_a_no_op(self) -> None:
        target = self.root / "present"
        target.mkdir()
        with patch.object(Path, "mkdir") as mkdir:
            DirectoryEnsurer().ensure(target)
        mkdir.assert_not_called()

    def test_each_segment_is_created_on_its_own(self) -> None:
        target = self.root / "x" / "y"
        calls: list[tuple] = []
        original = Path.mkdir

        def recording_mkdir(path, *args, **kwargs):
            calls.append((path, args, kwargs))
            return original(path, *args, **kwargs)

        with patch.object(Path, "mkdir", recording_mkdir):
            DirectoryEnsurer().ensure(target)
        self.assertEqual([call[0] for call in calls], [self.root / "x", target])
        self.assertTrue(all(not call[1] and not call[2] for call in calls))

    def test_file_in_the_way_names_the_segment(self) -> None:
        blocker = self.root / "file"
        blocker.write_text("")
        target = blocker / "sub" / "dir"
        with self.assertRaises(DirectoryError) as ctx:
            DirectoryEnsurer().ensure(target)
        self.assertEqual(ctx.exception.path, target)
        self.assertEqual(ctx.exception.segment, blocker)
        self.assertIn(str(target), str(ctx.exception))

    def test_os_errors_become_directory_errors(self) -> None:
        target = self.root / "denied"
        with patch.object(Path, "mkdir", side_effect=PermissionError(13, "Permission denied")):
            with self.assertRaises(DirectoryError) as ctx:
                DirectoryEnsurer().ensure(target)
        self.assertEqual(ctx.exception.segment, target)

    def test_ensure_all(self) -> None:
        paths = [self.root / "one", self.root / "two" / "three"]
        DirectoryEnsurer().ensure_all(paths)
        self.assertTrue(all(path.is_dir() for path in paths))


if __name__ == "__main__":
    unittest.main()
