from __future__ import annotations

from pathlib import Path, PureWindowsPath
import unittest

from protoboot.config_store import BootstrapConfig
from protoboot.errors import VersionError, VersionErrorKind
from protoboot.paths import derive
from protoboot.targets import build_targets, parrot_target
from protoboot.versions import classify


def make_config(root: Path, *, parrot_version: str = "2.3.0", rakudo_version: str = "2010.04") -> BootstrapConfig:
    layout = derive(root)
    return BootstrapConfig(
        library=layout.library,
        cache=layout.cache,
        rakudo_build_dir=layout.build_dir_for("rakudo"),
        rakudo_version=rakudo_version,
        parrot_build_dir=layout.build_dir_for("parrot"),
        parrot_install_dir=layout.install_dir_for("parrot"),
        parrot_version=parrot_version,
        perl6_executable=layout.perl6_executable(windows=False),
        make_utility="make",
        perl_interpreter="perl",
    )


class BuildTargetTests(unittest.TestCase):
    def setUp(self) -> None:
        self.root = Path("/home/demo/.perl6")
        self.targets = build_targets(make_config(self.root), windows=False)
        self.parrot = self.targets["parrot"]
        self.rakudo = self.targets["rakudo"]

    def test_build_order_and_relations(self) -> None:
        self.assertEqual(list(self.targets), ["parrot", "rakudo"])
        self.assertIs(self.rakudo.depends_on, self.parrot)
        self.assertIs(self.parrot.revision_source, self.rakudo)
        self.assertIsNone(self.parrot.depends_on)

    def test_parrot_recipe(self) -> None:
        install = self.root / "parrot_install"
        recipe = self.parrot.recipe
        self.assertEqual(recipe.configure_command, ["perl", "Configure.pl", f"--prefix={install}", "--optimize"])
        self.assertEqual(recipe.compile_command, ["make", "install"])
        self.assertEqual(recipe.artifact, install / "bin" / "parrot")
        self.assertEqual(recipe.verify_command, [str(install / "bin" / "parrot_config"), "prefix"])
        self.assertEqual(recipe.verify_expected, f"{install}\n")

    def test_rakudo_recipe(self) -> None:
        recipe = self.rakudo.recipe
        parrot_config = self.root / "parrot_install" / "bin" / "parrot_config"
        self.assertEqual(recipe.configure_command, ["perl", "Configure.pl", f"--parrot-config={parrot_config}"])
        self.assertEqual(recipe.artifact, self.root / "parrot_install" / "bin" / "perl6")
        self.assertEqual(recipe.verify_command[1:], ["-e", "say 'Perl 6 rocks!'"])
        self.assertEqual(recipe.verify_expected, "Perl 6 rocks!\n")

    def test_tarball_urls(self) -> None:
        self.assertEqual(
            self.parrot.tarball_url(classify("2.3.0")),
            "http://ftp.parrot.org/releases/supported/2.3.0/parrot-2.3.0.tar.gz",
        )
        self.assertEqual(
            self.parrot.tarball_url(classify("2.4.0")),
            "http://ftp.parrot.org/releases/devel/2.4.0/parrot-2.4.0.tar.gz",
        )
        self.assertEqual(
            self.rakudo.tarball_url(classify("2010.04")),
            "http://cloud.github.com/downloads/rakudo/rakudo/rakudo-2010.04.tar.gz",
        )

    def test_source_dirs(self) -> None:
        self.assertEqual(self.parrot.source_dir(classify("2.3.0")), self.root / "parrot" / "parrot-2.3.0")
        self.assertEqual(self.parrot.source_dir(classify("45822")), self.root / "parrot")
        self.assertEqual(self.rakudo.source_dir(classify("bleeding")), self.root / "rakudo")
        self.assertEqual(
            self.rakudo.pinned_revision_path(classify("2010.04")),
            self.root / "rakudo" / "rakudo-2010.04" / "build" / "PARROT_REVISION",
        )
        self.assertIsNone(self.parrot.pinned_revision_path(classify("2.3.0")))

    def test_unsupported_strategies(self) -> None:
        with self.assertRaises(VersionError) as ctx:
            self.rakudo.check_supported(classify("HEAD"))
        self.assertEqual(ctx.exception.kind, VersionErrorKind.UNSUPPORTED)
        with self.assertRaises(VersionError):
            self.parrot.check_supported(classify("bleeding"))
        self.parrot.check_supported(classify("Rakudo-decides"))

    def test_windows_paths_are_shortened_for_configure(self) -> None:
        config = make_config(Path(PureWindowsPath("C:/Documents and Settings/demo/.perl6")))
        parrot = parrot_target(config, windows=True)
        self.assertNotIn("--optimize", parrot.recipe.configure_command)
        prefix = parrot.recipe.configure_command[-1]
        self.assertTrue(prefix.startswith("--prefix="))
        self.assertIn("DOCUME~1", prefix)
        self.assertNotIn("\\", prefix)
        self.assertEqual(parrot.recipe.artifact.name, "parrot.exe")


if __name__ == "__main__":
    unittest.main()
