from __future__ import annotations

from contextlib import redirect_stdout
from pathlib import Path
import io
import os
import tempfile
import textwrap
import unittest
from unittest.mock import patch

from distflow import cli
from distflow.errors import ConfigurationError


class CLITests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()
        (self.root / "dist.toml").write_text(
            textwrap.dedent(
                """
                [product_defaults.build]
                os_archs = ["linux-amd64"]

                [products.foo]
                dependencies = ["bar"]

                [products.foo.publish]
                group_id = "com.example"

                [products.bar]
                """
            )
        )
        for product_id in ("foo", "bar"):
            binary = self.root / "out" / "build" / product_id / "0.1.0" / "linux-amd64" / product_id
            binary.parent.mkdir(parents=True)
            binary.write_text(product_id)

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def run_cli(self, *args: str) -> tuple[int, str]:
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            code = cli.main(["--root", str(self.root), "--project-version", "0.1.0", *args])
        return code, buffer.getvalue()

    def test_products_in_dependency_order(self) -> None:
        code, output = self.run_cli("products")
        self.assertEqual(code, 0)
        self.assertEqual(output.splitlines(), ["bar", "foo (depends on bar)"])

    def test_validate(self) -> None:
        code, output = self.run_cli("validate")
        self.assertEqual(code, 0)
        self.assertIn("2 product(s), 2 dist(s)", output)

    def test_artifacts(self) -> None:
        code, output = self.run_cli("artifacts", "foo")
        self.assertEqual(code, 0)
        self.assertEqual(
            output.splitlines(),
            [str(self.root / "out/dist/foo/0.1.0/os-arch-bin/foo-0.1.0-linux-amd64.tgz")],
        )
        self.assertFalse((self.root / "out" / "dist").exists())

    def test_dist_then_publish(self) -> None:
        code, output = self.run_cli("dist", "foo")
        self.assertEqual(code, 0)
        self.assertIn("Finished creating os-arch-bin distribution for foo", output)
        self.assertTrue((self.root / "out/dist/foo/0.1.0/os-arch-bin/foo-0.1.0-linux-amd64.tgz").is_file())

        destination = self.root / "published"
        code, output = self.run_cli("publish", "local", "foo", f"--destination={destination}")
        self.assertEqual(code, 0, output)
        self.assertIn("Publishing foo with local publisher", output)
        self.assertTrue((destination / "com/example/foo/0.1.0/foo-0.1.0-linux-amd64.tgz").is_file())

    def test_publish_dry_run_with_separate_flag_value(self) -> None:
        self.run_cli("dist")
        destination = self.root / "published"
        code, output = self.run_cli("publish", "local", "--dry-run", "--destination", str(destination))
        self.assertEqual(code, 0, output)
        self.assertIn("[DRY] Would copy", output)
        self.assertFalse(destination.exists())

    def test_publish_before_dist_fails(self) -> None:
        code, output = self.run_cli("publish", "local", "bar", f"--destination={self.root / 'published'}")
        self.assertEqual(code, 1)
        self.assertIn("Error: Publish failed for 1 product(s):", output)
        self.assertIn("run dist first", output)

    def test_unknown_publisher(self) -> None:
        code, output = self.run_cli("publish", "artifactory")
        self.assertEqual(code, 2)
        self.assertIn("Unknown publisher type 'artifactory'", output)

    def test_unknown_publisher_flag(self) -> None:
        self.run_cli("dist")
        code, output = self.run_cli("publish", "local", "--dest=/tmp")
        self.assertEqual(code, 2)
        self.assertIn("Unknown flag(s): dest", output)

    def test_unknown_selector(self) -> None:
        code, output = self.run_cli("dist", "qux")
        self.assertEqual(code, 2)
        self.assertIn("Unknown product 'qux'", output)

    def test_missing_version(self) -> None:
        buffer = io.StringIO()
        with patch.dict(os.environ, {}, clear=True), redirect_stdout(buffer):
            code = cli.main(["--root", str(self.root), "products"])
        self.assertEqual(code, 2)
        self.assertIn("DISTFLOW_VERSION", buffer.getvalue())

    def test_version_from_environment(self) -> None:
        buffer = io.StringIO()
        with patch.dict(os.environ, {"DISTFLOW_VERSION": "0.1.0"}), redirect_stdout(buffer):
            code = cli.main(["--root", str(self.root), "artifacts", "bar"])
        self.assertEqual(code, 0)
        self.assertIn("bar-0.1.0-linux-amd64.tgz", buffer.getvalue())

    def test_explicit_config_file(self) -> None:
        config = self.root / "other.yaml"
        config.write_text(
            textwrap.dedent(
                """
                product_defaults:
                  build:
                    os_archs: [linux-amd64]
                products:
                  bar: {}
                """
            )
        )
        code, output = self.run_cli("-c", "other.yaml", "products")
        self.assertEqual(code, 0)
        self.assertEqual(output.splitlines(), ["bar"])

        code, output = self.run_cli("-c", "missing.toml", "products")
        self.assertEqual(code, 2)
        self.assertIn("does not exist", output)

    def test_dist_failure_exit_code(self) -> None:
        (self.root / "out/build/bar/0.1.0/linux-amd64/bar").unlink()
        code, output = self.run_cli("dist", "foo")
        self.assertEqual(code, 1)
        self.assertIn("Error: product 'bar'", output)

    def test_split_publish_arguments(self) -> None:
        selectors, flags, dry_run = cli._split_publish_arguments(
            ["foo", "--destination", "/srv", "bar.os-arch-bin", "--extra-args=--force", "-n", "--verbose"]
        )
        self.assertEqual(selectors, ["foo", "bar.os-arch-bin"])
        self.assertEqual(flags, {"destination": "/srv", "extra-args": "--force", "verbose": "true"})
        self.assertTrue(dry_run)

    def test_split_publish_arguments_rejects_short_options(self) -> None:
        with self.assertRaises(ConfigurationError):
            cli._split_publish_arguments(["-x"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
