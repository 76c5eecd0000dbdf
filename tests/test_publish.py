from __future__ import annotations

from pathlib import Path
from typing import Any, List, Mapping, TextIO, Tuple
import io
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner
from core.console import quiet_console
from distflow.config import ProjectConfig
from distflow.dist import run_dist
from distflow.errors import ConfigurationError, MissingArtifactError, PublishExecutionError, PublishFailures
from distflow.osarch import OSArch
from distflow.params import ProductTaskOutputInfo, ProjectInfo
from distflow.publish import run_publish
from distflow.publishers import CommandPublisher, LocalPublisher
from distflow.registry import Flag, default_dister_registry, default_publisher_registry
from distflow.resolver import resolve

LINUX = OSArch("linux", "amd64")
DARWIN = OSArch("darwin", "amd64")


class RecordingPublisher:
    """Publisher that remembers every invocation and can fail on demand."""

    def __init__(self, fail_for: Tuple[str, ...] = ()) -> None:
        self.calls: List[Tuple[ProductTaskOutputInfo, Mapping[str, Any], Mapping[str, Any], bool]] = []
        self.fail_for = fail_for

    def type_name(self) -> str:
        return "recording"

    def flags(self) -> Tuple[Flag, ...]:
        return (Flag("retries", type="int", default=1),)

    def validate_config(self, config: Mapping[str, Any]) -> None:
        return None

    def run_publish(
        self,
        output_info: ProductTaskOutputInfo,
        config: Mapping[str, Any],
        flag_values: Mapping[str, Any],
        dry_run: bool,
        out: TextIO,
    ) -> None:
        self.calls.append((output_info, config, flag_values, dry_run))
        if output_info.product_id in self.fail_for:
            raise RuntimeError(f"upload of {output_info.product_id} rejected")
        print(f"published {output_info.product_id}", file=out)


class MissingCredentialsPublisher(RecordingPublisher):
    def run_publish(self, output_info, config, flag_values, dry_run, out) -> None:
        if output_info.product_id in self.fail_for:
            self.calls.append((output_info, config, flag_values, dry_run))
            raise KeyError("credentials")
        super().run_publish(output_info, config, flag_values, dry_run, out)


class PublishTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name).resolve()
        self.out = io.StringIO()
        publishers = default_publisher_registry()
        publishers.register("recording", RecordingPublisher)
        config = ProjectConfig.from_mapping(
            {
                "product_defaults": {"build": {"os_archs": ["linux-amd64", "darwin-amd64"]}},
                "products": {
                    "foo": {
                        "dependencies": ["bar"],
                        "publish": {"group_id": "com.example", "info": {"recording": {"repository": "releases"}}},
                    },
                    "bar": {},
                },
            }
        )
        self.project = resolve(config, self.root, "0.1.0", default_dister_registry(), publishers, current_os_arch=LINUX)
        self.info = ProjectInfo.create(self.root, "0.1.0")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def build_and_dist(self) -> None:
        for product_id in ("foo", "bar"):
            for os_arch in (LINUX, DARWIN):
                binary = self.root / "out" / "build" / product_id / "0.1.0" / str(os_arch) / product_id
                binary.parent.mkdir(parents=True, exist_ok=True)
                binary.write_text(product_id)
        run_dist(self.info, self.project, None, False, io.StringIO(), console=quiet_console())

    def publish(self, publisher, selectors=None, flag_values=None, dry_run: bool = False):
        return run_publish(self.info, self.project, selectors, publisher, flag_values, dry_run, self.out)


class PublishPipelineTests(PublishTestCase):
    def test_publishing_a_product_excludes_its_dependencies(self) -> None:
        self.build_and_dist()
        publisher = RecordingPublisher()

        published = self.publish(publisher, ["foo"])

        self.assertEqual(list(published), ["foo"])
        self.assertEqual(len(publisher.calls), 1)
        output_info, config, flag_values, dry_run = publisher.calls[0]
        self.assertEqual(output_info.product_id, "foo")
        self.assertEqual(output_info.group_id, "com.example")
        self.assertEqual(
            output_info.artifacts,
            {
                "os-arch-bin": (
                    self.root / "out/dist/foo/0.1.0/os-arch-bin/foo-0.1.0-linux-amd64.tgz",
                    self.root / "out/dist/foo/0.1.0/os-arch-bin/foo-0.1.0-darwin-amd64.tgz",
                )
            },
        )
        self.assertEqual(config, {"repository": "releases"})
        self.assertEqual(flag_values, {"retries": 1})
        self.assertFalse(dry_run)
        self.assertNotIn("Publishing bar", self.out.getvalue())

    def test_output_block_per_product(self) -> None:
        self.build_and_dist()
        self.publish(RecordingPublisher(), ["foo"])
        lines = self.out.getvalue().splitlines()
        self.assertEqual(lines[0], "Publishing foo with recording publisher")
        linux = self.root / "out/dist/foo/0.1.0/os-arch-bin/foo-0.1.0-linux-amd64.tgz"
        darwin = self.root / "out/dist/foo/0.1.0/os-arch-bin/foo-0.1.0-darwin-amd64.tgz"
        self.assertEqual(lines[1], f"os-arch-bin: [{linux} {darwin}]")
        self.assertEqual(lines[2], "published foo")

    def test_products_without_config_get_empty_mapping(self) -> None:
        self.build_and_dist()
        publisher = RecordingPublisher()
        self.publish(publisher, ["bar"], {"retries": "3"}, dry_run=True)
        output_info, config, flag_values, dry_run = publisher.calls[0]
        self.assertEqual(config, {})
        self.assertEqual(flag_values, {"retries": 3})
        self.assertTrue(dry_run)

    def test_unknown_flag_is_rejected_before_publishing(self) -> None:
        self.build_and_dist()
        publisher = RecordingPublisher()
        with self.assertRaises(ConfigurationError):
            self.publish(publisher, None, {"destination": "/srv"})
        self.assertEqual(publisher.calls, [])

    def test_failures_are_collected(self) -> None:
        self.build_and_dist()
        publisher = RecordingPublisher(fail_for=("bar",))

        with self.assertRaises(PublishFailures) as ctx:
            self.publish(publisher)

        self.assertEqual([call[0].product_id for call in publisher.calls], ["bar", "foo"])
        self.assertEqual(ctx.exception.product_ids, ["bar"])
        error = ctx.exception.failures[0][1]
        self.assertIsInstance(error, PublishExecutionError)
        self.assertIn("upload of bar rejected", str(error))
        self.assertIn("published foo", self.out.getvalue())

    def test_unexpected_publisher_errors_are_collected(self) -> None:
        self.build_and_dist()
        publisher = MissingCredentialsPublisher(fail_for=("bar",))

        with self.assertRaises(PublishFailures) as ctx:
            self.publish(publisher)

        self.assertEqual([call[0].product_id for call in publisher.calls], ["bar", "foo"])
        self.assertEqual(ctx.exception.product_ids, ["bar"])
        error = ctx.exception.failures[0][1]
        self.assertIsInstance(error, PublishExecutionError)
        self.assertIsInstance(error.__cause__, KeyError)
        self.assertIn("credentials", str(error))
        self.assertIn("published foo", self.out.getvalue())

    def test_missing_artifacts(self) -> None:
        publisher = RecordingPublisher()
        with self.assertRaises(PublishFailures) as ctx:
            self.publish(publisher)
        self.assertEqual(ctx.exception.product_ids, ["bar", "foo"])
        for _, error in ctx.exception.failures:
            self.assertIsInstance(error, MissingArtifactError)
        self.assertEqual(publisher.calls, [])

    def test_dist_then_publish_of_one_product_only(self) -> None:
        for product_id in ("foo", "bar"):
            for os_arch in (LINUX, DARWIN):
                binary = self.root / "out" / "build" / product_id / "0.1.0" / str(os_arch) / product_id
                binary.parent.mkdir(parents=True)
                binary.write_text(product_id)

        run_dist(self.info, self.project, ["foo"], False, io.StringIO(), console=quiet_console())
        publisher = RecordingPublisher()
        published = self.publish(publisher, ["foo"])

        self.assertEqual(list(published), ["foo"])
        with self.assertRaises(PublishFailures):
            self.publish(RecordingPublisher(), ["bar"])


class BuiltinPublisherTests(PublishTestCase):
    def test_local_publisher_copies_into_group_layout(self) -> None:
        self.build_and_dist()
        destination = self.root / "repo"

        self.publish(LocalPublisher(), ["foo"], {"destination": str(destination)})

        target_dir = destination / "com" / "example" / "foo" / "0.1.0"
        self.assertEqual(
            sorted(path.name for path in target_dir.iterdir()),
            ["foo-0.1.0-darwin-amd64.tgz", "foo-0.1.0-linux-amd64.tgz"],
        )
        self.assertIn(f"Copied {self.root / 'out/dist/foo/0.1.0/os-arch-bin/foo-0.1.0-linux-amd64.tgz'}", self.out.getvalue())

    def test_local_publisher_dry_run(self) -> None:
        self.build_and_dist()
        destination = self.root / "repo"
        self.publish(LocalPublisher(), ["bar"], {"destination": str(destination)}, dry_run=True)
        self.assertFalse(destination.exists())
        self.assertIn("[DRY] Would copy", self.out.getvalue())

    def test_local_publisher_without_destination(self) -> None:
        self.build_and_dist()
        with self.assertRaises(PublishFailures) as ctx:
            self.publish(LocalPublisher(), ["bar"])
        self.assertIn("no destination configured", str(ctx.exception))

    def test_command_publisher(self) -> None:
        runner = RecordingCommandRunner()
        publisher = CommandPublisher(runner)
        foo_config = {"command": ["upload", "--group", "{{group_id}}", "{{artifact}}", "{{dist_id}}"]}
        publisher.validate_config(foo_config)

        output_info = ProductTaskOutputInfo(
            product_id="foo",
            version="0.1.0",
            artifacts={"os-arch-bin": (self.root / "a.tgz",)},
            group_id="com.example",
        )
        publisher.run_publish(output_info, foo_config, {"extra-args": "--force --quiet"}, False, self.out)

        self.assertEqual(
            runner.commands[0].command,
            ["upload", "--group", "com.example", str(self.root / "a.tgz"), "os-arch-bin", "--force", "--quiet"],
        )
        self.assertEqual(runner.commands[0].note, "publish foo.os-arch-bin")

    def test_command_publisher_without_config_fails_per_product(self) -> None:
        self.build_and_dist()
        runner = RecordingCommandRunner()
        with self.assertRaises(PublishFailures) as ctx:
            self.publish(CommandPublisher(runner), ["foo"])
        self.assertIn("no 'command' publish configuration", str(ctx.exception))
        self.assertEqual(runner.commands, [])

    def test_command_publisher_dry_run(self) -> None:
        runner = RecordingCommandRunner()
        output_info = ProductTaskOutputInfo(
            product_id="foo",
            version="0.1.0",
            artifacts={"os-arch-bin": (Path("/proj/foo.tgz"),)},
        )
        out = io.StringIO()
        CommandPublisher(runner).run_publish(output_info, {"command": ["upload", "{{filename}}"]}, {}, True, out)
        self.assertEqual(out.getvalue(), "[DRY] Would run: upload foo.tgz\n")
        self.assertEqual(runner.commands, [])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
