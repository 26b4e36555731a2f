# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the per-entry runner and its state machine.
"""

from pathlib import Path

from relmatrix.config.schema import PipelineConfig, PlatformEntry
from relmatrix.pipeline.packager import package_command
from relmatrix.pipeline.runner import plan_entry, publish_entry, run_entry
from relmatrix.pipeline.state import EntryState

FULL_PATH = (
    EntryState.PENDING,
    EntryState.PROVISIONED,
    EntryState.BUILT,
    EntryState.PACKAGED,
    EntryState.COLLECTED,
    EntryState.PUBLISHED,
)


class TestRunEntry:
    def test_happy_path_walks_every_state(
        self, linux_entry: PlatformEntry, source_dir: Path, toolchain_runner, make_context
    ) -> None:
        ctx = make_context(toolchain_runner([linux_entry]))
        outcome = run_entry(linux_entry, ctx)

        assert outcome.state is EntryState.PUBLISHED
        assert outcome.transitions == FULL_PATH
        assert outcome.failed_stage is None
        assert outcome.artifact_sha256 is not None
        assert (source_dir / "target" / "app-linux").is_file()
        assert not (source_dir / linux_entry.primary_output_path).exists()
        assert Path(outcome.asset_location or "").name == "app-linux"

    def test_skipped_provisioning_still_reaches_provisioned(
        self, windows_entry: PlatformEntry, toolchain_runner, make_context
    ) -> None:
        runner = toolchain_runner([windows_entry])
        outcome = run_entry(windows_entry, make_context(runner))

        assert outcome.transitions == FULL_PATH
        assert "rustup" not in runner.programs()

    def test_provisioning_failure_aborts_before_build(
        self, linux_entry: PlatformEntry, toolchain_runner, make_context
    ) -> None:
        runner = toolchain_runner([linux_entry], failures={"rustup": 1})
        outcome = run_entry(linux_entry, make_context(runner))

        assert outcome.state is EntryState.FAILED
        assert outcome.failed_stage == "provision"
        assert outcome.transitions == (EntryState.PENDING, EntryState.FAILED)
        assert "cargo" not in runner.programs()

    def test_build_failure_stops_remaining_stages(
        self, linux_entry: PlatformEntry, toolchain_runner, make_context
    ) -> None:
        runner = toolchain_runner([linux_entry], failures={"cargo build": 101})
        outcome = run_entry(linux_entry, make_context(runner))

        assert outcome.failed_stage == "build"
        assert "cargo build failed" in (outcome.diagnostics or "")
        assert "maturin" not in runner.programs()
        assert outcome.transitions[-2:] == (EntryState.PROVISIONED, EntryState.FAILED)

    def test_packaging_failure_after_successful_build(
        self, linux_entry: PlatformEntry, source_dir: Path, toolchain_runner, make_context
    ) -> None:
        runner = toolchain_runner([linux_entry], failures={"maturin build": 1})
        outcome = run_entry(linux_entry, make_context(runner))

        assert outcome.failed_stage == "package"
        # The executable was built but never collected.
        assert (source_dir / linux_entry.primary_output_path).is_file()
        assert not (source_dir / "target" / "app-linux").exists()

    def test_path_contract_failure_publishes_nothing(
        self,
        linux_entry: PlatformEntry,
        pipeline_config: PipelineConfig,
        tmp_path: Path,
        make_runner,
        make_context,
    ) -> None:
        # The build "succeeds" but leaves nothing at primary_output_path.
        wheel_argv = tuple(package_command(pipeline_config.packager, linux_entry))
        runner = make_runner(creates={wheel_argv: ["target/wheels/linux/a.whl"]})
        ctx = make_context(runner)
        outcome = run_entry(linux_entry, ctx)

        assert outcome.failed_stage == "collect"
        assert outcome.state is EntryState.FAILED
        assert not (tmp_path / "releases" / "2.3.1" / "app-linux").exists()
        assert ctx.pool.list_artifacts() == []


class TestPublishEntry:
    def test_publishes_existing_artifact_without_building(
        self, linux_entry: PlatformEntry, source_dir: Path, make_runner, make_context
    ) -> None:
        artifact = source_dir / "target" / "app-linux"
        artifact.parent.mkdir(parents=True)
        artifact.write_bytes(b"already built")
        runner = make_runner()

        first = publish_entry(linux_entry, make_context(runner))
        second = publish_entry(linux_entry, make_context(runner))

        assert runner.calls == []
        assert first.state is EntryState.PUBLISHED
        assert first.artifact_sha256 == second.artifact_sha256
        assert first.asset_location == second.asset_location

    def test_only_wheels_for_this_tag_are_pooled(
        self, linux_entry: PlatformEntry, source_dir: Path, make_runner, make_context
    ) -> None:
        artifact = source_dir / "target" / "app-linux"
        artifact.parent.mkdir(parents=True)
        artifact.write_bytes(b"already built")
        wheels = source_dir / "target" / "wheels" / "linux"
        wheels.mkdir(parents=True)
        (wheels / "app-2.3.1-py3-none-linux_x86_64.whl").write_bytes(b"current")
        (wheels / "app-2.2.0-py3-none-linux_x86_64.whl").write_bytes(b"previous release")

        ctx = make_context(make_runner(), tag="2.3.1")
        outcome = publish_entry(linux_entry, ctx)

        assert outcome.published
        assert outcome.package_artifacts == ("app-2.3.1-py3-none-linux_x86_64.whl",)
        assert ctx.pool.list_artifacts() == ["app-2.3.1-py3-none-linux_x86_64.whl"]

    def test_missing_artifact_fails_strictly(
        self, linux_entry: PlatformEntry, tmp_path: Path, make_runner, make_context
    ) -> None:
        outcome = publish_entry(linux_entry, make_context(make_runner()))
        assert outcome.state is EntryState.FAILED
        assert outcome.failed_stage == "publish"
        assert not (tmp_path / "releases" / "2.3.1").exists()


def test_plan_lists_every_command_in_order(
    linux_entry: PlatformEntry, pipeline_config: PipelineConfig
) -> None:
    plan = plan_entry(linux_entry, pipeline_config)
    assert [argv[0] for argv in plan] == [
        "sudo", "rustup", "musl-gcc", "cargo", "rustc", "cargo", "maturin",
    ]
