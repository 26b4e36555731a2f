# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Shared pytest fixtures for relmatrix tests.

The main piece here is FakeRunner, a stand-in for run_command. It records
every argv it's given and drops files where cargo or maturin would have put
them, so the whole pipeline can run without a Rust toolchain.
"""

import textwrap
from pathlib import Path
from typing import Mapping, Optional, Sequence

import pytest

from relmatrix.config.schema import PipelineConfig, PlatformEntry, ToolchainRequirement
from relmatrix.matrix.trigger import TriggerEvent
from relmatrix.pipeline.builder import build_command
from relmatrix.pipeline.commands import CommandResult
from relmatrix.pipeline.packager import package_command, package_output_dir
from relmatrix.pipeline.runner import PipelineContext
from relmatrix.release.pool import ArtifactPool
from relmatrix.release.targets import DirectoryReleaseTarget


class FakeRunner:
    """
    Records calls and simulates the toolchain.

    creates: argv tuple -> relative paths to write under cwd on success.
    failures: argv[0] or "argv[0] argv[1]" -> exit code to return instead.
    """

    def __init__(
        self,
        creates: Optional[Mapping[tuple[str, ...], Sequence[str]]] = None,
        failures: Optional[Mapping[str, int]] = None,
    ) -> None:
        self.creates = dict(creates or {})
        self.failures = dict(failures or {})
        self.calls: list[tuple[str, ...]] = []

    def __call__(
        self,
        argv: Sequence[str],
        cwd: Path,
        env: Optional[Mapping[str, str]] = None,
        timeout_seconds: Optional[int] = None,
    ) -> CommandResult:
        argv_tuple = tuple(argv)
        self.calls.append(argv_tuple)

        for key in (" ".join(argv_tuple[:2]), argv_tuple[0]):
            if key in self.failures:
                return CommandResult(
                    argv=argv_tuple,
                    exit_code=self.failures[key],
                    stdout="",
                    stderr=f"error: {key} failed",
                    elapsed_seconds=0.0,
                )

        for relative in self.creates.get(argv_tuple, ()):
            path = Path(cwd) / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(f"built {relative}\n".encode("utf-8"))

        return CommandResult(
            argv=argv_tuple,
            exit_code=0,
            stdout=f"{argv_tuple[0]} 1.0.0\n",
            stderr="",
            elapsed_seconds=0.0,
        )

    def programs(self) -> list[str]:
        return [argv[0] for argv in self.calls]


def wheel_name(entry: PlatformEntry) -> str:
    return f"app-0.1.0-py3-none-{entry.platform_id}_x86_64.whl"


def runner_for(
    entries: Sequence[PlatformEntry],
    pipeline: PipelineConfig,
    failures: Optional[Mapping[str, int]] = None,
) -> FakeRunner:
    """A FakeRunner that builds each entry's executable and wheel where expected."""
    creates: dict[tuple[str, ...], list[str]] = {}
    for entry in entries:
        creates.setdefault(tuple(build_command(pipeline.compiler, entry)), []).append(
            entry.primary_output_path
        )
        creates.setdefault(tuple(package_command(pipeline.packager, entry)), []).append(
            f"{package_output_dir(pipeline.packager, entry)}/{wheel_name(entry)}"
        )
    return FakeRunner(creates=creates, failures=failures)


@pytest.fixture()
def linux_entry() -> PlatformEntry:
    return PlatformEntry(
        platform_id="linux",
        runs_on="ubuntu-latest",
        toolchain_extra_flags=["--target", "x86_64-unknown-linux-musl"],
        primary_output_path="target/x86_64-unknown-linux-musl/release/app",
        canonical_output_name="app-linux",
        needs_toolchain=True,
        toolchain=ToolchainRequirement(
            target="x86_64-unknown-linux-musl",
            system_packages=["musl-tools"],
            verify_command=["musl-gcc", "--version"],
        ),
    )


@pytest.fixture()
def mac_entry() -> PlatformEntry:
    return PlatformEntry(
        platform_id="mac",
        runs_on="macos-latest",
        toolchain_extra_flags=["--target", "aarch64-apple-darwin"],
        primary_output_path="target/aarch64-apple-darwin/release/app",
        canonical_output_name="app-mac",
    )


@pytest.fixture()
def windows_entry() -> PlatformEntry:
    return PlatformEntry(
        platform_id="windows",
        runs_on="windows-latest",
        primary_output_path="target/release/app.exe",
        canonical_output_name="app-windows.exe",
    )


@pytest.fixture()
def pipeline_config() -> PipelineConfig:
    """Defaults, minus the real `pip3 install maturin` step."""
    return PipelineConfig.model_validate(
        {"base_name": "app", "packager": {"install_command": []}}
    )


@pytest.fixture()
def make_runner():
    """FakeRunner(creates=..., failures=...)."""
    return FakeRunner


@pytest.fixture()
def toolchain_runner(pipeline_config: PipelineConfig):
    """runner_for(entries, failures=None) bound to the test pipeline config."""

    def _make(
        entries: Sequence[PlatformEntry], failures: Optional[Mapping[str, int]] = None
    ) -> FakeRunner:
        return runner_for(entries, pipeline_config, failures)

    return _make


@pytest.fixture()
def source_dir(tmp_path: Path) -> Path:
    tree = tmp_path / "src-tree"
    tree.mkdir()
    (tree / "Cargo.toml").write_text('[package]\nname = "app"\n', encoding="utf-8")
    (tree / "Cargo.lock").write_text("# locked\n", encoding="utf-8")
    return tree


@pytest.fixture()
def make_context(source_dir: Path, pipeline_config: PipelineConfig, tmp_path: Path):
    """Factory for a PipelineContext over the temp source tree."""

    def _make(runner: FakeRunner, tag: str = "2.3.1") -> PipelineContext:
        return PipelineContext(
            trigger=TriggerEvent(tag=tag),
            pipeline=pipeline_config,
            source_dir=source_dir,
            pool=ArtifactPool(tmp_path / "pool-root", "wheels"),
            target=DirectoryReleaseTarget(tmp_path / "releases"),
            runner=runner,
        )

    return _make


@pytest.fixture()
def tmp_config_file(tmp_path: Path) -> Path:
    """The smallest config that passes schema validation."""
    config_content = textwrap.dedent("""\
        global:
          config_version: "1.0.0"
          project_name: "relmatrix-test"
          log_level: "DEBUG"
    """)
    config_file = tmp_path / "test_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def invalid_config_file(tmp_path: Path) -> Path:
    """Valid YAML, but the global section is missing config_version."""
    config_content = textwrap.dedent("""\
        global:
          project_name: "relmatrix-test"
    """)
    config_file = tmp_path / "invalid_config.yaml"
    config_file.write_text(config_content, encoding="utf-8")
    return config_file


@pytest.fixture()
def broken_yaml_file(tmp_path: Path) -> Path:
    """A file that isn't valid YAML at all."""
    config_file = tmp_path / "broken.yaml"
    config_file.write_text("{{not: yaml: at: all:::", encoding="utf-8")
    return config_file
