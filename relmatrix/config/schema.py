# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for relmatrix.

Every config section gets its own frozen pydantic model. Frozen means once
you create it, you cannot mutate it. A platform entry that changes halfway
through a run would make the build and the rename disagree about paths, so
mutation is treated as a bug.

The models use pydantic v2's ConfigDict with:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

The matrix itself is a list of PlatformEntry records. Cross-entry rules
(unique canonical names, unique platform ids) are enforced on PipelineConfig,
because a single entry can't see its siblings.
"""

import posixpath
from collections import Counter
from pathlib import PureWindowsPath
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

WINDOWS_PLATFORM_ID = "windows"
EXECUTABLE_SUFFIX = ".exe"


def _inside_source_tree(value: str, field_name: str) -> str:
    """Reject absolute paths and paths that climb out with `..`."""
    normalized = posixpath.normpath(value.replace("\\", "/"))
    if (
        posixpath.isabs(normalized)
        or PureWindowsPath(value).drive
        or normalized == ".."
        or normalized.startswith("../")
    ):
        raise ValueError(
            f"{field_name} must be a relative path inside the source tree, got '{value}'"
        )
    return value


class GlobalConfig(BaseModel):
    """Cross-cutting settings: project identity and observability."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="relmatrix", description="Human-readable project identifier"
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return upper


class ToolchainRequirement(BaseModel):
    """
    A compiler capability that isn't on the build host by default.

    For the musl cross build this is: install musl-tools from the system
    package manager, add the rustup target, then prove the C toolchain
    actually runs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    target: str = Field(description="rustup target triple to install")
    system_packages: list[str] = Field(
        default_factory=list,
        description="System packages the target needs (e.g. musl-tools)",
    )
    install_command: list[str] = Field(
        default_factory=lambda: ["sudo", "apt-get", "install", "-y"],
        description="Package manager prefix; system_packages are appended",
    )
    verify_command: list[str] = Field(
        default_factory=list,
        description="Command whose success proves the install worked",
    )


class PlatformEntry(BaseModel):
    """
    One row of the build matrix.

    needs_toolchain is the explicit capability predicate for provisioning:
    it is read once at the start of the entry's pipeline, and nothing in
    the pipeline sniffs the host to decide whether to install things.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    platform_id: str = Field(min_length=1, description="linux, mac, windows, ...")
    runs_on: str = Field(default="", description="CI host label, e.g. ubuntu-latest")
    toolchain_extra_flags: list[str] = Field(
        default_factory=list,
        description="Passed identically to the primary build and the package build",
    )
    primary_output_path: str = Field(
        description="Where the compiler leaves the executable, relative to source_dir"
    )
    canonical_output_name: str = Field(
        min_length=1,
        description="File name after renaming; must be unique across the matrix",
    )
    needs_toolchain: bool = Field(
        default=False,
        description="Whether provisioning must install a non-default toolchain",
    )
    toolchain: Optional[ToolchainRequirement] = Field(default=None)

    @field_validator("canonical_output_name")
    @classmethod
    def _bare_file_name(cls, value: str) -> str:
        if "/" in value or "\\" in value or value in {".", ".."}:
            raise ValueError(f"canonical_output_name must be a bare file name, got '{value}'")
        return value

    @field_validator("primary_output_path")
    @classmethod
    def _relative_output(cls, value: str) -> str:
        return _inside_source_tree(value, "primary_output_path")

    @model_validator(mode="after")
    def _check_entry(self) -> "PlatformEntry":
        if self.needs_toolchain and self.toolchain is None:
            raise ValueError(
                f"Entry '{self.platform_id}' sets needs_toolchain but declares no toolchain"
            )

        if self.platform_id == WINDOWS_PLATFORM_ID:
            for field_name in ("primary_output_path", "canonical_output_name"):
                if not getattr(self, field_name).endswith(EXECUTABLE_SUFFIX):
                    raise ValueError(
                        f"Entry '{self.platform_id}': {field_name} must end with "
                        f"'{EXECUTABLE_SUFFIX}'"
                    )
        elif self.canonical_output_name.endswith(EXECUTABLE_SUFFIX):
            raise ValueError(
                f"Entry '{self.platform_id}': only the windows entry may carry "
                f"'{EXECUTABLE_SUFFIX}'"
            )
        return self


class CompilerConfig(BaseModel):
    """How the primary executable gets built."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    program: str = Field(default="cargo")
    rustup: str = Field(default="rustup", description="Used to add cross targets")
    build_args: list[str] = Field(
        default_factory=lambda: ["build", "--verbose", "--release", "--locked"],
    )
    version_commands: list[list[str]] = Field(
        default_factory=lambda: [["cargo", "--version"], ["rustc", "--version"]],
        description="Logged before every build; defaults to `<program> --version` and rustc's",
    )
    env: dict[str, str] = Field(
        default_factory=lambda: {"CARGO_TERM_COLOR": "always"},
        description="Overlaid on the inherited environment for every command",
    )

    @model_validator(mode="before")
    @classmethod
    def _versions_follow_program(cls, data: Any) -> Any:
        if isinstance(data, dict) and "version_commands" not in data and "program" in data:
            data = {
                **data,
                "version_commands": [[data["program"], "--version"], ["rustc", "--version"]],
            }
        return data

    @field_validator("build_args")
    @classmethod
    def _locked(cls, value: list[str]) -> list[str]:
        if "--locked" not in value:
            raise ValueError("compiler.build_args must include --locked")
        return value


class PackagerConfig(BaseModel):
    """How the redistributable wheel gets built."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    program: str = Field(default="maturin")
    install_command: list[str] = Field(
        default_factory=lambda: ["pip3", "install", "maturin"],
        description="Run before packaging; empty list skips it",
    )
    build_args: list[str] = Field(
        default_factory=lambda: ["build", "--release", "--strip", "--locked"],
    )
    output_dir: str = Field(default="target/wheels")
    artifact_glob: str = Field(default="*.whl")

    @field_validator("build_args")
    @classmethod
    def _locked(cls, value: list[str]) -> list[str]:
        if "--locked" not in value:
            raise ValueError("packager.build_args must include --locked")
        return value

    @field_validator("output_dir")
    @classmethod
    def _relative_output_dir(cls, value: str) -> str:
        return _inside_source_tree(value, "packager.output_dir")


class PoolConfig(BaseModel):
    """The shared artifact pool every entry appends its packages to."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    name: str = Field(default="wheels", min_length=1)
    root: str = Field(default=".artifacts")

    @field_validator("root")
    @classmethod
    def _relative_root(cls, value: str) -> str:
        return _inside_source_tree(value, "pool.root")


class ReleaseConfig(BaseModel):
    """Where canonical artifacts get published."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    provider: Literal["github", "directory"] = Field(default="github")
    repository: Optional[str] = Field(
        default=None,
        description="owner/name; falls back to $GITHUB_REPOSITORY",
    )
    token_env: str = Field(default="GITHUB_TOKEN")
    api_url: str = Field(default="https://api.github.com")
    upload_url: str = Field(default="https://uploads.github.com")
    directory: str = Field(
        default="releases",
        description="Root directory for the directory provider",
    )
    timeout_seconds: float = Field(default=60.0, gt=0)


class PipelineConfig(BaseModel):
    """Everything the release pipeline needs, matrix included."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    source_dir: str = Field(default=".")
    output_root: str = Field(
        default="target",
        description="Canonical artifacts land here, relative to source_dir",
    )
    tag_pattern: str = Field(default="*.*.*")
    base_name: str = Field(
        default="maxtime",
        min_length=1,
        description="Executable base name used by the default matrix",
    )
    command_timeout_seconds: Optional[int] = Field(default=None, ge=1)
    max_parallel: Optional[int] = Field(default=None, ge=1)
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    packager: PackagerConfig = Field(default_factory=PackagerConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    release: ReleaseConfig = Field(default_factory=ReleaseConfig)
    matrix: Optional[list[PlatformEntry]] = Field(
        default=None,
        description="Static matrix; omitted means the built-in linux/mac/windows matrix",
    )

    @field_validator("output_root")
    @classmethod
    def _relative_output_root(cls, value: str) -> str:
        return _inside_source_tree(value, "output_root")

    @field_validator("matrix")
    @classmethod
    def _unique_entries(
        cls, value: Optional[list[PlatformEntry]]
    ) -> Optional[list[PlatformEntry]]:
        if value is None:
            return value
        if not value:
            raise ValueError("matrix must contain at least one entry")

        for attr in ("canonical_output_name", "platform_id"):
            counts = Counter(getattr(entry, attr) for entry in value)
            duplicates = sorted(name for name, count in counts.items() if count > 1)
            if duplicates:
                raise ValueError(f"Duplicate {attr} in matrix: {', '.join(duplicates)}")
        return value


class RelMatrixConfig(BaseModel):
    """Top-level config container."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    @classmethod
    def with_defaults(cls) -> "RelMatrixConfig":
        """The config used when no --config file is given."""
        return cls.model_validate({"global": {"config_version": "1.0.0"}})
