# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for the config loader.

We check that:
  1. Valid YAML loads into a frozen, correct config object
  2. Missing required fields raise ConfigValidationError
  3. Unknown fields raise ConfigValidationError (extra="forbid")
  4. Broken YAML raises ConfigLoadError
  5. Matrix-level rules are enforced at load time
"""

import textwrap
from pathlib import Path

import pytest
from pydantic import ValidationError

from relmatrix.config.exceptions import ConfigLoadError, ConfigValidationError
from relmatrix.config.loader import load_config


class TestLoadValidConfig:
    def test_loads_minimal_valid_config(self, tmp_config_file: Path) -> None:
        config = load_config(tmp_config_file)
        assert config.global_config.project_name == "relmatrix-test"
        assert config.global_config.config_version == "1.0.0"
        assert config.global_config.log_level == "DEBUG"

    def test_pipeline_section_defaults(self, tmp_config_file: Path) -> None:
        pipeline = load_config(tmp_config_file).pipeline
        assert pipeline.tag_pattern == "*.*.*"
        assert pipeline.output_root == "target"
        assert pipeline.pool.name == "wheels"
        assert pipeline.release.provider == "github"
        assert pipeline.release.token_env == "GITHUB_TOKEN"
        assert pipeline.compiler.env == {"CARGO_TERM_COLOR": "always"}
        assert pipeline.matrix is None

    def test_shipped_example_config_loads(self) -> None:
        example = Path(__file__).resolve().parents[2] / "configs" / "relmatrix.yaml"
        config = load_config(example)
        names = [entry.canonical_output_name for entry in config.pipeline.matrix or []]
        assert names == ["maxtime-linux", "maxtime-mac", "maxtime-windows.exe"]

    def test_config_is_frozen(self, tmp_config_file: Path) -> None:
        config = load_config(tmp_config_file)
        with pytest.raises(ValidationError):
            config.global_config.project_name = "changed"  # type: ignore[misc]


class TestLoadFailures:
    def test_missing_file_raises_load_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigLoadError, match="not found"):
            load_config(tmp_path / "nope.yaml")

    def test_directory_raises_load_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigLoadError, match="not a file"):
            load_config(tmp_path)

    def test_broken_yaml_raises_load_error(self, broken_yaml_file: Path) -> None:
        with pytest.raises(ConfigLoadError, match="Invalid YAML"):
            load_config(broken_yaml_file)

    def test_non_mapping_raises_load_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigLoadError, match="mapping"):
            load_config(config_file)

    def test_missing_required_field_raises_validation_error(
        self, invalid_config_file: Path
    ) -> None:
        with pytest.raises(ConfigValidationError, match="config_version"):
            load_config(invalid_config_file)

    def test_unknown_field_raises_validation_error(self, tmp_path: Path) -> None:
        config_file = tmp_path / "extra.yaml"
        config_file.write_text(
            textwrap.dedent("""\
                global:
                  config_version: "1.0.0"
                pipeline:
                  not_a_field: true
            """),
            encoding="utf-8",
        )
        with pytest.raises(ConfigValidationError):
            load_config(config_file)

    def test_duplicate_canonical_names_rejected(self, tmp_path: Path) -> None:
        config_file = tmp_path / "dupes.yaml"
        config_file.write_text(
            textwrap.dedent("""\
                global:
                  config_version: "1.0.0"
                pipeline:
                  matrix:
                    - platform_id: "linux"
                      primary_output_path: "target/release/app"
                      canonical_output_name: "app"
                    - platform_id: "mac"
                      primary_output_path: "target/release/app"
                      canonical_output_name: "app"
            """),
            encoding="utf-8",
        )
        with pytest.raises(ConfigValidationError, match="Duplicate canonical_output_name"):
            load_config(config_file)
