# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Tests for fan-out over the matrix.
"""

import threading
from pathlib import Path

from relmatrix.config.schema import PlatformEntry
from relmatrix.pipeline.commands import CommandResult
from relmatrix.pipeline.coordinator import run_matrix
from relmatrix.pipeline.state import EntryState


class TestRunMatrix:
    def test_all_entries_publish(
        self,
        linux_entry: PlatformEntry,
        mac_entry: PlatformEntry,
        windows_entry: PlatformEntry,
        tmp_path: Path,
        toolchain_runner,
        make_context,
    ) -> None:
        entries = [linux_entry, mac_entry, windows_entry]
        ctx = make_context(toolchain_runner(entries))

        report = run_matrix(entries, ctx)

        assert report.succeeded
        assert report.failed_entries == []
        release_dir = tmp_path / "releases" / "2.3.1"
        assert sorted(p.name for p in release_dir.iterdir()) == [
            "app-linux", "app-mac", "app-windows.exe",
        ]
        assert len(ctx.pool.list_artifacts()) == 3

    def test_one_failure_does_not_cancel_siblings(
        self,
        linux_entry: PlatformEntry,
        mac_entry: PlatformEntry,
        windows_entry: PlatformEntry,
        tmp_path: Path,
        toolchain_runner,
        make_context,
    ) -> None:
        entries = [linux_entry, mac_entry, windows_entry]
        ctx = make_context(toolchain_runner(entries, failures={"musl-gcc": 1}))

        report = run_matrix(entries, ctx)

        assert not report.succeeded
        assert report.failed_entries == ["linux"]
        states = {o.platform_id: o.state for o in report.outcomes}
        assert states == {
            "linux": EntryState.FAILED,
            "mac": EntryState.PUBLISHED,
            "windows": EntryState.PUBLISHED,
        }
        # Partial release: siblings stay published.
        release_dir = tmp_path / "releases" / "2.3.1"
        assert sorted(p.name for p in release_dir.iterdir()) == ["app-mac", "app-windows.exe"]

    def test_interleaved_packaging_keeps_wheels_with_their_entry(
        self,
        linux_entry: PlatformEntry,
        windows_entry: PlatformEntry,
        toolchain_runner,
        make_context,
    ) -> None:
        entries = [linux_entry, windows_entry]
        runner = toolchain_runner(entries)
        # Neither maturin call returns until both have written their wheel.
        both_packaged = threading.Barrier(2)

        def synced(  # type: ignore[no-untyped-def]
            argv, cwd, env=None, timeout_seconds=None
        ) -> CommandResult:
            result = runner(argv, cwd=cwd, env=env, timeout_seconds=timeout_seconds)
            if argv[0] == "maturin":
                both_packaged.wait(timeout=10)
            return result

        ctx = make_context(synced)
        report = run_matrix(entries, ctx)

        assert report.succeeded
        packages = {o.platform_id: o.package_artifacts for o in report.outcomes}
        assert packages == {
            "linux": ("app-0.1.0-py3-none-linux_x86_64.whl",),
            "windows": ("app-0.1.0-py3-none-windows_x86_64.whl",),
        }
        assert len(ctx.pool.list_artifacts()) == 2

    def test_outcomes_follow_matrix_order(
        self,
        linux_entry: PlatformEntry,
        mac_entry: PlatformEntry,
        toolchain_runner,
        make_context,
    ) -> None:
        entries = [mac_entry, linux_entry]
        report = run_matrix(entries, make_context(toolchain_runner(entries)), max_workers=1)
        assert [o.platform_id for o in report.outcomes] == ["mac", "linux"]

    def test_empty_selection_is_not_a_success(self, make_context, make_runner) -> None:
        report = run_matrix([], make_context(make_runner()))
        assert report.outcomes == ()
        assert not report.succeeded
