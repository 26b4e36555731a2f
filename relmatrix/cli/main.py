# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for relmatrix.

Every operation is a subcommand of `relmatrix`. Global options (--config,
--log-level, --dry-run) are inherited by every subcommand through argparse's
parent parser mechanism.

Usage:
    relmatrix run --tag 1.4.0
    relmatrix run --tag 1.4.0 --entry linux
    relmatrix publish --tag 1.4.0 --entry windows
    relmatrix matrix --config relmatrix.yaml
    relmatrix check-tag 1.4.0
"""

import argparse
import sys
from typing import Optional, Sequence

from relmatrix.cli.commands import (
    handle_check_tag,
    handle_info,
    handle_matrix,
    handle_publish,
    handle_run,
)
from relmatrix.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    add_help=False keeps its -h from colliding with the subcommand parsers.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level.",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Log the commands that would run without running them.",
    )
    return parent


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """Register all subcommands with their handler functions and arguments."""
    commands = [
        ("run", "Build, package, rename and publish matrix entries for a tag.", handle_run),
        ("publish", "Re-run publication for an already built entry.", handle_publish),
        ("matrix", "Print the build matrix as JSON.", handle_matrix),
        ("check-tag", "Check whether a tag triggers a release.", handle_check_tag),
        ("info", "Display environment and config info.", handle_info),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler)

    run_parser = subparsers.choices["run"]
    run_parser.add_argument("--tag", required=True, help="The pushed release tag.")
    run_parser.add_argument(
        "--entry",
        action="append",
        default=None,
        dest="entries",
        metavar="PLATFORM_ID",
        help="Run only this matrix entry (repeatable). Defaults to the host's platform.",
    )
    run_parser.add_argument(
        "--all",
        action="store_true",
        default=False,
        dest="all_entries",
        help="Run every matrix entry on this machine.",
    )
    run_parser.add_argument(
        "--any-host",
        action="store_true",
        default=False,
        dest="any_host",
        help="Allow entries whose platform_id differs from this host's.",
    )

    publish_parser = subparsers.choices["publish"]
    publish_parser.add_argument("--tag", required=True, help="The release tag.")
    publish_parser.add_argument(
        "--entry",
        required=True,
        dest="entry",
        metavar="PLATFORM_ID",
        help="Matrix entry whose canonical artifact should be published.",
    )

    check_parser = subparsers.choices["check-tag"]
    check_parser.add_argument("tag", help="Tag to test against the release pattern.")


def main(argv: Optional[Sequence[str]] = None) -> None:
    """
    Main CLI entrypoint. This is what pyproject.toml's [project.scripts] points to.

    If no subcommand is given, we show help and exit with USER_ERROR.
    """
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="relmatrix",
        description="relmatrix: push a tag, get binaries for every platform.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)

    args = root_parser.parse_args(argv)

    if getattr(args, "func", None) is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
