# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Failure taxonomy for the release pipeline.

One exception per stage, so the run report can say exactly where an entry
died. None of these are retried: a stage raises, the runner marks the entry
failed, and sibling entries carry on.
"""

from typing import Optional


class PipelineError(Exception):
    """Base for all pipeline failures. `stage` names where it happened."""

    stage: str = "pipeline"

    def __init__(self, message: str, diagnostics: Optional[str] = None) -> None:
        super().__init__(message)
        self.diagnostics = diagnostics


class TriggerMismatchError(PipelineError):
    """The tag doesn't match the release pattern, so no run starts."""

    stage = "trigger"


class ProvisioningError(PipelineError):
    """Toolchain install or verification failed. No build was attempted."""

    stage = "provision"


class BuildError(PipelineError):
    """Compile error or lock-file mismatch. Diagnostics carry the full compiler output."""

    stage = "build"


class PackagingError(PipelineError):
    """The package build failed or produced nothing."""

    stage = "package"


class PathContractError(PipelineError):
    """
    The build output isn't where the entry says it would be.

    This means the entry's build flags and its primary_output_path disagree
    (e.g. a --target build looked for under target/release/).
    """

    stage = "collect"


class PublicationMismatchError(PipelineError):
    """The canonical artifact is missing at publish time. Never degraded to a skip."""

    stage = "publish"


class PublicationError(PipelineError):
    """The pool or the release host rejected an upload."""

    stage = "publish"
