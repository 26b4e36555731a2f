# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Per-entry state machine and run-level results.

    Pending -> Provisioned -> Built -> Packaged -> Collected -> Published
        \\___________\\___________\\__________\\___________\\--> Failed

Linear, no branches. A skipped provisioning stage still lands in
Provisioned. Failed is terminal.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class EntryState(str, Enum):
    PENDING = "pending"
    PROVISIONED = "provisioned"
    BUILT = "built"
    PACKAGED = "packaged"
    COLLECTED = "collected"
    PUBLISHED = "published"
    FAILED = "failed"


# Each state's only legal successor (besides FAILED).
NEXT_STATE: dict[EntryState, EntryState] = {
    EntryState.PENDING: EntryState.PROVISIONED,
    EntryState.PROVISIONED: EntryState.BUILT,
    EntryState.BUILT: EntryState.PACKAGED,
    EntryState.PACKAGED: EntryState.COLLECTED,
    EntryState.COLLECTED: EntryState.PUBLISHED,
}


@dataclass(frozen=True)
class EntryOutcome:
    """How far one platform entry got, and what it produced."""

    platform_id: str
    state: EntryState
    transitions: tuple[EntryState, ...]
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    diagnostics: Optional[str] = None
    canonical_artifact: Optional[str] = None
    artifact_sha256: Optional[str] = None
    asset_location: Optional[str] = None
    package_artifacts: tuple[str, ...] = ()
    elapsed_seconds: float = 0.0

    @property
    def published(self) -> bool:
        return self.state is EntryState.PUBLISHED


@dataclass(frozen=True)
class RunReport:
    """
    Every entry's terminal state for one tag.

    The run succeeds only if every entry published. A failed run does not
    retract what other entries already published. Re-running just the
    failed entries is the remedy.
    """

    tag: str
    outcomes: tuple[EntryOutcome, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> bool:
        return bool(self.outcomes) and all(outcome.published for outcome in self.outcomes)

    @property
    def failed_entries(self) -> list[str]:
        return [outcome.platform_id for outcome in self.outcomes if not outcome.published]
