# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release trigger: the pushed tag and the pattern it has to match.

Patterns use the same glob rules as GitHub's tag filters, so a pattern that
works in a workflow's `on.push.tags` works here unchanged:

    *    zero or more characters, never '/'
    **   zero or more characters, '/' included
    ?    exactly one character other than '/'

Everything else matches literally. The default "*.*.*" therefore needs two
dots: "2.3.1" triggers a release, "2.3" does not.
"""

import re
from dataclasses import dataclass
from functools import lru_cache

from relmatrix.pipeline.errors import TriggerMismatchError

DEFAULT_TAG_PATTERN = "*.*.*"


@dataclass(frozen=True)
class TriggerEvent:
    """The tag a run was started for. Read by every entry, never changed."""

    tag: str


@lru_cache(maxsize=32)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
            continue
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts))


def matches_release_pattern(tag: str, pattern: str = DEFAULT_TAG_PATTERN) -> bool:
    """Whether pushing `tag` would start a release run."""
    if not tag:
        return False
    return _compile_pattern(pattern).fullmatch(tag) is not None


def parse_trigger(tag: str, pattern: str = DEFAULT_TAG_PATTERN) -> TriggerEvent:
    """
    Turn a tag into a TriggerEvent, or refuse it.

    Raises:
        TriggerMismatchError: If the tag doesn't match the release pattern.
    """
    if not matches_release_pattern(tag, pattern):
        raise TriggerMismatchError(
            f"Tag '{tag}' does not match release pattern '{pattern}'"
        )
    return TriggerEvent(tag=tag)
