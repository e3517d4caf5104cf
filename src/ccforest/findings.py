# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Structural findings

Non-fatal anomalies of a parsed conversation. They never block tree
building or statistics; callers decide whether to treat them as errors.
"""

from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple


@dataclass(frozen=True)
class Finding:
    """Base class of every finding"""
    kind: ClassVar[str] = 'finding'

    def describe(self) -> str:
        return self.kind


@dataclass(frozen=True)
class DuplicateUuid(Finding):
    kind: ClassVar[str] = 'duplicate_uuid'

    uuid: str
    occurrences: Tuple[int, ...]  # line numbers

    def describe(self) -> str:
        lines = ', '.join(str(n) for n in self.occurrences)
        return f"UUID {self.uuid} appears on lines {lines}"


@dataclass(frozen=True)
class UnresolvedParent(Finding):
    kind: ClassVar[str] = 'unresolved_parent'

    child_uuid: str
    parent_uuid: str

    def describe(self) -> str:
        return f"{self.child_uuid} refers to unknown parent {self.parent_uuid}"


@dataclass(frozen=True)
class CycleBroken(Finding):
    kind: ClassVar[str] = 'cycle_broken'

    uuid: str
    parent_uuid: Optional[str]  # the parent reference that was cut

    def describe(self) -> str:
        return f"{self.uuid} is its own ancestor; link to {self.parent_uuid} cut"


@dataclass(frozen=True)
class NonChronologicalTimestamp(Finding):
    """Advisory: branching makes file order and time order differ legitimately"""
    kind: ClassVar[str] = 'non_chronological_timestamp'

    uuid: str
    previous_timestamp: str
    timestamp: str

    def describe(self) -> str:
        return f"{self.uuid} at {self.timestamp} is earlier than preceding {self.previous_timestamp}"


@dataclass(frozen=True)
class DuplicateToolUseId(Finding):
    kind: ClassVar[str] = 'duplicate_tool_use_id'

    tool_use_id: str
    occurrences: Tuple[int, ...]  # line numbers

    def describe(self) -> str:
        lines = ', '.join(str(n) for n in self.occurrences)
        return f"tool_use id {self.tool_use_id} appears on lines {lines}"
