# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Conversation integrity checks

Reports structural anomalies of a parsed conversation as findings. The
conversation itself is never changed or rejected.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .entries import AssistantEntry, Message
from .findings import (
    DuplicateToolUseId, DuplicateUuid, Finding, NonChronologicalTimestamp, UnresolvedParent
)
from .loader import Conversation
from .tree import build_tree

logger = logging.getLogger(__name__)


def _occurrences(pairs) -> Dict[str, List[int]]:
    """Group (key, line_number) pairs by key, keeping first-seen order"""
    grouped: Dict[str, List[int]] = {}
    for key, line_number in pairs:
        grouped.setdefault(key, []).append(line_number)
    return grouped


def find_duplicate_uuids(messages: Tuple[Message, ...]) -> List[DuplicateUuid]:
    grouped = _occurrences((m.uuid, m.line_number) for m in messages)
    return [
        DuplicateUuid(uuid=uuid, occurrences=tuple(lines))
        for uuid, lines in grouped.items()
        if len(lines) > 1
    ]


def find_unresolved_parents(messages: Tuple[Message, ...]) -> List[UnresolvedParent]:
    known = {m.uuid for m in messages}
    return [
        UnresolvedParent(child_uuid=m.uuid, parent_uuid=m.parent_uuid)
        for m in messages
        if m.parent_uuid is not None and m.parent_uuid not in known
    ]


def find_non_chronological(messages: Tuple[Message, ...]) -> List[NonChronologicalTimestamp]:
    """
    Compare each timestamp with the last usable one before it in file order

    Missing or malformed timestamps are skipped.
    """
    findings = []
    previous: Optional[Message] = None
    for message in messages:
        ts = message.parsed_timestamp
        if ts is None:
            continue
        if previous is not None and ts < previous.parsed_timestamp:
            findings.append(NonChronologicalTimestamp(
                uuid=message.uuid,
                previous_timestamp=previous.timestamp,
                timestamp=message.timestamp
            ))
        previous = message
    return findings


def find_duplicate_tool_use_ids(messages: Tuple[Message, ...]) -> List[DuplicateToolUseId]:
    pairs = (
        (block.id, m.line_number)
        for m in messages
        if isinstance(m, AssistantEntry)
        for block in m.tool_uses
    )
    return [
        DuplicateToolUseId(tool_use_id=tool_use_id, occurrences=tuple(lines))
        for tool_use_id, lines in _occurrences(pairs).items()
        if len(lines) > 1
    ]


def validate(conversation: Conversation) -> List[Finding]:
    """
    Check referential and structural integrity

    Args:
        conversation: Parsed conversation

    Returns:
        Findings grouped by kind (duplicate UUIDs, unresolved parents,
        broken cycles, timestamp order, duplicate tool-use IDs), each
        group in file order
    """
    messages = conversation.messages
    findings: List[Finding] = []
    findings.extend(find_duplicate_uuids(messages))
    findings.extend(find_unresolved_parents(messages))
    findings.extend(build_tree(messages).findings)
    findings.extend(find_non_chronological(messages))
    findings.extend(find_duplicate_tool_use_ids(messages))

    if findings:
        logger.info("Validation produced %d findings", len(findings))
    return findings
