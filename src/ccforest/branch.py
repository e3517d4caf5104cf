# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Active branch selection

Picks the single root-to-leaf path a replay of the conversation would
follow. Ties are always broken by file order, earliest first. Sidechain
flags play no part in the choice.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .entries import Message, SummaryEntry
from .tree import ConversationTree

logger = logging.getLogger(__name__)

# Sort key: messages without a usable timestamp rank below all others
_TimeKey = Tuple[bool, Optional[datetime]]


def _time_key(message: Message) -> _TimeKey:
    ts = message.parsed_timestamp
    return (ts is not None, ts)


def _later(candidate: _TimeKey, best: _TimeKey) -> bool:
    """Strictly later; equal keys keep the earlier-seen best"""
    if candidate[0] != best[0]:
        return candidate[0]
    if not candidate[0]:
        return False
    return candidate[1] > best[1]


def _latest(uuids: Iterable[str], keys: Dict[str, _TimeKey]) -> Optional[str]:
    best_uuid = None
    best_key: _TimeKey = (False, None)
    for uuid in uuids:
        key = keys[uuid]
        if best_uuid is None or _later(key, best_key):
            best_uuid, best_key = uuid, key
    return best_uuid


def _subtree_latest(tree: ConversationTree, root: str, keys: Dict[str, _TimeKey]) -> _TimeKey:
    latest = _latest(tree.walk(root), keys)
    return keys[latest] if latest is not None else (False, None)


def select_active_branch(tree: ConversationTree, leaf_uuid: Optional[str] = None) -> List[str]:
    """
    Compute the active branch

    Args:
        tree: Built ConversationTree
        leaf_uuid: Optional leaf hint (usually a summary's leafUuid)

    Returns:
        UUIDs from root to leaf; empty for an empty tree
    """
    if leaf_uuid is not None and leaf_uuid in tree:
        return tree.path_from_root(leaf_uuid)
    if leaf_uuid is not None:
        logger.debug("Leaf hint %s not in tree, using latest branch", leaf_uuid)

    if not tree.roots:
        return []

    keys = {uuid: _time_key(message) for uuid, message in tree.nodes.items()}

    # Root whose subtree holds the latest message
    best_root = tree.roots[0]
    best_key = _subtree_latest(tree, best_root, keys)
    for root in tree.roots[1:]:
        key = _subtree_latest(tree, root, keys)
        if _later(key, best_key):
            best_root, best_key = root, key

    # Descend along the latest child at every branching point
    branch = [best_root]
    current = best_root
    while True:
        children = tree.children(current)
        if not children:
            break
        current = _latest(children, keys)
        branch.append(current)

    return branch


def select_summary_branches(
    tree: ConversationTree,
    summaries: Iterable[SummaryEntry]
) -> Dict[str, List[str]]:
    """
    Resolve every summary to its own branch

    Each summary is an independent selection; nothing is merged.

    Returns:
        Dictionary of {leafUuid: branch}
    """
    branches: Dict[str, List[str]] = {}
    for summary in summaries:
        if summary.leaf_uuid not in branches:
            branches[summary.leaf_uuid] = select_active_branch(tree, summary.leaf_uuid)
    return branches


def is_valid_branch(tree: ConversationTree, branch: Sequence[str]) -> bool:
    """
    Check that a branch is a connected root-to-leaf path

    An empty branch is valid.
    """
    if not branch:
        return True
    if not tree.is_root(branch[0]):
        return False
    for parent, child in zip(branch, branch[1:]):
        if tree.parent(child) != parent:
            return False
    return branch[-1] in tree and not tree.children(branch[-1])


def branch_messages(tree: ConversationTree, branch: Sequence[str]) -> List[Message]:
    """Messages of a branch, in branch order"""
    return tree.resolve(branch)
