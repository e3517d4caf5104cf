# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Conversation tree builder

Rebuilds the parent/child forest of a conversation from uuid/parentUuid
references. Nodes are keyed by UUID and linked through UUID lists, so
breaking a cycle only moves a key from a child list to the roots.

Reference: https://piebald.ai/blog/messages-as-commits-claude-codes-git-like-dag-of-onversations
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from .entries import Message
from .findings import CycleBroken


@dataclass(frozen=True)
class ConversationTree:
    """Read-only forest view over a message list

    The mappings are read-only proxies, so a tree can be shared freely.
    """
    nodes: Mapping[str, Message]                 # uuid → first-seen message
    children_of: Mapping[str, Tuple[str, ...]]   # uuid → children in file order
    roots: Tuple[str, ...]                       # declared roots, orphans, cut cycle members
    parent_of: Mapping[str, Optional[str]] = field(default_factory=lambda: MappingProxyType({}))
    positions: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))  # uuid → file order
    orphans: Tuple[str, ...] = ()
    cycle_broken: Tuple[str, ...] = ()
    findings: Tuple[CycleBroken, ...] = ()

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, uuid: object) -> bool:
        return uuid in self.nodes

    def __iter__(self) -> Iterator[str]:
        return self.walk()

    def get_node(self, uuid: str) -> Optional[Message]:
        """Get node by UUID"""
        return self.nodes.get(uuid)

    def children(self, uuid: str) -> Tuple[str, ...]:
        return self.children_of.get(uuid, ())

    def parent(self, uuid: str) -> Optional[str]:
        """Effective parent (None for roots, orphans and cut cycle members)"""
        return self.parent_of.get(uuid)

    def is_root(self, uuid: str) -> bool:
        return uuid in self.nodes and self.parent_of.get(uuid) is None

    @property
    def leaves(self) -> List[str]:
        """Nodes without children, in file order"""
        return [uuid for uuid in self.nodes if not self.children_of.get(uuid)]

    def walk(self, start: Optional[str] = None) -> Iterator[str]:
        """
        Depth-first pre-order traversal

        Each call starts a fresh traversal.

        Args:
            start: UUID to start from (all roots in order if omitted)

        Yields:
            UUIDs in pre-order; nothing for an unknown start
        """
        if start is None:
            stack = list(reversed(self.roots))
        elif start in self.nodes:
            stack = [start]
        else:
            return

        visited: Set[str] = set()
        while stack:
            uuid = stack.pop()
            if uuid in visited:
                continue
            visited.add(uuid)
            yield uuid
            stack.extend(reversed(self.children_of.get(uuid, ())))

    def path_to_root(self, uuid: str) -> List[str]:
        """Get path from node with specified UUID to root (including self)"""
        path: List[str] = []
        current = uuid if uuid in self.nodes else None
        while current is not None:
            path.append(current)
            current = self.parent_of.get(current)
        return path

    def path_from_root(self, uuid: str) -> List[str]:
        """Get path from root to node with specified UUID (including self)"""
        path = self.path_to_root(uuid)
        path.reverse()
        return path

    def ancestors(self, uuid: str) -> List[str]:
        """Ancestors of the node, root first (excluding self)"""
        return self.path_from_root(uuid)[:-1]

    def root_of(self, uuid: str) -> Optional[str]:
        path = self.path_to_root(uuid)
        return path[-1] if path else None

    def depth(self, uuid: str) -> int:
        return len(self.ancestors(uuid))

    def descendant_count(self, uuid: str) -> int:
        """Number of nodes below the node (0 for leaves and unknown UUIDs)"""
        if uuid not in self.nodes:
            return 0
        return sum(1 for _ in self.walk(uuid)) - 1

    def nearest_ancestor(
        self,
        uuid: str,
        entry_type: str,
        exclude: Optional[Callable[[Message], bool]] = None
    ) -> Optional[Message]:
        """
        Find nearest ancestor of specified type from UUID

        Args:
            uuid: UUID of starting node
            entry_type: Entry type to search for ('user', 'assistant')
            exclude: Nodes for which this returns True are skipped

        Returns:
            Found message, or None if not found
        """
        for ancestor_uuid in reversed(self.ancestors(uuid)):
            message = self.nodes[ancestor_uuid]
            if message.entry_type != entry_type:
                continue
            if exclude is None or not exclude(message):
                return message
        return None

    def resolve(self, uuids: Iterable[str]) -> List[Message]:
        """Map UUIDs to messages, skipping unknown ones"""
        return [self.nodes[uuid] for uuid in uuids if uuid in self.nodes]


def _reachable(starts: Iterable[str], children_of: Dict[str, List[str]]) -> Set[str]:
    reached: Set[str] = set()
    stack = list(starts)
    while stack:
        uuid = stack.pop()
        if uuid in reached:
            continue
        reached.add(uuid)
        stack.extend(children_of.get(uuid, ()))
    return reached


def _find_cycle_member(
    start: str,
    parent_of: Dict[str, Optional[str]],
    positions: Dict[str, int]
) -> str:
    """
    Follow parent links from an unreachable node until they repeat

    Every unreachable node leads into a cycle, so the chain never ends.

    Returns the cycle member that appears earliest in the file.
    """
    path: List[str] = []
    index: Dict[str, int] = {}
    current = start
    while current not in index:
        index[current] = len(path)
        path.append(current)
        current = parent_of[current]

    cycle = path[index[current]:]
    return min(cycle, key=lambda uuid: positions[uuid])


def build_tree(messages: Sequence[Message]) -> ConversationTree:
    """
    Build the conversation forest from a flat message list

    If multiple messages share a UUID, the first one is used and later
    ones contribute no edges (the collision is reported by the validator).

    Args:
        messages: Messages in file order

    Returns:
        Built ConversationTree
    """
    # Index nodes by UUID (deduplication)
    nodes: Dict[str, Message] = {}
    positions: Dict[str, int] = {}
    for message in messages:
        if message.uuid not in nodes:
            nodes[message.uuid] = message
            positions[message.uuid] = len(positions)

    # Build parent-child relationships; each UUID is linked at most once
    children_of: Dict[str, List[str]] = {}
    parent_of: Dict[str, Optional[str]] = {}
    roots: List[str] = []
    orphans: List[str] = []

    for uuid, message in nodes.items():
        parent_uuid = message.parent_uuid
        if parent_uuid is not None and parent_uuid in nodes:
            children_of.setdefault(parent_uuid, []).append(uuid)
            parent_of[uuid] = parent_uuid
        else:
            # Root if parentUuid is null or not found
            if parent_uuid is not None:
                orphans.append(uuid)
            roots.append(uuid)
            parent_of[uuid] = None

    # Cycle guard: whatever the roots cannot reach hangs off a cycle
    cycle_broken: List[str] = []
    findings: List[CycleBroken] = []
    reached = _reachable(roots, children_of)
    if len(reached) < len(nodes):
        for uuid in nodes:
            if uuid in reached:
                continue
            member = _find_cycle_member(uuid, parent_of, positions)
            cut_parent = parent_of[member]
            if cut_parent is not None:
                children_of[cut_parent].remove(member)
                if not children_of[cut_parent]:
                    del children_of[cut_parent]
            parent_of[member] = None
            roots.append(member)
            cycle_broken.append(member)
            findings.append(CycleBroken(uuid=member, parent_uuid=cut_parent))
            reached |= _reachable([member], children_of)

    return ConversationTree(
        nodes=MappingProxyType(nodes),
        children_of=MappingProxyType(
            {uuid: tuple(children) for uuid, children in children_of.items()}
        ),
        roots=tuple(roots),
        parent_of=MappingProxyType(parent_of),
        positions=MappingProxyType(positions),
        orphans=tuple(orphans),
        cycle_broken=tuple(cycle_broken),
        findings=tuple(findings)
    )
