# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
ccforest - Claude Code session log tree reconstruction

Parse JSONL session logs into typed entries, rebuild the message forest,
select the active branch and aggregate cost/token statistics.
"""

from .branch import is_valid_branch, select_active_branch, select_summary_branches
from .entries import (
    AssistantEntry, DecodeFailure, DecodeReason, Message, SummaryEntry, UserEntry, decode_line
)
from .errors import CCForestError, InvalidInput, SessionNotFound
from .findings import (
    CycleBroken, DuplicateToolUseId, DuplicateUuid, Finding, NonChronologicalTimestamp,
    UnresolvedParent
)
from .loader import Conversation, ParseResult, aparse, parse, parse_file
from .stats import Stats, StatsAccumulator, compute_stats
from .tree import ConversationTree, build_tree
from .validator import validate

__version__ = "0.1.0"
