# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Error hierarchy

Only conditions that leave nothing to report on are raised.
Per-line decode failures and structural findings are returned as data.

    CCForestError
    ├── InvalidInput       line source cannot be opened or read
    └── SessionNotFound    session prefix resolves to zero or several files
"""

from typing import Any, Optional


class CCForestError(Exception):
    """Base class for all ccforest errors"""


class InvalidInput(CCForestError):
    """The line supply itself is unusable"""

    def __init__(self, message: str, source: Optional[Any] = None):
        super().__init__(message)
        self.source = source


class SessionNotFound(CCForestError):
    """Session lookup failed"""

    def __init__(self, session_id: str, matches: int = 0):
        if matches > 1:
            message = f"Session '{session_id}' is ambiguous ({matches} matches)"
        else:
            message = f"Session '{session_id}' not found"
        super().__init__(message)
        self.session_id = session_id
        self.matches = matches
