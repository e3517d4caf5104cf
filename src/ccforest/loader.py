# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Conversation loader

Consumes a line source one line at a time, decodes each line and collects
the result into a flat Conversation. Nothing is reordered, deduplicated or
validated here; lines that fail to decode are returned alongside.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import (
    AsyncIterable, Iterable, Iterator, List, NamedTuple, Optional, Tuple, Union
)

from .entries import (
    AssistantEntry, DecodeFailure, Message, SummaryEntry, UserEntry, decode_line
)
from .errors import InvalidInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Conversation:
    """One parsed conversation file, in file-appearance order"""
    summaries: Tuple[SummaryEntry, ...] = ()
    messages: Tuple[Message, ...] = ()

    def __len__(self) -> int:
        return len(self.messages)

    @property
    def user_messages(self) -> Tuple[UserEntry, ...]:
        return tuple(m for m in self.messages if isinstance(m, UserEntry))

    @property
    def assistant_messages(self) -> Tuple[AssistantEntry, ...]:
        return tuple(m for m in self.messages if isinstance(m, AssistantEntry))

    @property
    def session_ids(self) -> List[str]:
        """Distinct session IDs in order of first appearance"""
        seen = {}
        for message in self.messages:
            if message.session_id and message.session_id not in seen:
                seen[message.session_id] = None
        return list(seen)

    @property
    def leaf_hints(self) -> List[str]:
        """leafUuid of every summary, in file order"""
        return [s.leaf_uuid for s in self.summaries]

    def get_message(self, uuid: str) -> Optional[Message]:
        """First message carrying the UUID"""
        for message in self.messages:
            if message.uuid == uuid:
                return message
        return None


class ParseResult(NamedTuple):
    conversation: Conversation
    failures: List[DecodeFailure]


class _Collector:
    """Accumulates decoded lines for parse() and aparse()"""

    def __init__(self):
        self.summaries: List[SummaryEntry] = []
        self.messages: List[Message] = []
        self.failures: List[DecodeFailure] = []
        self.line_number = 0

    def feed(self, line: str):
        self.line_number += 1
        if not line.strip():
            return

        result = decode_line(line, self.line_number)
        if isinstance(result, DecodeFailure):
            logger.debug("Skipping %s", result.describe())
            self.failures.append(result)
        elif isinstance(result, SummaryEntry):
            self.summaries.append(result)
        else:
            self.messages.append(result)

    def result(self) -> ParseResult:
        conversation = Conversation(
            summaries=tuple(self.summaries),
            messages=tuple(self.messages)
        )
        logger.info(
            "Parsed %d lines: %d summaries, %d messages, %d failures",
            self.line_number, len(self.summaries), len(self.messages), len(self.failures)
        )
        return ParseResult(conversation, self.failures)


def parse(lines: Iterable[str]) -> ParseResult:
    """
    Parse a line source into a Conversation

    Args:
        lines: Any iterable of text lines (file object, list, generator)

    Returns:
        (Conversation, list of DecodeFailure)

    Raises:
        InvalidInput: The source is not iterable or fails while being read
    """
    try:
        iterator = iter(lines)
    except TypeError as e:
        raise InvalidInput(f"Line source is not iterable: {type(lines).__name__}", lines) from e

    collector = _Collector()
    try:
        for line in iterator:
            collector.feed(line)
    except OSError as e:
        raise InvalidInput(f"Line source failed after line {collector.line_number}: {e}", lines) from e
    return collector.result()


async def aparse(lines: AsyncIterable[str]) -> ParseResult:
    """
    Parse an asynchronous line source

    Each line request is a suspension point. Cancellation is left to the
    caller.
    """
    if not hasattr(lines, '__aiter__'):
        raise InvalidInput(f"Line source is not async iterable: {type(lines).__name__}", lines)

    collector = _Collector()
    try:
        async for line in lines:
            collector.feed(line)
    except OSError as e:
        raise InvalidInput(f"Line source failed after line {collector.line_number}: {e}", lines) from e
    return collector.result()


def iter_file_lines(file_path: Union[str, Path]) -> Iterator[str]:
    """
    Yield lines of a JSONL file lazily

    Lines split on LF only, so a bare CR stays inside its record.
    Undecodable bytes are replaced so that a damaged line fails on its own.

    Raises:
        InvalidInput: The file cannot be opened or read
    """
    path = Path(file_path)
    try:
        with open(path, 'r', encoding='utf-8', errors='replace', newline='\n') as f:
            yield from f
    except OSError as e:
        raise InvalidInput(f"Cannot read {path}: {e}", path) from e


def parse_file(file_path: Union[str, Path]) -> ParseResult:
    """Parse a JSONL conversation file"""
    logger.debug("Parsing %s", file_path)
    return parse(iter_file_lines(file_path))
