# SPDX-License-Identifier: BSD-3-Clause
# Copyright (c) 2025-2026 @yosagi
"""
Typed entry model and single-line decoder

Turns one JSONL line of a Claude Code session log into a SummaryEntry,
UserEntry or AssistantEntry, or into a DecodeFailure describing why the
line could not be used. Nothing here looks at other lines.
"""

import json
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Union


def parse_iso_timestamp(ts_str: str) -> datetime:
    """Parse ISO 8601 format timestamp (timezone-aware)"""
    # For 3.10 and earlier, need to convert 'Z' to '+00:00'
    if ts_str.endswith('Z'):
        ts_str = ts_str[:-1] + '+00:00'
    ts = datetime.fromisoformat(ts_str)
    if ts.tzinfo is None:
        # Naive timestamps are taken as UTC
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def optional_timestamp(ts_str: Optional[str]) -> Optional[datetime]:
    """Parse timestamp, returning None when absent or malformed"""
    if not ts_str or not isinstance(ts_str, str):
        return None
    try:
        return parse_iso_timestamp(ts_str)
    except ValueError:
        return None


class DecodeReason(str, Enum):
    """Why a line could not be turned into an entry"""
    INVALID_JSON = 'invalid_json'
    NOT_AN_OBJECT = 'not_an_object'
    UNKNOWN_TYPE = 'unknown_type'
    MISSING_FIELD = 'missing_field'
    INVALID_FIELD = 'invalid_field'


@dataclass(frozen=True)
class DecodeFailure:
    """A line that produced no entry"""
    line_number: int
    raw_text: str
    reason: DecodeReason
    detail: str = ''

    def describe(self) -> str:
        return f"line {self.line_number}: {self.reason.value} ({self.detail})"


class EntryDecodeError(ValueError):
    """Raised by the record decoders, converted to DecodeFailure by decode_line()"""

    def __init__(self, reason: DecodeReason, detail: str):
        super().__init__(detail)
        self.reason = reason
        self.detail = detail


# ---------------------------------------------------------------------------
# Content blocks
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ToolUseBlock:
    """Tool invocation issued by the assistant"""
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolResultBlock:
    """Outcome of a tool invocation, carried by a user message"""
    tool_use_id: str
    content: Union[str, Tuple['ContentBlock', ...]] = ''
    is_error: Optional[bool] = None


@dataclass(frozen=True)
class OtherBlock:
    """Block kind the model does not name (thinking, image, ...)"""
    type: str
    data: Dict[str, Any] = field(default_factory=dict)


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock, OtherBlock]


# ---------------------------------------------------------------------------
# Payload records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Usage:
    """Token usage breakdown; None means the counter was absent"""
    input_tokens: Optional[int] = None
    cache_creation_input_tokens: Optional[int] = None
    cache_read_input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    service_tier: Optional[str] = None


@dataclass(frozen=True)
class FileContent:
    file_path: Optional[str] = None
    content: Optional[str] = None


@dataclass(frozen=True)
class ToolUseResult:
    """
    Side-channel result attached to a user message

    Older records store a bare string instead of an object; it is kept in `text`.
    """
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    interrupted: Optional[bool] = None
    is_image: Optional[bool] = None
    sandbox: Optional[bool] = None
    type: Optional[str] = None
    file: Optional[FileContent] = None
    old_todos: Optional[Tuple[Any, ...]] = None
    new_todos: Optional[Tuple[Any, ...]] = None
    text: Optional[str] = None


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SummaryEntry:
    """Summary entry (label attached by convention to a leaf message)"""
    entry_type: ClassVar[str] = 'summary'

    summary: str
    leaf_uuid: str
    line_number: int = 0
    raw_data: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class Message:
    """Fields shared by every node of the message graph"""
    entry_type: ClassVar[str] = ''

    uuid: str
    parent_uuid: Optional[str]
    line_number: int = 0
    is_sidechain: bool = False
    user_type: Optional[str] = None
    cwd: Optional[str] = None
    session_id: Optional[str] = None
    version: Optional[str] = None
    timestamp: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def parsed_timestamp(self) -> Optional[datetime]:
        return optional_timestamp(self.timestamp)

    @property
    def is_root_declared(self) -> bool:
        """True if the record itself claims to be a root (parentUuid null)"""
        return self.parent_uuid is None


@dataclass(frozen=True)
class UserEntry(Message):
    entry_type: ClassVar[str] = 'user'

    content: Union[str, Tuple[ContentBlock, ...]] = ''
    is_meta: Optional[bool] = None
    tool_use_result: Optional[ToolUseResult] = None

    @property
    def text(self) -> str:
        """Plain text of the message (tool results excluded)"""
        if isinstance(self.content, str):
            return self.content
        return '\n'.join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_results(self) -> Tuple[ToolResultBlock, ...]:
        if isinstance(self.content, str):
            return ()
        return tuple(b for b in self.content if isinstance(b, ToolResultBlock))


@dataclass(frozen=True)
class AssistantEntry(Message):
    entry_type: ClassVar[str] = 'assistant'

    message_id: Optional[str] = None
    model: Optional[str] = None
    content: Tuple[ContentBlock, ...] = ()
    stop_reason: Optional[str] = None
    stop_sequence: Optional[str] = None
    usage: Optional[Usage] = None
    cost_usd: Optional[float] = None
    duration_ms: Optional[float] = None

    @property
    def text(self) -> str:
        return '\n'.join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_uses(self) -> Tuple[ToolUseBlock, ...]:
        return tuple(b for b in self.content if isinstance(b, ToolUseBlock))


Entry = Union[SummaryEntry, UserEntry, AssistantEntry]


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def _required_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None or value == '':
        raise EntryDecodeError(DecodeReason.MISSING_FIELD, f"'{key}' is missing")
    if not isinstance(value, str):
        raise EntryDecodeError(
            DecodeReason.INVALID_FIELD,
            f"'{key}' must be a string, got {type(value).__name__}"
        )
    return value


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _optional_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _optional_number(value: Any) -> Optional[float]:
    """JSON number or None (booleans and NaN/inf are not numbers here)"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def _optional_int(value: Any) -> Optional[int]:
    number = _optional_number(value)
    if number is None:
        return None
    if isinstance(number, float):
        if not number.is_integer():
            return None
        return int(number)
    return number


def _optional_tuple(value: Any) -> Optional[Tuple[Any, ...]]:
    return tuple(value) if isinstance(value, list) else None


# ---------------------------------------------------------------------------
# Block and payload decoders
# ---------------------------------------------------------------------------

def decode_block(item: Any) -> ContentBlock:
    """
    Decode one content block

    Never raises: anything that is not a well-formed text, tool_use or
    tool_result block is kept as an OtherBlock.
    """
    if not isinstance(item, dict):
        return OtherBlock(type='unknown', data={'value': item})

    block_type = item.get('type')
    if block_type == 'text' and isinstance(item.get('text'), str):
        return TextBlock(text=item['text'])

    if (block_type == 'tool_use'
            and isinstance(item.get('id'), str)
            and isinstance(item.get('name'), str)):
        tool_input = item.get('input')
        return ToolUseBlock(
            id=item['id'],
            name=item['name'],
            input=tool_input if isinstance(tool_input, dict) else {}
        )

    if block_type == 'tool_result' and isinstance(item.get('tool_use_id'), str):
        return ToolResultBlock(
            tool_use_id=item['tool_use_id'],
            content=_decode_result_content(item.get('content')),
            is_error=_optional_bool(item.get('is_error'))
        )

    return OtherBlock(type=str(block_type) if block_type is not None else 'unknown', data=item)


def _decode_result_content(value: Any) -> Union[str, Tuple[ContentBlock, ...]]:
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return tuple(decode_block(item) for item in value)
    return ''


def _decode_tool_use_result(value: Any) -> Optional[ToolUseResult]:
    if isinstance(value, str):
        return ToolUseResult(text=value)
    if not isinstance(value, dict):
        return None

    file_data = value.get('file')
    file_content = None
    if isinstance(file_data, dict):
        file_content = FileContent(
            file_path=_optional_str(file_data.get('filePath')),
            content=_optional_str(file_data.get('content'))
        )

    return ToolUseResult(
        stdout=_optional_str(value.get('stdout')),
        stderr=_optional_str(value.get('stderr')),
        interrupted=_optional_bool(value.get('interrupted')),
        is_image=_optional_bool(value.get('isImage')),
        sandbox=_optional_bool(value.get('sandbox')),
        type=_optional_str(value.get('type')),
        file=file_content,
        old_todos=_optional_tuple(value.get('oldTodos')),
        new_todos=_optional_tuple(value.get('newTodos'))
    )


def _decode_usage(value: Any) -> Optional[Usage]:
    if not isinstance(value, dict):
        return None
    return Usage(
        input_tokens=_optional_int(value.get('input_tokens')),
        cache_creation_input_tokens=_optional_int(value.get('cache_creation_input_tokens')),
        cache_read_input_tokens=_optional_int(value.get('cache_read_input_tokens')),
        output_tokens=_optional_int(value.get('output_tokens')),
        service_tier=_optional_str(value.get('service_tier'))
    )


# ---------------------------------------------------------------------------
# Record decoders
# ---------------------------------------------------------------------------

def _decode_summary(data: Dict[str, Any], line_number: int) -> SummaryEntry:
    summary = data.get('summary')
    if summary is None:
        raise EntryDecodeError(DecodeReason.MISSING_FIELD, "'summary' is missing")
    if not isinstance(summary, str):
        raise EntryDecodeError(DecodeReason.INVALID_FIELD, "'summary' must be a string")
    return SummaryEntry(
        summary=summary,
        leaf_uuid=_required_str(data, 'leafUuid'),
        line_number=line_number,
        raw_data=data
    )


def _decode_common(data: Dict[str, Any], line_number: int) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Decode fields shared by user and assistant records

    Returns:
        (keyword arguments for the Message fields, the inner 'message' object)
    """
    uuid = _required_str(data, 'uuid')

    parent_uuid = data.get('parentUuid')
    if parent_uuid == '':
        parent_uuid = None
    if parent_uuid is not None and not isinstance(parent_uuid, str):
        raise EntryDecodeError(DecodeReason.INVALID_FIELD, "'parentUuid' must be a string or null")

    message = data.get('message')
    if message is None:
        raise EntryDecodeError(DecodeReason.MISSING_FIELD, "'message' is missing")
    if not isinstance(message, dict):
        raise EntryDecodeError(DecodeReason.INVALID_FIELD, "'message' must be an object")

    common = {
        'uuid': uuid,
        'parent_uuid': parent_uuid,
        'line_number': line_number,
        'is_sidechain': data.get('isSidechain') is True,
        'user_type': _optional_str(data.get('userType')),
        'cwd': _optional_str(data.get('cwd')),
        'session_id': _optional_str(data.get('sessionId')),
        'version': _optional_str(data.get('version')),
        'timestamp': _optional_str(data.get('timestamp')),
        'raw_data': data,
    }
    return common, message


def _decode_user(data: Dict[str, Any], line_number: int) -> UserEntry:
    common, message = _decode_common(data, line_number)

    raw_content = message.get('content')
    if raw_content is None:
        content: Union[str, Tuple[ContentBlock, ...]] = ''
    elif isinstance(raw_content, str):
        content = raw_content
    elif isinstance(raw_content, list):
        content = tuple(decode_block(item) for item in raw_content)
    else:
        raise EntryDecodeError(DecodeReason.INVALID_FIELD, "'message.content' must be text or a list")

    return UserEntry(
        content=content,
        is_meta=_optional_bool(data.get('isMeta')),
        tool_use_result=_decode_tool_use_result(data.get('toolUseResult')),
        **common
    )


def _decode_assistant(data: Dict[str, Any], line_number: int) -> AssistantEntry:
    common, message = _decode_common(data, line_number)

    raw_content = message.get('content')
    if isinstance(raw_content, list):
        content = tuple(decode_block(item) for item in raw_content)
    elif isinstance(raw_content, str):
        content = (TextBlock(text=raw_content),)
    elif raw_content is None:
        content = ()
    else:
        raise EntryDecodeError(DecodeReason.INVALID_FIELD, "'message.content' must be a list")

    return AssistantEntry(
        message_id=_optional_str(message.get('id')),
        model=_optional_str(message.get('model')),
        content=content,
        stop_reason=_optional_str(message.get('stop_reason')),
        stop_sequence=_optional_str(message.get('stop_sequence')),
        usage=_decode_usage(message.get('usage')),
        cost_usd=_optional_number(data.get('costUSD')),
        duration_ms=_optional_number(data.get('durationMs')),
        **common
    )


_DECODERS: Dict[str, Callable[[Dict[str, Any], int], Entry]] = {
    'summary': _decode_summary,
    'user': _decode_user,
    'assistant': _decode_assistant,
}


def decode_record(data: Any, line_number: int = 0) -> Entry:
    """
    Decode an already-parsed JSON value into an entry

    Args:
        data: Value produced by json.loads()
        line_number: 1-based line number recorded on the entry

    Returns:
        SummaryEntry, UserEntry or AssistantEntry

    Raises:
        EntryDecodeError: The value is not a recognizable entry
    """
    if not isinstance(data, dict):
        raise EntryDecodeError(
            DecodeReason.NOT_AN_OBJECT,
            f"expected a JSON object, got {type(data).__name__}"
        )

    entry_type = data.get('type')
    decoder = _DECODERS.get(entry_type) if isinstance(entry_type, str) else None
    if decoder is None:
        raise EntryDecodeError(DecodeReason.UNKNOWN_TYPE, f"unknown entry type {entry_type!r}")

    return decoder(data, line_number)


def decode_line(line: str, line_number: int) -> Union[Entry, DecodeFailure]:
    """
    Decode one raw JSONL line

    Args:
        line: Raw line text (trailing newline allowed)
        line_number: 1-based line number within the source

    Returns:
        The decoded entry, or a DecodeFailure for this line
    """
    raw_text = line.rstrip('\r\n')
    try:
        data = json.loads(raw_text)
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError and oversized integer literals
        return DecodeFailure(line_number, raw_text, DecodeReason.INVALID_JSON, str(e))

    try:
        return decode_record(data, line_number)
    except EntryDecodeError as e:
        return DecodeFailure(line_number, raw_text, e.reason, e.detail)
