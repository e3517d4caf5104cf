"""Shared fixtures and record factories for the ccforest test suite."""
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

SESSION_ID = "4f1c2a9e-0000-4000-8000-000000000001"


def user_record(uuid: str, parent: Optional[str] = None, ts: Optional[str] = "2025-06-01T10:00:00.000Z",
                content: Any = "hello", **extra) -> Dict[str, Any]:
    record = {
        "type": "user",
        "uuid": uuid,
        "parentUuid": parent,
        "isSidechain": False,
        "userType": "external",
        "cwd": "/home/dev/project",
        "sessionId": SESSION_ID,
        "version": "1.0.30",
        "message": {"role": "user", "content": content},
    }
    if ts is not None:
        record["timestamp"] = ts
    record.update(extra)
    return record


def assistant_record(uuid: str, parent: Optional[str] = None, ts: Optional[str] = "2025-06-01T10:00:05.000Z",
                     content: Optional[List[Dict[str, Any]]] = None, usage: Optional[Dict[str, Any]] = None,
                     model: str = "claude-sonnet-4", **extra) -> Dict[str, Any]:
    record = {
        "type": "assistant",
        "uuid": uuid,
        "parentUuid": parent,
        "isSidechain": False,
        "userType": "external",
        "cwd": "/home/dev/project",
        "sessionId": SESSION_ID,
        "version": "1.0.30",
        "message": {
            "id": f"msg_{uuid}",
            "type": "message",
            "role": "assistant",
            "model": model,
            "content": content if content is not None else [{"type": "text", "text": "ok"}],
            "stop_reason": "end_turn",
            "stop_sequence": None,
            "usage": usage if usage is not None else {
                "input_tokens": 10,
                "cache_creation_input_tokens": 0,
                "cache_read_input_tokens": 0,
                "output_tokens": 5,
                "service_tier": "standard",
            },
        },
    }
    if ts is not None:
        record["timestamp"] = ts
    record.update(extra)
    return record


def summary_record(leaf_uuid: str, summary: str = "Refactor parser") -> Dict[str, Any]:
    return {"type": "summary", "summary": summary, "leafUuid": leaf_uuid}


def to_lines(records: List[Any]) -> List[str]:
    """Serialize records as JSONL lines; strings are passed through as raw lines."""
    return [r if isinstance(r, str) else json.dumps(r) + "\n" for r in records]


def ts(second: int) -> str:
    return f"2025-06-01T10:00:{second:02d}.000Z"


@pytest.fixture
def simple_records():
    """A small session: summary, question, tool call, tool result, answer."""
    return [
        summary_record("a2", "Read the README"),
        user_record("u1", None, ts(0), "Read the README"),
        assistant_record(
            "a1", "u1", ts(2),
            content=[{"type": "tool_use", "id": "toolu_1", "name": "Read",
                      "input": {"file_path": "/home/dev/project/README.md"}}],
            costUSD=0.01, durationMs=1200,
        ),
        user_record(
            "u2", "a1", ts(3),
            [{"tool_use_id": "toolu_1", "type": "tool_result", "content": "# Project"}],
            toolUseResult={"type": "text", "file": {"filePath": "/home/dev/project/README.md",
                                                    "content": "# Project"}},
        ),
        assistant_record("a2", "u2", ts(5), content=[{"type": "text", "text": "It is a project."}],
                         costUSD=0.02, durationMs=800),
    ]


@pytest.fixture
def jsonl_file(tmp_path: Path):
    """Write records to a JSONL file and return its path."""
    def _write(records: List[Any], name: str = f"{SESSION_ID}.jsonl") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("".join(to_lines(records)), encoding="utf-8")
        return path
    return _write
