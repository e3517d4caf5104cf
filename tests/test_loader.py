"""Tests for the conversation loader."""
import asyncio
import json

import pytest

from ccforest.entries import DecodeReason, SummaryEntry
from ccforest.errors import InvalidInput
from ccforest.loader import Conversation, aparse, iter_file_lines, parse, parse_file
from conftest import SESSION_ID, assistant_record, summary_record, to_lines, ts, user_record


def test_parse_collects_summaries_and_messages(simple_records):
    conversation, failures = parse(to_lines(simple_records))
    assert failures == []
    assert [s.leaf_uuid for s in conversation.summaries] == ["a2"]
    assert [m.uuid for m in conversation.messages] == ["u1", "a1", "u2", "a2"]
    assert len(conversation) == 4
    assert len(conversation.user_messages) == 2
    assert len(conversation.assistant_messages) == 2
    assert conversation.session_ids == [SESSION_ID]
    assert conversation.leaf_hints == ["a2"]


def test_file_order_is_preserved_including_forward_references():
    records = [
        user_record("late-child", "parent", ts(9)),
        summary_record("late-child"),
        user_record("parent", None, ts(1)),
        summary_record("parent", "second"),
    ]
    conversation, _ = parse(to_lines(records))
    assert [m.uuid for m in conversation.messages] == ["late-child", "parent"]
    assert [s.summary for s in conversation.summaries] == ["Refactor parser", "second"]


def test_failures_do_not_stop_later_lines():
    lines = to_lines([
        user_record("u1", None, ts(0)),
        "{broken\n",
        {"type": "system", "uuid": "s1"},
        assistant_record("a1", "u1", ts(1)),
    ])
    conversation, failures = parse(lines)
    assert [m.uuid for m in conversation.messages] == ["u1", "a1"]
    assert [(f.line_number, f.reason) for f in failures] == [
        (2, DecodeReason.INVALID_JSON),
        (3, DecodeReason.UNKNOWN_TYPE),
    ]


def test_blank_lines_are_skipped_but_counted():
    lines = ["\n", "   \n"] + to_lines([user_record("u1"), "oops\n"])
    conversation, failures = parse(lines)
    assert conversation.messages[0].line_number == 3
    assert failures[0].line_number == 4


def test_parse_is_idempotent(simple_records):
    lines = to_lines(simple_records + ["nope\n"])
    assert parse(lines) == parse(lines)


def test_parse_consumes_generator_lazily(simple_records):
    consumed = []

    def source():
        for line in to_lines(simple_records):
            consumed.append(line)
            yield line

    conversation, _ = parse(source())
    assert len(consumed) == len(simple_records)
    assert len(conversation.messages) == 4


def test_empty_source():
    conversation, failures = parse([])
    assert conversation == Conversation()
    assert failures == []


def test_get_message_returns_first_occurrence():
    conversation, _ = parse(to_lines([
        user_record("dup", None, ts(0), "first"),
        user_record("dup", None, ts(1), "second"),
    ]))
    assert conversation.get_message("dup").content == "first"
    assert conversation.get_message("missing") is None


def test_non_iterable_source_is_invalid_input():
    with pytest.raises(InvalidInput):
        parse(42)


def test_reader_error_is_invalid_input():
    def source():
        yield "{}\n"
        raise OSError("disk went away")

    with pytest.raises(InvalidInput) as excinfo:
        parse(source())
    assert isinstance(excinfo.value.__cause__, OSError)


def test_missing_file_is_invalid_input(tmp_path):
    with pytest.raises(InvalidInput):
        parse_file(tmp_path / "absent.jsonl")


def test_parse_file(jsonl_file, simple_records):
    path = jsonl_file(simple_records)
    conversation, failures = parse_file(path)
    assert failures == []
    assert isinstance(conversation.summaries[0], SummaryEntry)
    assert [m.line_number for m in conversation.messages] == [2, 3, 4, 5]


def test_iter_file_lines_replaces_undecodable_bytes(tmp_path):
    path = tmp_path / "bad.jsonl"
    path.write_bytes(b'{"type": "summary", "summary": "ok", "leafUuid": "x"}\n\xff\xfe\n')
    lines = list(iter_file_lines(path))
    assert len(lines) == 2
    conversation, failures = parse(lines)
    assert len(conversation.summaries) == 1
    assert failures[0].reason is DecodeReason.INVALID_JSON


def test_aparse_matches_parse(simple_records):
    lines = to_lines(simple_records)

    async def source():
        for line in lines:
            await asyncio.sleep(0)
            yield line

    assert asyncio.run(aparse(source())) == parse(lines)


def test_aparse_rejects_sync_source():
    with pytest.raises(InvalidInput):
        asyncio.run(aparse(["{}"]))


def test_oversized_integer_fails_only_its_line():
    lines = to_lines([
        user_record("u1", None, ts(0)),
        '{"type": "user", "n": ' + "9" * 5000 + '}\n',
        user_record("u2", "u1", ts(1)),
    ])
    conversation, failures = parse(lines)
    assert [m.uuid for m in conversation.messages] == ["u1", "u2"]
    assert [f.line_number for f in failures] == [2]


def test_iter_file_lines_splits_on_lf_only(tmp_path):
    path = tmp_path / "cr.jsonl"
    record = json.dumps(user_record("u1", None, ts(0)))
    path.write_bytes((record[:1] + "\r" + record[1:] + "\r\n").encode("utf-8")
                     + (json.dumps(user_record("u2", "u1", ts(1))) + "\n").encode("utf-8"))
    lines = list(iter_file_lines(path))
    assert len(lines) == 2
    conversation, failures = parse(lines)
    assert failures == []
    assert [m.uuid for m in conversation.messages] == ["u1", "u2"]
