"""
Tests for History recording, dumps and comparison.
"""

import io
import json
import threading

import pytest

from stmtflow.errors import DecodeError, Error
from stmtflow.event import TextDumpOptions, block_event, invoke_event, return_event
from stmtflow.history import (
    History,
    JsonDumpOptions,
    LockedHistory,
    Mismatch,
    compare_histories,
    compose_handlers,
    format_mismatches,
    histories_equal,
    text_dumper,
)
from stmtflow.resultset import DigestOptions, ResultSet
from stmtflow.stmt import Invoke, Return, Stmt


class TestHistoryRecording:
    """Tests for recording events into histories."""

    def test_append_keeps_order(self):
        """Events are kept in append order."""
        h = History()
        h.append(block_event("s1"))
        h.collect(block_event("s2"))
        assert [e.session for e in h] == ["s1", "s2"]
        assert len(h) == 2
        assert h[1].session == "s2"

    def test_locked_history_concurrent_collect(self):
        """LockedHistory keeps every event from concurrent sessions."""
        recorder = LockedHistory()

        def session(name):
            for _ in range(200):
                recorder.collect(block_event(name))

        threads = [threading.Thread(target=session, args=(f"s{i}",)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snapshot = recorder.snapshot()
        assert len(snapshot) == 800
        for i in range(4):
            assert sum(1 for e in snapshot if e.session == f"s{i}") == 200

    def test_snapshot_is_a_copy(self):
        """Later appends do not change an earlier snapshot."""
        recorder = LockedHistory()
        recorder.collect(block_event("s1"))
        snapshot = recorder.snapshot()
        recorder.collect(block_event("s2"))
        assert len(snapshot) == 1
        assert len(recorder) == 2


class TestHandlers:
    """Tests for per-event handlers."""

    def test_text_dumper(self):
        """text_dumper renders each event it receives."""
        buf = io.StringIO()
        handler = text_dumper(buf)
        handler(block_event("s1"))
        assert buf.getvalue() == "-- s1 >> blocked\n"

    def test_compose_handlers(self):
        """Composed handlers all see each event, in order."""
        seen = []
        h = History()
        handler = compose_handlers(h.collect, lambda e: seen.append(e.session))
        handler(block_event("s1"))
        handler(block_event("s2"))
        assert len(h) == 2
        assert seen == ["s1", "s2"]


class TestHistoryJson:
    """Tests for JSON dumps and loads of histories."""

    def test_compact_dump(self):
        """Without indent the array is written compactly."""
        buf = io.StringIO()
        History([block_event("s1")]).dump_json(buf)
        assert buf.getvalue() == '[{"kind":"Block","session":"s1"}]\n'

    def test_indented_dump(self):
        """Indent and prefix apply to every line after the first."""
        buf = io.StringIO()
        History([block_event("s1")]).dump_json(buf, JsonDumpOptions(prefix=">", indent="  "))
        lines = buf.getvalue().splitlines()
        assert lines[0] == "["
        assert lines[1] == ">  {"
        assert lines[2] == '>    "kind": "Block",'
        assert lines[-1] == ">]"

    def test_round_trip(self, sample_history):
        """A dumped history loads back equivalent."""
        buf = io.StringIO()
        sample_history.dump_json(buf, JsonDumpOptions(indent="  "))
        buf.seek(0)
        loaded = History.load_json(buf)
        assert len(loaded) == len(sample_history)
        assert histories_equal(sample_history, loaded)
        assert loaded[1].ret.t == sample_history[1].ret.t

    def test_dump_is_plain_json(self, sample_history):
        """The dump is a JSON array of event records."""
        buf = io.StringIO()
        sample_history.dump_json(buf)
        records = json.loads(buf.getvalue())
        assert [r["kind"] for r in records] == ["Invoke", "Return", "Invoke", "Block", "Resume", "Return"]
        assert records[5]["error"] == {"code": 1062, "message": "Duplicate entry '3'"}

    def test_load_not_an_array(self):
        """A history must be a JSON array."""
        with pytest.raises(DecodeError):
            History.load_json(io.StringIO('{"kind": "Block"}'))

    def test_load_bad_event_names_index(self):
        """Decode failures report the failing event."""
        records = [{"kind": "Block", "session": "s1"}, {"kind": "Nope", "session": "s1"}]
        with pytest.raises(DecodeError, match="event #1"):
            History.from_list(records)

    def test_load_malformed_stmt_names_index(self):
        """Malformed statements are reported with the failing event."""
        text = '[{"kind": "Block", "session": "s1"}, {"kind": "Invoke", "session": "s1", "stmt": {"sql": "x", "seq": "abc"}}]'
        with pytest.raises(DecodeError, match="event #1"):
            History.load_json(io.StringIO(text))

    def test_load_invalid_json(self):
        """Malformed JSON fails to load."""
        with pytest.raises(DecodeError):
            History.load_json(io.StringIO("[{"))


class TestHistoryText:
    """Tests for text dumps of histories."""

    def test_dump_text(self, sample_history):
        """Every event is rendered in order."""
        buf = io.StringIO()
        sample_history.dump_text(buf)
        assert buf.getvalue() == (
            "/* s1 */ SELECT * FROM t\n"
            "-- s1 >> 2 rows in set\n"
            "/* s2 */ INSERT INTO t VALUES (3, 'c')\n"
            "-- s2 >> blocked\n"
            "-- s2 >> resumed\n"
            "-- s2 >> E1062: Duplicate entry '3'\n"
        )

    def test_dump_text_with_latency(self, sample_history):
        """Latency lines follow successful returns only."""
        buf = io.StringIO()
        sample_history.dump_text(buf, TextDumpOptions(with_latency=True))
        cost_lines = [line for line in buf.getvalue().splitlines() if "(cost " in line]
        assert len(cost_lines) == 1
        assert cost_lines[0].startswith("-- s1    ")


class TestCompareHistories:
    """Tests for positional history comparison."""

    def test_equal(self, sample_history):
        """A history matches itself."""
        assert compare_histories(sample_history, sample_history) == []
        assert format_mismatches([]) == "Histories are equivalent"

    def test_positional_mismatch(self):
        """Mismatches are reported by position."""
        stmt = Stmt("UPDATE t SET v = 1")
        a = History([
            invoke_event("s1", Invoke("s1", stmt)),
            return_event("s1", Return(stmt, res=ResultSet.from_exec(1))),
        ])
        b = History([
            invoke_event("s1", Invoke("s1", stmt)),
            return_event("s1", Return(stmt, err=Error(1205, "Lock wait timeout exceeded"))),
        ])
        mismatches = compare_histories(a, b)
        assert len(mismatches) == 1
        assert mismatches[0].index == 1
        assert "expect a result" in mismatches[0].message

    def test_not_reordered(self):
        """Swapped events are not matched up."""
        a = History([block_event("s1"), block_event("s2")])
        b = History([block_event("s2"), block_event("s1")])
        assert [m.index for m in compare_histories(a, b)] == [0, 1]

    def test_length_mismatch(self):
        """Missing trailing events are reported."""
        a = History([block_event("s1"), block_event("s2")])
        b = History([block_event("s1")])
        mismatches = compare_histories(a, b)
        assert mismatches == [Mismatch(1, "expect 2 events, got 1")]
        assert not histories_equal(a, b)

    def test_digest_options_passed_through(self):
        """Digest options apply to every event pair."""
        stmt = Stmt("SELECT id FROM t")
        a = History([return_event("s1", Return(stmt, res=ResultSet(["id"], [[1], [2]])))])
        b = History([return_event("s1", Return(stmt, res=ResultSet(["id"], [[2], [1]])))])
        assert not histories_equal(a, b)
        assert histories_equal(a, b, DigestOptions(sort=True))

    def test_format_mismatches(self):
        """Mismatches render one per line."""
        text = format_mismatches([Mismatch(0, "a"), Mismatch(3, "b")])
        assert text == "2 mismatch(es):\n  [#0] a\n  [#3] b"
