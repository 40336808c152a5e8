"""Tests for CheckpointedReader."""

from __future__ import annotations

from apiari.cursor import CheckpointedReader, CursorState
from apiari.ipc import JsonlWriter
from apiari.state import load_state


class TestCheckpointedReader:
    def test_starts_at_zero_without_cursor_file(self, tmp_path):
        reader = CheckpointedReader(tmp_path / "log.jsonl", tmp_path / "cursor.json")
        assert reader.offset == 0
        assert reader.poll() == []
        # nothing moved, nothing saved
        assert not (tmp_path / "cursor.json").exists()

    def test_poll_persists_offset(self, tmp_path):
        log = tmp_path / "log.jsonl"
        cursor = tmp_path / "cursors" / "worker.json"
        JsonlWriter(log).append({"n": 1})

        reader = CheckpointedReader(log, cursor)
        assert reader.poll() == [{"n": 1}]

        saved = load_state(cursor, CursorState)
        assert saved.offset == log.stat().st_size
        assert saved.updated_at

    def test_restart_resumes_after_last_poll(self, tmp_path):
        log = tmp_path / "log.jsonl"
        cursor = tmp_path / "cursor.json"
        writer = JsonlWriter(log)
        writer.append({"n": 1})
        writer.append({"n": 2})

        first = CheckpointedReader(log, cursor)
        assert first.poll() == [{"n": 1}, {"n": 2}]

        writer.append({"n": 3})
        second = CheckpointedReader(log, cursor)
        assert second.offset == first.offset
        assert second.poll() == [{"n": 3}]

    def test_skip_to_end_persists(self, tmp_path):
        log = tmp_path / "log.jsonl"
        cursor = tmp_path / "cursor.json"
        writer = JsonlWriter(log)
        writer.append({"n": "backlog"})

        CheckpointedReader(log, cursor).skip_to_end()
        writer.append({"n": "fresh"})

        assert CheckpointedReader(log, cursor).poll() == [{"n": "fresh"}]

    def test_set_offset_persists(self, tmp_path):
        log = tmp_path / "log.jsonl"
        cursor = tmp_path / "cursor.json"
        JsonlWriter(log).append({"n": 1})

        reader = CheckpointedReader(log, cursor)
        reader.poll()
        reader.set_offset(0)

        assert load_state(cursor, CursorState).offset == 0
        assert CheckpointedReader(log, cursor).poll() == [{"n": 1}]

    def test_record_type_and_policy_pass_through(self, tmp_path):
        log = tmp_path / "log.jsonl"
        log.write_text('{"n":1}\n"text"\n')
        reader = CheckpointedReader(log, tmp_path / "cursor.json", dict)
        assert reader.poll() == [{"n": 1}]
        assert reader.log_path == log
        assert reader.cursor_path == tmp_path / "cursor.json"
