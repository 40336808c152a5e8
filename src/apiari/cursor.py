"""Readers whose cursor survives restarts.

A CheckpointedReader is a JsonlReader plus a small state file holding its
offset.  Each poll that moves the cursor saves it (atomically, via
save_state), so a consumer that restarts picks up at the first record it has
not yet been handed:

    reader = CheckpointedReader(
        ".apiari/channels/events.jsonl",
        ".apiari/state/cursors/events/worker-1.json",
    )
    for event in reader.poll():
        handle(event)

Records are checkpointed as soon as poll() returns them.  A crash while
handling a batch loses that batch for this consumer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from apiari.ipc import JsonlReader
from apiari.state import StateStore

logger = logging.getLogger("apiari.cursor")


@dataclass
class CursorState:
    """Persisted position of one consumer in one channel."""

    offset: int = 0
    updated_at: str = ""


class CheckpointedReader:
    """JsonlReader that persists its offset after every move."""

    def __init__(
        self,
        log_path: Path | str,
        cursor_path: Path | str,
        record_type: type | None = None,
        *,
        on_malformed: str = "skip",
    ) -> None:
        self._store = StateStore(cursor_path, CursorState)
        saved: CursorState = self._store.load()
        self._reader = JsonlReader(
            log_path,
            record_type,
            offset=saved.offset,
            on_malformed=on_malformed,
        )
        logger.debug("%s: resuming at offset %d", cursor_path, saved.offset)

    def __repr__(self) -> str:
        return f"CheckpointedReader({str(self.log_path)!r}, offset={self.offset})"

    @property
    def log_path(self) -> Path:
        return self._reader.path

    @property
    def cursor_path(self) -> Path:
        return self._store.path

    @property
    def offset(self) -> int:
        return self._reader.offset

    def poll(self) -> list[Any]:
        before = self._reader.offset
        records = self._reader.poll()
        if self._reader.offset != before:
            self._commit()
        return records

    def skip_to_end(self) -> int:
        offset = self._reader.skip_to_end()
        self._commit()
        return offset

    def set_offset(self, offset: int) -> None:
        self._reader.set_offset(offset)
        self._commit()

    def _commit(self) -> None:
        self._store.save(CursorState(
            offset=self._reader.offset,
            updated_at=datetime.now(UTC).isoformat(),
        ))
