"""JSONL channels: append-only writer + cursor-tracking reader.

One channel is one file; every line is one JSON record:

    {"from":"worker-1","kind":"done","task":"t-01"}\\n
    {"from":"worker-2","kind":"claim","task":"t-02"}\\n

The writer only ever appends.  The reader keeps a byte offset and each poll()
returns the records appended since the previous one:

    writer = JsonlWriter(".apiari/channels/events.jsonl")
    writer.append({"kind": "ping"})

    reader = JsonlReader(".apiari/channels/events.jsonl")
    reader.poll()          # [{"kind": "ping"}]
    reader.poll()          # []
    saved = reader.offset  # persist, then JsonlReader.with_offset(path, saved)

Concurrent writes: O_APPEND, no flock.  Lines up to PIPE_BUF (4096 bytes on
Linux) are not split between concurrent appenders.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

from apiari.codec import JsonCodec, SerializationError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import BinaryIO

logger = logging.getLogger("apiari.ipc")

MALFORMED_POLICIES = ("skip", "log", "raise")
_SCAN_BLOCK = 4096


def check_malformed_policy(policy: str) -> str:
    if policy not in MALFORMED_POLICIES:
        msg = f"on_malformed must be one of {', '.join(MALFORMED_POLICIES)}, got {policy!r}"
        raise ValueError(msg)
    return policy


class JsonlWriter:
    """Appends records to a JSONL file, creating it (and parents) on first use.

    With a record_type, append() refuses values of any other type (TypeError)
    so a channel only ever carries what its readers decode.
    """

    def __init__(self, path: Path | str, record_type: type | None = None) -> None:
        self._path = Path(path)
        self._codec = JsonCodec(record_type)
        self.record_type = record_type

    def __repr__(self) -> str:
        return f"JsonlWriter({str(self._path)!r})"

    @property
    def path(self) -> Path:
        return self._path

    def append(self, record: Any) -> None:
        """Append one record as a single line.

        Raises SerializationError before the file is touched if the record
        cannot be encoded.
        """
        self._write(self._encode(record))

    def append_many(self, records: Iterable[Any]) -> None:
        """Append several records with one write; nothing is written if any fails to encode."""
        data = b"".join(self._encode(r) for r in records)
        if data:
            self._write(data)

    def _encode(self, record: Any) -> bytes:
        rt = self.record_type
        if rt is not None and not isinstance(record, rt):
            # ints are fine where floats are expected
            if not (rt is float and isinstance(record, int) and not isinstance(record, bool)):
                msg = f"{self._path}: expected {rt.__name__}, got {type(record).__name__}"
                raise TypeError(msg)
        return self._codec.encode_line(record)

    def _write(self, data: bytes) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # Unbuffered so the line goes out as one append, not a buffer flush.
        with self._path.open("ab", buffering=0) as f:
            view = memoryview(data)
            while view:
                n = f.write(view)
                view = view[n:]


class JsonlReader:
    """Reads records appended to a JSONL file since the last poll.

    The cursor is a byte offset owned by this instance.  Two readers on the
    same file never share it; hand it over explicitly via ``offset`` and
    ``with_offset()``.

    on_malformed controls lines that do not decode as ``record_type``:
        "skip"   drop silently (default)
        "log"    drop with a warning on the apiari.ipc logger
        "raise"  raise SerializationError, leaving the cursor where it was
    """

    def __init__(
        self,
        path: Path | str,
        record_type: type | None = None,
        *,
        offset: int = 0,
        on_malformed: str = "skip",
    ) -> None:
        if offset < 0:
            msg = f"offset must be >= 0, got {offset}"
            raise ValueError(msg)
        self._path = Path(path)
        self._codec = JsonCodec(record_type)
        self._offset = offset
        self.on_malformed = check_malformed_policy(on_malformed)

    @classmethod
    def with_offset(
        cls,
        path: Path | str,
        offset: int,
        record_type: type | None = None,
        *,
        on_malformed: str = "skip",
    ) -> JsonlReader:
        """Resume from a previously saved offset instead of replaying the file."""
        return cls(path, record_type, offset=offset, on_malformed=on_malformed)

    def __repr__(self) -> str:
        return f"JsonlReader({str(self._path)!r}, offset={self._offset})"

    @property
    def path(self) -> Path:
        return self._path

    @property
    def offset(self) -> int:
        return self._offset

    def current_offset(self) -> int:
        return self._offset

    def set_offset(self, offset: int) -> None:
        if offset < 0:
            msg = f"offset must be >= 0, got {offset}"
            raise ValueError(msg)
        self._offset = offset

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def poll(self) -> list[Any]:
        """Return records appended since the last poll, oldest first.

        A missing file is an empty channel.  A trailing line without its
        newline is left in place until the writer finishes it.
        """
        try:
            f = self._path.open("rb")
        except FileNotFoundError:
            return []

        with f:
            size = os.fstat(f.fileno()).st_size
            if size <= self._offset:
                if size < self._offset:
                    logger.warning(
                        "%s: cursor %d is past end of file (%d bytes)",
                        self._path, self._offset, size,
                    )
                return []
            f.seek(self._offset)
            data = f.read(size - self._offset)

        end = data.rfind(b"\n")
        if end < 0:
            return []

        records: list[Any] = []
        for raw in data[:end].split(b"\n"):
            line = raw.strip()
            if not line:
                continue
            try:
                records.append(self._codec.decode(line))
            except SerializationError as exc:
                self._malformed(line, exc)

        self._offset += end + 1
        logger.debug("%s: %d record(s), offset -> %d", self._path, len(records), self._offset)
        return records

    def skip_to_end(self) -> int:
        """Move the cursor past everything currently in the file.

        Stops at the end of the last complete line so a half-written record
        is still delivered once finished.  Returns the new offset (0 when the
        file does not exist).
        """
        try:
            f = self._path.open("rb")
        except FileNotFoundError:
            self._offset = 0
            return 0

        with f:
            size = os.fstat(f.fileno()).st_size
            self._offset = _last_line_end(f, size)
        logger.debug("%s: skipped to offset %d", self._path, self._offset)
        return self._offset

    def _malformed(self, line: bytes, exc: SerializationError) -> None:
        if self.on_malformed == "raise":
            msg = f"{self._path}: malformed line at or after offset {self._offset}: {exc}"
            raise SerializationError(msg) from exc
        if self.on_malformed == "log":
            logger.warning("%s: skipping malformed line %.80r: %s", self._path, line, exc)


def _last_line_end(f: BinaryIO, size: int) -> int:
    """Byte position just past the last newline in f (0 if there is none)."""
    pos = size
    while pos > 0:
        start = max(0, pos - _SCAN_BLOCK)
        f.seek(start)
        block = f.read(pos - start)
        idx = block.rfind(b"\n")
        if idx >= 0:
            return start + idx + 1
        pos = start
    return 0
