"""Atomic JSON state snapshots.

    state = load_state(path, WorkerState)   # WorkerState() if path is missing
    state.done += 1
    save_state(path, state)

save_state writes <name>.<random>.tmp next to the target, fsyncs it, then renames it
over the target.  The rename is the commit point: a reader (or a restart after
a crash) sees either the previous snapshot or the new one, never a mix.  The
temp file is always a sibling so both sit on the same filesystem; pointing the
target at a path whose directory spans volumes is not supported.

A snapshot that exists but does not decode raises SerializationError.  It is
never replaced with the default, since that would drop real state.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from apiari.codec import JsonCodec

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("apiari.state")

TMP_SUFFIX = ".tmp"


def load_state(
    path: Path | str,
    state_type: type = dict,
    *,
    default: Callable[[], Any] | None = None,
) -> Any:
    """Load a snapshot, or the default value if the file does not exist."""
    path = Path(path)
    codec = JsonCodec(state_type)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        logger.debug("%s: no snapshot, using default", path)
        return default() if default is not None else state_type()
    return codec.decode(data)


def save_state(path: Path | str, value: Any) -> None:
    """Atomically replace the snapshot at path with value."""
    path = Path(path)
    data = JsonCodec().encode_document(value)

    path.parent.mkdir(parents=True, exist_ok=True)
    # unique per save so concurrent savers never share a temp file
    f = tempfile.NamedTemporaryFile(
        "wb", dir=path.parent, prefix=path.name + ".", suffix=TMP_SUFFIX, delete=False,
    )
    tmp = Path(f.name)
    try:
        with f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise
    logger.debug("%s: saved %d bytes", path, len(data))


class StateStore:
    """A snapshot file bound to one state type."""

    def __init__(
        self,
        path: Path | str,
        state_type: type = dict,
        *,
        default: Callable[[], Any] | None = None,
    ) -> None:
        self.path = Path(path)
        self.state_type = state_type
        self.default = default
        # fail on unsupported types here rather than on first load
        JsonCodec(state_type)

    def __repr__(self) -> str:
        return f"StateStore({str(self.path)!r}, {self.state_type.__name__})"

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Any:
        return load_state(self.path, self.state_type, default=self.default)

    def save(self, value: Any) -> None:
        save_state(self.path, value)
