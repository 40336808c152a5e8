"""File-based coordination primitives for agents sharing a filesystem.

Layout (under a project root, see apiari.config):
    .apiari/
        channels/
            <name>.jsonl      # append-only message channel, one JSON record per line
        state/
            <name>.json       # snapshot, replaced atomically via <name>.json.<random>.tmp
            cursors/
                <channel>/<consumer>.json   # {"offset": N, "updated_at": ...}

Channels: JsonlWriter appends, JsonlReader polls from a byte offset and only
returns records appended since its last poll.  Malformed lines are skipped by
default; a trailing line without its newline waits for the next poll.

State: load_state returns the default when the file is missing and raises
SerializationError when it is corrupt; save_state writes a sibling .tmp file
and renames it over the target.

Concurrent writes: O_APPEND only, no locks anywhere.
"""

from apiari.codec import JsonCodec, SerializationError
from apiari.cursor import CheckpointedReader, CursorState
from apiari.ipc import JsonlReader, JsonlWriter
from apiari.shell import sanitize, shell_quote
from apiari.state import StateStore, load_state, save_state

__all__ = [
    "CheckpointedReader",
    "CursorState",
    "JsonCodec",
    "JsonlReader",
    "JsonlWriter",
    "SerializationError",
    "StateStore",
    "load_state",
    "sanitize",
    "save_state",
    "shell_quote",
]
