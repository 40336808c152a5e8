"""ApiariConfig: project-local config for channels and state files.

Default layout (all relative to the project root):

    apiari.toml           # project config (git-tracked)
    .apiari/
        channels/         # <name>.jsonl message channels
        state/            # <name>.json snapshots
            cursors/
                <channel>/<consumer>.json
        .gitignore        # auto-written: ignores everything under .apiari/

apiari.toml example:

    [apiari]
    name = "my-project"
    # channels_dir = ".apiari/channels"   # default
    # state_dir = ".apiari/state"         # default

    [ipc]
    on_malformed = "skip"   # skip | log | raise
    poll_interval = 1.0     # seconds between polls for `apiari read --follow`

Environment overrides: APIARI_ON_MALFORMED, APIARI_POLL_INTERVAL.
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from apiari.ipc import check_malformed_policy
from apiari.shell import sanitize

_CONFIG_FILENAME = "apiari.toml"
_DEFAULT_CHANNELS_DIR = ".apiari/channels"
_DEFAULT_STATE_DIR = ".apiari/state"
_GITIGNORE_CONTENT = "*\n"
_NAME_RE = re.compile(r"[A-Za-z0-9_-][A-Za-z0-9._-]*")


@dataclass
class IpcConfig:
    on_malformed: str = "skip"
    poll_interval: float = 1.0


@dataclass
class ApiariConfig:
    """Resolved configuration for one project."""

    root: Path                      # directory that contains apiari.toml
    name: str = ""
    channels_dir: Path = field(default_factory=Path)
    state_dir: Path = field(default_factory=Path)
    ipc: IpcConfig = field(default_factory=IpcConfig)

    def channel_path(self, channel: str) -> Path:
        return self.channels_dir / f"{_checked_name(channel)}.jsonl"

    def state_path(self, name: str) -> Path:
        return self.state_dir / f"{_checked_name(name)}.json"

    def cursor_path(self, channel: str, consumer: str) -> Path:
        return self.state_dir / "cursors" / _checked_name(channel) / f"{_checked_name(consumer)}.json"

    def ensure_dirs(self) -> None:
        """Create channels_dir and state_dir if they don't exist."""
        self.channels_dir.mkdir(parents=True, exist_ok=True)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self._write_gitignore()

    def _write_gitignore(self) -> None:
        """Write .apiari/.gitignore when both dirs sit under the same parent."""
        parent = self.channels_dir.parent
        if parent != self.state_dir.parent or parent == self.root:
            return
        gitignore = parent / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(_GITIGNORE_CONTENT)


def _checked_name(name: str) -> str:
    """Channel/state names become file names: letters, digits, ".", "_", "-"."""
    if not _NAME_RE.fullmatch(name):
        msg = f"invalid name {name!r} (try {sanitize(name)!r})"
        raise ValueError(msg)
    return name


def load_config(root: Path | str | None = None) -> ApiariConfig:
    """Load apiari.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    section = raw.get("apiari", {})
    ipc_section = raw.get("ipc", {})

    on_malformed = os.environ.get("APIARI_ON_MALFORMED") or str(ipc_section.get("on_malformed", "skip"))
    poll_interval = os.environ.get("APIARI_POLL_INTERVAL") or ipc_section.get("poll_interval", 1.0)

    return ApiariConfig(
        root=root_path,
        name=section.get("name", root_path.name),
        channels_dir=root_path / section.get("channels_dir", _DEFAULT_CHANNELS_DIR),
        state_dir=root_path / section.get("state_dir", _DEFAULT_STATE_DIR),
        ipc=IpcConfig(
            on_malformed=check_malformed_policy(on_malformed),
            poll_interval=float(poll_interval),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for apiari.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default apiari.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"apiari.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[apiari]
name = "{project_name}"
# channels_dir = ".apiari/channels"   # default
# state_dir = ".apiari/state"         # default

[ipc]
# on_malformed = "skip"   # skip | log | raise (or APIARI_ON_MALFORMED)
# poll_interval = 1.0     # seconds, for `apiari read --follow` (or APIARI_POLL_INTERVAL)
"""
    config_path.write_text(content)
    return config_path
