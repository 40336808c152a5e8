"""apiari CLI — JSONL channels and atomic state files from the shell.

Commands:
    apiari init [NAME]                 create apiari.toml + .apiari/ dirs
    apiari send CHANNEL [JSON]         append a record (or one per stdin line)
    apiari read CHANNEL                print new records, one JSON per line
    apiari offset CHANNEL              print a consumer's offset, or the end of the last complete line
    apiari state get NAME              print a snapshot
    apiari state set NAME JSON         atomically replace a snapshot
    apiari quote ARGS...               single-quote args for a shell command
    apiari sanitize TEXT               slug for branch / directory names
"""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Any

import click

from apiari.codec import SerializationError
from apiari.config import ApiariConfig, init_config, load_config
from apiari.cursor import CheckpointedReader, CursorState
from apiari.ipc import JsonlReader, JsonlWriter
from apiari.shell import sanitize, shell_quote
from apiari.state import load_state, save_state

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg() -> ApiariConfig:
    try:
        return load_config()
    except Exception as exc:
        raise click.ClickException(str(exc)) from exc


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}") from exc


def _echo_record(record: Any) -> None:
    click.echo(json.dumps(record, ensure_ascii=False, separators=(",", ":")))


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="apiari-common")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging to stderr")
def cli(verbose: bool) -> None:
    """apiari — file-based channels and state for cooperating agents."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )


# ---------------------------------------------------------------------------
# apiari init
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("name", required=False)
@click.option("--dir", "root", default=".", show_default=True, help="Project root")
def init(name: str | None, root: str) -> None:
    """Create apiari.toml and the .apiari/ directories."""
    root_path = Path(root).resolve()
    try:
        config_path = init_config(root_path, name)
        click.echo(f"Created {config_path}")
    except FileExistsError:
        click.echo("apiari.toml already exists — skipping init")

    try:
        cfg = load_config(root_path)
        cfg.ensure_dirs()
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Channels dir : {cfg.channels_dir}")
    click.echo(f"State dir    : {cfg.state_dir}")


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("channel")
@click.argument("payload", required=False)
def send(channel: str, payload: str | None) -> None:
    """Append PAYLOAD to CHANNEL, or one record per non-empty stdin line."""
    cfg = _load_cfg()
    if payload is not None:
        records = [_parse_json(payload)]
    else:
        records = [_parse_json(line) for line in sys.stdin if line.strip()]

    try:
        JsonlWriter(cfg.channel_path(channel)).append_many(records)
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.argument("channel")
@click.option("--consumer", "-c", default=None, help="Resume from (and save) this consumer's cursor")
@click.option("--offset", "start_offset", type=click.IntRange(min=0), default=None, help="Start at this byte offset")
@click.option("--from-end", is_flag=True, help="Ignore the backlog, only show new records")
@click.option("--follow", "-f", is_flag=True, help="Keep polling until interrupted")
@click.option("--interval", type=float, default=None, help="Seconds between polls with --follow")
def read(
    channel: str,
    consumer: str | None,
    start_offset: int | None,
    from_end: bool,
    follow: bool,
    interval: float | None,
) -> None:
    """Print records from CHANNEL, one compact JSON object per line."""
    cfg = _load_cfg()
    on_malformed = cfg.ipc.on_malformed
    interval = interval if interval is not None else cfg.ipc.poll_interval

    try:
        log_path = cfg.channel_path(channel)
        reader: JsonlReader | CheckpointedReader
        if consumer:
            reader = CheckpointedReader(
                log_path, cfg.cursor_path(channel, consumer), on_malformed=on_malformed,
            )
        else:
            reader = JsonlReader(log_path, on_malformed=on_malformed)

        if start_offset is not None:
            reader.set_offset(start_offset)
        if from_end:
            reader.skip_to_end()

        while True:
            for record in reader.poll():
                _echo_record(record)
            if not follow:
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        pass
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.argument("channel")
@click.option("--consumer", "-c", default=None, help="Show this consumer's saved cursor")
def offset(channel: str, consumer: str | None) -> None:
    """Print a consumer's saved offset, or where the channel's last complete line ends.

    Without --consumer this is the offset `read --from-end` would start at: a
    trailing line still being written is not counted.
    """
    cfg = _load_cfg()
    try:
        if consumer:
            saved: CursorState = load_state(cfg.cursor_path(channel, consumer), CursorState)
            click.echo(saved.offset)
        else:
            click.echo(JsonlReader(cfg.channel_path(channel)).skip_to_end())
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------


@cli.group()
def state() -> None:
    """Read and write JSON state snapshots."""


@state.command("get")
@click.argument("name")
def state_get(name: str) -> None:
    """Print snapshot NAME ({} if it has never been saved)."""
    cfg = _load_cfg()
    try:
        value = load_state(cfg.state_path(name), state_type=dict)
    except SerializationError as exc:
        raise click.ClickException(f"corrupt snapshot {name}: {exc}") from exc
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(json.dumps(value, ensure_ascii=False, indent=2))


@state.command("set")
@click.argument("name")
@click.argument("payload")
def state_set(name: str, payload: str) -> None:
    """Atomically replace snapshot NAME with the JSON object PAYLOAD."""
    cfg = _load_cfg()
    value = _parse_json(payload)
    if not isinstance(value, dict):
        raise click.BadParameter("snapshot must be a JSON object")
    try:
        save_state(cfg.state_path(name), value)
    except (OSError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc


# ---------------------------------------------------------------------------
# Shell helpers
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("args", nargs=-1)
def quote(args: tuple[str, ...]) -> None:
    """Print ARGS single-quoted and space-separated."""
    click.echo(" ".join(shell_quote(a) for a in args))


@cli.command("sanitize")
@click.argument("text")
def sanitize_cmd(text: str) -> None:
    """Print TEXT as a lowercase, hyphenated slug (max 40 chars)."""
    click.echo(sanitize(text))
