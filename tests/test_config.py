"""Tests for apiari.toml loading."""

from __future__ import annotations

import pytest

from apiari.config import init_config, load_config


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("APIARI_ON_MALFORMED", raising=False)
        monkeypatch.delenv("APIARI_POLL_INTERVAL", raising=False)
        cfg = load_config(tmp_path)
        assert cfg.root == tmp_path
        assert cfg.name == tmp_path.name
        assert cfg.channels_dir == tmp_path / ".apiari" / "channels"
        assert cfg.state_dir == tmp_path / ".apiari" / "state"
        assert cfg.ipc.on_malformed == "skip"
        assert cfg.ipc.poll_interval == 1.0

    def test_reads_toml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("APIARI_ON_MALFORMED", raising=False)
        monkeypatch.delenv("APIARI_POLL_INTERVAL", raising=False)
        (tmp_path / "apiari.toml").write_text(
            '[apiari]\nname = "hive"\nchannels_dir = "q"\nstate_dir = "s"\n'
            '[ipc]\non_malformed = "log"\npoll_interval = 0.25\n'
        )
        cfg = load_config(tmp_path)
        assert cfg.name == "hive"
        assert cfg.channels_dir == tmp_path / "q"
        assert cfg.state_dir == tmp_path / "s"
        assert cfg.ipc.on_malformed == "log"
        assert cfg.ipc.poll_interval == 0.25

    def test_env_overrides(self, tmp_path, monkeypatch):
        (tmp_path / "apiari.toml").write_text('[ipc]\non_malformed = "log"\n')
        monkeypatch.setenv("APIARI_ON_MALFORMED", "raise")
        monkeypatch.setenv("APIARI_POLL_INTERVAL", "5")
        cfg = load_config(tmp_path)
        assert cfg.ipc.on_malformed == "raise"
        assert cfg.ipc.poll_interval == 5.0

    def test_invalid_policy(self, tmp_path, monkeypatch):
        monkeypatch.delenv("APIARI_ON_MALFORMED", raising=False)
        (tmp_path / "apiari.toml").write_text('[ipc]\non_malformed = "explode"\n')
        with pytest.raises(ValueError, match="on_malformed"):
            load_config(tmp_path)

    def test_finds_root_upward(self, tmp_path):
        init_config(tmp_path, "hive")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert load_config(nested).root == tmp_path


class TestPaths:
    def test_paths(self, tmp_path):
        cfg = load_config(tmp_path)
        assert cfg.channel_path("events") == cfg.channels_dir / "events.jsonl"
        assert cfg.state_path("queen") == cfg.state_dir / "queen.json"
        assert cfg.cursor_path("events", "worker_1") == cfg.state_dir / "cursors" / "events" / "worker_1.json"

    @pytest.mark.parametrize("name", ["", "../escape", "a/b", ".hidden", "has space"])
    def test_rejects_unsafe_names(self, tmp_path, name):
        cfg = load_config(tmp_path)
        with pytest.raises(ValueError, match="invalid name"):
            cfg.channel_path(name)

    def test_ensure_dirs(self, tmp_path):
        cfg = load_config(tmp_path)
        cfg.ensure_dirs()
        assert cfg.channels_dir.is_dir()
        assert cfg.state_dir.is_dir()
        assert (tmp_path / ".apiari" / ".gitignore").read_text() == "*\n"


class TestInitConfig:
    def test_writes_file(self, tmp_path):
        path = init_config(tmp_path, "hive")
        assert path == tmp_path / "apiari.toml"
        assert load_config(tmp_path).name == "hive"

    def test_refuses_to_overwrite(self, tmp_path):
        init_config(tmp_path)
        with pytest.raises(FileExistsError):
            init_config(tmp_path)
