"""Tests for configuration loading."""

import sys

import pytest

from gensync.communicants.base import DEFAULT_MAX_FRAME_SIZE
from gensync.config import Config, load_config


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        """
node:
  name: node-a
  data_file: /tmp/elements.txt
  max_element_size: 1024
peers:
  - host: 10.0.0.2
    port: 9001
    peer_id: node-b
    timeout: 30
    max_frame_size: 4096
  - host: 10.0.0.3
methods:
  - full
  - name: full
    params: {}
"""
    )
    return path


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults(self):
        """Test defaults without a config file."""
        config = load_config(None)

        assert config.node.name == "gensync-node"
        assert config.node.data_file is None
        assert config.node.max_element_size == sys.maxsize
        assert config.peers == []
        assert [m.name for m in config.methods] == ["full"]

    def test_missing_file_uses_defaults(self, tmp_path):
        """Test a nonexistent path falls back to defaults."""
        assert load_config(tmp_path / "nope.yaml") == Config()

    def test_parse_file(self, config_file):
        """Test every section is parsed."""
        config = load_config(config_file)

        assert config.node.name == "node-a"
        assert config.node.data_file == "/tmp/elements.txt"
        assert config.node.max_element_size == 1024

        assert len(config.peers) == 2
        assert config.peers[0].host == "10.0.0.2"
        assert config.peers[0].port == 9001
        assert config.peers[0].peer_id == "node-b"
        assert config.peers[0].timeout == 30.0
        assert config.peers[1].port == 8001
        assert config.peers[1].timeout is None
        assert config.peers[0].max_frame_size == 4096
        assert config.peers[1].max_frame_size == DEFAULT_MAX_FRAME_SIZE

        assert [m.name for m in config.methods] == ["full", "full"]
        assert config.methods[1].params == {}

    def test_env_overrides(self, config_file, monkeypatch):
        """Test GENSYNC_ environment variables override the file."""
        monkeypatch.setenv("GENSYNC_NODE_NAME", "from-env")
        monkeypatch.setenv("GENSYNC_DATA_FILE", "/var/lib/gensync.txt")
        monkeypatch.setenv("GENSYNC_MAX_ELEMENT_SIZE", "16")
        monkeypatch.setenv("GENSYNC_PEER_TIMEOUT", "2.5")

        config = load_config(config_file)

        assert config.node.name == "from-env"
        assert config.node.data_file == "/var/lib/gensync.txt"
        assert config.node.max_element_size == 16
        assert all(peer.timeout == 2.5 for peer in config.peers)
