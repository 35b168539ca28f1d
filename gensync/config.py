"""Configuration loading for GenSync."""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .communicants.base import DEFAULT_MAX_FRAME_SIZE


@dataclass
class NodeConfig:
    name: str = "gensync-node"
    data_file: str | None = None  # append-only element log
    max_element_size: int = sys.maxsize


@dataclass
class PeerConfig:
    """A peer to reach over TCP.

    In the client role host/port is the remote address; in the server role
    it is the address to listen on (port 0 picks a free one).
    """

    host: str = "localhost"
    port: int = 8001
    peer_id: str | None = None
    timeout: float | None = None
    max_frame_size: int = DEFAULT_MAX_FRAME_SIZE


@dataclass
class MethodConfig:
    name: str = "full"
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class Config:
    node: NodeConfig = field(default_factory=NodeConfig)
    peers: list[PeerConfig] = field(default_factory=list)
    methods: list[MethodConfig] = field(default_factory=lambda: [MethodConfig()])


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with GENSYNC_ prefix."""
    return os.environ.get(f"GENSYNC_{key}", default)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if name := _get_env("NODE_NAME"):
        config.node.name = name
    if data_file := _get_env("DATA_FILE"):
        config.node.data_file = data_file
    if max_size := _get_env("MAX_ELEMENT_SIZE"):
        config.node.max_element_size = int(max_size)

    # Applies to every peer
    if timeout := _get_env("PEER_TIMEOUT"):
        for peer in config.peers:
            peer.timeout = float(timeout)

    return config


def _parse_peers(data: list) -> list[PeerConfig]:
    """Parse peer configurations."""
    peers = []
    for peer_data in data:
        timeout = peer_data.get("timeout")
        peers.append(
            PeerConfig(
                host=peer_data.get("host", "localhost"),
                port=int(peer_data.get("port", 8001)),
                peer_id=peer_data.get("peer_id"),
                timeout=float(timeout) if timeout is not None else None,
                max_frame_size=int(peer_data.get("max_frame_size", DEFAULT_MAX_FRAME_SIZE)),
            )
        )
    return peers


def _parse_methods(data: list) -> list[MethodConfig]:
    """Parse sync method configurations.

    Entries are either a bare method name or a mapping with name/params.
    """
    methods = []
    for method_data in data:
        if isinstance(method_data, str):
            methods.append(MethodConfig(name=method_data))
        else:
            methods.append(
                MethodConfig(
                    name=method_data["name"],
                    params=method_data.get("params", {}) or {},
                )
            )
    return methods


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse node config
            if "node" in data:
                node_data = data["node"]
                config.node = NodeConfig(
                    name=node_data.get("name", config.node.name),
                    data_file=node_data.get("data_file", config.node.data_file),
                    max_element_size=int(
                        node_data.get("max_element_size", config.node.max_element_size)
                    ),
                )

            # Parse peers
            if "peers" in data:
                config.peers = _parse_peers(data["peers"] or [])

            # Parse methods
            if "methods" in data:
                config.methods = _parse_methods(data["methods"] or [])

    # Apply environment variable overrides
    return _apply_env_overrides(config)
