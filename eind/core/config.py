"""Configuration persistence for Eind.

This module stores session tunables on disk so they survive restarts.
Conversation and connection state is never written here.

Stored fields:
- heartbeat_interval: Seconds between heartbeat probes on open connections.
- bot_reply_delay: Seconds before the assistant conversation replies.
- notification_ttl: Seconds a transient notification stays visible.
- max_attachment_bytes: Largest inline attachment accepted for sending.
- ice_servers: STUN/TURN URLs handed to the transport provider.
- peer_id_prefix: Prefix of the generated local endpoint identifier.
- log_level: Root log level.
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List


_LOCK = threading.Lock()

DEFAULT_ICE_SERVERS = [
    "stun:stun.l.google.com:19302",
    "stun:stun1.l.google.com:19302",
]


def _config_file_path() -> Path:
    """Resolve config file path.

    Test harnesses can override via:
    - EIND_CONFIG_FILE: full path to config.json
    - EIND_CONFIG_DIR: directory containing config.json
    """

    file_env = os.environ.get("EIND_CONFIG_FILE")
    if file_env:
        return Path(file_env)

    dir_env = os.environ.get("EIND_CONFIG_DIR")
    if dir_env:
        return Path(dir_env) / "config.json"

    return Path.home() / ".eind" / "config.json"


@dataclass
class AppConfig:
    heartbeat_interval: float = 2.0
    bot_reply_delay: float = 1.0
    notification_ttl: float = 3.0
    max_attachment_bytes: int = int(1.5 * 1024 * 1024)
    ice_servers: List[str] = field(default_factory=lambda: list(DEFAULT_ICE_SERVERS))
    peer_id_prefix: str = "eind-"
    log_level: str = "INFO"


def load_config() -> AppConfig:
    with _LOCK:
        cfg = AppConfig()
        try:
            cfg_file = _config_file_path()
            if cfg_file.exists():
                data = json.loads(cfg_file.read_text(encoding="utf-8"))
                cfg = AppConfig(
                    heartbeat_interval=float(
                        data.get("heartbeat_interval", cfg.heartbeat_interval)
                    ),
                    bot_reply_delay=float(
                        data.get("bot_reply_delay", cfg.bot_reply_delay)
                    ),
                    notification_ttl=float(
                        data.get("notification_ttl", cfg.notification_ttl)
                    ),
                    max_attachment_bytes=int(
                        data.get("max_attachment_bytes", cfg.max_attachment_bytes)
                    ),
                    ice_servers=list(data.get("ice_servers", cfg.ice_servers)),
                    peer_id_prefix=data.get("peer_id_prefix", cfg.peer_id_prefix),
                    log_level=data.get("log_level", cfg.log_level),
                )
        except Exception:
            cfg = AppConfig()

        level_env = os.environ.get("EIND_LOG_LEVEL")
        if level_env:
            cfg.log_level = level_env
        return cfg


def save_config(cfg: AppConfig) -> None:
    with _LOCK:
        cfg_file = _config_file_path()
        cfg_file.parent.mkdir(parents=True, exist_ok=True)
        cfg_file.write_text(
            json.dumps(asdict(cfg), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
