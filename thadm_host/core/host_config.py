"""Typed view of the host's ``config.txt``."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .api.server import DEFAULT_HOST as DEFAULT_API_HOST
from .api.server import DEFAULT_PORT as DEFAULT_API_PORT
from .config_manager import ConfigManager, get_config_manager
from .monitor_reconciler import DEFAULT_INITIAL_DELAY, DEFAULT_POLL_INTERVAL
from .paths import CONFIG_PATH, DEFAULT_STORE_PATH
from .supervisor import DEFAULT_POLL_ATTEMPTS
from .supervisor import DEFAULT_POLL_INTERVAL as DEFAULT_TERMINATE_POLL_INTERVAL


@dataclass
class HostConfig:
    worker_binary: Optional[str] = None
    store_path: Path = DEFAULT_STORE_PATH
    log_level: str = "info"
    console_output: bool = True
    log_to_file: bool = True
    sidecar_log_level: Optional[str] = None
    reconcile_interval: float = DEFAULT_POLL_INTERVAL
    reconcile_initial_delay: float = DEFAULT_INITIAL_DELAY
    api_enabled: bool = True
    api_host: str = DEFAULT_API_HOST
    api_port: int = DEFAULT_API_PORT
    terminate_poll_attempts: int = DEFAULT_POLL_ATTEMPTS
    terminate_poll_interval: float = DEFAULT_TERMINATE_POLL_INTERVAL

    @classmethod
    def from_config(
        cls,
        config: Dict[str, str],
        manager: Optional[ConfigManager] = None,
    ) -> "HostConfig":
        manager = manager or get_config_manager()
        defaults = cls()
        worker_binary = manager.get_str(config, "worker_binary", "")
        store_path = manager.get_str(config, "store_path", "")
        return cls(
            worker_binary=worker_binary or None,
            store_path=Path(store_path).expanduser() if store_path else defaults.store_path,
            log_level=manager.get_str(config, "log_level", defaults.log_level),
            console_output=manager.get_bool(config, "console_output", defaults.console_output),
            log_to_file=manager.get_bool(config, "log_to_file", defaults.log_to_file),
            sidecar_log_level=manager.get_str(config, "sidecar_log_level", "") or None,
            reconcile_interval=manager.get_float(config, "reconcile_interval", defaults.reconcile_interval),
            reconcile_initial_delay=manager.get_float(
                config, "reconcile_initial_delay", defaults.reconcile_initial_delay
            ),
            api_enabled=manager.get_bool(config, "api_enabled", defaults.api_enabled),
            api_host=manager.get_str(config, "api_host", defaults.api_host),
            api_port=manager.get_int(config, "api_port", defaults.api_port),
            terminate_poll_attempts=manager.get_int(
                config, "terminate_poll_attempts", defaults.terminate_poll_attempts
            ),
            terminate_poll_interval=manager.get_float(
                config, "terminate_poll_interval", defaults.terminate_poll_interval
            ),
        )


def load_host_config(path: Path = CONFIG_PATH, manager: Optional[ConfigManager] = None) -> HostConfig:
    manager = manager or get_config_manager()
    return HostConfig.from_config(manager.read_config(path), manager)


__all__ = ["HostConfig", "load_host_config"]
