"""Singleton store for configuration management."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from lrb_core.coordinator_client import DEFAULT_HOST, DEFAULT_PORT
from lrb_feed.core.config_backend import ConfigBackend, ConfigError


@dataclass
class ConfigModel:
    # Readiness coordinator (history-loading notifier)
    coordinator_host: str = DEFAULT_HOST
    coordinator_port: int = DEFAULT_PORT
    coordinator_timeout_s: Optional[float] = None

    # Car-data feed
    car_data_points: str = ""
    poll_ms: int = 100
    wait_s: float = 1.0
    max_passes: int = 0

    # CSV sink
    output_dir: str = "output"
    flush_every: int = 500

    # Logging
    log_file: str = "injector_log.txt"
    log_max_lines: int = 200


def check_port(port: int) -> int:
    if not 0 < port < 65536:
        raise ConfigError(f"[coordinator] port out of range: {port}")
    return port


class ConfigStore:
    def __init__(self, backend: Optional[ConfigBackend] = None) -> None:
        self._backend = backend or ConfigBackend()
        self._config = ConfigModel()
        self.reload()

    @property
    def config(self) -> ConfigModel:
        return self._config

    @property
    def path(self):
        return self._backend.path

    def reload(self) -> ConfigModel:
        data = self._backend.load()
        cfg = ConfigModel()

        self._apply_coordinator_settings(cfg, data)
        self._apply_feed_settings(cfg, data)
        self._apply_output_settings(cfg, data)

        self._config = cfg
        return cfg

    def _apply_coordinator_settings(self, cfg: ConfigModel, data) -> None:
        b = self._backend
        cfg.coordinator_host = b.get_option(data, "coordinator", "host", cfg.coordinator_host).strip() or cfg.coordinator_host
        cfg.coordinator_port = check_port(b.get_int(data, "coordinator", "port", cfg.coordinator_port))
        cfg.coordinator_timeout_s = b.get_float(data, "coordinator", "timeout_s", cfg.coordinator_timeout_s)
        if cfg.coordinator_timeout_s is not None and cfg.coordinator_timeout_s <= 0:
            raise ConfigError("[coordinator] timeout_s must be positive or empty")

    def _apply_feed_settings(self, cfg: ConfigModel, data) -> None:
        b = self._backend
        cfg.car_data_points = b.get_option(data, "feed", "car_data_points", cfg.car_data_points).strip()
        cfg.poll_ms = max(20, b.get_int(data, "feed", "poll_ms", cfg.poll_ms))
        wait_s = b.get_float(data, "feed", "wait_s", cfg.wait_s)
        if wait_s is None or wait_s < 0:
            raise ConfigError("[feed] wait_s must be zero or positive")
        cfg.wait_s = wait_s
        cfg.max_passes = b.get_int(data, "feed", "max_passes", cfg.max_passes)
        if cfg.max_passes < 0:
            raise ConfigError("[feed] max_passes must be zero (unbounded) or positive")

    def _apply_output_settings(self, cfg: ConfigModel, data) -> None:
        b = self._backend
        cfg.output_dir = b.get_option(data, "output", "dir", cfg.output_dir).strip() or cfg.output_dir
        cfg.flush_every = b.get_int(data, "output", "flush_every", cfg.flush_every)
        # An empty [logging] file disables the log file
        cfg.log_file = b.get_option(data, "logging", "file", cfg.log_file).strip()
        cfg.log_max_lines = b.get_int(data, "logging", "max_lines", cfg.log_max_lines)


_CONFIG_STORE: Optional[ConfigStore] = None


def get_config_store() -> ConfigStore:
    global _CONFIG_STORE
    if _CONFIG_STORE is None:
        _CONFIG_STORE = ConfigStore()
    return _CONFIG_STORE


def init_config_store(ini_path: Optional[str] = None) -> ConfigStore:
    """Replace the shared store with one reading ``ini_path``."""
    global _CONFIG_STORE
    _CONFIG_STORE = ConfigStore(ConfigBackend(ini_path))
    return _CONFIG_STORE


__all__ = [
    "ConfigModel",
    "ConfigStore",
    "check_port",
    "get_config_store",
    "init_config_store",
]
