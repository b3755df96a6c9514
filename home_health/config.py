import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .models import Channel

DEFAULT_CONFIG_PATH = "configs/config.yaml"
CONFIG_ENV_VAR = "HOME_HEALTH_CONFIG"


@dataclass(frozen=True)
class ApiSettings:
    host: str = "127.0.0.1"
    port: int = 3001
    log_level: str = "warning"


@dataclass(frozen=True)
class UdpSettings:
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 4210
    ack: bool = True
    buffer_size: int = 2048


@dataclass(frozen=True)
class LivenessSettings:
    http_timeout_s: float = 60.0
    udp_timeout_s: float = 30.0

    def timeouts(self) -> Dict[Channel, float]:
        return {Channel.HTTP: self.http_timeout_s, Channel.DATAGRAM: self.udp_timeout_s}


@dataclass(frozen=True)
class StoreSettings:
    capacity: int = 100
    history_window: int = 24
    recent_window: int = 5
    chart_time_format: str = "%H:%M"


@dataclass(frozen=True)
class DemoSettings:
    enabled: bool = False
    interval_s: float = 30.0
    idle_after_s: float = 80.0


@dataclass(frozen=True)
class Settings:
    api: ApiSettings = field(default_factory=ApiSettings)
    udp: UdpSettings = field(default_factory=UdpSettings)
    liveness: LivenessSettings = field(default_factory=LivenessSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    demo: DemoSettings = field(default_factory=DemoSettings)
    log_level: str = "INFO"


def _section(cfg: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = cfg.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return value


def _positive(name: str, value: Union[int, float]) -> None:
    if value <= 0:
        raise ValueError(f"Config value '{name}' must be positive, got {value}")


def settings_from_dict(cfg: Optional[Dict[str, Any]]) -> Settings:
    cfg = cfg or {}
    if not isinstance(cfg, dict):
        raise ValueError("Config root must be a mapping")

    api = _section(cfg, "api")
    udp = _section(cfg, "udp")
    liveness = _section(cfg, "liveness")
    store = _section(cfg, "store")
    demo = _section(cfg, "demo")
    logging_cfg = _section(cfg, "logging")

    settings = Settings(
        api=ApiSettings(
            host=str(api.get("host", ApiSettings.host)),
            port=int(api.get("port", ApiSettings.port)),
            log_level=str(api.get("log_level", ApiSettings.log_level)),
        ),
        udp=UdpSettings(
            enabled=bool(udp.get("enabled", UdpSettings.enabled)),
            host=str(udp.get("host", UdpSettings.host)),
            port=int(udp.get("port", UdpSettings.port)),
            ack=bool(udp.get("ack", UdpSettings.ack)),
            buffer_size=int(udp.get("buffer_size", UdpSettings.buffer_size)),
        ),
        liveness=LivenessSettings(
            http_timeout_s=float(liveness.get("http_timeout_s", LivenessSettings.http_timeout_s)),
            udp_timeout_s=float(liveness.get("udp_timeout_s", LivenessSettings.udp_timeout_s)),
        ),
        store=StoreSettings(
            capacity=int(store.get("capacity", StoreSettings.capacity)),
            history_window=int(store.get("history_window", StoreSettings.history_window)),
            recent_window=int(store.get("recent_window", StoreSettings.recent_window)),
            chart_time_format=str(store.get("chart_time_format", StoreSettings.chart_time_format)),
        ),
        demo=DemoSettings(
            enabled=bool(demo.get("enabled", DemoSettings.enabled)),
            interval_s=float(demo.get("interval_s", DemoSettings.interval_s)),
            idle_after_s=float(demo.get("idle_after_s", DemoSettings.idle_after_s)),
        ),
        log_level=str(logging_cfg.get("level", Settings.log_level)).upper(),
    )

    _positive("liveness.http_timeout_s", settings.liveness.http_timeout_s)
    _positive("liveness.udp_timeout_s", settings.liveness.udp_timeout_s)
    _positive("store.capacity", settings.store.capacity)
    _positive("store.history_window", settings.store.history_window)
    _positive("store.recent_window", settings.store.recent_window)
    _positive("udp.buffer_size", settings.udp.buffer_size)
    _positive("demo.interval_s", settings.demo.interval_s)
    return settings


def load_settings(path: Optional[str] = None) -> Settings:
    """Load YAML settings; a missing file means all defaults."""
    path = path or os.getenv(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    if not Path(path).is_file():
        return settings_from_dict({})
    with open(path, "r", encoding="utf-8") as f:
        return settings_from_dict(yaml.safe_load(f))
