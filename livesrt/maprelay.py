"""Per-application relay settings and the relay managers opened from them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from livesrt.log import LogLevel, get_logger
from livesrt.relaymanagers import (
    Connector,
    PullerManager,
    PusherManager,
    RelayInfo,
    RelayManager,
    RelayMode,
)
from livesrt.sync import RWLock


@dataclass
class RelayConf:
    """Relay section of an application's configuration."""

    type: str = "pull"
    mode: str = ""
    reconnect_interval: int = 0  # seconds
    idle_streams_timeout: int = -1  # seconds; -1 means unlimited
    upstreams: str = ""  # space separated host:port[/app] entries


def _parse_mode(text: str) -> RelayMode:
    try:
        return RelayMode(text)
    except ValueError:
        get_logger().log(
            LogLevel.INFO, "RelayMap.add_relay_conf, wrong mode='%s', use default 'hash'.", text
        )
        return RelayMode.HASH


class RelayMap:
    """Holds relay settings per uplive app and one relay manager per stream."""

    def __init__(self, connector: Optional[Connector] = None) -> None:
        self._lock = RWLock()
        self._connector = connector
        self._managers: dict[str, RelayManager] = {}
        self._relay_info: dict[str, RelayInfo] = {}

    def add_relay_conf(self, app_uplive: str, relay_conf: Optional[RelayConf]) -> RelayInfo:
        """Record the relay settings of *app_uplive*; each app may have only one."""
        if relay_conf is None:
            raise ValueError("relay conf is missing")
        if self.get_relay_conf(app_uplive) is not None:
            get_logger().log(
                LogLevel.INFO, "RelayMap.add_relay_conf, failed, exists, app_uplive=%s.", app_uplive
            )
            raise ValueError(f"relay conf for '{app_uplive}' already exists")

        upstreams = [part for part in relay_conf.upstreams.split(" ") if part]
        if not upstreams:
            get_logger().log(
                LogLevel.INFO,
                "RelayMap.add_relay_conf, wrong upstreams='%s'.",
                relay_conf.upstreams,
            )
        info = RelayInfo(
            type=relay_conf.type,
            mode=_parse_mode(relay_conf.mode),
            reconnect_interval=relay_conf.reconnect_interval,
            idle_streams_timeout=relay_conf.idle_streams_timeout,
            upstreams=upstreams,
        )
        with self._lock.write_locked():
            self._relay_info[app_uplive] = info
        return info

    def get_relay_conf(self, app_uplive: str) -> Optional[RelayInfo]:
        """The relay settings of *app_uplive*, or None."""
        with self._lock.read_locked():
            return self._relay_info.get(app_uplive)

    def add_relay_manager(self, app_uplive: str, stream_name: str) -> Optional[RelayManager]:
        """Return the manager of the stream, creating it; None without usable settings."""
        info = self.get_relay_conf(app_uplive)
        if info is None:
            get_logger().log(
                LogLevel.INFO,
                "RelayMap.add_relay_manager, no relay conf, app_uplive=%s, stream_name=%s.",
                app_uplive,
                stream_name,
            )
            return None

        key = f"{app_uplive}/{stream_name}"
        with self._lock.write_locked():
            current = self._managers.get(key)
            if current is not None:
                return current
            manager: RelayManager
            if info.type == "pull":
                manager = PullerManager(info, self._connector)
            elif info.type == "push":
                manager = PusherManager(info, self._connector)
            else:
                get_logger().log(
                    LogLevel.INFO,
                    "RelayMap.add_relay_manager, wrong type='%s', app_uplive=%s, stream_name=%s.",
                    info.type,
                    app_uplive,
                    stream_name,
                )
                return None
            manager.set_relay_info(app_uplive, stream_name)
            self._managers[key] = manager
        get_logger().log(
            LogLevel.INFO,
            "RelayMap.add_relay_manager, ok, app_uplive=%s, stream_name=%s.",
            app_uplive,
            stream_name,
        )
        return manager

    def clear(self) -> None:
        """Forget all managers and relay settings."""
        with self._lock.write_locked():
            get_logger().log(LogLevel.INFO, "RelayMap.clear.")
            self._managers.clear()
            self._relay_info.clear()