"""Lookup tables from live/uplive application names to configs and publishers."""

from __future__ import annotations

from typing import Any, Optional

from livesrt.log import LogLevel, get_logger
from livesrt.sync import RWLock


class PublisherExistsError(Exception):
    """Raised when a stream already has a publisher."""


def _role_name(role: Any) -> str:
    return getattr(role, "role_name", type(role).__name__)


class PublisherMap:
    """Maps 'host/live' to 'host/uplive', uplive apps to configs, streams to publishers."""

    def __init__(self) -> None:
        self._lock = RWLock()
        self._live_to_uplive: dict[str, str] = {}
        self._uplive_to_conf: dict[str, Any] = {}
        self._publishers: dict[str, Any] = {}

    def set_conf(self, key: str, conf: Any) -> None:
        """Attach the app config for the uplive application *key*."""
        with self._lock.write_locked():
            self._uplive_to_conf[key] = conf

    def set_live_to_uplive(self, live: str, uplive: str) -> None:
        """Record that players of *live* read from publishers of *uplive*."""
        with self._lock.write_locked():
            self._live_to_uplive[live] = uplive

    def set_publisher(self, app_stream_name: str, role: Any) -> None:
        """Register *role* as the publisher of *app_stream_name*."""
        with self._lock.write_locked():
            current = self._publishers.get(app_stream_name)
            if current is not None:
                get_logger().log(
                    LogLevel.INFO,
                    "PublisherMap.set_publisher, failed, publisher exists, app_streamname=%s, size=%d.",
                    app_stream_name,
                    len(self._publishers),
                )
                raise PublisherExistsError(
                    f"stream '{app_stream_name}' already has a publisher"
                )
            self._publishers[app_stream_name] = role
            get_logger().log(
                LogLevel.INFO,
                "PublisherMap.set_publisher, ok, %s, app_streamname=%s, size=%d.",
                _role_name(role),
                app_stream_name,
                len(self._publishers),
            )

    def remove(self, role: Any) -> bool:
        """Drop the first stream published by *role*; True if one was found."""
        with self._lock.write_locked():
            for name, pub in self._publishers.items():
                if pub is role:
                    get_logger().log(
                        LogLevel.INFO,
                        "PublisherMap.remove, %s, live_key=%s.",
                        _role_name(pub),
                        name,
                    )
                    del self._publishers[name]
                    return True
        return False

    def clear(self) -> None:
        """Forget all mappings."""
        with self._lock.write_locked():
            get_logger().log(LogLevel.INFO, "PublisherMap.clear.")
            self._publishers.clear()
            self._live_to_uplive.clear()
            self._uplive_to_conf.clear()

    def get_uplive(self, key_app: str) -> str:
        """The uplive app for the live app *key_app*, or '' if it is not a player app."""
        with self._lock.read_locked():
            return self._live_to_uplive.get(key_app, "")

    def get_conf(self, key_app: str) -> Optional[Any]:
        """The config of the uplive app *key_app*, or None."""
        with self._lock.read_locked():
            return self._uplive_to_conf.get(key_app)

    def get_publisher(self, app_stream_name: str) -> Optional[Any]:
        """The publisher of *app_stream_name*, or None."""
        with self._lock.read_locked():
            return self._publishers.get(app_stream_name)