"""Managers that open pull and push relays for one stream."""

from __future__ import annotations

import threading
import time
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from livesrt.log import LogLevel, get_logger
from livesrt.mappublisher import PublisherExistsError


class RelayMode(str, Enum):
    """How upstreams are chosen when a relay is opened."""

    LOOP = "loop"
    ALL = "all"
    HASH = "hash"


@dataclass
class RelayInfo:
    """Relay settings of one uplive application."""

    type: str = "pull"
    mode: RelayMode = RelayMode.HASH
    reconnect_interval: int = 0  # seconds
    idle_streams_timeout: int = -1  # seconds; -1 means unlimited
    upstreams: list[str] = field(default_factory=list)


class RelayError(Exception):
    """Raised when a relay cannot be started or connected."""


class Relay(Protocol):
    def set_map_data(self, key: str, map_data: Any) -> None: ...

    def set_map_publisher(self, map_publisher: Any) -> None: ...

    def set_relay_manager(self, manager: "RelayManager") -> None: ...


# connector(url) opens the connection and returns the relay role for it.
Connector = Callable[[str], Relay]


def _now_ms() -> int:
    return int(time.time() * 1000)


class RelayManager(ABC):
    """Opens relays of one stream towards its configured upstreams."""

    def __init__(
        self, relay_info: Optional[RelayInfo] = None, connector: Optional[Connector] = None
    ) -> None:
        self.relay_info = relay_info
        self.connector = connector
        self.app_uplive = ""
        self.stream_name = ""
        self.map_data: Any = None
        self.map_publisher: Any = None
        self.role_list: Any = None
        self.listen_port = 0
        self.reconnect_begin_tm = 0

    def set_relay_info(self, app_uplive: str, stream_name: str) -> None:
        """Name the stream this manager relays."""
        self.app_uplive = app_uplive
        self.stream_name = stream_name

    @property
    def key_stream_name(self) -> str:
        return f"{self.app_uplive}/{self.stream_name}"

    def _upstream_url(self, upstream: str) -> str:
        return f"srt://{upstream}/{self.stream_name}"

    def _require_info(self) -> RelayInfo:
        if self.relay_info is None:
            raise RelayError(f"no relay conf for stream '{self.key_stream_name}'")
        return self.relay_info

    def connect(self, url: str) -> Relay:
        """Open a relay to *url* and hand it to the workers."""
        if not url:
            raise RelayError("empty relay url")
        if self.connector is None:
            raise RelayError(f"no connector to open '{url}'")
        try:
            relay = self.connector(url)
        except RelayError:
            raise
        except Exception as exc:
            raise RelayError(f"failed to connect '{url}': {exc}") from exc
        if relay is None:
            raise RelayError(f"failed to connect '{url}'")
        self._set_relay_param(relay)
        get_logger().log(LogLevel.INFO, "RelayManager.connect, ok, url='%s'.", url)
        return relay

    def connect_hash(self) -> Relay:
        """Connect to the upstream picked by a hash of the stream key."""
        info = self._require_info()
        if not info.upstreams:
            raise RelayError(f"no upstreams for stream '{self.key_stream_name}'")
        index = zlib.crc32(self.key_stream_name.encode("utf-8")) % len(info.upstreams)
        return self.connect(self._upstream_url(info.upstreams[index]))

    @abstractmethod
    def _set_relay_param(self, relay: Relay) -> None:
        """Register a newly connected relay."""

    @abstractmethod
    def start(self) -> None:
        """Open the relays for the stream."""

    @abstractmethod
    def add_reconnect_stream(self, relay_url: str) -> None:
        """Note that the relay to *relay_url* went away."""

    @abstractmethod
    def reconnect(self, cur_tm_ms: int) -> bool:
        """Try again when due; True once the stream is connected."""


class PullerManager(RelayManager):
    """Pulls a stream from one upstream when a player asks for it."""

    def __init__(
        self, relay_info: Optional[RelayInfo] = None, connector: Optional[Connector] = None
    ) -> None:
        super().__init__(relay_info, connector)
        self.cur_loop_index = -1

    def _connect_loop(self) -> Relay:
        info = self._require_info()
        upstreams = info.upstreams
        if not upstreams:
            raise RelayError(f"no upstreams for stream '{self.key_stream_name}'")
        if self.cur_loop_index == -1:
            self.cur_loop_index = len(upstreams) - 1
        index = self.cur_loop_index + 1
        last_error: Optional[RelayError] = None
        relay: Optional[Relay] = None
        while True:
            if index >= len(upstreams):
                index = 0
            url = self._upstream_url(upstreams[index])
            try:
                relay = self.connect(url)
                break
            except RelayError as exc:
                last_error = exc
            if index == self.cur_loop_index:
                get_logger().log(
                    LogLevel.INFO,
                    "PullerManager.connect_loop, no available pullers, stream=%s.",
                    self.key_stream_name,
                )
                break
            get_logger().log(
                LogLevel.INFO, "PullerManager.connect_loop, failed, index=%d, url='%s'.", index, url
            )
            index += 1
        self.cur_loop_index = index
        if relay is None:
            raise RelayError(
                f"no available upstream for stream '{self.key_stream_name}'"
            ) from last_error
        return relay

    def start(self) -> None:
        info = self._require_info()
        key = self.key_stream_name
        if self.map_publisher is not None and self.map_publisher.get_publisher(key) is not None:
            raise RelayError(f"stream '{key}' already has a publisher")
        if info.mode is RelayMode.LOOP:
            self._connect_loop()
        elif info.mode is RelayMode.HASH:
            self.connect_hash()
        else:
            raise RelayError(f"wrong pull mode '{info.mode.value}' for stream '{key}'")

    def _check_relay_param(self) -> None:
        if self.role_list is None:
            raise RelayError(f"role list missing, stream={self.stream_name}")
        if self.map_publisher is None:
            raise RelayError(f"publisher map missing, stream={self.stream_name}")
        if self.map_data is None:
            raise RelayError(f"data map missing, stream={self.stream_name}")

    def _set_relay_param(self, relay: Relay) -> None:
        key = self.key_stream_name
        self._check_relay_param()
        try:
            self.map_publisher.set_publisher(key, relay)
        except PublisherExistsError as exc:
            raise RelayError(str(exc)) from exc
        try:
            self.map_data.add(key)
        except Exception as exc:
            self.map_publisher.remove(relay)
            raise RelayError(f"failed to add data for stream '{key}': {exc}") from exc
        relay.set_map_data(key, self.map_data)
        relay.set_map_publisher(self.map_publisher)
        relay.set_relay_manager(self)
        self.role_list.push(relay)

    def add_reconnect_stream(self, relay_url: str) -> None:
        self.reconnect_begin_tm = _now_ms()

    def reconnect(self, cur_tm_ms: int) -> bool:
        info = self._require_info()
        if cur_tm_ms - self.reconnect_begin_tm < info.reconnect_interval * 1000:
            return False
        self.reconnect_begin_tm = cur_tm_ms
        try:
            self._check_relay_param()
        except RelayError as exc:
            get_logger().log(LogLevel.WARNING, "PullerManager.reconnect, %s.", exc)
            return False
        try:
            self.start()
        except RelayError as exc:
            get_logger().log(
                LogLevel.INFO, "PullerManager.reconnect, start failed, stream=%s: %s",
                self.key_stream_name, exc,
            )
            return False
        get_logger().log(
            LogLevel.INFO, "PullerManager.reconnect, start ok, stream=%s.", self.key_stream_name
        )
        return True


class PusherManager(RelayManager):
    """Pushes a published stream to its upstreams."""

    def __init__(
        self, relay_info: Optional[RelayInfo] = None, connector: Optional[Connector] = None
    ) -> None:
        super().__init__(relay_info, connector)
        self._lock = threading.Lock()
        self._reconnect_relay: dict[str, int] = {}

    @property
    def pending_reconnects(self) -> dict[str, int]:
        """URLs waiting for a reconnect, with the time of the last attempt."""
        with self._lock:
            return dict(self._reconnect_relay)

    def _connect_all(self) -> None:
        info = self._require_info()
        failed = []
        for upstream in info.upstreams:
            url = self._upstream_url(upstream)
            try:
                self.connect(url)
            except RelayError:
                with self._lock:
                    self._reconnect_relay[url] = _now_ms()
                failed.append(url)
        if failed:
            raise RelayError(f"failed to push to {', '.join(failed)}")

    def _has_publisher(self) -> bool:
        if self.map_publisher is None:
            return True
        return self.map_publisher.get_publisher(self.key_stream_name) is not None

    def start(self) -> None:
        info = self._require_info()
        if not self._has_publisher():
            raise RelayError(f"stream '{self.key_stream_name}' has no publisher")
        if info.mode is RelayMode.ALL:
            self._connect_all()
        elif info.mode is RelayMode.HASH:
            self.connect_hash()
        else:
            raise RelayError(
                f"wrong push mode '{info.mode.value}' for stream '{self.key_stream_name}'"
            )

    def _set_relay_param(self, relay: Relay) -> None:
        if self.role_list is None:
            raise RelayError(f"role list missing, stream={self.stream_name}")
        relay.set_map_data(self.key_stream_name, self.map_data)
        relay.set_map_publisher(self.map_publisher)
        relay.set_relay_manager(self)
        self.role_list.push(relay)

    def add_reconnect_stream(self, relay_url: str) -> None:
        info = self._require_info()
        if info.mode is RelayMode.ALL:
            with self._lock:
                self._reconnect_relay[relay_url] = _now_ms()
        elif info.mode is RelayMode.HASH:
            self.reconnect_begin_tm = _now_ms()
        else:
            raise RelayError(f"wrong push mode '{info.mode.value}'")

    def _check_relay_param(self) -> bool:
        return self.role_list is not None and self.map_data is not None

    def reconnect(self, cur_tm_ms: int) -> bool:
        if not self._check_relay_param():
            get_logger().log(
                LogLevel.WARNING, "PusherManager.reconnect, check_relay_param failed, stream=%s.",
                self.stream_name,
            )
            return False
        info = self.relay_info
        if info is None:
            return False
        no_publisher = not self._has_publisher()
        if info.mode is RelayMode.ALL:
            return self._reconnect_all(cur_tm_ms, no_publisher)
        if info.mode is RelayMode.HASH:
            if cur_tm_ms - self.reconnect_begin_tm < info.reconnect_interval * 1000:
                return False
            self.reconnect_begin_tm = cur_tm_ms
            if no_publisher:
                return False
            try:
                self.connect_hash()
            except RelayError:
                return False
            return True
        get_logger().log(LogLevel.INFO, "PusherManager.reconnect, wrong mode=%s.", info.mode.value)
        return False

    def _reconnect_all(self, cur_tm_ms: int, no_publisher: bool) -> bool:
        info = self._require_info()
        interval_ms = info.reconnect_interval * 1000
        last_ok = False
        all_ok = True
        with self._lock:
            for url, begin_tm in list(self._reconnect_relay.items()):
                if cur_tm_ms - begin_tm < interval_ms:
                    all_ok = all_ok and last_ok
                    continue
                if no_publisher:
                    all_ok = all_ok and last_ok
                    self._reconnect_relay[url] = cur_tm_ms
                    continue
                try:
                    self.connect(url)
                except RelayError:
                    last_ok = False
                    self._reconnect_relay[url] = cur_tm_ms
                    get_logger().log(
                        LogLevel.INFO, "PusherManager.reconnect_all, failed, url='%s'.", url
                    )
                else:
                    last_ok = True
                    del self._reconnect_relay[url]
                all_ok = all_ok and last_ok
        return all_ok