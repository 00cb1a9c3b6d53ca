import pytest

from livesrt.mappublisher import PublisherMap
from livesrt.relaymanagers import (
    PullerManager,
    PusherManager,
    RelayError,
    RelayInfo,
    RelayMode,
)


class FakeRelay:
    def __init__(self, url):
        self.url = url
        self.map_key = None
        self.map_data = None
        self.map_publisher = None
        self.manager = None

    def set_map_data(self, key, map_data):
        self.map_key = key
        self.map_data = map_data

    def set_map_publisher(self, map_publisher):
        self.map_publisher = map_publisher

    def set_relay_manager(self, manager):
        self.manager = manager


class FakeRoleList:
    def __init__(self):
        self.roles = []

    def push(self, role):
        self.roles.append(role)


class FakeMapData:
    def __init__(self):
        self.keys = []

    def add(self, key):
        self.keys.append(key)


class Connector:
    def __init__(self, fail=()):
        self.fail = set(fail)
        self.attempts = []

    def __call__(self, url):
        self.attempts.append(url)
        if any(f in url for f in self.fail):
            raise OSError("refused")
        return FakeRelay(url)


def make(cls, mode, upstreams, fail=(), interval=5):
    info = RelayInfo(type="pull", mode=mode, reconnect_interval=interval, upstreams=list(upstreams))
    conn = Connector(fail)
    mgr = cls(info, conn)
    mgr.set_relay_info("host/uplive", "s1")
    mgr.map_data = FakeMapData()
    mgr.map_publisher = PublisherMap()
    mgr.role_list = FakeRoleList()
    return mgr, conn


def test_puller_loop_skips_failed_upstream():
    mgr, conn = make(PullerManager, RelayMode.LOOP, ["a:1", "b:2"], fail=["a:1"])
    mgr.start()
    assert conn.attempts == ["srt://a:1/s1", "srt://b:2/s1"]
    relay = mgr.role_list.roles[0]
    assert relay.url == "srt://b:2/s1"
    assert relay.map_key == "host/uplive/s1"
    assert relay.manager is mgr
    assert mgr.map_publisher.get_publisher("host/uplive/s1") is relay
    assert mgr.map_data.keys == ["host/uplive/s1"]


def test_puller_loop_rotates_between_starts():
    mgr, conn = make(PullerManager, RelayMode.LOOP, ["a:1", "b:2"])
    mgr.start()
    first = mgr.role_list.roles[0]
    assert first.url == "srt://a:1/s1"
    assert mgr.map_publisher.remove(first)
    mgr.start()
    assert mgr.role_list.roles[1].url == "srt://b:2/s1"


def test_puller_loop_all_fail():
    mgr, conn = make(PullerManager, RelayMode.LOOP, ["a:1", "b:2"], fail=["a:1", "b:2"])
    with pytest.raises(RelayError):
        mgr.start()
    assert conn.attempts == ["srt://a:1/s1", "srt://b:2/s1"]
    assert mgr.role_list.roles == []


def test_puller_refuses_when_publisher_exists():
    mgr, conn = make(PullerManager, RelayMode.LOOP, ["a:1"])
    mgr.map_publisher.set_publisher("host/uplive/s1", object())
    with pytest.raises(RelayError):
        mgr.start()
    assert conn.attempts == []


def test_puller_without_info_raises():
    mgr = PullerManager(None, Connector())
    mgr.set_relay_info("host/uplive", "s1")
    with pytest.raises(RelayError):
        mgr.start()


def test_puller_missing_map_data_raises():
    mgr, conn = make(PullerManager, RelayMode.LOOP, ["a:1"])
    mgr.map_data = None
    with pytest.raises(RelayError):
        mgr.start()
    assert mgr.map_publisher.get_publisher("host/uplive/s1") is None


def test_connect_without_connector_raises():
    mgr = PullerManager(RelayInfo(mode=RelayMode.HASH, upstreams=["a:1"]))
    mgr.set_relay_info("host/uplive", "s1")
    with pytest.raises(RelayError):
        mgr.connect("srt://a:1/s1")


def test_connect_hash_is_stable():
    ups = ["a:1", "b:2", "c:3"]
    mgr1, conn1 = make(PusherManager, RelayMode.HASH, ups)
    mgr2, conn2 = make(PusherManager, RelayMode.HASH, ups)
    r1 = mgr1.connect_hash()
    r2 = mgr2.connect_hash()
    assert r1.url == r2.url
    assert r1.url in {f"srt://{u}/s1" for u in ups}


def test_puller_reconnect_waits_for_interval():
    mgr, conn = make(PullerManager, RelayMode.HASH, ["a:1"], interval=5)
    mgr.add_reconnect_stream("srt://a:1/s1")
    begin = mgr.reconnect_begin_tm
    assert mgr.reconnect(begin + 1000) is False
    assert conn.attempts == []
    assert mgr.reconnect(begin + 5000) is True
    assert conn.attempts == ["srt://a:1/s1"]
    assert mgr.reconnect_begin_tm == begin + 5000


def test_pusher_start_requires_publisher():
    mgr, conn = make(PusherManager, RelayMode.ALL, ["a:1"])
    with pytest.raises(RelayError):
        mgr.start()
    assert conn.attempts == []


def test_pusher_all_records_failures_and_reconnects():
    mgr, conn = make(PusherManager, RelayMode.ALL, ["a:1", "b:2"], fail=["b:2"])
    mgr.map_publisher.set_publisher("host/uplive/s1", object())
    with pytest.raises(RelayError):
        mgr.start()
    assert [r.url for r in mgr.role_list.roles] == ["srt://a:1/s1"]
    pending = mgr.pending_reconnects
    assert list(pending) == ["srt://b:2/s1"]
    t = pending["srt://b:2/s1"]

    assert mgr.reconnect(t + 1000) is False
    assert len(conn.attempts) == 2

    conn.fail.clear()
    assert mgr.reconnect(t + 5000) is True
    assert mgr.pending_reconnects == {}
    assert mgr.role_list.roles[-1].url == "srt://b:2/s1"


def test_pusher_all_without_publisher_delays_entries():
    mgr, conn = make(PusherManager, RelayMode.ALL, ["a:1"])
    mgr.add_reconnect_stream("srt://a:1/s1")
    t = mgr.pending_reconnects["srt://a:1/s1"]
    assert mgr.reconnect(t + 5000) is False
    assert conn.attempts == []
    assert mgr.pending_reconnects["srt://a:1/s1"] == t + 5000


def test_pusher_hash_reconnect():
    mgr, conn = make(PusherManager, RelayMode.HASH, ["a:1"], interval=2)
    mgr.map_publisher.set_publisher("host/uplive/s1", object())
    mgr.add_reconnect_stream("srt://a:1/s1")
    begin = mgr.reconnect_begin_tm
    assert mgr.reconnect(begin + 100) is False
    assert mgr.reconnect(begin + 2000) is True
    assert conn.attempts == ["srt://a:1/s1"]


def test_pusher_loop_mode_is_rejected():
    mgr, conn = make(PusherManager, RelayMode.LOOP, ["a:1"])
    mgr.map_publisher.set_publisher("host/uplive/s1", object())
    with pytest.raises(RelayError):
        mgr.start()
    with pytest.raises(RelayError):
        mgr.add_reconnect_stream("srt://a:1/s1")


def test_pusher_reconnect_without_role_list():
    mgr, conn = make(PusherManager, RelayMode.HASH, ["a:1"], interval=0)
    mgr.role_list = None
    assert mgr.reconnect(10**12) is False
    assert conn.attempts == []