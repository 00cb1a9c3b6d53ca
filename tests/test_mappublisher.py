import pytest

from livesrt.mappublisher import PublisherExistsError, PublisherMap


class _Role:
    def __init__(self, name):
        self.role_name = name


def test_live_to_uplive_round_trip():
    m = PublisherMap()
    m.set_live_to_uplive("host/live", "host/uplive")
    assert m.get_uplive("host/live") == "host/uplive"


def test_get_uplive_missing_is_empty_string():
    m = PublisherMap()
    assert m.get_uplive("host/live") == ""


def test_conf_round_trip_and_missing():
    m = PublisherMap()
    conf = {"app_player": "live"}
    m.set_conf("host/uplive", conf)
    assert m.get_conf("host/uplive") is conf
    assert m.get_conf("host/other") is None


def test_set_and_get_publisher():
    m = PublisherMap()
    pub = _Role("publisher")
    m.set_publisher("host/uplive/stream", pub)
    assert m.get_publisher("host/uplive/stream") is pub
    assert m.get_publisher("host/uplive/none") is None


def test_second_publisher_for_same_stream_is_refused():
    m = PublisherMap()
    first = _Role("publisher")
    m.set_publisher("host/uplive/stream", first)
    with pytest.raises(PublisherExistsError):
        m.set_publisher("host/uplive/stream", _Role("puller"))
    assert m.get_publisher("host/uplive/stream") is first


def test_none_entry_can_be_replaced():
    m = PublisherMap()
    m.set_publisher("host/uplive/stream", None)
    pub = _Role("publisher")
    m.set_publisher("host/uplive/stream", pub)
    assert m.get_publisher("host/uplive/stream") is pub


def test_remove_by_role():
    m = PublisherMap()
    a, b = _Role("publisher"), _Role("puller")
    m.set_publisher("h/up/a", a)
    m.set_publisher("h/up/b", b)
    assert m.remove(a) is True
    assert m.get_publisher("h/up/a") is None
    assert m.get_publisher("h/up/b") is b


def test_remove_unknown_role_returns_false():
    m = PublisherMap()
    m.set_publisher("h/up/a", _Role("publisher"))
    assert m.remove(_Role("other")) is False


def test_remove_then_register_again():
    m = PublisherMap()
    a = _Role("publisher")
    m.set_publisher("h/up/a", a)
    m.remove(a)
    b = _Role("publisher")
    m.set_publisher("h/up/a", b)
    assert m.get_publisher("h/up/a") is b


def test_clear_forgets_everything():
    m = PublisherMap()
    m.set_conf("h/up", object())
    m.set_live_to_uplive("h/live", "h/up")
    m.set_publisher("h/up/s", _Role("publisher"))
    m.clear()
    assert m.get_conf("h/up") is None
    assert m.get_uplive("h/live") == ""
    assert m.get_publisher("h/up/s") is None