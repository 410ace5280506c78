from threading import Event
from types import SimpleNamespace

from dcs.docker_ops import DockerRuntime, RuntimeEvent, container_info, parse_event

ATTRS = {
    "Id": "abc123",
    "Name": "/frontend",
    "Config": {"ExposedPorts": {"80/tcp": {}, "443/tcp": {}}, "Env": ["SERVICE_NAME=web", "PATH=/bin"]},
    "NetworkSettings": {"IPAddress": "172.17.0.3", "Networks": {}},
}


def test_container_info_from_inspect():
    info = container_info(ATTRS)
    assert info.id == "abc123"
    assert info.name == "frontend"
    assert info.address == "172.17.0.3"
    assert info.exposed_ports == ["80/tcp", "443/tcp"]
    assert info.env == ["SERVICE_NAME=web", "PATH=/bin"]


def test_container_info_user_network_and_missing_config():
    attrs = {
        "Id": "def456",
        "Name": "/worker",
        "Config": {"ExposedPorts": None, "Env": None},
        "NetworkSettings": {"IPAddress": "", "Networks": {"app": {"IPAddress": "10.5.0.7"}}},
    }
    info = container_info(attrs)
    assert info.address == "10.5.0.7"
    assert info.exposed_ports == []
    assert info.env == []


def test_parse_event_current_and_legacy_shapes():
    assert parse_event({"Type": "container", "Action": "start", "Actor": {"ID": "abc"}}) == RuntimeEvent("abc", "start")
    assert parse_event({"status": "die", "id": "abc"}) == RuntimeEvent("abc", "die")
    assert parse_event({"Type": "container"}) is None


class _Stream:
    def __init__(self, items, close_error=None):
        self.items = items
        self.close_error = close_error
        self.close_calls = 0

    @property
    def closed(self):
        return self.close_calls > 0

    def __iter__(self):
        return iter(self.items)

    def close(self):
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


def _client(stream):
    calls = {}

    def events(**kwargs):
        calls.update(kwargs)
        return stream

    def list_containers(**kwargs):
        calls["list"] = kwargs
        return [SimpleNamespace(attrs=ATTRS)]

    containers = SimpleNamespace(list=list_containers, get=lambda cid: SimpleNamespace(attrs=ATTRS))
    return SimpleNamespace(containers=containers, events=events, close=lambda: None), calls


def test_runtime_list_and_inspect():
    client, calls = _client(_Stream([]))
    rt = DockerRuntime(client)
    assert [i.name for i in rt.list_running()] == ["frontend"]
    assert calls["list"] == {"ignore_removed": True}
    assert rt.inspect("abc123").address == "172.17.0.3"


def test_runtime_events_filters_containers_and_closes():
    stream = _Stream([{"Action": "start", "Actor": {"ID": "a"}}, {"Action": "die", "Actor": {}}, {"status": "die", "id": "a"}])
    client, calls = _client(stream)
    rt = DockerRuntime(client)
    events = list(rt.events(Event()))
    assert events == [RuntimeEvent("a", "start"), RuntimeEvent("a", "die")]
    assert calls == {"decode": True, "filters": {"type": "container"}}
    assert stream.closed is True


def test_runtime_events_stop_early():
    stop = Event()
    stop.set()
    stream = _Stream([{"Action": "start", "Actor": {"ID": "a"}}])
    client, _ = _client(stream)
    assert list(DockerRuntime(client).events(stop)) == []
    assert stream.closed is True


def test_runtime_events_replay_from_timestamp():
    client, calls = _client(_Stream([]))
    assert list(DockerRuntime(client).events(Event(), since=1700000000.7)) == []
    assert calls == {"decode": True, "filters": {"type": "container"}, "since": 1700000000}


def test_closing_the_stream_twice_is_harmless():
    stream = _Stream([{"Action": "start", "Actor": {"ID": "a"}}], close_error=OSError(9, "Bad file descriptor"))
    client, _ = _client(stream)
    rt = DockerRuntime(client)
    events = rt.events(Event())
    assert next(events) == RuntimeEvent("a", "start")

    rt.close_events()
    events.close()
    rt.close()
    assert stream.close_calls == 1
