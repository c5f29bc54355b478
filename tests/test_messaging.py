import pytest

from service_harness.messaging import ChannelScope, qualified_name


class FakeChannel:
    def __init__(self) -> None:
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


def test_channel_is_acquired_once_and_closed_once() -> None:
    created: list[FakeChannel] = []

    def acquire() -> FakeChannel:
        channel = FakeChannel()
        created.append(channel)
        return channel

    with ChannelScope(acquire, environment="test") as scope:
        assert not scope.acquired
        assert scope.channel is scope.channel
        assert scope.acquired
    scope.close()

    assert len(created) == 1
    assert created[0].closed == 1
    assert not scope.acquired


def test_qualified_names_follow_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("RACK_ENV", raising=False)
    assert qualified_name("events") == "routemaster.development.events"
    monkeypatch.setenv("RACK_ENV", "test")
    assert qualified_name("events") == "routemaster.test.events"
    assert ChannelScope(FakeChannel).qualified_name("topics") == "routemaster.test.topics"
    assert qualified_name("events", "production") == "routemaster.production.events"
