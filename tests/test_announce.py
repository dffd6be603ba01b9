# tests/test_announce.py
from __future__ import annotations
import re

import pytest

from nodelisting.services.announce import AnnounceService
from nodelisting.services.errors import ConflictError, Forbidden, InvalidInput, NotFound, Unauthorized, UnprocessableEntity


@pytest.fixture
def announcer(store, probe, bus, clock) -> AnnounceService:
    return AnnounceService(store, probe, bus=bus, clock=clock)


def _register(event_loop, announcer, probe, domain="a.example", info=None, **body):
    probe.set(domain, healthy=True, info=info or {})
    return event_loop.run_until_complete(announcer.announce({"domain": domain, **body}))


def test_register_creates_single_record_and_returns_token_once(event_loop, announcer, probe, store, events):
    res = _register(event_loop, announcer, probe, info={"track_count": 10})
    assert res.status == "registered"
    assert re.fullmatch(r"[0-9a-f]{64}", res.token)
    assert res.message
    assert store.stats()["total_nodes"] == 1
    assert store.get_by_domain("a.example").token == res.token
    assert [e.type for e in events] == ["node.registered"]

    with pytest.raises(ConflictError) as ei:
        event_loop.run_until_complete(announcer.announce({"domain": "a.example"}))
    assert ei.value.status_code == 409
    assert "token" in ei.value.hint
    assert store.stats()["total_nodes"] == 1


def test_register_normalizes_domain(event_loop, announcer, probe, store):
    probe.set("a.example", healthy=True)
    res = event_loop.run_until_complete(announcer.announce({"domain": "https://a.example/"}))
    assert res.domain == "a.example"
    assert probe.health_calls == ["a.example"]
    assert store.get_by_domain("a.example") is not None


def test_register_unreachable_is_rejected(event_loop, announcer, probe, store):
    probe.set("down.example", healthy=False)
    with pytest.raises(UnprocessableEntity) as ei:
        event_loop.run_until_complete(announcer.announce({"domain": "down.example"}))
    assert "down.example" in ei.value.hint
    assert probe.info_calls == []
    assert store.get_by_domain("down.example") is None


@pytest.mark.parametrize(
    "payload",
    [None, [], {}, {"domain": ""}, {"domain": 42}, {"domain": "https://"}, {"domain": "a.example", "name": 5}],
)
def test_invalid_input(event_loop, announcer, payload):
    with pytest.raises(InvalidInput) as ei:
        event_loop.run_until_complete(announcer.announce(payload))
    assert ei.value.status_code == 400


def test_empty_token_means_registration(event_loop, announcer, probe):
    res = _register(event_loop, announcer, probe, token="")
    assert res.status == "registered"


def test_heartbeat_unknown_token_is_unauthorized(event_loop, announcer, probe):
    _register(event_loop, announcer, probe)
    with pytest.raises(Unauthorized):
        event_loop.run_until_complete(announcer.announce({"domain": "a.example", "token": "nope"}))


def test_heartbeat_token_bound_to_domain(event_loop, announcer, probe):
    res = _register(event_loop, announcer, probe)
    _register(event_loop, announcer, probe, domain="b.example")
    with pytest.raises(Forbidden) as ei:
        event_loop.run_until_complete(announcer.announce({"domain": "b.example", "token": res.token}))
    assert ei.value.status_code == 403


def test_repeated_heartbeats_keep_identity(event_loop, announcer, probe, store, clock):
    res = _register(event_loop, announcer, probe, name="First")
    before = store.get_by_domain("a.example")

    for i in range(3):
        clock.advance(minutes=5)
        probe.set("a.example", healthy=True, info={"track_count": 20 + i})
        hb = event_loop.run_until_complete(announcer.announce({"domain": "http://a.example", "token": res.token, "version": f"1.{i}"}))
        assert hb.to_dict() == {"status": "updated", "id": res.id, "domain": "a.example"}

    after = store.get_by_domain("a.example")
    assert (after.id, after.domain, after.token) == (before.id, before.domain, before.token)
    assert after.first_seen == before.first_seen
    assert after.name == "First"
    assert after.version == "1.2"
    assert after.track_count == 22
    assert after.last_seen == clock.now


def test_heartbeat_brings_offline_node_back(event_loop, announcer, probe, store, clock):
    res = _register(event_loop, announcer, probe)
    rec = store.get_by_domain("a.example")
    rec.is_online = False
    rec.down_since = clock.now
    store.update(rec)

    clock.advance(hours=1)
    event_loop.run_until_complete(announcer.announce({"domain": "a.example", "token": res.token}))
    rec = store.get_by_domain("a.example")
    assert rec.is_online is True
    assert rec.down_since is None
    assert rec.last_healthy == clock.now


def test_heartbeat_does_not_require_health_probe(event_loop, announcer, probe):
    res = _register(event_loop, announcer, probe)
    probe.set("a.example", healthy=False)
    probe.health_calls.clear()
    hb = event_loop.run_until_complete(announcer.announce({"domain": "a.example", "token": res.token}))
    assert hb.status == "updated"
    assert probe.health_calls == []


def test_remove(event_loop, announcer, probe, store, events):
    res = _register(event_loop, announcer, probe)
    with pytest.raises(Unauthorized):
        announcer.remove("a.example", None)
    with pytest.raises(NotFound):
        announcer.remove("a.example", "wrong")
    assert announcer.remove("https://a.example/", res.token) == "a.example"
    assert store.get_by_domain("a.example") is None
    assert events[-1].type == "node.removed"


def test_get_node_not_found(announcer):
    with pytest.raises(NotFound):
        announcer.get_node("ghost.example")
