# tests/smoke/test_eventbus_logging.py
import json

from nodelisting.services.eventbus import LocalEventBus, emit
from nodelisting.services.logging import setup_logging, attach_event_logger


def test_emit_event_is_logged_as_json(settings):
    bus = LocalEventBus()
    logger = setup_logging(settings)
    attach_event_logger(bus, logger)

    emit(bus, "node.offline", {"domain": "a.example"}, "smoke")

    logfile = settings.logs_dir / "listing.log"
    assert logfile.exists()
    last = json.loads(logfile.read_text(encoding="utf-8").strip().splitlines()[-1])
    assert last["type"] == "node.offline"
    assert last["payload"] == {"domain": "a.example"}


def test_emit_without_bus_is_noop():
    emit(None, "node.offline", {}, "smoke")


def test_failing_subscriber_does_not_break_publish():
    bus = LocalEventBus()
    seen = []

    def broken(ev):
        raise RuntimeError("subscriber bug")

    bus.subscribe("node.", broken)
    bus.subscribe("node.offline", seen.append)
    emit(bus, "node.offline", {"domain": "a.example"}, "smoke")
    emit(bus, "sys.ready", {}, "smoke")
    assert [e.type for e in seen] == ["node.offline"]
