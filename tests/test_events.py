from stacytimelib import log
from stacytimelib.events import EventBus


def test_exact_and_wildcard_handlers():
    bus = EventBus()
    exact, prefixed, everything = [], [], []
    bus.subscribe("viewport.scrolled", lambda **d: exact.append(d))
    bus.subscribe("viewport.*", lambda **d: prefixed.append(d))
    bus.subscribe("*", lambda **d: everything.append(d["event"]))

    bus.emit("viewport.scrolled", offset=10.0)
    bus.emit("analysis.start", generation=1)

    assert exact == [{"offset": 10.0}]
    assert prefixed == [{"event": "viewport.scrolled", "offset": 10.0}]
    assert everything == ["viewport.scrolled", "analysis.start"]


def test_unsubscribe_handle():
    bus = EventBus()
    seen = []
    remove = bus.subscribe("command.added", lambda **d: seen.append(d))

    assert bus.has_subscribers("command.added")
    remove()
    remove()
    bus.emit("command.added", command=None)

    assert seen == []
    assert not bus.has_subscribers("command.added")


class Traced:
    def run(self):
        log.dbg("hello")


def test_dbg_silent_by_default(capsys, monkeypatch):
    monkeypatch.delenv(log.ENV_VAR, raising=False)
    log.configure()
    try:
        log.dbg("nothing")
        assert capsys.readouterr().err == ""
    finally:
        log.configure()


def test_dbg_component_filter(capsys, monkeypatch):
    monkeypatch.setenv(log.ENV_VAR, "Traced")
    log.configure()
    try:
        Traced().run()
        log.dbg("from a module function")
        err = capsys.readouterr().err
    finally:
        log.configure()

    assert "Traced] hello" in err
    assert "module function" not in err
