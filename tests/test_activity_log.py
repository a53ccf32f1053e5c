import asyncio
import logging

from mapfetch.workflows.activity_log import ActivityLog


def test_error_events_log_at_error(caplog):
    log = ActivityLog()
    with caplog.at_level(logging.INFO, logger="mapfetch.activity"):
        log.record("stac_load_error", {"url": "https://x.example.com", "error": "boom"})
        log.record("stac_load_attempt", {"url": "https://x.example.com"})
        log.record("tilejson_timeout", {"token_id": 3})
    levels = [(rec.levelno, rec.getMessage().split(" ", 1)[0]) for rec in caplog.records]
    assert levels == [
        (logging.ERROR, "stac_load_error"),
        (logging.INFO, "stac_load_attempt"),
        (logging.ERROR, "tilejson_timeout"),
    ]
    assert '"error": "boom"' in caplog.records[0].getMessage()


def test_explicit_level_wins(caplog):
    log = ActivityLog()
    with caplog.at_level(logging.DEBUG, logger="mapfetch.activity"):
        log.record("custom", level=logging.WARNING)
    assert caplog.records[0].levelno == logging.WARNING


def test_only_error_entries_are_posted(monkeypatch):
    posted = []

    async def fake_post(self, payload):
        posted.append(payload)

    monkeypatch.setattr(ActivityLog, "_post", fake_post)
    log = ActivityLog("https://logs.example.com/api/log", user_agent="ua/1")

    async def scenario():
        log.record("stac_load_attempt", {"url": "u"})
        log.record("stac_load_error", {"url": "u", "error": "e"})
        await log.flush()

    asyncio.run(scenario())

    assert len(posted) == 1
    payload = posted[0]
    assert payload["action"] == "stac_load_error"
    assert payload["level"] == "error"
    assert payload["data"] == {"url": "u", "error": "e"}
    assert payload["user_agent"] == "ua/1"
    assert payload["timestamp"].endswith("Z")


def test_no_endpoint_or_loop_means_no_post(monkeypatch):
    posted = []

    async def fake_post(self, payload):
        posted.append(payload)

    monkeypatch.setattr(ActivityLog, "_post", fake_post)

    ActivityLog("https://logs.example.com/api/log").record("stac_load_error", {"error": "outside loop"})

    async def scenario():
        log = ActivityLog(None, verbose=True)
        log.record("stac_load_error", {"error": "no endpoint"})
        await log.flush()

    asyncio.run(scenario())
    assert posted == []


def test_unserializable_fields_do_not_raise():
    ActivityLog().record("tilejson_load_error", {"error": object()})


def test_delivery_failures_are_swallowed():
    log = ActivityLog("http://127.0.0.1:1/log", verbose=True)

    async def scenario():
        log.record("stac_load_error", {"error": "unreachable sink"})
        await log.flush()

    asyncio.run(scenario())
