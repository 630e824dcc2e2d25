import logging

import httpx
import pytest

from pagewalk import ApiClient, TransportFailure
from pagewalk.lifecycle.observability import (
    FetchEvent,
    add_listener,
    clear_events,
    disable_tracing,
    enable_tracing,
    get_events,
    remove_listener,
)


class TestObservability:
    def test_tracing_disabled_by_default(self, three_pages):
        three_pages.collection().materialize_all()
        assert get_events() == []

    def test_enable_tracing_captures_events(self, three_pages):
        enable_tracing(capture_events=True)
        three_pages.collection().materialize_all()
        events = get_events()
        assert [e.page_number for e in events] == [2, 3]
        assert all(e.operation == "fetch_page" for e in events)
        assert [e.result_count for e in events] == [2, 1]

    def test_cached_pages_emit_nothing(self, three_pages):
        collection = three_pages.collection()
        collection.materialize_all()
        enable_tracing(capture_events=True)
        collection.materialize_all()
        assert get_events() == []

    def test_event_includes_params(self, make_fetcher):
        enable_tracing(capture_events=True)
        make_fetcher([2, 2], per_page=2, state="available").collection().ensure_page(2)
        event = get_events()[0]
        assert event.endpoint == "https://canvas.test/api/v1/courses"
        assert event.params == {"state": "available", "page": "2", "per_page": "2"}

    def test_failed_fetch_emits_event(self, three_pages):
        enable_tracing(capture_events=True)
        three_pages.fail_pages.add(2)
        with pytest.raises(TransportFailure):
            three_pages.collection().ensure_page(2)
        [event] = get_events()
        assert event.page_number == 2
        assert event.result_count is None

    def test_failed_get_emits_event(self):
        enable_tracing(capture_events=True)
        transport = httpx.MockTransport(lambda request: httpx.Response(500))
        with ApiClient("https://canvas.test/api/v1", "secret-token", transport=transport) as client:
            with pytest.raises(TransportFailure):
                client.get("courses")
        [event] = get_events()
        assert event.operation == "get"
        assert event.endpoint == "courses"
        assert event.result_count is None

    def test_disable_tracing_clears_state(self, three_pages):
        enable_tracing(capture_events=True)
        three_pages.collection().materialize_all()
        assert len(get_events()) > 0
        disable_tracing()
        assert get_events() == []

    def test_clear_events(self, three_pages):
        enable_tracing(capture_events=True)
        three_pages.collection().materialize_all()
        clear_events()
        assert get_events() == []

    def test_slow_fetch_logs_warning(self, three_pages, caplog):
        enable_tracing(slow_fetch_ms=-1.0)  # every fetch is slow
        with caplog.at_level(logging.WARNING, logger="pagewalk"):
            three_pages.collection().ensure_page(2)
        assert any("Slow fetch" in record.message for record in caplog.records)

    def test_listener_receives_events(self, three_pages):
        received = []

        def listener(event: FetchEvent):
            received.append(event)

        enable_tracing()
        add_listener(listener)
        three_pages.collection().ensure_page(2)
        remove_listener(listener)
        three_pages.collection().ensure_page(3)
        assert [e.page_number for e in received] == [2]
