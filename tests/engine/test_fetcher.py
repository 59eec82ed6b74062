"""Tests for the remote state fetcher."""

from __future__ import annotations

import httpx
import pytest

from alert_spine.core.errors import ApiError, ProviderTimeoutError, RemoteFetchError
from alert_spine.domain.models import RunStats
from alert_spine.engine.fetcher import RemoteStateFetcher
from alert_spine.providers.base import DEFAULT_ALERT_KEY, ApiResponse, PagingParams
from alert_spine.providers.datadog import DatadogClient
from tests._support.fakes import FakeProviderClient, make_destination


def _record(alert_id, name=None, message=f"body\n{DEFAULT_ALERT_KEY}\n@alice"):
    return {"id": alert_id, "name": name or f"alert {alert_id}", "type": "metric alert", "message": message}


def _no_sleep(seconds):
    return None


class TestPagedFetch:
    def test_reads_until_short_page(self):
        client = FakeProviderClient([_record(i) for i in range(1, 6)])
        destination = make_destination(client, page_size=2, concurrency=2)

        existing = RemoteStateFetcher(destination).fetch_all()

        assert sorted(existing) == [f"alert {i}" for i in range(1, 6)]
        assert sorted(c[1].page for c in client.calls_to("fetch_page")) == [0, 1, 2, 3]

    def test_empty_destination(self):
        client = FakeProviderClient()
        assert RemoteStateFetcher(make_destination(client)).fetch_all() == {}

    def test_monitors_envelope(self):
        client = FakeProviderClient()
        client.queue("fetch_page", ApiResponse(200, {"monitors": [_record(1)]}))
        existing = RemoteStateFetcher(make_destination(client, concurrency=1)).fetch_all()
        assert list(existing) == ["alert 1"]


class TestRetries:
    def test_non_200_retries_then_fails(self):
        client = FakeProviderClient()
        client.queue("fetch_page", ApiResponse(400, {"errors": ["bad"]}))
        destination = make_destination(client, concurrency=1, retries=3)

        with pytest.raises(RemoteFetchError, match="after 4 attempts"):
            RemoteStateFetcher(destination, sleep=_no_sleep).fetch_all()

        assert len(client.calls_to("fetch_page")) == 4

    def test_recovers_from_transient_failures(self):
        client = FakeProviderClient()
        client.queue(
            "fetch_page",
            ApiResponse(500),
            ProviderTimeoutError("slow"),
            ApiResponse(200, [_record(1)]),
        )
        fetcher = RemoteStateFetcher(make_destination(client), sleep=_no_sleep)
        assert fetcher.fetch_slice(PagingParams(page=0)) == [_record(1)]
        assert len(client.calls_to("fetch_page")) == 3

    def test_unexpected_errors_are_not_retried(self):
        client = FakeProviderClient()
        client.queue("fetch_page", KeyError("boom"))
        fetcher = RemoteStateFetcher(make_destination(client), sleep=_no_sleep)
        with pytest.raises(KeyError):
            fetcher.fetch_slice(PagingParams(page=0))
        assert len(client.calls_to("fetch_page")) == 1


class TestCollapse:
    def test_same_name_collapses_first_wins(self):
        stats = RunStats()
        fetcher = RemoteStateFetcher(make_destination(FakeProviderClient()), stats=stats)
        existing = fetcher.collapse(
            [
                {**_record(1, "dup"), "query": "first"},
                {**_record(2, "dup"), "query": "second"},
                _record(3, "solo"),
                {**_record(4, "dup"), "query": "third"},
            ]
        )
        assert existing["dup"].ids == [1, 2, 4]
        assert existing["dup"].query == "first"
        assert existing["solo"].ids == [3]

    def test_counts_unmanaged_records(self):
        stats = RunStats()
        fetcher = RemoteStateFetcher(make_destination(FakeProviderClient()), stats=stats)
        fetcher.collapse([_record(1), _record(2, message="made by hand"), _record(3, message=None)])
        assert stats.manually_created_alerts == 2


class TestIdRangeFetch:
    def test_chunks_cover_id_span(self):
        records = [_record(i) for i in (10, 11, 25, 31)]
        client = FakeProviderClient(records)
        destination = make_destination(client, fetch_strategy="id_range", chunk_size=10)

        existing = RemoteStateFetcher(destination).fetch_all()

        assert sorted(r.primary_id for r in existing.values()) == [10, 11, 25, 31]
        windows = sorted((c[1].id_min, c[1].id_max) for c in client.calls_to("fetch_page"))
        assert windows == [(10, 19), (20, 29), (30, 31)]

    def test_no_alerts(self):
        client = FakeProviderClient()
        destination = make_destination(client, fetch_strategy="id_range")
        assert RemoteStateFetcher(destination).fetch_all() == {}
        assert client.calls_to("fetch_page") == []

    def test_failed_bounds_lookup_is_fatal(self):
        client = FakeProviderClient([_record(1)])
        client.queue("id_bounds", ApiError("search returned 500", 500))
        destination = make_destination(client, fetch_strategy="id_range", retries=3)

        with pytest.raises(RemoteFetchError, match="after 4 attempts"):
            RemoteStateFetcher(destination, sleep=_no_sleep).fetch_all()

        assert len(client.calls_to("id_bounds")) == 4
        assert client.calls_to("fetch_page") == []

    def test_bounds_lookup_recovers_from_timeout(self):
        client = FakeProviderClient([_record(1)])
        client.queue("id_bounds", ProviderTimeoutError("slow"), (1, 1))
        destination = make_destination(client, fetch_strategy="id_range")

        existing = RemoteStateFetcher(destination, sleep=_no_sleep).fetch_all()

        assert list(existing) == ["alert 1"]
        assert len(client.calls_to("id_bounds")) == 2

    def test_chunk_exhausting_retries_is_fatal(self):
        client = FakeProviderClient([_record(i) for i in (1, 2)])
        client.queue("fetch_page", ApiResponse(500))
        destination = make_destination(client, fetch_strategy="id_range", chunk_size=10, retries=3)

        with pytest.raises(RemoteFetchError, match="after 4 attempts"):
            RemoteStateFetcher(destination, sleep=_no_sleep).fetch_all()

        assert len(client.calls_to("fetch_page")) == 4

    def test_search_errors_from_datadog_do_not_look_like_an_empty_account(self):
        def handler(request):
            if request.url.path == "/api/v1/monitor/search":
                return httpx.Response(500, json={"errors": ["internal"]})
            return httpx.Response(200, json=[])

        client = DatadogClient("api", "app", http_client=httpx.Client(transport=httpx.MockTransport(handler)))
        destination = make_destination(client, fetch_strategy="id_range", retries=1)

        with pytest.raises(RemoteFetchError) as exc_info:
            RemoteStateFetcher(destination, sleep=_no_sleep).fetch_all()
        assert exc_info.value.context.destination == "datadog"
