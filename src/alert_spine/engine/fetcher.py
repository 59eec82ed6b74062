"""
Remote state fetcher: every existing alert on a destination, keyed by name.

Two strategies:

- ``paged``: pages are fetched ``concurrency`` at a time until a page comes
  back shorter than ``page_size``;
- ``id_range``: the id span reported by ``id_bounds()`` is cut into
  ``chunk_size`` windows which are all fetched concurrently.

Every page/chunk, and the id-bounds lookup, retries on a non-200 status or a
transient error with exponential backoff. When any of them exhausts its
retries the whole fetch fails with ``RemoteFetchError``; a partial view of
remote state would make the reconciler delete or duplicate alerts.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from alert_spine.core.errors import ApiError, RemoteFetchError, TransientError
from alert_spine.core.logging import get_logger
from alert_spine.domain.models import RemoteAlert, RunStats
from alert_spine.execution.retry import ExponentialBackoff, RetryContext
from alert_spine.providers.base import ApiResponse, Destination, PagingParams

logger = get_logger(__name__)


class RemoteStateFetcher:
    """Reads and collapses the remote alert listing of one destination."""

    def __init__(
        self,
        destination: Destination,
        *,
        stats: RunStats | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self.destination = destination
        self.client = destination.client
        self.stats = stats or RunStats()
        self._sleep = sleep
        self.strategy = ExponentialBackoff(
            max_retries=destination.retries,
            base_delay=destination.retry_base_delay,
            retryable_errors=(ApiError, TransientError),
        )

    def fetch_all(self) -> dict[str, RemoteAlert]:
        if self.destination.fetch_strategy == "id_range":
            records = self._fetch_id_range()
        else:
            records = self._fetch_paged()
        existing = self.collapse(records)
        logger.info(
            "remote_alerts_fetched",
            destination=self.destination.name,
            records=len(records),
            names=len(existing),
            manually_created=self.stats.manually_created_alerts,
        )
        return existing

    def collapse(self, records: Iterable[dict[str, Any]]) -> dict[str, RemoteAlert]:
        """Group records by name; the first-seen record supplies the fields."""
        existing: dict[str, RemoteAlert] = {}
        for record in records:
            remote = RemoteAlert.from_record(record)
            if not remote.is_managed(self.destination.alert_key):
                self.stats.incr("manually_created_alerts")
            current = existing.get(remote.name)
            if current is None:
                existing[remote.name] = remote
            else:
                current.ids.append(remote.primary_id)
        return existing

    def fetch_slice(self, params: PagingParams) -> list[dict[str, Any]]:
        """Fetch one page or chunk under the retry policy."""

        def attempt() -> list[dict[str, Any]]:
            response = self.client.fetch_page(params)
            if not response.ok:
                raise ApiError(
                    f"Listing alerts returned {response.status_code}",
                    response.status_code,
                    response.body,
                )
            return _records(response)

        return self._with_retries(attempt, page=params.page, id_min=params.id_min)

    def fetch_bounds(self) -> tuple[int, int] | None:
        """Look up the id span under the retry policy; None means no alerts."""
        return self._with_retries(self.client.id_bounds, page=None, id_min=None)

    def _with_retries(self, attempt: Callable[[], Any], **where: Any) -> Any:
        def on_retry(attempts: int, error: Exception, delay: float) -> None:
            logger.warning(
                "remote_fetch_retry",
                destination=self.destination.name,
                attempt=attempts,
                delay=delay,
                error=str(error),
                **where,
            )

        kwargs: dict[str, Any] = {"on_retry": on_retry}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        ctx = RetryContext(self.strategy, **kwargs)
        try:
            return ctx.run(attempt)
        except (ApiError, TransientError) as e:
            raise RemoteFetchError(
                f"Failed to fetch existing alerts after {ctx.attempts} attempts: {e}", cause=e
            ).with_context(destination=self.destination.name, **where) from e

    def _fetch_paged(self) -> list[dict[str, Any]]:
        page_size = self.destination.page_size
        workers = max(1, self.destination.concurrency)
        records: list[dict[str, Any]] = []
        next_page = 0
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="alert-fetch") as executor:
            while True:
                pages = range(next_page, next_page + workers)
                next_page += workers
                batch = list(
                    executor.map(
                        lambda p: self.fetch_slice(PagingParams(page=p, page_size=page_size)), pages
                    )
                )
                for page_records in batch:
                    records.extend(page_records)
                if any(len(page_records) < page_size for page_records in batch):
                    break
        return records

    def _fetch_id_range(self) -> list[dict[str, Any]]:
        bounds = self.fetch_bounds()
        if bounds is None:
            return []
        low, high = bounds
        chunk = max(1, self.destination.chunk_size)
        slices = [
            PagingParams(page_size=chunk, id_min=start, id_max=min(start + chunk - 1, high))
            for start in range(low, high + 1, chunk)
        ]
        records: list[dict[str, Any]] = []
        workers = max(1, self.destination.concurrency)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="alert-fetch") as executor:
            for chunk_records in executor.map(self.fetch_slice, slices):
                records.extend(chunk_records)
        return records


def _records(response: ApiResponse) -> list[dict[str, Any]]:
    body = response.body
    if isinstance(body, dict):
        body = body.get("monitors") or []
    return list(body or [])


__all__ = ["RemoteStateFetcher"]
