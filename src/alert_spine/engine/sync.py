"""
Sync executor: applies a ReconcilePlan to one destination.

Creates and updates run on ``concurrency`` worker threads pulling from a
shared queue; deletions run afterwards, one at a time. Every provider call
goes through a retry policy that only retries ``ProviderTimeoutError``.

Response classification (per create/update/recreate):

    400          → api_client_errors
    > 400 or -1  → api_unknown_errors
    otherwise    → api_successes

A non-200 status also appends ``"<code> on alert <name>"`` to
``RunStats.api_errors``.

With ``validate_only`` every create/update is sent to the provider's validate
endpoint and nothing is deleted; the ids validation hands back are collected
in ``validated_ids`` for the dry-run cleanup.
"""

from __future__ import annotations

import queue
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from alert_spine.core.errors import ProviderTimeoutError
from alert_spine.core.logging import get_logger
from alert_spine.domain.models import Action, ActionKind, Orphan, ReconcilePlan, RemoteAlert, RunStats
from alert_spine.engine.payload import MessageRenderer, build_payload, normalize_monitor_type
from alert_spine.execution.cancellation import ShutdownToken
from alert_spine.execution.retry import ExponentialBackoff, RetryContext
from alert_spine.providers.base import TRANSPORT_FAILURE, ApiResponse, Destination

logger = get_logger(__name__)


def _call_succeeded(response: ApiResponse, limit: int) -> bool:
    return response.status_code < limit and response.status_code != TRANSPORT_FAILURE


class SyncExecutor:
    """Runs creates/updates concurrently, then deletions sequentially."""

    def __init__(
        self,
        destination: Destination,
        *,
        stats: RunStats | None = None,
        shutdown: ShutdownToken | None = None,
        validate_only: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.destination = destination
        self.client = destination.client
        self.renderer = MessageRenderer(destination.alert_key)
        self.stats = stats or RunStats()
        self.shutdown = shutdown or ShutdownToken()
        self.validate_only = validate_only
        self.validated_ids: list[int] = []
        self._sleep = sleep
        self._clock = clock
        self._strategy = ExponentialBackoff(
            max_retries=destination.retries,
            base_delay=destination.retry_base_delay,
            retryable_errors=(ProviderTimeoutError,),
        )

    # ── provider calls ───────────────────────────────────────────

    def _call(self, func: Callable[..., ApiResponse], *args: Any) -> ApiResponse:
        def on_retry(attempts: int, error: Exception, delay: float) -> None:
            logger.warning(
                "provider_call_retry",
                destination=self.destination.name,
                call=getattr(func, "__name__", "call"),
                attempt=attempts,
                delay=delay,
                error=str(error),
            )

        return RetryContext(self._strategy, on_retry=on_retry, sleep=self._sleep).run(func, *args)

    def _classify(self, response: ApiResponse, action: str, name: str | None = None) -> None:
        code = response.status_code
        if code != 200 and name is not None:
            self.stats.record_error(f"{code} on alert {name}")

        if response.is_client_error:
            self.stats.incr("api_client_errors")
            logger.error(
                "provider_client_error",
                destination=self.destination.name,
                action=action,
                alert_name=name,
                status=code,
                body=response.body,
            )
        elif response.is_unknown_error:
            self.stats.incr("api_unknown_errors")
            logger.error(
                "provider_unknown_error",
                destination=self.destination.name,
                action=action,
                alert_name=name,
                status=code,
                body=response.body,
            )
        else:
            self.stats.incr("api_successes")

    # ── creates and updates ──────────────────────────────────────

    def execute(self, plan: ReconcilePlan) -> RunStats:
        self.apply_actions(list(plan.actions.values()))
        self.remove_orphans(list(plan.orphans.values()))
        return self.stats

    def apply_actions(self, actions: list[Action]) -> None:
        work: queue.Queue[Action] = queue.Queue()
        for action in actions:
            work.put(action)
        if not actions:
            return

        workers = max(1, min(self.destination.concurrency, len(actions)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="alert-sync") as executor:
            futures = [executor.submit(self._worker, work) for _ in range(workers)]
        for future in futures:
            future.result()

    def _worker(self, work: queue.Queue[Action]) -> None:
        while not self.shutdown.requested:
            try:
                action = work.get_nowait()
            except queue.Empty:
                return
            try:
                self.apply(action)
            finally:
                work.task_done()

    def apply(self, action: Action) -> None:
        """Create or update one alert."""
        alert = action.desired.alert
        message = self.renderer.render(action.desired)
        payload = build_payload(alert, message)

        if action.kind is ActionKind.CREATE:
            self.stats.incr("alerts_to_be_created")
            logger.info("alert_creating", alert_name=alert.name, query=alert.query)
            if self.validate_only:
                response = self._validate(alert.monitor_type, alert.query, payload)
            else:
                response = self._call(self.client.create, alert.monitor_type, alert.query, payload)
        else:
            existing = action.existing
            if existing is None:
                raise ValueError(f"Update of {alert.name!r} carries no existing alert")
            self.stats.incr("alerts_to_be_updated")
            logger.info(
                "alert_updating",
                alert_name=alert.name,
                alert_id=existing.primary_id,
                old_query=existing.query.strip(),
                new_query=alert.query.strip(),
            )
            if self.validate_only:
                response = self._validate(alert.monitor_type, alert.query, payload)
            else:
                response = self._update(action, existing, payload)

        self._classify(response, action.kind.value, alert.name)
        if _call_succeeded(response, 400):
            self.stats.incr("alerts_created" if action.kind is ActionKind.CREATE else "alerts_updated")
            if alert.silenced:
                self.stats.incr("alerts_silenced")

    def _validate(self, monitor_type: str, query: str, payload: dict[str, Any]) -> ApiResponse:
        response = self._call(self.client.validate, monitor_type, query, payload)
        if isinstance(response.body, dict) and response.body.get("id") is not None:
            self.validated_ids.append(response.body["id"])
        return response

    def _update(self, action: Action, existing: RemoteAlert, payload: dict[str, Any]) -> ApiResponse:
        alert = action.desired.alert
        alert_id = existing.primary_id

        if normalize_monitor_type(alert.monitor_type) != normalize_monitor_type(existing.monitor_type):
            logger.info(
                "alert_recreating",
                alert_name=alert.name,
                alert_id=alert_id,
                old_type=existing.monitor_type,
                new_type=alert.monitor_type,
            )
            response = self._call(self.client.delete, alert_id)
            if not _call_succeeded(response, 300):
                return response
            return self._call(self.client.create, alert.monitor_type, alert.query, payload)

        response = self._call(self.client.update, alert_id, alert.query, payload)
        if _call_succeeded(response, 400):
            self._maybe_unmute(alert_id, alert.silenced, existing)
        return response

    def _maybe_unmute(self, alert_id: int, desired_silenced: Any, existing: RemoteAlert) -> None:
        """Clear remote silences the desired alert does not carry.

        Updates cannot change silencing, so a mute set by hand on the remote
        side survives until it is explicitly lifted here.
        """
        remote_silenced = existing.options.get("silenced") or {}
        max_mute = self.destination.max_mute_minutes

        if max_mute is not None:
            horizon = self._clock() + max_mute * 60
            kept = [
                end
                for end in remote_silenced.values()
                if end is not None and end != "*" and end <= horizon
            ]
            should_unmute = not desired_silenced and not kept
        else:
            should_unmute = not desired_silenced and bool(remote_silenced)

        if should_unmute:
            logger.info("alert_unmuting", alert_id=alert_id, alert_name=existing.name)
            response = self._call(self.client.unmute, alert_id)
            if not response.ok:
                logger.warning("alert_unmute_failed", alert_id=alert_id, status=response.status_code)

    # ── deletions ────────────────────────────────────────────────

    def remove_orphans(self, orphans: list[Orphan]) -> None:
        for orphan in orphans:
            if self.shutdown.requested:
                logger.info("alert_deletions_interrupted", destination=self.destination.name)
                return
            self.remove(orphan)

    def remove(self, orphan: Orphan) -> None:
        """Delete an orphan's ids; records without the managed marker are left alone."""
        if not orphan.remote.is_managed(self.destination.alert_key):
            logger.warning(
                "alert_not_deleted_manual",
                alert_id=orphan.remote.primary_id,
                alert_name=orphan.name,
            )
            return

        self.stats.incr("alerts_to_be_deleted")
        logger.info(
            "alert_deleting",
            alert_name=orphan.name,
            ids=list(orphan.ids_to_delete),
            draining=orphan.still_desired,
        )
        if self.validate_only:
            return

        for alert_id in orphan.ids_to_delete:
            if self.delete(alert_id):
                self.stats.incr("alerts_deleted")

    def delete(self, alert_id: int) -> bool:
        """Delete one remote id; True on success."""
        response = self._call(self.client.delete, alert_id)
        self._classify(response, "delete")
        return _call_succeeded(response, 300)


__all__ = ["SyncExecutor"]
