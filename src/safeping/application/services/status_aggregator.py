"""Status aggregator: live per-worker safety projection for the dashboard."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from safeping.application.services.status_derivation import (
    build_snapshot,
    compute_stats,
    latest_record,
)
from safeping.domain.contracts.optimistic_projection import OptimisticProjectionProtocol
from safeping.domain.contracts.sync_event_listener import SyncEventListenerProtocol
from safeping.domain.errors import SafePingError
from safeping.domain.models.activity import ActivityEntry
from safeping.domain.models.aggregator_view import AggregatorView
from safeping.domain.models.change_event import ChangeEvent, ChangeEventType
from safeping.domain.models.check_in_record import CheckInRecord
from safeping.domain.models.incident import Incident
from safeping.domain.models.queued_action import EmergencyPayload
from safeping.domain.models.timestamps import utc_now
from safeping.domain.models.worker_status import WorkerStatusSnapshot

if TYPE_CHECKING:
    from safeping.application.services.action_queue import ActionQueue
    from safeping.domain.contracts.status_broadcaster import StatusBroadcasterProtocol
    from safeping.domain.models.queued_action import QueuedAction
    from safeping.domain.models.sync_attempt_result import SyncAttemptResult
    from safeping.domain.ports.change_feed import ChangeFeed
    from safeping.domain.ports.snapshot_repository import SnapshotRepository

logger = logging.getLogger(__name__)

CHECK_INS_TABLE = "check_ins"
INCIDENTS_TABLE = "incidents"
RECENT_ACTIVITY_LIMIT = 10
DEFAULT_POLL_INTERVAL_SECONDS = 60.0
DEFAULT_RECONCILE_TOLERANCE_SECONDS = 5.0


class StatusAggregator(OptimisticProjectionProtocol, SyncEventListenerProtocol):
    """Maintains an eventually-consistent projection of worker status.

    Confirmed records come from polled snapshots and the change feed. Records
    rendered optimistically before the backend confirmed them are kept apart
    and dropped as soon as a matching confirmed record arrives, so each real
    check-in is shown once.

    Records the backend will never confirm are dropped when the sync engine
    reports them: check-ins that were rejected or ran out of retries, and
    emergencies, which are delivered as incidents rather than check-in rows.
    """

    def __init__(
        self,
        organization_id: str,
        repository: SnapshotRepository,
        feed: ChangeFeed,
        queue: ActionQueue | None = None,
        broadcaster: StatusBroadcasterProtocol | None = None,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        reconcile_tolerance_seconds: float = DEFAULT_RECONCILE_TOLERANCE_SECONDS,
        cadence: timedelta | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the aggregator.

        Args:
            organization_id: Organization whose workers are projected.
            repository: Source of polled snapshots.
            feed: Push subscription to row changes.
            queue: Local action queue; confirmed optimistic records are removed from it.
            broadcaster: Optional sink for updated views.
            poll_interval_seconds: Fallback polling interval.
            reconcile_tolerance_seconds: Timestamp window for matching optimistic records.
            cadence: Check-in cadence; safe records older than this count as no data.
            clock: Source of the current time.
        """
        self.organization_id = organization_id
        self.repository = repository
        self.feed = feed
        self.queue = queue
        self.broadcaster = broadcaster
        self.poll_interval_seconds = poll_interval_seconds
        self.reconcile_tolerance = timedelta(seconds=reconcile_tolerance_seconds)
        self.cadence = cadence
        self.clock = clock
        self.broadcast_topic = f"organization:{organization_id}"

        self._records: dict[str, dict[str, CheckInRecord]] = {}
        self._optimistic: dict[str, CheckInRecord] = {}
        self._incidents: dict[str, Incident] = {}
        self._snapshots: dict[str, WorkerStatusSnapshot] = {}
        self._activity: list[ActivityEntry] = []
        self._last_updated: datetime | None = None
        self._task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._subscribed = False

    async def start(self) -> None:
        """Load the initial snapshot, subscribe to the feed and start polling."""
        if self._task is not None and not self._task.done():
            logger.warning("Status aggregator already running")
            return

        await self.refresh()
        if not self._subscribed:
            self.feed.subscribe(CHECK_INS_TABLE, self.organization_id, self.handle_check_in_event)
            self.feed.subscribe(INCIDENTS_TABLE, self.organization_id, self.handle_incident_event)
            self.feed.on_connection_change(self._on_connection_change)
            self._subscribed = True
        await self.feed.start()
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(f"Started status aggregator for organization {self.organization_id}")

    async def stop(self) -> None:
        """Stop polling and close the feed."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.info("Status aggregator polling cancelled")
        await self.feed.stop()
        for task in list(self._background):
            task.cancel()
        self._background.clear()
        logger.info("Stopped status aggregator")

    @property
    def is_connected(self) -> bool:
        """Whether the change feed is live; False means the view may be stale."""
        return self.feed.is_connected

    @property
    def reconnect_attempts(self) -> int:
        """Reconnect attempts of the change feed since it was last healthy."""
        return self.feed.reconnect_attempts

    @property
    def workers(self) -> dict[str, WorkerStatusSnapshot]:
        """Current snapshot per worker."""
        return dict(self._snapshots)

    @property
    def recent_activity(self) -> list[ActivityEntry]:
        """Newest-first recent activity."""
        return list(self._activity)

    @property
    def active_incidents(self) -> list[Incident]:
        """Incidents that still need attention, newest first."""
        return sorted(self._incidents.values(), key=lambda i: i.created_at, reverse=True)

    @property
    def view(self) -> AggregatorView:
        """Read-only projection for the presentation layer."""
        return AggregatorView(
            organization_id=self.organization_id,
            workers=self.workers,
            stats=compute_stats(self._snapshots.values(), self._incidents.values()),
            recent_activity=self.recent_activity,
            is_connected=self.is_connected,
            last_updated=self._last_updated,
        )

    async def refresh(self) -> bool:
        """Re-fetch snapshots, replacing the confirmed state.

        Returns:
            True if the snapshot was loaded, False if the previous state was kept.
        """
        try:
            check_ins = await self.repository.load_latest_check_ins(self.organization_id)
            incidents = await self.repository.load_active_incidents(self.organization_id)
        except SafePingError as e:
            logger.warning(f"Snapshot refresh failed, keeping stale state: {e}")
            return False

        self._records = {}
        for record in check_ins:
            self._records.setdefault(record.user_id, {})[record.id] = record
            self._reconcile(record)
        self._incidents = {i.id: i for i in incidents if i.is_active}

        for record in check_ins:
            self._add_activity(self._check_in_activity(record))
        for incident in self._incidents.values():
            self._add_activity(self._incident_activity(incident))

        self._recompute_all()
        self._last_updated = self.clock()
        logger.info(
            f"Loaded snapshot for organization {self.organization_id}: "
            f"{len(self._snapshots)} workers, {len(self._incidents)} active incidents"
        )
        self._publish()
        return True

    def add_optimistic(self, record: CheckInRecord) -> None:
        """Render a local record before the backend has confirmed it."""
        if record.organization_id != self.organization_id:
            return
        self._optimistic[record.id] = record
        self._add_activity(self._check_in_activity(record))
        self._recompute(record.user_id)
        self._publish()

    def on_synced(self, action: QueuedAction, result: SyncAttemptResult) -> None:
        """Drop the optimistic copy of a delivered emergency.

        A delivered emergency shows up through the incidents feed, never as a
        check-in row, so nothing else would reconcile it.
        """
        if isinstance(action.payload, EmergencyPayload):
            self._drop_optimistic(action.id, "delivered as an incident")

    def on_failed(self, action: QueuedAction, result: SyncAttemptResult) -> None:
        """Drop the optimistic copy of an action the backend will never confirm."""
        self._drop_optimistic(action.id, f"failed ({result.failure_reason})")

    def handle_check_in_event(self, event: ChangeEvent) -> None:
        """Apply one ``check_ins`` change to the projection."""
        try:
            if event.event_type is ChangeEventType.DELETE:
                changed = self._apply_check_in_delete(event)
            elif event.event_type is ChangeEventType.UPDATE:
                changed = self._apply_check_in_update(event)
            else:
                changed = self._apply_check_in_insert(event)
        except (KeyError, ValueError) as e:
            logger.warning(f"Ignoring malformed {event.event_type} event on {event.table}: {e}")
            return
        if changed:
            self._publish()

    def handle_incident_event(self, event: ChangeEvent) -> None:
        """Apply one ``incidents`` change to the projection."""
        try:
            if event.event_type is ChangeEventType.DELETE:
                removed = self._incidents.pop(str(event.old.get("id")), None)
                changed = removed is not None
            else:
                incident = Incident.from_row(event.new)
                if incident.organization_id != self.organization_id:
                    return
                if incident.is_active:
                    is_new = incident.id not in self._incidents
                    self._incidents[incident.id] = incident
                    if is_new:
                        self._add_activity(self._incident_activity(incident))
                else:
                    self._incidents.pop(incident.id, None)
                changed = True
        except (KeyError, ValueError) as e:
            logger.warning(f"Ignoring malformed {event.event_type} event on {event.table}: {e}")
            return
        if changed:
            self._last_updated = self.clock()
            self._publish()

    def _apply_check_in_insert(self, event: ChangeEvent) -> bool:
        record = CheckInRecord.from_row(event.new)
        if record.organization_id != self.organization_id:
            return False
        self._reconcile(record)
        self._records.setdefault(record.user_id, {})[record.id] = record
        self._add_activity(self._check_in_activity(record))
        self._recompute(record.user_id)
        return True

    def _apply_check_in_update(self, event: ChangeEvent) -> bool:
        record_id = str(event.new["id"])
        existing = self._find_record(record_id)
        if existing is None:
            # Never seen it (missed the insert); treat as an upsert.
            return self._apply_check_in_insert(event)

        merged = CheckInRecord.from_row({**existing.to_row(), **event.new})
        if merged.user_id != existing.user_id:
            self._records.get(existing.user_id, {}).pop(record_id, None)
            self._recompute(existing.user_id)
        self._records.setdefault(merged.user_id, {})[record_id] = merged
        self._recompute(merged.user_id)
        return True

    def _apply_check_in_delete(self, event: ChangeEvent) -> bool:
        record_id = str(event.old.get("id"))
        existing = self._find_record(record_id)
        if existing is None:
            return False
        del self._records[existing.user_id][record_id]
        # Falls back to the next most recent record, if any.
        self._recompute(existing.user_id)
        return True

    def _find_record(self, record_id: str) -> CheckInRecord | None:
        for records in self._records.values():
            if record_id in records:
                return records[record_id]
        return None

    def _reconcile(self, confirmed: CheckInRecord) -> None:
        """Drop the optimistic copy of a confirmed record, if one is shown."""
        match = self._optimistic.get(confirmed.id)
        if match is None:
            candidates = [
                r
                for r in self._optimistic.values()
                if r.user_id == confirmed.user_id
                and r.status is confirmed.status
                and abs(r.created_at - confirmed.created_at) <= self.reconcile_tolerance
            ]
            match = min(
                candidates,
                key=lambda r: abs(r.created_at - confirmed.created_at),
                default=None,
            )
        if match is None:
            return

        del self._optimistic[match.id]
        self._activity = [a for a in self._activity if a.id != match.id]
        logger.debug(f"Optimistic record {match.id} confirmed as {confirmed.id}")
        if self.queue is not None:
            self._spawn(self._remove_from_queue(match.id))
        self._recompute(match.user_id)

    def _drop_optimistic(self, record_id: str, reason: str) -> None:
        record = self._optimistic.pop(record_id, None)
        if record is None:
            return
        self._activity = [a for a in self._activity if a.id != record_id]
        logger.info(f"Withdrew optimistic record {record_id} of user {record.user_id}: {reason}")
        self._recompute(record.user_id)
        self._publish()

    async def _remove_from_queue(self, action_id: str) -> None:
        try:
            await self.queue.remove(action_id)
        except SafePingError as e:
            logger.warning(f"Could not remove confirmed action {action_id} from queue: {e}")

    def _recompute(self, user_id: str) -> None:
        now = self.clock()
        candidates = list(self._records.get(user_id, {}).values())
        candidates += [r for r in self._optimistic.values() if r.user_id == user_id]
        self._snapshots[user_id] = build_snapshot(
            user_id, latest_record(candidates), now, self.cadence
        )
        self._last_updated = now

    def _recompute_all(self) -> None:
        users = set(self._records) | {r.user_id for r in self._optimistic.values()}
        # Workers seen before keep a row even when their records are gone.
        users |= set(self._snapshots)
        for user_id in users:
            self._recompute(user_id)

    def _add_activity(self, entry: ActivityEntry) -> None:
        entries = [a for a in self._activity if a.id != entry.id]
        entries.append(entry)
        entries.sort(key=lambda a: a.timestamp, reverse=True)
        self._activity = entries[:RECENT_ACTIVITY_LIMIT]

    @staticmethod
    def _check_in_activity(record: CheckInRecord) -> ActivityEntry:
        return ActivityEntry(
            id=record.id,
            type="check_in",
            message=f"Worker {record.user_id} checked in as {record.status}",
            timestamp=record.created_at,
            status=record.status.value,
        )

    @staticmethod
    def _incident_activity(incident: Incident) -> ActivityEntry:
        title = incident.title or "Incident"
        return ActivityEntry(
            id=incident.id,
            type="incident",
            message=f"{title} reported",
            timestamp=incident.created_at,
            status=incident.status,
        )

    def _on_connection_change(self, connected: bool) -> None:
        if connected:
            logger.info("Change feed connected, refreshing to catch up on missed events")
            self._spawn(self.refresh())
        else:
            logger.warning("Change feed disconnected, relying on polling until it reconnects")
            self._publish()

    async def _poll_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.poll_interval_seconds)
                await self.refresh()
        except asyncio.CancelledError:
            logger.info("Status aggregator polling cancelled")
            raise

    def _publish(self) -> None:
        if self.broadcaster is None:
            return
        self._spawn(self._broadcast(self.view))

    async def _broadcast(self, view: AggregatorView) -> None:
        try:
            await self.broadcaster.broadcast_update(self.broadcast_topic, view)
        except Exception as e:
            logger.error(f"Failed to broadcast status update: {e}", exc_info=True)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
