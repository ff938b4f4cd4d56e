"""Main entry point for the SafePing sync pipeline."""

import asyncio
import logging
import sys
from dataclasses import dataclass

import aiohttp

from safeping.adapters.broadcasters import StatusBroadcaster
from safeping.adapters.config import AppConfig
from safeping.adapters.connectivity import ProbeConnectivityProvider
from safeping.adapters.notifications import LoggingNotifier
from safeping.adapters.storage import SqliteActionStore
from safeping.adapters.supabase import (
    SupabaseAuthFunctions,
    SupabaseHttpClient,
    SupabaseRealtimeFeed,
    SupabaseRestGateway,
)
from safeping.adapters.supabase.constants import REST_PATH
from safeping.application.services import (
    ActionQueue,
    CheckInService,
    ConnectivityMonitor,
    OfflineAuthManager,
    RetryPolicy,
    RetryScheduler,
    StatusAggregator,
    SyncEngine,
)

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """Every long-lived component of one running process."""

    store: SqliteActionStore
    queue: ActionQueue
    engine: SyncEngine
    scheduler: RetryScheduler
    connectivity: ProbeConnectivityProvider
    monitor: ConnectivityMonitor
    check_ins: CheckInService
    offline_auth: OfflineAuthManager
    broadcaster: StatusBroadcaster
    aggregator: StatusAggregator | None = None

    async def start(self) -> None:
        """Start components in dependency order."""
        await self.store.initialize()
        await self.connectivity.probe()
        self.monitor.start()
        await self.connectivity.start()
        await self.scheduler.start()
        if self.aggregator is not None:
            await self.aggregator.start()
        logger.info("SafePing pipeline started")

    async def stop(self) -> None:
        """Stop components in reverse order; the queue stays on disk."""
        if self.aggregator is not None:
            await self.aggregator.stop()
        await self.scheduler.stop()
        await self.monitor.stop()
        await self.connectivity.stop()
        logger.info("SafePing pipeline stopped")


def build_pipeline(config: AppConfig, session: aiohttp.ClientSession) -> Pipeline:
    """Wire the pipeline from configuration."""
    store = SqliteActionStore(config.queue_db_path)
    queue = ActionQueue(store)
    http = SupabaseHttpClient(session, config.supabase_url, config.supabase_anon_key)
    gateway = SupabaseRestGateway(http)

    retry_policy = RetryPolicy(
        max_retries=config.max_retries,
        base_delay_seconds=config.retry_base_delay_seconds,
        max_delay_seconds=config.retry_max_delay_seconds,
        jitter_seconds=config.retry_jitter_seconds,
    )
    engine = SyncEngine(
        queue,
        gateway,
        retry_policy=retry_policy,
        notifier=LoggingNotifier(),
        request_timeout_seconds=config.request_timeout_seconds,
    )

    connectivity = ProbeConnectivityProvider(
        session,
        probe_url=f"{config.supabase_url}{REST_PATH}/",
        headers={"apikey": config.supabase_anon_key},
        interval_seconds=config.connectivity_probe_interval_seconds,
    )
    scheduler = RetryScheduler(
        engine,
        connectivity,
        retry_policy=retry_policy,
        sync_interval_seconds=config.sync_interval_seconds,
    )
    monitor = ConnectivityMonitor(
        connectivity,
        scheduler,
        stabilization_delay_seconds=config.stabilization_delay_seconds,
    )
    offline_auth = OfflineAuthManager(SupabaseAuthFunctions(http), store, connectivity)

    async def replay_auth_requests() -> None:
        await offline_auth.sync_offline_queue()

    monitor.add_online_listener(replay_auth_requests)

    broadcaster = StatusBroadcaster()
    aggregator = None
    if config.organization_id:
        feed = SupabaseRealtimeFeed(
            session,
            config.realtime_url,
            config.supabase_anon_key,
            heartbeat_seconds=config.feed_heartbeat_seconds,
            reconnect_max_delay_seconds=config.feed_reconnect_max_delay_seconds,
        )
        aggregator = StatusAggregator(
            config.organization_id,
            gateway,
            feed,
            queue=queue,
            broadcaster=broadcaster,
            poll_interval_seconds=config.aggregator_poll_interval_seconds,
            reconcile_tolerance_seconds=config.reconcile_tolerance_seconds,
            cadence=config.check_in_cadence,
        )
        engine.add_listener(aggregator)

    check_ins = CheckInService(queue, drain_trigger=scheduler, projection=aggregator)

    return Pipeline(
        store=store,
        queue=queue,
        engine=engine,
        scheduler=scheduler,
        connectivity=connectivity,
        monitor=monitor,
        check_ins=check_ins,
        offline_auth=offline_auth,
        broadcaster=broadcaster,
        aggregator=aggregator,
    )


async def main() -> None:
    """Main application entry point."""
    config = AppConfig()

    try:
        config.load_overrides()
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if not config.organization_id:
        logger.info("No organization_id configured, running without the status aggregator")

    async with aiohttp.ClientSession() as session:
        pipeline = build_pipeline(config, session)
        await pipeline.start()
        try:
            await asyncio.Event().wait()
        finally:
            logger.info("Shutting down...")
            await pipeline.stop()


if __name__ == "__main__":
    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")
