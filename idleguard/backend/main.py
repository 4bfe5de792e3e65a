
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import time
from datetime import datetime
from typing import NoReturn

import uvicorn

from . import pipeline
from .aggregation.latest import LatestSampleStore
from .alerts.models import Incident
from .alerts.notifier import LogNotifier, WebhookNotifier
from .api.main import (
    create_app,
    set_engine,
    set_pipeline_stats,
    set_repository,
    set_threshold_store,
)
from .api.ws_manager import ws_manager
from .config import settings
from .engine.engine import ThreatEngine
from .engine.models import NotificationRequest
from .engine.ticker import Ticker
from .metrics import METRICS
from .pipeline import init_queues
from .sessions import SessionTracker, SleepSchedule
from .sources import SystemMetricSource
from .storage import Database, IncidentRepository
from .storage.migrations import apply_migrations
from .thresholds import ThresholdStore

logger = logging.getLogger("idleguard.main")

_SLEEP_GUARD_INTERVAL = 30.0


# ---------------------------------------------------------------------------
# Incident consumer — incident_queue → DB (+ Sleep Guard session)
# ---------------------------------------------------------------------------

async def incident_consumer(
    repo: IncidentRepository,
    tracker: SessionTracker,
    shutdown_event: asyncio.Event,
) -> None:
    logger.info("Incident consumer started")
    while not shutdown_event.is_set():
        try:
            incident: Incident = await asyncio.wait_for(
                pipeline.incident_queue.get(), timeout=0.5
            )
            pipeline.incident_queue.task_done()
            repo.save_incident(incident.to_dict())
            tracker.record_incident(incident)
        except asyncio.TimeoutError:
            continue
        except asyncio.CancelledError:
            break
    logger.info("Incident consumer exiting")


# ---------------------------------------------------------------------------
# Notification consumer — notification_queue → notifiers + /ws/alerts
# ---------------------------------------------------------------------------

async def notification_consumer(
    notifiers: list,
    shutdown_event: asyncio.Event,
) -> None:
    logger.info("Notification consumer started (%d notifier(s))", len(notifiers))
    while not shutdown_event.is_set():
        try:
            request: NotificationRequest = await asyncio.wait_for(
                pipeline.notification_queue.get(), timeout=0.5
            )
            pipeline.notification_queue.task_done()
            for notifier in notifiers:
                try:
                    await notifier.send(request)
                except Exception as exc:
                    logger.error("Notifier %r failed: %s", notifier, exc)
            await ws_manager.broadcast("alerts", request.to_dict())
        except asyncio.TimeoutError:
            continue
        except asyncio.CancelledError:
            break
    logger.info("Notification consumer exiting")


# ---------------------------------------------------------------------------
# Periodic tasks
# ---------------------------------------------------------------------------

async def status_broadcaster(
    engine: ThreatEngine,
    shutdown_event: asyncio.Event,
    interval: float,
) -> None:
    last_sent = 0.0
    while not shutdown_event.is_set():
        await asyncio.sleep(interval)
        if ws_manager.connection_count("status") == 0:
            continue
        status = engine.status()
        if status.timestamp == last_sent:
            continue
        last_sent = status.timestamp
        await ws_manager.broadcast("status", status.to_dict())


async def sleep_guard(
    engine: ThreatEngine,
    tracker: SessionTracker,
    schedule: SleepSchedule,
    repo: IncidentRepository,
    shutdown_event: asyncio.Event,
    interval: float = _SLEEP_GUARD_INTERVAL,
) -> None:
    logger.info("Sleep Guard enabled — %r", schedule)
    while not shutdown_event.is_set():
        status = engine.status()
        finished = tracker.apply_schedule(
            schedule,
            datetime.now(),
            time.time(),
            battery=status.snapshot.battery_level_percent,
        )
        if finished is not None:
            repo.save_session(finished.to_dict())
        elif tracker.active and status.timestamp:
            tracker.record(status)
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue


async def stats_logger(
    engine: ThreatEngine,
    shutdown_event: asyncio.Event,
    interval: float = 60.0,
) -> None:
    while not shutdown_event.is_set():
        await asyncio.sleep(interval)
        status = engine.status()
        logger.info(
            "STATUS score=%d level=%s idle=%s | engine=%s sampler=%s ws=%s",
            status.score, status.level.value, status.is_idle,
            engine.stats, METRICS.as_dict(), ws_manager.all_counts(),
        )


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

async def run(tick_interval: float, api_enabled: bool) -> None:
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    init_queues(
        incident_size=settings.INCIDENT_QUEUE_SIZE,
        notification_size=settings.NOTIFICATION_QUEUE_SIZE,
    )

    def _signal_handler(_signum, _frame) -> None:
        logger.info("Shutdown signal received")
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    # Storage
    db = Database(settings.DB_PATH)
    db.init_schema()
    apply_migrations(db)
    repo = IncidentRepository(db)
    thresholds = ThresholdStore(settings.THRESHOLDS_PATH)

    # Metrics
    store = LatestSampleStore()
    sampler = SystemMetricSource(
        store,
        interval=settings.SAMPLE_INTERVAL_SECONDS,
        battery_history_seconds=settings.BATTERY_HISTORY_SECONDS,
    )

    # Engine
    engine = ThreatEngine.from_settings(
        store,
        thresholds,
        settings,
        incident_sink=lambda incident: pipeline.offer(pipeline.incident_queue, incident),
        notification_sink=lambda request: pipeline.offer(pipeline.notification_queue, request),
    )
    ticker = Ticker(engine.tick, interval=tick_interval, name="engine")

    webhook = WebhookNotifier(settings.WEBHOOK_URL, timeout=settings.WEBHOOK_TIMEOUT_SECONDS)
    notifiers: list = [LogNotifier()]
    if webhook.enabled:
        notifiers.append(webhook)

    tracker = SessionTracker()

    tasks = [
        asyncio.create_task(sampler.run(shutdown_event),                 name="sampler"),
        asyncio.create_task(incident_consumer(repo, tracker, shutdown_event), name="incidents"),
        asyncio.create_task(notification_consumer(notifiers, shutdown_event), name="notifications"),
        asyncio.create_task(status_broadcaster(engine, shutdown_event, tick_interval), name="status_ws"),
        asyncio.create_task(stats_logger(engine, shutdown_event),         name="stats"),
    ]
    if settings.SLEEP_GUARD_ENABLED:
        schedule = SleepSchedule.from_clock(settings.SLEEP_GUARD_START, settings.SLEEP_GUARD_END)
        tasks.append(asyncio.create_task(
            sleep_guard(engine, tracker, schedule, repo, shutdown_event), name="sleep_guard",
        ))

    uv_server: uvicorn.Server | None = None
    if api_enabled:
        set_repository(repo)
        set_engine(engine)
        set_threshold_store(thresholds)
        set_pipeline_stats({"ticker": ticker.stats, "webhook": webhook.stats})

        uv_config = uvicorn.Config(
            create_app(),
            host=settings.API_HOST,
            port=settings.API_PORT,
            log_level="warning",
            loop="none",
        )
        uv_server = uvicorn.Server(uv_config)
        tasks.append(asyncio.create_task(uv_server.serve(), name="api"))

    engine.start(time.time())
    ticker.start()

    logger.info(
        "IdleGuard running — tick=%.1fs idle>=%.0fs API=%s",
        tick_interval,
        settings.IDLE_THRESHOLD_SECONDS,
        f"http://{settings.API_HOST}:{settings.API_PORT}" if api_enabled else "off",
    )

    await shutdown_event.wait()

    await ticker.stop()
    engine.stop(time.time())

    finished = tracker.end(time.time(), engine.status().snapshot.battery_level_percent)
    if finished is not None:
        repo.save_session(finished.to_dict())

    if uv_server is not None:
        uv_server.should_exit = True
    for t in tasks:
        if t.get_name() != "api":
            t.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    await ws_manager.close_all()
    await webhook.close()
    db.close()
    logger.info("Final stats — engine=%s sampler=%s", engine.stats, METRICS.as_dict())
    logger.info("IdleGuard stopped cleanly")


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="IdleGuard — idle device anomaly monitor")
    parser.add_argument(
        "--tick-interval", type=float, default=settings.TICK_INTERVAL_SECONDS,
        help="seconds between engine ticks",
    )
    parser.add_argument(
        "--log-level", default=settings.LOG_LEVEL.upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    parser.add_argument(
        "--no-api", action="store_true",
        help="run without the HTTP / WebSocket server",
    )
    return parser.parse_args()


def main() -> NoReturn:
    args = _parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    if args.tick_interval <= 0:
        print(f"ERROR: --tick-interval must be positive, got {args.tick_interval}", file=sys.stderr)
        sys.exit(1)

    asyncio.run(run(
        tick_interval=args.tick_interval,
        api_enabled=settings.API_ENABLED and not args.no_api,
    ))
    sys.exit(0)


if __name__ == "__main__":
    main()
