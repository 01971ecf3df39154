"""
Uplink daemon main loop.

Runs a single asyncio loop that, every ``refresh_minutes``:
1. fetches the current metric list from the HttpMetricSource, and
2. hands it to EnergyScheduler.ingest(), which uploads to PVOutput when a
   5-minute boundary has passed.

Fetch and ingest run back to back in one task, so no two ingest calls ever
overlap. An exception in one iteration is logged and does not stop the loop.
Graceful shutdown on SIGTERM/SIGINT sets a shared asyncio.Event; the loop
finishes its current iteration and exits.

Structured JSON logging is used for all events. A HealthWriter instance
tracks last_ingest_ts, last_upload_ts and next_upload_at.

CHANGELOG:
- 2026-10-20: Record ingest in health file only when a sample set was ingested
- 2026-10-14: Write health file after each iteration (STORY-009)
- 2026-10-12: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import hashlib
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pvuplink.src.health import HealthWriter

if TYPE_CHECKING:
    from pvuplink.src.scheduler import EnergyScheduler
    from pvuplink.src.source import HttpMetricSource

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


def configure_logging() -> None:
    """Configure structured JSON logging for the uplink daemon.

    Sets up the root logger with a JSON-formatted handler writing to stderr.
    """

    class _JsonFormatter(logging.Formatter):
        """Minimal JSON log formatter."""

        def format(self, record: logging.LogRecord) -> str:
            log_entry = {
                "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
            }
            if record.exc_info and record.exc_info[1] is not None:
                log_entry["exception"] = self.formatException(record.exc_info)
            return json.dumps(log_entry)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.INFO)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible token fingerprint for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup with the API key masked.

    Args:
        settings: An UplinkSettings instance (or any object with the same attrs).
    """
    logger.info(
        "Uplink daemon starting with config: "
        "refresh_minutes=%s, pvoutput_enabled=%s, pvoutput_base_url=%s, "
        "pvoutput_system_id=%s, request_timeout_s=%s, metrics_url=%s, "
        "health_path=%s, pvoutput_api_key_masked=%s",
        settings.refresh_minutes,  # type: ignore[union-attr]
        settings.pvoutput_enabled,  # type: ignore[union-attr]
        settings.pvoutput_base_url,  # type: ignore[union-attr]
        settings.pvoutput_system_id,  # type: ignore[union-attr]
        settings.request_timeout_s,  # type: ignore[union-attr]
        settings.metrics_url,  # type: ignore[union-attr]
        settings.health_path,  # type: ignore[union-attr]
        _masked_token(settings.pvoutput_api_key),  # type: ignore[union-attr]
    )


def _local_now() -> datetime:
    """Local wall-clock time; PVOutput reads ``d``/``t`` as local time."""
    return datetime.now()


# ---------------------------------------------------------------------------
# Single-iteration function (easily testable)
# ---------------------------------------------------------------------------


async def _ingest_once(
    *,
    source: HttpMetricSource,
    scheduler: EnergyScheduler,
    health: HealthWriter | None,
) -> None:
    """Fetch one metric list and ingest it.

    Catches all exceptions so that the caller's loop is never broken.

    Args:
        source: The metric source.
        scheduler: The accumulator/scheduler.
        health: HealthWriter instance, or None to skip health writes.
    """
    ingested = False
    uploaded = False
    try:
        samples = await source.fetch()
        if samples is not None:
            uploaded = await scheduler.ingest(samples, _local_now())
            ingested = True
        else:
            logger.warning("Metric source returned None, skipping ingest")
    except Exception:
        logger.error("Ingest cycle error", exc_info=True)

    if health is not None:
        try:
            if ingested:
                health.record_ingest()
            if uploaded:
                health.record_upload()
            health.set_next_upload(scheduler.state.next_upload_at)
        except Exception:
            logger.warning("Failed to write health file", exc_info=True)


# ---------------------------------------------------------------------------
# Loop runner
# ---------------------------------------------------------------------------


async def run_loop(
    *,
    source: HttpMetricSource,
    scheduler: EnergyScheduler,
    refresh_interval_s: float,
    shutdown_event: asyncio.Event,
    health: HealthWriter | None = None,
) -> None:
    """Run the fetch-ingest loop until shutdown_event is set.

    Args:
        source: The metric source.
        scheduler: The accumulator/scheduler.
        refresh_interval_s: Seconds between iterations.
        shutdown_event: Event to signal graceful shutdown.
        health: HealthWriter instance, or None to skip health writes.
    """
    logger.info("Ingest loop started (interval=%ss)", refresh_interval_s)
    while not shutdown_event.is_set():
        await _ingest_once(source=source, scheduler=scheduler, health=health)
        # Use wait with timeout so we can check shutdown between sleeps
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(
                shutdown_event.wait(),
                timeout=refresh_interval_s,
            )
    logger.info("Ingest loop stopped")


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build components, run the loop.

    Sets up SIGTERM/SIGINT handlers to trigger graceful shutdown.
    """
    configure_logging()

    from pvuplink.src.config import UplinkSettings
    from pvuplink.src.scheduler import EnergyScheduler
    from pvuplink.src.sink import build_sink
    from pvuplink.src.source import HttpMetricSource

    settings = UplinkSettings()
    log_config_summary(settings)

    shutdown_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda: _handle_signal(shutdown_event),
        )

    source = HttpMetricSource(
        url=settings.metrics_url,
        timeout_s=settings.request_timeout_s,
    )

    now = _local_now()
    scheduler = EnergyScheduler(
        sink=build_sink(settings),
        refresh_minutes=settings.refresh_minutes,
        now=now,
    )
    await scheduler.initialize(now)
    logger.info("First upload scheduled for %s", scheduler.state.next_upload_at)

    await run_loop(
        source=source,
        scheduler=scheduler,
        refresh_interval_s=settings.refresh_minutes * 60,
        shutdown_event=shutdown_event,
        health=HealthWriter(settings.health_path),
    )
    logger.info("Shutdown complete")


def _handle_signal(shutdown_event: asyncio.Event) -> None:
    """Handle SIGTERM/SIGINT by setting the shutdown event."""
    logger.info("Received shutdown signal, initiating graceful shutdown")
    shutdown_event.set()


def main() -> None:
    """Synchronous entrypoint for the uplink daemon."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
