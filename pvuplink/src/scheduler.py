"""
Energy accumulator and uplink scheduler.

EnergyScheduler owns the single AccumulatorState instance and the upload
sink. It delegates every state transition to the pure functions in
accumulator.py and performs the I/O around them:

- initialize(now): Align the schedule and best-effort seed same-day totals
  from the sink's last status.
- ingest(samples, read_time): Accumulate one sample set and, when the
  5-minute boundary has passed, upload the record and roll over.

Calls must be serialized by the caller; the state has no locking. Nothing
raised by the sink or by a malformed sample escapes ingest().

CHANGELOG:
- 2026-10-13: Seed accumulators from sink status on initialize (STORY-006)
- 2026-10-12: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from pvuplink.src.accumulator import accumulate, initial_state, parse_status, seed_state

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from pvuplink.src.models import AccumulatorState, MetricSample
    from pvuplink.src.sink import UploadSink

logger = logging.getLogger(__name__)


class EnergyScheduler:
    """Stateful shell around the pure accumulator.

    Args:
        sink: Where flushed records are sent.
        refresh_minutes: Sampling cadence used for the Wh conversion.
        now: Initial alignment point. ``initialize()`` realigns it, so this
            only matters when the scheduler is used without initializing.
    """

    def __init__(
        self,
        *,
        sink: UploadSink,
        refresh_minutes: int,
        now: datetime,
    ) -> None:
        self._sink = sink
        self._refresh_minutes = refresh_minutes
        self._state = initial_state(now)

    @property
    def state(self) -> AccumulatorState:
        """Current accumulator state (immutable snapshot)."""
        return self._state

    async def initialize(self, now: datetime) -> None:
        """Align the upload schedule to *now* and seed from the sink.

        A transport or parse failure while reading the sink's status is
        logged and the accumulators stay at zero.
        """
        self._state = initial_state(now)

        try:
            line = await self._sink.fetch_status()
        except httpx.HTTPError as exc:
            logger.error("Error reading PvOutput status: %s", exc)
            return

        if not line:
            logger.info("No previous PvOutput status, starting from zero")
            return

        try:
            status = parse_status(line)
        except ValueError as exc:
            logger.error("Error parsing PvOutput status: %s", exc)
            return

        logger.info(
            "PvOutput was last updated at %s %s",
            status.upload_date,
            status.upload_time,
        )
        seeded = seed_state(self._state, status, now.date())
        if seeded is not self._state:
            logger.warning(
                "Setting accumulators to G:%s and C:%s, some updates may be "
                "missing. Next update will be %s",
                seeded.energy_generated,
                seeded.energy_consumed,
                seeded.next_upload_at,
            )
        self._state = seeded

    async def ingest(
        self,
        samples: Sequence[MetricSample],
        read_time: datetime,
    ) -> bool:
        """Accumulate *samples* read at *read_time*, flushing when due.

        Returns:
            ``True`` if a record was flushed and the sink accepted it,
            ``False`` otherwise (no flush due, bad sample, or upload failure).
        """
        try:
            state, record = accumulate(
                self._state, samples, read_time, self._refresh_minutes
            )
        except (ArithmeticError, ValueError):
            logger.error("Discarding unusable sample set: %s", samples, exc_info=True)
            return False

        self._state = state
        if record is None:
            return False

        logger.info(
            "dt=%s %s v1=%s v2=%s v3=%s v4=%s v6=%s",
            record.upload_date,
            record.upload_time,
            record.energy_generated,
            record.power_generated,
            record.energy_consumed,
            record.power_consumed,
            record.voltage,
        )

        try:
            return await self._sink.add_status(record)
        except Exception:
            logger.error("Upload of %s failed", record.to_form(), exc_info=True)
            return False
