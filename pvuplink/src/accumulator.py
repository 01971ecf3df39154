"""
Pure accumulation and rollover logic for the PVOutput uplink.

Converts instantaneous power samples into watt-hour totals, tracks the peak
power seen in the current 5-minute interval, and decides when an upload is
due. Every function here is pure: state goes in, a new state (and possibly an
UploadRecord) comes out. No I/O, no clock.

Operations:
- initial_state(now): Align the schedule to the next 5-minute boundary.
- seed_state(state, status, today): Restore same-day totals from the sink.
- accumulate(state, samples, read_time, refresh_minutes): Add one sample set,
  returning the new state and the record to upload if a flush is due.
- parse_status(line): Parse a ``getstatus`` response line.

CHANGELOG:
- 2026-10-20: Accumulate exact watt-minutes instead of rounded Wh per sample
- 2026-10-13: Add seed_state and parse_status (STORY-006)
- 2026-10-12: Initial creation (STORY-003)

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal
from typing import TYPE_CHECKING

from pvuplink.src.config import UPLOAD_INTERVAL_MINUTES
from pvuplink.src.models import (
    DATE_FORMAT,
    MINUTES_PER_HOUR,
    TIME_FORMAT,
    AccumulatorState,
    SinkStatus,
    UploadRecord,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date

    from pvuplink.src.models import MetricSample

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

UPLOAD_INTERVAL = timedelta(minutes=UPLOAD_INTERVAL_MINUTES)

PRODUCTION_POWER = "solar.production.current"
CONSUMPTION_POWER = "solar.consumption.current"
PRODUCTION_VOLTAGE = "solar.production.voltage"

# Field positions in the comma-separated getstatus response.
_STATUS_DATE = 0
_STATUS_TIME = 1
_STATUS_GENERATED = 2
_STATUS_CONSUMED = 4


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def find_metric(samples: Sequence[MetricSample], name: str) -> Decimal:
    """Return the value of the first sample named *name*, or zero.

    Names are compared case-insensitively.
    """
    wanted = name.lower()
    for sample in samples:
        if sample.name.lower() == wanted:
            return Decimal(str(sample.value))
    return Decimal(0)


def watt_minutes(power: Decimal, refresh_minutes: int) -> Decimal:
    """Energy of a power reading held for *refresh_minutes*, in watt-minutes.

    A product of decimals is exact, so totals never drift; dividing by 60
    for Wh happens once, in :class:`AccumulatorState`.
    """
    return power * Decimal(refresh_minutes)


def _whole_watts(power: Decimal) -> int:
    return int(power.to_integral_value(rounding=ROUND_FLOOR))


# ---------------------------------------------------------------------------
# State transitions
# ---------------------------------------------------------------------------


def align_next_upload(now: datetime) -> datetime:
    """Return the first 5-minute boundary since midnight that is not before *now*."""
    boundary = now.replace(hour=0, minute=0, second=0, microsecond=0)
    while boundary < now:
        boundary += UPLOAD_INTERVAL
    return boundary


def initial_state(now: datetime) -> AccumulatorState:
    """Return zeroed accumulators scheduled for the next boundary after *now*."""
    return AccumulatorState(next_upload_at=align_next_upload(now))


def seed_state(
    state: AccumulatorState,
    status: SinkStatus,
    today: date,
) -> AccumulatorState:
    """Restore energy totals from the sink's last status when it is from *today*.

    A status from any other day leaves *state* untouched.
    """
    if status.upload_date != today:
        return state
    return state.model_copy(
        update={
            "generated_watt_minutes": Decimal(status.energy_generated)
            * MINUTES_PER_HOUR,
            "consumed_watt_minutes": Decimal(status.energy_consumed)
            * MINUTES_PER_HOUR,
        }
    )


def build_record(state: AccumulatorState, voltage: Decimal) -> UploadRecord:
    """Snapshot *state* as an UploadRecord stamped with the scheduled time."""
    return UploadRecord(
        upload_date=state.next_upload_at.date(),
        upload_time=state.next_upload_at.time(),
        energy_generated=state.energy_generated,
        power_generated=state.peak_power_generated,
        energy_consumed=state.energy_consumed,
        power_consumed=state.peak_power_consumed,
        voltage=voltage,
    )


def roll_over(state: AccumulatorState) -> AccumulatorState:
    """Advance the schedule by one interval and reset per the day rule.

    Crossing into a new calendar day zeroes energy totals and peaks;
    otherwise only the peaks are zeroed.
    """
    next_upload_at = state.next_upload_at + UPLOAD_INTERVAL
    if next_upload_at.date() != state.next_upload_at.date():
        return AccumulatorState(next_upload_at=next_upload_at)
    return state.model_copy(
        update={
            "peak_power_generated": 0,
            "peak_power_consumed": 0,
            "next_upload_at": next_upload_at,
        }
    )


def accumulate(
    state: AccumulatorState,
    samples: Sequence[MetricSample],
    read_time: datetime,
    refresh_minutes: int,
) -> tuple[AccumulatorState, UploadRecord | None]:
    """Fold one sample set into *state*.

    Energy is added and peaks updated first. If *read_time* is at or past
    ``next_upload_at`` the record for that boundary is built and the state is
    rolled over by exactly one interval, however late *read_time* is.

    Returns:
        ``(new_state, record)`` where *record* is ``None`` unless a flush is due.
    """
    production = find_metric(samples, PRODUCTION_POWER)
    consumption = find_metric(samples, CONSUMPTION_POWER)
    voltage = find_metric(samples, PRODUCTION_VOLTAGE)

    state = state.model_copy(
        update={
            "generated_watt_minutes": state.generated_watt_minutes
            + watt_minutes(production, refresh_minutes),
            "consumed_watt_minutes": state.consumed_watt_minutes
            + watt_minutes(consumption, refresh_minutes),
            "peak_power_generated": max(
                state.peak_power_generated, _whole_watts(production)
            ),
            "peak_power_consumed": max(
                state.peak_power_consumed, _whole_watts(consumption)
            ),
        }
    )

    if read_time < state.next_upload_at:
        return state, None

    record = build_record(state, voltage)
    return roll_over(state), record


# ---------------------------------------------------------------------------
# Status parsing
# ---------------------------------------------------------------------------


def parse_status(line: str) -> SinkStatus:
    """Parse a PVOutput ``getstatus`` response line.

    Expected layout: ``YYYYMMDD,HH:MM,<generated Wh>,<unused>,<consumed Wh>,...``

    Raises:
        ValueError: If the line has too few fields or any field is malformed.
    """
    fields = [field.strip() for field in line.strip().split(",")]
    if len(fields) <= _STATUS_CONSUMED:
        raise ValueError(
            f"Status line has {len(fields)} fields, expected at least "
            f"{_STATUS_CONSUMED + 1}: {line!r}"
        )
    return SinkStatus(
        upload_date=datetime.strptime(fields[_STATUS_DATE], DATE_FORMAT).date(),
        upload_time=datetime.strptime(fields[_STATUS_TIME], TIME_FORMAT).time(),
        energy_generated=int(fields[_STATUS_GENERATED]),
        energy_consumed=int(fields[_STATUS_CONSUMED]),
    )
