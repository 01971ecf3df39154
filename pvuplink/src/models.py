"""
Pydantic models for metric samples, accumulator state and upload records.

- MetricSample: one named instantaneous reading from the metric source.
- AccumulatorState: the four running fields plus the next upload timestamp.
  Immutable; transitions in accumulator.py return new instances.
- UploadRecord: frozen snapshot taken at flush time, rendered to the
  PVOutput ``addstatus`` form fields.
- SinkStatus: parsed ``getstatus`` line used to seed the accumulators.

CHANGELOG:
- 2026-10-20: Hold energy as exact watt-minutes; fixed-point form values
- 2026-10-13: Add SinkStatus for startup seeding (STORY-006)
- 2026-10-12: Initial creation (STORY-002)

TODO:
- None
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

DATE_FORMAT = "%Y%m%d"
"""PVOutput date format (``d`` field and status line)."""

TIME_FORMAT = "%H:%M"
"""PVOutput time format (``t`` field and status line)."""

MINUTES_PER_HOUR = Decimal(60)

ENERGY_QUANTUM = Decimal("0.0001")
"""Wh precision of the uploaded ``v1``/``v3`` fields."""


class MetricSample(BaseModel):
    """A single named instantaneous metric.

    Attributes:
        name: Metric name, matched case-insensitively.
        value: Reading in engineering units (watts, volts).
    """

    name: str
    value: float


class AccumulatorState(BaseModel):
    """Running energy totals, per-interval peaks and the upload schedule.

    Energy is held in watt-minutes (power x refresh minutes), which is exact
    for every sample; the Wh view divides by 60 once, on read.

    Attributes:
        generated_watt_minutes: Generated energy since the last day reset.
        consumed_watt_minutes: Consumed energy since the last day reset.
        peak_power_generated: Highest generated power (W) this interval.
        peak_power_consumed: Highest consumed power (W) this interval.
        next_upload_at: Next 5-minute boundary at which a flush is due.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    generated_watt_minutes: Decimal = Decimal(0)
    consumed_watt_minutes: Decimal = Decimal(0)
    peak_power_generated: int = 0
    peak_power_consumed: int = 0
    next_upload_at: datetime

    @property
    def energy_generated(self) -> Decimal:
        """Generated energy in Wh."""
        return self.generated_watt_minutes / MINUTES_PER_HOUR

    @property
    def energy_consumed(self) -> Decimal:
        """Consumed energy in Wh."""
        return self.consumed_watt_minutes / MINUTES_PER_HOUR


class UploadRecord(BaseModel):
    """Point-in-time snapshot submitted to the sink on flush."""

    model_config = ConfigDict(frozen=True)

    upload_date: date
    upload_time: time
    energy_generated: Decimal
    power_generated: int
    energy_consumed: Decimal
    power_consumed: int
    voltage: Decimal

    def to_form(self) -> dict[str, str]:
        """Render the record as PVOutput ``addstatus`` form fields."""
        return {
            "d": self.upload_date.strftime(DATE_FORMAT),
            "t": self.upload_time.strftime(TIME_FORMAT),
            "v1": _fixed(self.energy_generated.quantize(ENERGY_QUANTUM)),
            "v2": str(self.power_generated),
            "v3": _fixed(self.energy_consumed.quantize(ENERGY_QUANTUM)),
            "v4": str(self.power_consumed),
            "v6": _fixed(self.voltage),
        }


def _fixed(value: Decimal) -> str:
    """Plain positional notation; PVOutput rejects exponents such as ``1E-5``."""
    return format(value, "f")


class SinkStatus(BaseModel):
    """Last status reported by the sink, as returned by ``getstatus``."""

    upload_date: date
    upload_time: time
    energy_generated: int
    energy_consumed: int
