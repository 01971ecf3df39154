"""
PVOutput uplink daemon package.

Reads instantaneous solar production/consumption metrics, accumulates them
into watt-hour totals, and uploads one aggregated status to PVOutput on every
5-minute boundary.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""
