"""
Health file writer for the uplink daemon.

Writes a JSON health file at a configurable path with three fields:
- last_ingest_ts: ISO timestamp of the most recent sample set handed to
  the scheduler (failed or empty fetches do not count).
- last_upload_ts: ISO timestamp of the most recent accepted upload.
- next_upload_at: ISO timestamp of the next scheduled 5-minute boundary.

The file is rewritten on every state change, providing a simple liveness
signal that Docker HEALTHCHECK or monitoring can inspect.

CHANGELOG:
- 2026-10-14: Add next_upload_at field (STORY-009)
- 2026-10-12: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path


class HealthWriter:
    """Writes uplink health status to a JSON file.

    Each mutating method updates the in-memory state and immediately
    rewrites the health file so it always reflects the latest status.

    Args:
        path: Filesystem path for the health JSON file. Accepts str or Path.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._last_ingest_ts: str | None = None
        self._last_upload_ts: str | None = None
        self._next_upload_at: str | None = None

    def record_ingest(self) -> None:
        """Record an ingest event and write health file."""
        self._last_ingest_ts = datetime.now(tz=UTC).isoformat()
        self._write()

    def record_upload(self) -> None:
        """Record an accepted upload and write health file."""
        self._last_upload_ts = datetime.now(tz=UTC).isoformat()
        self._write()

    def set_next_upload(self, next_upload_at: datetime) -> None:
        """Update the scheduled upload time and write health file."""
        self._next_upload_at = next_upload_at.isoformat()
        self._write()

    def _write(self) -> None:
        data = {
            "last_ingest_ts": self._last_ingest_ts,
            "last_upload_ts": self._last_upload_ts,
            "next_upload_at": self._next_upload_at,
        }
        self.path.write_text(json.dumps(data))
