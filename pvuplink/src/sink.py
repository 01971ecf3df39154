"""
Upload sinks: the real PVOutput client and a logging stand-in.

Both implement the :class:`UploadSink` protocol:

- fetch_status(): Return the raw ``getstatus`` line, or ``None`` when the
  sink has no notion of prior state. Raises ``httpx.HTTPError`` on
  transport failure or non-2xx status.
- add_status(record): Submit one UploadRecord. Returns ``True`` on HTTP 200,
  ``False`` on any other status or transport error. Never raises for
  network problems.

CHANGELOG:
- 2026-10-13: Add LoggingSink and build_sink (STORY-007)
- 2026-10-12: Initial creation (STORY-005)

TODO:
- None
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx

if TYPE_CHECKING:
    from pvuplink.src.config import UplinkSettings
    from pvuplink.src.models import UploadRecord

logger = logging.getLogger(__name__)

GET_STATUS_PATH = "/service/r2/getstatus.jsp"
ADD_STATUS_PATH = "/service/r2/addstatus.jsp"

_DEFAULT_TIMEOUT_S = 10.0


class UploadSink(Protocol):
    """Destination for aggregated status records."""

    async def fetch_status(self) -> str | None: ...

    async def add_status(self, record: UploadRecord) -> bool: ...


class PvOutputSink:
    """HTTPS client for the PVOutput status API.

    Every request carries the ``X-Pvoutput-Apikey`` and
    ``X-Pvoutput-SystemId`` headers and is bounded by *timeout_s*, so a hung
    upload is reported as a failure instead of stalling the ingest loop.

    Args:
        base_url: PVOutput base URL. Must start with ``https://``.
        api_key: PVOutput API key.
        system_id: PVOutput system id.
        timeout_s: Per-request timeout in seconds.

    Raises:
        ValueError: If *base_url* does not start with ``https://``.

    Usage::

        sink = PvOutputSink(
            base_url="https://pvoutput.org",
            api_key="key-123",
            system_id="4242",
        )
        ok = await sink.add_status(record)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        system_id: str,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
    ) -> None:
        if not base_url.lower().startswith("https://"):
            raise ValueError(f"PVOutput base URL must use HTTPS (got: '{base_url}').")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._system_id = system_id
        self._timeout_s = timeout_s

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch_status(self) -> str | None:
        """GET the last reported status line.

        Raises:
            httpx.HTTPError: On transport failure, timeout, or non-2xx status.
        """
        async with httpx.AsyncClient(verify=True, timeout=self._timeout_s) as client:
            response = await client.get(
                f"{self._base_url}{GET_STATUS_PATH}",
                headers=self._headers(),
            )
        response.raise_for_status()
        return response.text

    async def add_status(self, record: UploadRecord) -> bool:
        """POST *record* as a form-encoded ``addstatus`` request.

        Returns:
            ``True`` on HTTP 200, ``False`` otherwise.
        """
        form = record.to_form()
        try:
            async with httpx.AsyncClient(verify=True, timeout=self._timeout_s) as client:
                response = await client.post(
                    f"{self._base_url}{ADD_STATUS_PATH}",
                    data=form,
                    headers=self._headers(),
                )
        except httpx.HTTPError as exc:
            logger.error("Error updating PvOutput: request %s -> %s", form, exc)
            return False

        if response.status_code != 200:
            logger.error(
                "Error updating PvOutput (HTTP %d): request %s -> %s",
                response.status_code,
                form,
                response.text or "NO BODY",
            )
            return False

        logger.info("Uploaded status for %s %s", form["d"], form["t"])
        return True

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        return {
            "X-Pvoutput-Apikey": self._api_key,
            "X-Pvoutput-SystemId": self._system_id,
        }


class LoggingSink:
    """Stand-in sink used when uploads are disabled.

    Logs each record instead of sending it and reports no prior status.
    """

    async def fetch_status(self) -> str | None:
        return None

    async def add_status(self, record: UploadRecord) -> bool:
        logger.info("PvOutput disabled, would upload %s", record.to_form())
        return True


def build_sink(settings: UplinkSettings) -> UploadSink:
    """Return the real PVOutput sink when enabled, else the logging stand-in."""
    if settings.pvoutput_enabled:
        return PvOutputSink(
            base_url=settings.pvoutput_base_url,
            api_key=settings.pvoutput_api_key,
            system_id=settings.pvoutput_system_id,
            timeout_s=settings.request_timeout_s,
        )
    return LoggingSink()
