"""
Uplink daemon configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded credentials.

CHANGELOG:
- 2026-10-13: Require API key and system id only when the real sink is enabled
- 2026-10-12: Initial creation (STORY-001)

TODO:
- None
"""

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

UPLOAD_INTERVAL_MINUTES = 5
"""PVOutput's minimum status interval; uploads land on these boundaries."""


class UplinkSettings(BaseSettings):
    """Uplink daemon configuration.

    Attributes:
        refresh_minutes: Sampling cadence in minutes. Each sample's power is
            assumed constant over this period when converting to Wh.
        pvoutput_enabled: Upload to PVOutput when True, otherwise only log
            what would have been uploaded.
        pvoutput_base_url: PVOutput base URL (must be HTTPS).
        pvoutput_api_key: PVOutput API key (``X-Pvoutput-Apikey``).
        pvoutput_system_id: PVOutput system id (``X-Pvoutput-SystemId``).
        request_timeout_s: Timeout for every outbound HTTP request.
        metrics_url: Endpoint returning the current metric samples.
        health_path: Filesystem path for the JSON health file.
    """

    refresh_minutes: int = 1
    pvoutput_enabled: bool = False
    pvoutput_base_url: str = "https://pvoutput.org"
    pvoutput_api_key: str = ""
    pvoutput_system_id: str = ""
    request_timeout_s: float = 10.0
    metrics_url: str
    health_path: str = "/data/health.json"

    @field_validator("refresh_minutes")
    @classmethod
    def refresh_minutes_must_fit_upload_interval(cls, v: int) -> int:
        """Validate the refresh period is between 1 minute and one upload interval."""
        if v < 1 or v > UPLOAD_INTERVAL_MINUTES:
            raise ValueError(
                f"REFRESH_MINUTES must be >= 1 and <= {UPLOAD_INTERVAL_MINUTES}"
            )
        return v

    @field_validator("pvoutput_base_url")
    @classmethod
    def pvoutput_base_url_must_be_https(cls, v: str) -> str:
        """Validate that the PVOutput base URL uses HTTPS.

        The API key travels in a request header, so plain HTTP is rejected
        at startup.
        """
        if not v.startswith("https://"):
            raise ValueError(
                f"PVOUTPUT_BASE_URL must use HTTPS (got: '{v[:20]}...')"
            )
        return v.rstrip("/")

    @field_validator("request_timeout_s")
    @classmethod
    def request_timeout_must_be_positive(cls, v: float) -> float:
        """Validate the HTTP timeout is positive."""
        if v <= 0:
            raise ValueError("REQUEST_TIMEOUT_S must be > 0")
        return v

    @model_validator(mode="after")
    def _credentials_required_when_enabled(self) -> "UplinkSettings":
        """Require API key and system id when uploading for real."""
        if self.pvoutput_enabled:
            missing = [
                name
                for name in ("pvoutput_api_key", "pvoutput_system_id")
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"{', '.join(m.upper() for m in missing)} required when "
                    "PVOUTPUT_ENABLED is true"
                )
        return self

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
