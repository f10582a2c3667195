"""Environment-driven settings for the clinic tools."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from connector import BlobStore, HttpBlobStore, JsonFileBlobStore


def _project_root() -> Path:
    return Path(__file__).resolve().parents[1]


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    report_dir: Path
    store_url: Optional[str] = None
    store_token: Optional[str] = None
    seed: bool = True
    log_level: str = "INFO"
    http_timeout: float = 30.0
    http_retries: int = 3
    port: int = 5000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        data_dir = env.get("CLINIC_DATA_DIR")
        report_dir = env.get("CLINIC_REPORT_DIR")
        try:
            return cls(
                data_dir=Path(data_dir) if data_dir else _project_root() / "data",
                report_dir=Path(report_dir) if report_dir else _project_root() / "reports",
                store_url=env.get("CLINIC_STORE_URL") or None,
                store_token=env.get("CLINIC_STORE_TOKEN") or None,
                seed=_flag(env.get("CLINIC_SEED"), True),
                log_level=(env.get("CLINIC_LOG_LEVEL") or "INFO").upper(),
                http_timeout=float(env.get("CLINIC_HTTP_TIMEOUT") or 30),
                http_retries=int(env.get("CLINIC_HTTP_RETRIES") or 3),
                port=int(env.get("PORT") or 5000),
            )
        except ValueError as exc:
            raise ValueError(f"Invalid clinic configuration: {exc}") from exc


def build_store(settings: Settings) -> BlobStore:
    """Return the HTTP store when a URL is configured, else the file store."""

    if settings.store_url:
        return HttpBlobStore(
            base_url=settings.store_url,
            token=settings.store_token,
            timeout=settings.http_timeout,
            max_retries=settings.http_retries,
        )
    return JsonFileBlobStore(settings.data_dir)
