"""HTTP-backed blob store.

Collections are kept as opaque JSON documents behind a simple REST endpoint:
``GET {base_url}/{key}`` returns the blob (``404`` when it has never been
written) and ``PUT {base_url}/{key}`` overwrites it. The session retries
throttled and server-side failures; anything else surfaces as
:class:`StoreUnavailableError` so the caller can treat it as fatal.
"""
from __future__ import annotations

import logging
import os
from typing import Dict, Optional

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import StoreUnavailableError

__all__ = ["HttpBlobStore"]


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_SECONDS = 30
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_FACTOR = 0.5

DEFAULT_BASE_URL = os.getenv("CLINIC_STORE_URL", "")
DEFAULT_TOKEN = os.getenv("CLINIC_STORE_TOKEN")


class HttpBlobStore:
    """Blob store talking to a remote key-value endpoint."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = DEFAULT_TOKEN,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be provided")

        self.base_url = base_url.rstrip("/")
        self.token = token or None
        self.timeout = timeout
        self._session = session or self._build_session(
            max_retries=max_retries, backoff_factor=backoff_factor
        )

    def _build_session(self, *, max_retries: int, backoff_factor: float) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            read=max_retries,
            connect=max_retries,
            status=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=("GET", "PUT"),
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, key: str, *, data: Optional[str] = None) -> Response:
        if not key:
            raise ValueError("key must be provided")
        url = f"{self.base_url}/{key}"
        headers = self._headers()
        if data is not None:
            headers["Content-Type"] = "application/json"

        try:
            return self._session.request(
                method=method,
                url=url,
                data=data.encode("utf-8") if data is not None else None,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Request to blob store failed: %s", exc)
            raise StoreUnavailableError(f"Blob store request for '{key}' failed") from exc

    def load(self, key: str) -> Optional[str]:
        response = self._request("GET", key)
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            self._log_error_response(response)
            raise StoreUnavailableError(
                f"Blob store responded with unexpected status {response.status_code} for '{key}'"
            )
        return response.text

    def save(self, key: str, blob: str) -> None:
        response = self._request("PUT", key, data=blob)
        if response.status_code not in (200, 201, 204):
            self._log_error_response(response)
            raise StoreUnavailableError(
                f"Blob store responded with unexpected status {response.status_code} for '{key}'"
            )
        logger.debug("Saved blob %s (%d bytes)", key, len(blob))

    @staticmethod
    def _log_error_response(response: Response) -> None:
        logger.error(
            "Blob store error response: status=%s body=%s",
            response.status_code,
            response.text[:2048],
        )
