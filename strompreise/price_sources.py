from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import requests

from .exceptions import ApiError, EmptyResultError, NetworkError, ParseError

logger = logging.getLogger(__name__)

# -----------------------------
# Strompreise backend
# -----------------------------
# All day-based endpoints take the 8-digit date code (YYYYMMDD) as ?date=.
# The workweek endpoints are not date-based.
API_ROOT = "/api/strompreise"
PRIMARY_PATH = API_ROOT
COMPARISON_PATH = f"{API_ROOT}/comparison"
AVG_ON_DATE_PATH = f"{API_ROOT}/avgOnDate"
DAY_AVERAGE_PATH = f"{API_ROOT}/dayaverage"
LAST_YEAR_PATH = f"{API_ROOT}/lastyear"
WORKWEEK_AVERAGE_POSITION_PATH = f"{API_ROOT}/workweekaverage_position"
WORKWEEK_AVG_PATH = f"{API_ROOT}/workweekavg"
CLIENT_LOG_PATH = "/client-log"

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; Strompreise-Analyse/1.0)",
    "Accept": "application/json",
}


class StrompreiseClient:
    """
    Thin client for the Strompreise JSON API.

    No retries: every failure surfaces once as a ``PriceDataError`` subclass
    and the caller decides between fallback and user-facing error.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(DEFAULT_HEADERS)

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def get_json(self, path: str, date_code: Optional[str] = None) -> Any:
        params = {"date": date_code} if date_code is not None else None
        try:
            resp = self.session.get(self.url(path), params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as ex:
            raise NetworkError(f"Netzwerkfehler: {ex}") from ex
        if not resp.ok:
            raise NetworkError(f"Netzwerkfehler: {resp.status_code}")
        try:
            return resp.json()
        except ValueError as ex:
            raise ParseError(f"Fehler beim JSON-Parse: {ex}") from ex

    def get_records(self, path: str, date_code: Optional[str] = None) -> list[Any]:
        """
        Fetch ``path`` and return its record list.

        Raises:
            NetworkError: transport failure or non-2xx status
            ParseError: body is not JSON
            ApiError: body is ``{"error": ...}``
            EmptyResultError: body is not a list, or an empty one
        """
        data = self.get_json(path, date_code)
        if isinstance(data, dict) and data.get("error"):
            raise ApiError(str(data["error"]))
        if not isinstance(data, list) or not data:
            raise EmptyResultError(f"{path}: keine Daten (Antwort: {str(data)[:200]})")
        logger.debug("%s?date=%s -> %d records", path, date_code, len(data))
        return data

    async def fetch_records(self, path: str, date_code: Optional[str] = None) -> list[Any]:
        """Non-blocking ``get_records``; the request runs in a worker thread."""
        return await asyncio.to_thread(self.get_records, path, date_code)

    def post_log(self, payload: dict[str, Any]) -> None:
        resp = self.session.post(self.url(CLIENT_LOG_PATH), json=payload, timeout=self.timeout)
        resp.raise_for_status()

    def close(self) -> None:
        self.session.close()
