from __future__ import annotations

import datetime as dt
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Optional

import requests

from .price_sources import StrompreiseClient

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(funcName)s:%(lineno)d] - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"
ENGINE_LOGGER = "strompreise"
TRANSPORT_LOGGER = "strompreise.client_log.transport"

transport_logger = logging.getLogger(TRANSPORT_LOGGER)


def client_level(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    return "info"


def iso_timestamp(created: float) -> str:
    ts = dt.datetime.fromtimestamp(created, tz=dt.timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ClientLogHandler(logging.Handler):
    """
    Forward log records to the backend's ``POST /client-log``.

    Posting is fire-and-forget on a single worker thread. Failed posts are
    reported on ``TRANSPORT_LOGGER`` only and never retried. ``close()`` drops
    queued posts without waiting; ``flush()`` waits for them.
    """

    def __init__(self, client: StrompreiseClient, level: int = logging.INFO):
        super().__init__(level)
        self.client = client
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="client-log")
        self._last: Optional[Future] = None

    def payload(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            "level": client_level(record.levelno),
            "message": record.getMessage(),
            "timestamp": iso_timestamp(record.created),
        }

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(TRANSPORT_LOGGER):
            return
        try:
            self._last = self._executor.submit(self._post, self.payload(record))
        except Exception:
            self.handleError(record)

    def _post(self, payload: dict[str, Any]) -> None:
        try:
            self.client.post_log(payload)
        except requests.exceptions.RequestException as ex:
            transport_logger.error("Fehler beim Senden des Logs: %s", ex)

    def flush(self, timeout: Optional[float] = None) -> None:
        # single worker: the last submitted post finishes after all earlier ones
        if self._last is not None:
            wait([self._last], timeout=timeout)

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        super().close()


def setup_logging(
    level: str | int = logging.INFO, client: Optional[StrompreiseClient] = None
) -> Optional[ClientLogHandler]:
    """Console logging for everything, plus the client-log sink for the engine loggers."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    engine = logging.getLogger(ENGINE_LOGGER)
    engine.setLevel(level)
    if client is None:
        return None
    for existing in list(engine.handlers):
        if isinstance(existing, ClientLogHandler):
            engine.removeHandler(existing)
            existing.close()
    handler = ClientLogHandler(client)
    engine.addHandler(handler)
    return handler
