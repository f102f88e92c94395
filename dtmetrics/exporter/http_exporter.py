"""Batching HTTP client for the Dynatrace metrics ingestion API."""

from __future__ import annotations

import http.client
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import urlsplit

from dtmetrics.config import DynatraceConfig
from dtmetrics.errors import ConfigError
from dtmetrics.metrics.recorder import get_metrics_recorder

logger = logging.getLogger(__name__)

METRICS_INGESTION_PATH = "/api/v2/metrics/ingest"

Transport = Callable[[str, bytes, Dict[str, str]], Tuple[int, str]]


@dataclass(frozen=True)
class BatchSuccess:
    status_code: int
    line_count: int


@dataclass(frozen=True)
class BatchFailure:
    status_code: int
    body: str
    line_count: int


@dataclass(frozen=True)
class BatchTransportError:
    cause: BaseException
    line_count: int


BatchOutcome = Union[BatchSuccess, BatchFailure, BatchTransportError]


def chunked(lines: Sequence[str], size: int) -> List[Sequence[str]]:
    """Split ``lines`` into consecutive chunks of at most ``size`` items."""
    if size <= 0:
        raise ValueError("Batch size must be positive")
    return [lines[i:i + size] for i in range(0, len(lines), size)]


class MetricsApiIngestion:
    """
    Send metric lines to ``{uri}/api/v2/metrics/ingest`` in fixed-size batches.

    A transport callable can be injected for testing. It receives
    (url, payload_bytes, headers) and returns (status_code, response_body);
    any exception it raises is treated as a transport failure.
    """

    def __init__(self, config: DynatraceConfig, transport: Optional[Transport] = None) -> None:
        if not config.uri:
            raise ConfigError("uri must be set to report metrics to Dynatrace")
        if not config.api_token:
            raise ConfigError("api_token must be set to report metrics to Dynatrace")
        self.url = config.uri.rstrip("/") + METRICS_INGESTION_PATH
        self.api_token = config.api_token
        self.batch_size = config.batch_size
        self.connect_timeout = config.connect_timeout
        self.read_timeout = config.read_timeout
        self._transport = transport or self._http_post

    def send_in_batches(self, lines: Sequence[str]) -> List[BatchOutcome]:
        """
        POST ``lines`` in order, one request per batch.

        A non-2xx response is recorded and the next batch is still sent. A
        transport error aborts the remaining batches of this call.
        """
        lines = list(lines)
        if not lines:
            return []

        recorder = get_metrics_recorder()
        if recorder is not None:
            recorder.record_lines(len(lines))

        outcomes: List[BatchOutcome] = []
        headers = self._headers()
        for batch in chunked(lines, self.batch_size):
            outcome = self._send_batch(batch, headers)
            outcomes.append(outcome)
            if recorder is not None:
                recorder.record_batch(outcome)
            if isinstance(outcome, BatchTransportError):
                break
        return outcomes

    def ping(self) -> Tuple[int, str]:
        """POST an empty payload to the ingest endpoint; transport errors propagate."""
        return self._transport(self.url, b"", self._headers())

    def _send_batch(self, batch: Sequence[str], headers: Dict[str, str]) -> BatchOutcome:
        payload = "\n".join(batch).encode("utf-8")
        try:
            status, body = self._transport(self.url, payload, headers)
        except Exception as exc:
            logger.error(f"Failed to send metrics to Dynatrace, aborting remaining batches: {exc}")
            return BatchTransportError(cause=exc, line_count=len(batch))

        if 200 <= status < 300:
            logger.debug(f"Ingested {len(batch)} metric lines into Dynatrace (HTTP {status})")
            return BatchSuccess(status_code=status, line_count=len(batch))

        logger.error(f"Failed metric ingestion: HTTP {status}, response: {body}")
        return BatchFailure(status_code=status, body=body, line_count=len(batch))

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Api-Token {self.api_token}",
            "Content-Type": "text/plain",
        }

    def _http_post(self, url: str, payload: bytes, headers: Dict[str, str]) -> Tuple[int, str]:
        # Run in an empty context so instrumented HTTP clients don't record
        # the exporter's own requests.
        from opentelemetry import context as context_api

        token = context_api.attach(context_api.Context())
        try:
            parts = urlsplit(url)
            if parts.scheme == "https":
                conn = http.client.HTTPSConnection(parts.netloc, timeout=self.connect_timeout)
            else:
                conn = http.client.HTTPConnection(parts.netloc, timeout=self.connect_timeout)
            try:
                conn.connect()
                conn.sock.settimeout(self.read_timeout)
                path = parts.path or "/"
                if parts.query:
                    path = f"{path}?{parts.query}"
                conn.request("POST", path, body=payload, headers=headers)
                resp = conn.getresponse()
                body = resp.read().decode("utf-8", errors="replace")
                return resp.status, body
            finally:
                conn.close()
        finally:
            context_api.detach(token)
