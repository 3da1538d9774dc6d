"""
=============================================================================
TRANSFER LOGGING STAGE
=============================================================================

Logs one access line per streamed body, after the last byte (or the
failure) has gone through the pipeline:

    TEXT:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ [10/Jun/2024:10:55:36 +0000] "GET /video.mp4" 206 1048576 12.40ms   │
    │   complete                                                          │
    └─────────────────────────────────────────────────────────────────────┘

    JSON:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"method": "GET", "path": "/video.mp4", "status_code": 206,         │
    │  "bytes_sent": 1048576, "duration_ms": 12.4, "outcome": "complete", │
    │  "timestamp": "10/Jun/2024:10:55:36 +0000"}                         │
    └─────────────────────────────────────────────────────────────────────┘

outcome is one of:

    complete   the stream ran to the end
    aborted    the stream was closed early (client went away)
    error      a stage upstream failed

The logger is "filesend.access" so it can be routed separately:

    logging.getLogger("filesend.access").addHandler(file_handler)

Only bodies that go through the pipeline are logged; 304, 412, 416,
redirects and error documents never stream a file.

=============================================================================
"""

import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Iterator

from ..errors import StreamError
from .base import Chunks, Stage


logger = logging.getLogger("filesend.access")


@dataclass
class TransferLog:
    """One streamed body."""

    method: str
    path: str
    status_code: int
    bytes_sent: int
    duration_ms: float
    outcome: str
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        return (
            f'[{self.timestamp}] "{self.method} {self.path}" {self.status_code} '
            f'{self.bytes_sent} {self.duration_ms:.2f}ms {self.outcome}'
        )


class TransferLogStage(Stage):
    """
    Pass-through stage that counts bytes and logs the transfer.

    Usage:
        engine = FileSend(SendConfig(root="public"))
        engine.use(TransferLogStage(log_format="json"))
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.log_level = log_level

    def __call__(self, chunks: Chunks, context: Any = None) -> Iterator[bytes]:
        # ─── per-transfer state lives here, not on self ───
        started = getattr(context, "started", None) or time.perf_counter()
        sent = 0
        outcome = "aborted"

        try:
            for chunk in chunks:
                sent += len(chunk)
                yield chunk
            outcome = "complete"
        except StreamError:
            outcome = "error"
            raise
        finally:
            self._emit(context, sent, outcome, (time.perf_counter() - started) * 1000)

    def _emit(self, context: Any, sent: int, outcome: str, duration_ms: float) -> None:
        request = getattr(context, "request", None)
        response = getattr(context, "response", None)

        entry = TransferLog(
            method=getattr(request, "method", "-"),
            path=getattr(request, "path", "-"),
            status_code=getattr(response, "status", 0),
            bytes_sent=sent,
            duration_ms=duration_ms,
            outcome=outcome,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())
