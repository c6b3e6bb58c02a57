"""
Logging setup.

Every record is stamped with the correlation id of the request that emitted
it (`trace_id`) and, when a span is recording, its `span_id`. Both services
log under the same `trace_id` for one user action, so their lines can be
joined without the tracing backend.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from opentelemetry import trace

from .tracing import current_trace_id


class TraceContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = current_trace_id.get() or "-"
        ctx = trace.get_current_span().get_span_context()
        record.span_id = trace.format_span_id(ctx.span_id) if ctx.is_valid else "-"
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "trace_id": getattr(record, "trace_id", "-"),
            "span_id": getattr(record, "span_id", "-"),
        }
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "text") -> None:
    """
    Install one stream handler on the root logger. Safe to call twice.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_loan_portal_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler._loan_portal_handler = True
    handler.addFilter(TraceContextFilter())
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s trace_id=%(trace_id)s %(message)s",
            )
        )
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
