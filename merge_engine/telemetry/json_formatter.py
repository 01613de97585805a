"""JSON log formatter and logging bootstrap.

Emits each log record as a single-line JSON object so that merge runs
scheduled from job runners can be indexed without regex parsing.

Activate by setting ``MERGE_STRUCTURED_LOGGING=true`` and calling
:func:`configure_logging` once at process start.

Output schema per line::

    {
        "timestamp": "2026-05-15T12:34:56.789012+00:00",
        "level": "INFO",
        "logger": "merge_engine.executor.safety_gate",
        "message": "Merge committed",
        "merge": { ... },         // present when emitted with extra={"merge": ...}
        "exc_info": "Traceback ..."  // present only on exceptions
    }
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from merge_engine.config import Settings


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        """Render *record* as a single JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Structured merge context passed via ``extra={"merge": ...}``.
        merge_data = getattr(record, "merge", None)
        if merge_data is not None:
            payload["merge"] = merge_data

        if record.exc_info and record.exc_info[0] is not None:
            payload["exc_info"] = "".join(traceback.format_exception(*record.exc_info))

        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(settings: Settings) -> None:
    """Install a root handler according to *settings*."""
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.value)

    if settings.structured_logging:
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        root_logger.addHandler(handler)
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )
