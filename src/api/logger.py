"""
Structured lookup events for the visa proxy.

Events go through the ``api.events`` logger as one JSON object per record, so
they follow whatever logging configuration the host sets up. A JSON-lines file
sink is attached only when ``VISA_PROXY_LOG_PATH`` (or an explicit path) is given.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

EVENT_LOGGER_NAME = "api.events"

logger = logging.getLogger(EVENT_LOGGER_NAME)


def configure_event_log(path: Optional[str] = None) -> Optional[logging.Handler]:
    path = path or os.getenv("VISA_PROXY_LOG_PATH")
    if not path:
        return None
    handler = logging.FileHandler(path, encoding="utf-8", delay=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return handler


def log_event(request_id: str, event: str, data: Dict[str, Any]) -> None:
    record = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "event": event,
        "data": data,
    }
    logger.info(json.dumps(record, ensure_ascii=False, default=str))
