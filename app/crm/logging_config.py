"""
Logging setup.

``setup_logging`` configures the root logger once with a console handler.
Every record carries ``request_id``: the correlation id of the request being
served, or "-" outside a request.
"""

from __future__ import annotations

import logging

from flask import g, has_request_context

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        rid = None
        if has_request_context():
            rid = getattr(g, "request_id", None)
        record.request_id = rid or "-"
        return True


def setup_logging(level: str = "INFO") -> None:
    """Attach a console handler to the root logger unless one is already configured."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))
    if any(getattr(h, "_crm_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler()
    handler._crm_handler = True  # type: ignore[attr-defined]
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(handler)
