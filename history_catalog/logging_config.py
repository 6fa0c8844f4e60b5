"""Centralised logging configuration.

Importing this module sets the default logging format/level. Other modules
should simply import `logging` and call `logging.getLogger(__name__)`.
Third-party HTTP loggers are capped at WARNING so per-request lines do not
drown the ingestion statistics.
"""

import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

for _noisy in ("httpx", "httpcore", "PIL"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

__all__ = ["logging"]
