"""Logging setup shared by the memlink CLIs and servers."""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for a process.

    Level precedence: the argument, then MEMLINK_LOG_LEVEL, then WARNING.
    Output goes to stderr so CLI stdout stays machine-readable.
    """
    name = (level or os.environ.get("MEMLINK_LOG_LEVEL") or "WARNING").upper()
    numeric = getattr(logging, name, None)
    if not isinstance(numeric, int):
        numeric = logging.WARNING

    logging.basicConfig(
        level=numeric,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    logging.getLogger().setLevel(numeric)

    # Quiet noisy client libraries
    for noisy in ("httpx", "openai", "urllib3"):
        logging.getLogger(noisy).setLevel(max(numeric, logging.WARNING))
