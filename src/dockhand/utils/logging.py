"""Logging utilities."""

import logging
import sys
from typing import Optional, TextIO


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None):
    """Setup logging configuration.

    Logs go to stdout unless another stream is given; the JSON report mode
    passes stderr so that stdout only carries the report.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[
            logging.StreamHandler(stream or sys.stdout)
        ],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("docker").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
