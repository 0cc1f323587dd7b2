"""Logging configuration."""
from __future__ import annotations

import logging
import sys
from typing import Optional

from fund_metrics.config import get_settings


def setup_logging(level: Optional[str] = None) -> None:
    """Configure package logging to stdout."""
    level = level or get_settings().log_level

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
