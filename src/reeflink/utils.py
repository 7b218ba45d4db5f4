"""
Shared helpers: logging setup, stage timing and file naming.
"""

import functools
import logging
import re
import sys
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DIR = Path("logs")


def setup_logging(
    verbose: bool,
    run_name: Optional[str] = None,
    enable_file_logging: bool = False
) -> Optional[Path]:
    """
    Route log records to stdout and, optionally, to a per-run file.

    Args:
        verbose: Log at DEBUG instead of INFO
        run_name: Prefix for the log file name
        enable_file_logging: Also write ./logs/<run_name>_<timestamp>.log

    Returns:
        The log file path when file logging is on, else None
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = None

    if enable_file_logging:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = LOG_DIR / f"{clean_filename(run_name or 'reeflink')}_{stamp}.log"
        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))

    # force=True so repeated CLI invocations in one process replace old handlers
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        handlers=handlers,
        force=True
    )
    return log_file


def timer(func: Callable) -> Callable:
    """Log how long each call to ``func`` took."""
    @functools.wraps(func)
    def timed(*args, **kwargs):
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            logging.info(f"{func.__name__} finished after {time.perf_counter() - started:.2f}s")
    return timed


def clean_filename(filename: str) -> str:
    """Replace characters that are unsafe in file or layer names with underscores."""
    cleaned = re.sub(r'[<>:"/\\|?*\s]+', '_', filename)
    return re.sub(r'_+', '_', cleaned).strip('_')
