"""Per-run output directories"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

logger = logging.getLogger("MvaEval.RunDirs")


def create_timestamped_dir(base_dir: str | Path, now: datetime | None = None) -> Path:
    """
    Create base_dir/run_YYYYMMDD_HHMM and return its path

    An existing directory for the same minute is reused.
    """
    now = now or datetime.now()
    run_dir = Path(base_dir) / f"run_{now:%Y%m%d_%H%M}"
    run_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Run directory: {run_dir}")
    return run_dir
