"""grb configuration -- store location, polling interval, logging.

Everything is resolved lazily from the environment so tests can point
GRB_HOME at a temporary directory.
"""

import logging
import os
import sys
from pathlib import Path

DB_FILENAME = "grb.db"
DEFAULT_POLL_INTERVAL = 1.0  # seconds


def grb_home() -> Path:
    """Directory holding the store file.

    GRB_HOME wins; otherwise %APPDATA%\\grb on Windows and ~/.grb elsewhere.
    """
    override = os.environ.get("GRB_HOME")
    if override:
        return Path(override)
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "grb"
    return Path.home() / ".grb"


def default_db_path() -> Path:
    return grb_home() / DB_FILENAME


def poll_interval() -> float:
    """Daemon polling interval from GRB_POLL_INTERVAL, clamped to [0.05, 60]."""
    raw = os.environ.get("GRB_POLL_INTERVAL", "")
    try:
        value = float(raw) if raw.strip() else DEFAULT_POLL_INTERVAL
    except ValueError:
        logging.getLogger("grb.config").warning(
            "Ignoring invalid GRB_POLL_INTERVAL=%r", raw
        )
        value = DEFAULT_POLL_INTERVAL
    return max(0.05, min(value, 60.0))


def setup_logging(verbose: bool = False, level: int = logging.WARNING) -> None:
    """Configure root logging on stderr for command-line entry points."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
