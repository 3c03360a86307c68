from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from core.config import BACKEND_DIR


HANDLER_NAME = "timetable"
LOG_FILE_NAME = "timetable.log"

# Package loggers whose level follows the settings rather than the root level.
SOLVER_LOGGER = "solver"
SERVICES_LOGGER = "services"


def _level(value: str | int | None, default: int) -> int:
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {value!r}")
    return resolved


def setup_logging(
    *,
    environment: str,
    level: str | int | None = None,
    solver_level: str | int | None = None,
    log_dir: Path | None = None,
) -> None:
    """Configure logging for the timetable service.

    Development logs to the console at DEBUG; production adds a rotating
    ``timetable.log`` and defaults to INFO. The search engine (``solver``) logs
    at ``solver_level`` (INFO unless set) so one exhausted search does not flood
    the output; generation services follow the main level.

    Calling it again is a no-op while our handlers are installed.
    """

    root = logging.getLogger()
    if any(h.get_name() == HANDLER_NAME for h in root.handlers):
        return

    env = (environment or "development").lower().strip()
    base = _level(level, logging.INFO if env == "production" else logging.DEBUG)

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    console = logging.StreamHandler()
    console.set_name(HANDLER_NAME)
    console.setLevel(base)
    console.setFormatter(formatter)
    root.addHandler(console)

    if env == "production":
        logs_dir = Path(log_dir) if log_dir is not None else Path(BACKEND_DIR) / "logs"
        logs_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            logs_dir / LOG_FILE_NAME,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.set_name(HANDLER_NAME)
        file_handler.setLevel(base)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(base)
    logging.getLogger(SOLVER_LOGGER).setLevel(_level(solver_level, logging.INFO))
    logging.getLogger(SERVICES_LOGGER).setLevel(base)
    # Statement echo is only wanted when debugging the database layer itself.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
