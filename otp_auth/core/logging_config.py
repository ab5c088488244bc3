"""Logging setup shared by the CLI and the HTTP server."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str = "WARNING", log_file: Optional[str] = None) -> None:
    """
    Configure the root logger once.

    With *log_file* set, records go to that file (UTF-8, appended) so the
    live terminal display is not interleaved with log lines.
    """
    numeric = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(numeric, int):
        raise ValueError(f"unknown log level: {level!r}")

    kwargs = {"level": numeric, "format": LOG_FORMAT, "force": True}
    if log_file:
        kwargs["filename"] = log_file
        kwargs["encoding"] = "utf-8"
    logging.basicConfig(**kwargs)
    # werkzeug logs every request at INFO
    logging.getLogger("werkzeug").setLevel(max(numeric, logging.WARNING))
