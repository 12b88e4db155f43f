"""
core/log.py -- Process-wide logging setup.

Every module logs through logging.getLogger("sso.<area>"). This function only
decides level and format for the root handler; it is called once by the API
entry point and by main.py.

  local -- DEBUG, human-oriented format
  dev   -- DEBUG, compact single-line format
  prod  -- INFO,  compact single-line format
"""

from __future__ import annotations

import logging

_LOCAL_FORMAT = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
_COMPACT_FORMAT = "time=%(asctime)s level=%(levelname)s logger=%(name)s msg=%(message)s"


def setup_logging(env: str) -> None:
    if env == "local":
        level, fmt = logging.DEBUG, _LOCAL_FORMAT
    elif env == "dev":
        level, fmt = logging.DEBUG, _COMPACT_FORMAT
    else:
        level, fmt = logging.INFO, _COMPACT_FORMAT
    logging.basicConfig(level=level, format=fmt, datefmt="%Y-%m-%d %H:%M:%S")
    logging.getLogger("sso").setLevel(level)
