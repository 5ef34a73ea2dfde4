#!/usr/bin/env python

"""Logger for profclust to STDERR or to a LOGFILE.

Levels
------
DEBUG: every classification event of the clustering engine and the
       progress of each profile job.
INFO: step headers, bucket and cluster counts. (DEFAULT)
WARNING: skipped records, skipped buckets and failed profiles.
ERROR: raised errors and engine tracebacks.

Messages logged with a bound `job` (e.g. `size_100-250/clust_00003`)
carry it as a tag, so interleaved output of parallel jobs can be
told apart.

Examples
--------
>>> import profclust as pc
>>> pc.set_log_level("DEBUG")
>>> pc.set_log_level("DEBUG", log_file="/tmp/profclust-log.txt")
"""

from typing import Optional, Union
import sys
from pathlib import Path
from loguru import logger
import IPython
from profclust.core.exceptions import ConfigurationError

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")
HANDLERS = []


def formatter(record) -> str:
    """Format with an optional job tag and an optional line ending.

    `end=""` in the bound extras lets a message be continued by a
    following raw log call.
    """
    job = record["extra"].get("job")
    tag = "<cyan>[{extra[job]}]</cyan> " if job else ""
    end = record["extra"].get("end", "\n")
    return (
        "{time:HH:mm:ss} | "
        "<level>{level:<8}</level> <white>|</white> "
        "<magenta>{file:<18}</magenta> <white>|</white> "
        + tag + "{message}" + end
    )


def is_profclust(record) -> bool:
    return record["extra"].get("name") == "profclust"


def color_support() -> bool:
    """Return True in a notebook/IPython kernel or a terminal."""
    return bool(IPython.get_ipython()) or sys.stderr.isatty()


def set_log_level(log_level: str = "INFO", log_file: Optional[Union[str, Path]] = None):
    """Replace the profclust log handler.

    Modules log through `logger.bind(name="profclust")`; only those
    records pass the handler filter. The handler writes EITHER to
    STDERR or to a LOGFILE, but not both.
    """
    log_level = str(log_level).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError(
            f"log level must be one of {LOG_LEVELS}, not '{log_level}'")

    while HANDLERS:
        try:
            logger.remove(HANDLERS.pop())
        except ValueError:
            # already removed by the user
            continue

    # drop the loguru default stderr handler
    try:
        logger.remove(0)
    except ValueError:
        pass

    kwargs = dict(level=log_level, format=formatter, filter=is_profclust, enqueue=True)
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        HANDLERS.append(logger.add(log_file, colorize=False, rotation="50 MB", **kwargs))
    else:
        HANDLERS.append(logger.add(sys.stderr, colorize=color_support(), **kwargs))

    logger.enable("profclust")
    logger.bind(name="profclust").debug(f"profclust logging enabled: {log_level}")
