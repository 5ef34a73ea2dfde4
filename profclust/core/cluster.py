#!/usr/bin/env python

"""Cluster context manager for running steps on ipyparallel engines.

Size buckets are clustered as independent jobs, and per-cluster
profile jobs are grouped into LPT bins, so both steps can spread
their work over a set of ipyparallel engines. Each engine may start
BLAST+ with several threads, so the number of engines is the number
of cores divided by the threads per job.

Examples
--------
>>> with Cluster(cores=8, threads=2) as client:
>>>     lbview = client.load_balanced_view()
"""

from typing import Optional
import os
import re
import time
import traceback
from datetime import timedelta
from loguru import logger
import ipyparallel
from profclust.core.logger_setup import color_support

logger = logger.bind(name="profclust")

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


class Cluster(ipyparallel.cluster.cluster.Cluster):
    """An ipcluster sized for profclust jobs.

    Parameters
    ----------
    cores: int or None
        Total cores to use. Defaults to all available cores.
    threads: int
        Threads used by each job. One engine is started per
        `cores // threads` so that jobs do not oversubscribe cores.
    quiet: bool
        Report the engine startup and shutdown at DEBUG level.
    """
    # suppress INFO calls from ipyparallel built-in logging.
    log_level = 30

    def __init__(
        self,
        cores: Optional[int] = None,
        threads: int = 1,
        quiet: bool = False,
        **kwargs,
    ):
        self.cores = cores if cores else get_num_cpus()
        self.threads = max(1, threads)
        self.quiet = quiet
        self.n = max(1, self.cores // self.threads)
        super().__init__(n=self.n, **kwargs)
        self._start = None
        self._client = None

    def _report(self, message: str):
        if self.quiet:
            logger.debug(message)
        else:
            logger.info(message)

    def __enter__(self) -> ipyparallel.Client:
        self.start_cluster_sync(n=self.n)
        client = self.connect_client_sync()
        client.wait_for_engines(n=self.n, block=True, interactive=False)
        self._report(
            f"parallel ipcluster: {len(client)} engines "
            f"({self.cores} cores, {self.threads} threads per job)")
        self._client = client
        self._start = time.time()
        return client

    def __exit__(self, exc_type, exc_value, exc_traceback):
        if self._client is not None:
            # drop queued jobs and interrupt running ones
            self._client.abort()
            self.signal_engines_sync(signum=2)
            self._client.close()
            self._client = None
        self.stop_cluster_sync()

        elapsed = timedelta(seconds=int(time.time() - (self._start or time.time())))
        self._report(f"ipcluster stopped. Elapsed time: {elapsed}")
        if exc_value is not None:
            logger.error(format_error(exc_type, exc_value, exc_traceback))


def format_error(exc_type, exc_value, exc_traceback) -> str:
    """Return a log message for an exception that ended a parallel run."""
    if exc_type is KeyboardInterrupt:
        return "keyboard interrupt by user, engines were shut down."
    if isinstance(exc_value, ipyparallel.error.RemoteError):
        trace = "\n".join(exc_value.render_traceback())
        if not color_support():
            trace = ANSI_ESCAPE.sub("", trace)
        return f"a job failed on an ipengine:\n{trace}"
    trace = "".join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    return f"run aborted:\n{trace}"


def get_num_cpus() -> int:
    """Return the number of CPUs this process may run on (at least 1)."""
    try:
        return max(1, len(os.sched_getaffinity(0)))
    except AttributeError:
        return max(1, os.cpu_count() or 1)
