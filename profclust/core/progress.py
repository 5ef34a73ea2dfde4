#!/usr/bin/env python

"""Report messages from ipyparallel engines to the logger.

Call `track_remote_jobs` to wait on jobs running on an ipyclient and
forward their messages to the logger, tagged with the job key. Remote
functions send messages by calling `print("@@LOGLEVEL: message")`.

Example Usage
-------------
>>> rasyncs = {}
>>> for bucket, seqs in buckets.items():
>>>     rasyncs[bucket] = lbview.apply(cluster_bucket, seqs, config)
>>> results = track_remote_jobs(rasyncs, ipyclient)
"""

from typing import Dict, Any, Optional
from loguru import logger

logger = logger.bind(name="profclust")


def progress(remote_messages: str, job: Optional[Any] = None) -> None:
    """Forward every '@@LEVEL: msg' chunk of engine stdout to the logger."""
    log = logger.bind(job=str(job)) if job is not None else logger
    for msg in remote_messages.split("@@")[1:]:
        log_level, log_msg = msg.split(":", 1)
        log.log(log_level.strip(), log_msg.strip())


def track_remote_jobs(rasyncs: Dict[Any, Any], ipyclient) -> Dict[Any, Any]:
    """Wait for all jobs, log their stdout, and return {key: result}.

    Exceptions raised by a job are re-raised here when its result is
    collected, after every job has finished.
    """
    for key, rasync in rasyncs.items():
        rasync.add_done_callback(lambda x, key=key: progress(x.stdout, key))

    results = {}
    try:
        ipyclient.wait(list(rasyncs.values()))
        for key, rasync in rasyncs.items():
            results[key] = rasync.result()

    except KeyboardInterrupt:
        logger.error("KeyboardInterrupt by user.")
        ipyclient.abort()
        raise
    return results
