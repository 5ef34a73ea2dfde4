#!/usr/bin/env python

"""Longest-processing-time-first scheduling of independent jobs.

Jobs are sorted by descending cost (stable) and each is put in the
bin with the lowest running total (ties to the lowest bin index).
The makespan of the result is at most (4/3 - 1/(3m)) times the
optimum for m bins.

Each non-empty bin is then run by one worker: the worker calls
`bootstrap()` once, then `func(state, item)` for every job of the bin
in assignment order. A job that raises is recorded in its bin's
BinResult with its item and the bin goes on with the next job, unless
the caller asks to stop the bin at the first error. A failing
bootstrap fails every job of its bin.

Examples
--------
>>> sched = LPTScheduler(4)
>>> for clust in clusters:
>>>     sched.add_work(clust, cost=len(clust) ** 2)
>>> results = sched.run(load_oracle, profile_cluster, nprocs=4)
"""

from typing import Any, Callable, List, Optional, Tuple
import heapq
from dataclasses import dataclass, field
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from loguru import logger
from profclust.core.exceptions import ConfigurationError
from profclust.core.progress import track_remote_jobs

logger = logger.bind(name="profclust")

POOLS = ("process", "thread")


@dataclass
class Job:
    item: Any
    cost: float
    order: int
    """: insertion order, the tie-break among equal costs."""


@dataclass
class Bin:
    index: int
    total: float = 0.
    jobs: List[Job] = field(default_factory=list)

    def add(self, job: Job) -> None:
        self.jobs.append(job)
        self.total += job.cost

    @property
    def items(self) -> List[Any]:
        return [i.item for i in self.jobs]


@dataclass
class BinResult:
    index: int
    results: List[Any] = field(default_factory=list)
    """: return values of the jobs that finished, in order."""
    errors: List[Tuple[Any, BaseException]] = field(default_factory=list)
    """: (item, exception) of each failed job, in order."""

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def error(self) -> Optional[BaseException]:
        """The first exception raised in this bin, if any."""
        return self.errors[0][1] if self.errors else None


def run_bin(
    bootstrap: Optional[Callable[[], Any]],
    func: Callable[[Any, Any], Any],
    items: List[Any],
    stop_on_error: bool = False,
):
    """Run one bin and return (results, [(item, exception), ...]).

    This runs on the worker (process, thread, or ipengine).
    """
    try:
        state = bootstrap() if bootstrap is not None else None
    except Exception as exc:  # pylint: disable=broad-except
        return [], [(item, exc) for item in items]

    results = []
    errors = []
    for item in items:
        try:
            results.append(func(state, item))
        except Exception as exc:  # pylint: disable=broad-except
            errors.append((item, exc))
            if stop_on_error:
                break
    return results, errors


class LPTScheduler:
    """Balance variable cost jobs across a fixed number of workers.

    Parameters
    ----------
    nworkers: int
        The number of bins (m). Must be > 0.
    """
    def __init__(self, nworkers: int):
        if not isinstance(nworkers, int) or nworkers <= 0:
            raise ConfigurationError(f"number of workers must be > 0, not {nworkers}")
        self.nworkers = nworkers
        self.jobs: List[Job] = []
        self.bins: List[Bin] = []

    def __len__(self) -> int:
        return len(self.jobs)

    def add_work(self, item: Any, cost: float) -> None:
        """Add a job with a non-negative cost."""
        if cost < 0:
            raise ConfigurationError(f"job cost must be >= 0, not {cost}")
        self.jobs.append(Job(item, float(cost), len(self.jobs)))

    def compute_order(self) -> List[Bin]:
        """Assign all jobs to bins and return the m bins."""
        bins = [Bin(i) for i in range(self.nworkers)]
        heap = [(0., i) for i in range(self.nworkers)]
        for job in sorted(self.jobs, key=lambda x: -x.cost):
            _, idx = heapq.heappop(heap)
            bins[idx].add(job)
            heapq.heappush(heap, (bins[idx].total, idx))
        self.bins = bins
        return bins

    @property
    def makespan(self) -> float:
        return max((i.total for i in self.bins), default=0.)

    def run(
        self,
        bootstrap: Optional[Callable[[], Any]],
        func: Callable[[Any, Any], Any],
        nprocs: Optional[int] = None,
        ipyclient=None,
        pool: str = "process",
        stop_on_error: bool = False,
    ) -> List[BinResult]:
        """Run every bin on a worker and return one BinResult per bin.

        Parameters
        ----------
        bootstrap: callable or None
            Called once per bin, before its first job; the return
            value is passed as `state` to each job.
        func: callable
            Called as func(state, item) for each job.
        nprocs: int
            Max bins running at once, default the number of bins.
        ipyclient: ipyparallel.Client or None
            If given, bins are sent to its load-balanced view and
            nprocs and pool are ignored.
        pool: str
            'process' or 'thread' when no ipyclient is used. With
            processes, bootstrap, func, and items must be picklable.
        stop_on_error: bool
            End a bin at its first failed job. By default the failure
            is recorded and the remaining jobs of the bin still run.
        """
        bins = self.compute_order()
        todo = [i for i in bins if i.jobs]
        results = {i.index: BinResult(i.index) for i in bins}
        if not todo:
            return list(results.values())

        nprocs = self.nworkers if nprocs is None else nprocs
        if nprocs <= 0:
            raise ConfigurationError(f"nprocs must be > 0, not {nprocs}")
        if pool not in POOLS:
            raise ConfigurationError(f"pool must be one of {POOLS}, not '{pool}'")
        logger.debug(
            f"running {len(self.jobs)} jobs in {len(todo)} bins, "
            f"makespan={self.makespan:.4g}")

        if ipyclient is not None:
            lbview = ipyclient.load_balanced_view()
            rasyncs = {
                i.index: lbview.apply(run_bin, bootstrap, func, i.items, stop_on_error)
                for i in todo
            }
            outputs = track_remote_jobs(rasyncs, ipyclient)
        else:
            executor = ProcessPoolExecutor if pool == "process" else ThreadPoolExecutor
            with executor(max_workers=min(nprocs, len(todo))) as pooler:
                futures = {
                    i.index: pooler.submit(run_bin, bootstrap, func, i.items, stop_on_error)
                    for i in todo
                }
                outputs = {}
                for idx, future in futures.items():
                    try:
                        outputs[idx] = future.result()
                    except Exception as exc:  # pylint: disable=broad-except
                        # the worker died, e.g., BrokenProcessPool
                        outputs[idx] = ([], [(item, exc) for item in bins[idx].items])

        for idx, (values, errors) in outputs.items():
            results[idx].results = values
            results[idx].errors = errors
            for item, error in errors:
                logger.warning(f"job {item!r} of bin {idx} failed: {error!r}")
        return list(results.values())
