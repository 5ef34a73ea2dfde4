#!/usr/bin/env python

"""Project class is the core object for calling pipeline steps.

"""

from typing import Dict, Optional
from pathlib import Path
from loguru import logger
import pandas as pd
import ipyparallel

from profclust.core.cluster import Cluster
from profclust.core.exceptions import ConfigurationError
from profclust.schema import Params, ProjectSchema, BucketStats, ProfileStats, StatsFiles
from profclust.cluster.cluster_step import ClusterStep
from profclust.profile.profile_step import ProfileStep

logger = logger.bind(name="profclust")

# the Class functions to run for each entered step.
STEP_MAP = {
    "1": ClusterStep,
    "2": ProfileStep,
}


class Project:
    """Project class for storing params, connecting to cluster, and
    running pipeline steps.

    Notes
    -----
    The Project object can be serialized to JSON using .save_json(),
    and reloaded using profclust.load_json(). The schema for
    converting back and forth between object and JSON checks the
    types of the Params.

    Examples
    --------
    >>> import profclust as pc
    >>> proj = pc.Project(name="test")
    >>> proj.params.fasta_paths = "./data/*.fasta"
    >>> proj.params.size_bins = [100, 250, 500]
    >>> proj.run("12", cores=8)
    """
    def __init__(self, name: str):
        self.params = Params(project_name=name)
        """: A class storing project parameters."""
        self.cluster_stats: Dict[str, BucketStats] = {}
        """: Step 1 stats of each size bucket."""
        self.profile_stats: Dict[str, ProfileStats] = {}
        """: Step 2 stats of each cluster, keyed by bucket/cluster."""
        self.stats_files = StatsFiles()
        self.ipcluster = {"cores": None, "threads": 1}
        """: Dict with default parallelization args."""

    def __repr__(self):
        return f"<profclust.Project object {self.name}>"

    @property
    def name(self) -> str:
        """Return the project_name from Project.params"""
        return self.params.project_name

    @property
    def json_file(self) -> Path:
        """Return JSON file as {project_dir}/{project_name}.json"""
        return self.params.project_dir / (self.params.project_name + ".json")

    @property
    def stats(self) -> pd.DataFrame:
        """Return a dataframe with summary stats of each size bucket."""
        buckets = sorted(set(self.cluster_stats) | {
            i.bucket for i in self.profile_stats.values()})
        stats = pd.DataFrame(
            index=buckets,
            columns=[
                "sequences",
                "clusters",
                "singletons",
                "profiles",
                "profiles_failed",
                "mean_profile_rows",
            ],
        )
        for bucket in buckets:
            if bucket in self.cluster_stats:
                cstats = self.cluster_stats[bucket]
                stats.loc[bucket, "sequences"] = cstats.nclustered
                stats.loc[bucket, "clusters"] = cstats.nclusters
                stats.loc[bucket, "singletons"] = cstats.nsingletons
            profs = [i for i in self.profile_stats.values() if i.bucket == bucket]
            if profs:
                passed = [i for i in profs if not i.status]
                stats.loc[bucket, "profiles"] = len(passed)
                stats.loc[bucket, "profiles_failed"] = len(profs) - len(passed)
                if passed:
                    stats.loc[bucket, "mean_profile_rows"] = (
                        sum(i.nin_profile for i in passed) / len(passed))

        # drop columns that are all NAN
        stats = stats.dropna(axis=1, how="all")
        return stats

    def branch(self, name: str) -> 'Project':
        """Return a new Project with the same params and a new name.

        The new project writes to a different name prefix path, so
        its steps can be re-run with different settings. Stats are
        not copied.
        """
        branch = Project(name)
        params = self.params.model_dump()
        params["project_name"] = name
        branch.params = Params(**params)
        branch.ipcluster = dict(self.ipcluster)
        logger.info(f"created new branch '{name}'")
        return branch

    def save_json(self) -> None:
        """Writes the current Project object to the project JSON file."""
        self.params.project_dir.mkdir(parents=True, exist_ok=True)
        project = ProjectSchema(
            params=Params(**self.params.model_dump()),
            cluster_stats=self.cluster_stats,
            profile_stats=self.profile_stats,
            stats_files=self.stats_files,
        )
        with open(self.json_file, "w", encoding="utf-8") as out:
            out.write(project.model_dump_json(indent=2, exclude_none=True))
        logger.debug(f"Project JSON saved to {self.json_file}")

    def run(
        self,
        steps: str,
        cores: Optional[int] = None,
        threads: Optional[int] = None,
        force: bool = False,
        quiet: bool = False,
        ipyclient: Optional[ipyparallel.Client] = None,
        parallel: bool = True,
        **ipyclient_kwargs,
    ) -> None:
        """Run one or more pipeline steps (1-2).

        Parameters
        ----------
        steps: str
            A string of steps to run, e.g., "1", or "12".
        cores: int
            Total cores to use, default all CPUs. One engine (or worker
            process) is started per `cores // threads`.
        threads: int
            Threads per BLAST+ or muscle call.
        force: bool
            Redo buckets or clusters that already have results.
        quiet: bool
            Suppress step headers.
        ipyclient: None or ipyparallel.Client
            Optional running client to distribute jobs to, e.g., one
            connected to MPI engines on an HPC cluster.
        parallel: bool
            If False, no ipcluster is started: buckets are clustered
            in this process and profiles use a local process pool.

        Examples
        --------
        >>> proj = pc.load_json("test.json")
        >>> proj.run("12", cores=4)
        """
        bad = [i for i in steps if i not in STEP_MAP]
        if bad or not steps:
            raise ConfigurationError(
                f"steps must be a string of {list(STEP_MAP)}, not '{steps}'")
        if cores is not None:
            self.ipcluster["cores"] = cores
        if threads is not None:
            self.ipcluster["threads"] = threads

        # save the current JSON file
        self.save_json()

        if ipyclient is not None or not parallel:
            for step in sorted(steps):
                STEP_MAP[step](self, force=force, ipyclient=ipyclient, quiet=quiet).run()
            return

        # start cluster, run jobs, and shutdown.
        cluster = Cluster(
            cores=self.ipcluster["cores"],
            threads=self.ipcluster["threads"],
            quiet=quiet,
            **ipyclient_kwargs,
        )
        with cluster as client:
            for step in sorted(steps):
                STEP_MAP[step](self, force=force, ipyclient=client, quiet=quiet).run()


if __name__ == "__main__":

    import profclust as pc
    pc.set_log_level("DEBUG")

    TEST = pc.Project("TEST")
    TEST.params.project_dir = "/tmp/profclust-test"
    TEST.params.fasta_paths = "/tmp/profclust-test/seqs.fasta"
    TEST.params.oracle = "ungapped"
    TEST.run("12", force=True, parallel=False)
    print(TEST.stats)
