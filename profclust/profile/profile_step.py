#!/usr/bin/env python

"""Step 2: build a purified profile and PSSM for each cluster.

The clusters written by step 1 are gathered from every bucket dir.
Clusters with a non-empty report file are finished and skipped
unless forced. The rest are spread over the workers with an LPT
schedule, using members^2 x mean length as the cost of a cluster.
"""

from typing import List, Dict, Any
from functools import partial
from loguru import logger
import pandas as pd
from profclust.core.base_step import BaseStep, SUFFIX
from profclust.core.cluster import get_num_cpus
from profclust.core.exceptions import ConfigurationError
from profclust.purify.purify import PurifyConfig
from profclust.schedule.lpt import LPTScheduler
from profclust.schema import ProfileStats
from profclust.profile.profile_funcs import (
    ProfileJob, cluster_cost, job_record, load_context, profile_cluster,
)

logger = logger.bind(name="profclust")


class ProfileStep(BaseStep):
    """Align, purify, and build PSSMs of all clusters."""
    def __init__(self, data, force: bool = False, ipyclient=None, quiet: bool = False):
        super().__init__(data, step=2, force=force, quiet=quiet)
        self.ipyclient = ipyclient
        self.jobs: List[ProfileJob] = []
        self.costs: Dict[str, float] = {}
        self._records: List[Dict[str, Any]] = []

    def run(self) -> None:
        self._get_jobs()
        self._run_scheduled_jobs()
        self._write_json_file()
        self._write_stats_file()

    @property
    def config(self) -> PurifyConfig:
        """Return the purification settings built from the project params."""
        params = self.data.params
        return PurifyConfig(
            min_depth=params.min_depth,
            max_identity=params.max_identity,
            max_positives=params.max_positives,
            max_nbs=params.max_nbs,
            min_nbs=params.min_nbs,
            min_q_cover=params.min_q_cover,
            min_s_cover=params.min_s_cover,
            max_e_value=params.purify_max_e_value,
            keep_first=params.keep_first,
            no_pack=params.no_pack,
            no_reorder=params.no_reorder,
            threads=self.data.ipcluster["threads"],
        )

    @property
    def nworkers(self) -> int:
        if self.ipyclient is not None:
            return len(self.ipyclient)
        cores = self.data.ipcluster["cores"] or get_num_cpus()
        return max(1, cores // max(1, self.data.ipcluster["threads"]))

    def _get_jobs(self) -> None:
        """Find the cluster files that still need a profile."""
        clustdir = self.data.params.project_dir / f"{self.data.name}_{SUFFIX[1]}"
        if not clustdir.exists():
            raise ConfigurationError(
                f"cluster dir {clustdir} not found. You must first run step 1.")

        ndone = nsmall = 0
        for bucketdir in sorted(i for i in clustdir.iterdir() if i.is_dir()):
            for fasta in sorted(bucketdir.glob("clust_*.fasta")):
                job = ProfileJob(
                    bucket=bucketdir.name,
                    name=fasta.name.rsplit(".", 1)[0],
                    fasta=fasta,
                    outdir=self.stepdir / bucketdir.name,
                )
                if job.is_done and not self.force:
                    ndone += 1
                    continue
                cost = cluster_cost(fasta)
                if cost["nmembers"] < self.data.params.min_profile_size:
                    nsmall += 1
                    continue
                self.jobs.append(job)
                self.costs[job.key] = cost["cost"]

        if ndone:
            logger.warning(
                f"skipping {ndone} clusters with finished profiles. "
                "Use force (-f) to redo them.")
        if nsmall:
            logger.info(
                f"skipping {nsmall} clusters with < "
                f"{self.data.params.min_profile_size} members")
        logger.info(f"building profiles for {len(self.jobs)} clusters")

    def _run_scheduled_jobs(self) -> None:
        """Distribute cluster jobs over workers by LPT and run them."""
        if not self.jobs:
            return
        params = self.data.params
        sched = LPTScheduler(self.nworkers)
        for job in self.jobs:
            sched.add_work(job, self.costs[job.key])
        bootstrap = partial(
            load_context, params.oracle, params.blast_program,
            self.config, self.data.ipcluster["threads"])

        results = sched.run(bootstrap, profile_cluster, ipyclient=self.ipyclient)
        for binres in results:
            self._records.extend(binres.results)
            # errors not caught inside the job, e.g. OSError
            for job, error in binres.errors:
                logger.error(f"profile of {job.key} failed: {error!r}")
                self._records.append(job_record(job, error))

        nfailed = sum(1 for i in self._records if i["status"])
        if nfailed:
            logger.warning(f"{nfailed} cluster profiles failed, see the stats file")

    def _write_json_file(self) -> None:
        for rec in self._records:
            key = f"{rec['bucket']}/{rec['name']}"
            self.data.profile_stats[key] = ProfileStats(
                **{i: j for i, j in rec.items() if i != "name"})
        self.data.save_json()

    def _write_stats_file(self) -> None:
        columns = [i for i in ProfileStats.model_fields if i != "error"]
        statsdf = pd.DataFrame(index=sorted(self.data.profile_stats), columns=columns)
        for key, stats in self.data.profile_stats.items():
            for col in columns:
                statsdf.loc[key, col] = getattr(stats, col)
        handle = self.stepdir / "s2_profile_stats.txt"
        with open(handle, "w", encoding="utf-8") as out:
            statsdf.fillna(value=0).to_string(out)
        self.data.stats_files.s2 = handle
        logger.info(f"step 2 results written to {handle}")
