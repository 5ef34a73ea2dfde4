#!/usr/bin/env python

"""API level classes for profclust.

Examples
--------
>>> import profclust as pc
>>> proj = pc.Project("test")
>>> proj.params.fasta_paths = "./data/*.fasta"
>>> proj.params.size_bins = [100, 250, 500]
>>> proj.run("12", cores=8)

>>> oracle = pc.UngappedOracle()
>>> engine = pc.ClusteringEngine(oracle, pc.ClusterConfig(threshold=0.9))
>>> clusters = engine.run(pc.read_fasta("seqs.fasta"))

>>> result = pc.purify_alignment(pc.read_fasta("aligned.fasta"), pc.BlastOracle())
"""

# bring nested functions to top for API access
from profclust.core.logger_setup import set_log_level
from profclust.core.exceptions import ProfClustError
from profclust.core.sequence import Sequence, Cluster
from profclust.core.project import Project
from profclust.core.load_json import load_json
from profclust.core.cluster import Cluster as IPCluster
from profclust.seqio import read_fasta, write_fasta
from profclust.oracle import BlastOracle, UngappedOracle, OracleOptions, read_smp
from profclust.cluster import ClusteringEngine, ClusterConfig, LogSink, ClusterFileSink
from profclust.purify import PurifyConfig, purify_alignment, write_report
from profclust.schedule import LPTScheduler

__version__ = "0.1.0"
__author__ = "profclust developers"

# configure the logger
set_log_level("INFO")
