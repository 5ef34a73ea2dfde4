#!/usr/bin/env python

from profclust.cluster.traversal import traverse, get_traversal, TRAVERSALS
from profclust.cluster.diversity import DiversityPolicy, RepresentativeOnly, DivergentMembers
from profclust.cluster.sinks import ClusterSink, LogSink, ClusterFileSink, SinkGroup
from profclust.cluster.engine import (
    ClusterConfig,
    ClusterStats,
    ClusteringEngine,
    RepresentativePool,
)
