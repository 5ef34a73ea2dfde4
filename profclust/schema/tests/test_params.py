#!/usr/bin/env python

"""Unittests of parameter validation and project serialization."""

import tempfile
import unittest
from pathlib import Path
from pydantic import ValidationError
from profclust.core.exceptions import ConfigurationError
from profclust.schema import Params, ProjectSchema, BucketStats, ProfileStats


class TestParams(unittest.TestCase):

    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory(prefix="profclust-tests-")
        self.addCleanup(tmpdir.cleanup)
        self.tmpdir = Path(tmpdir.name)
        self.params = Params(project_name="test", project_dir=self.tmpdir)

    def test_defaults(self):
        self.assertEqual(self.params.clust_threshold, 0.8)
        self.assertEqual(self.params.traversal, "length")
        self.assertEqual(self.params.oracle, "blast")
        self.assertTrue(self.params.keep_first)
        self.assertEqual(self.params.fasta_paths, [])

    def test_name(self):
        with self.assertRaises(ConfigurationError):
            Params(project_name="a name")
        with self.assertRaises(ValidationError):
            self.params.project_name = "other"

    def test_paths(self):
        (self.tmpdir / "a.fasta").write_text(">a\nMK\n", encoding="utf-8")
        self.params.fasta_paths = str(self.tmpdir / "*.fasta")
        self.assertEqual(self.params.fasta_paths, [self.tmpdir.resolve() / "*.fasta"])
        with self.assertRaises(ConfigurationError):
            self.params.fasta_paths = self.tmpdir
        # a path matching nothing is allowed when set, and logged
        self.params.seed_paths = [self.tmpdir / "missing.fasta"]
        self.assertEqual(len(self.params.seed_paths), 1)

    def test_size_bins_sorted(self):
        self.params.size_bins = [500, 100, 250]
        self.assertEqual(self.params.size_bins, [100, 250, 500])
        with self.assertRaises(ConfigurationError):
            self.params.size_bins = [100, 0]
        with self.assertRaises(ConfigurationError):
            self.params.size_bins = [100, 100]

    def test_ranges(self):
        for name, value in (
            ("clust_threshold", 0),
            ("clust_threshold", 1.01),
            ("clust_min_coverage", -0.1),
            ("clust_max_offset", 1.5),
            ("min_depth", 2),
            ("max_identity", 1.2),
            ("max_e_value", 0),
            ("purify_max_e_value", -1),
            ("max_representative_similarity", 0),
            ("min_profile_size", -1),
        ):
            with self.assertRaises(ConfigurationError, msg=name):
                setattr(self.params, name, value)

    def test_choices(self):
        for name in ("clust_measure", "traversal", "oracle", "duplicate_policy", "cluster_order"):
            with self.assertRaises(ValidationError, msg=name):
                setattr(self.params, name, "bogus")
        self.params.traversal = "median"
        self.assertEqual(self.params.traversal, "median")


class TestProjectSchema(unittest.TestCase):

    def test_round_trip(self):
        schema = ProjectSchema(
            params=Params(project_name="test", size_bins=[200, 100]),
            cluster_stats={"size_0-99": BucketStats(nsequences=5, nclusters=2)},
            profile_stats={
                "size_0-99/clust_00000": ProfileStats(bucket="size_0-99", nmembers=3),
                "size_0-99/clust_00001": ProfileStats(
                    bucket="size_0-99", status=1, error="AlignerInvocationError: x"),
            },
        )
        back = ProjectSchema.model_validate_json(schema.model_dump_json())
        self.assertEqual(back.params.size_bins, [100, 200])
        self.assertEqual(back.cluster_stats["size_0-99"].nclusters, 2)
        self.assertEqual(back.profile_stats["size_0-99/clust_00001"].status, 1)
        self.assertIsNone(back.stats_files.s1)


if __name__ == "__main__":
    unittest.main()
