#!/usr/bin/env python

"""Tests of the command line subcommands and their exit codes.

- test_new_and_print
- test_new_existing_json_needs_force
- test_new_bad_param_value
- test_usage_error
- test_purify
- test_purify_empty_input
"""

import random
import tempfile
import unittest
from pathlib import Path
import profclust as pc
from profclust.__main__ import main
from profclust.core.sequence import Sequence
from profclust.seqio import write_fasta, read_fasta
from profclust.purify import read_report, REPORT_COLUMNS

AMINO = "ACDEFGHIKLMNPQRSTVWY"


class TestCLI(unittest.TestCase):

    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory(prefix="profclust-tests-")
        self.addCleanup(tmpdir.cleanup)
        self.tmpdir = Path(tmpdir.name)
        rng = random.Random(21)
        base = "".join(rng.choice(AMINO) for _ in range(90))
        seqs = [Sequence("a", "", base), Sequence("b", "", base[:45] + "W" + base[46:])]
        self.fasta = write_fasta(seqs, self.tmpdir / "aligned.fasta")

    def _main(self, *args) -> int:
        with self.assertRaises(SystemExit) as exit_:
            main([str(i) for i in args])
        return exit_.exception.code

    def test_new_and_print(self):
        code = self._main(
            "new", "-n", "CLI", "--project_dir", self.tmpdir,
            "--fasta_paths", self.fasta, "--size_bins", "200", "100",
            "--clust_threshold", "0.9", "--oracle", "ungapped", "--no_pack",
        )
        self.assertEqual(code, 0)
        proj = pc.load_json(self.tmpdir / "CLI.json")
        self.assertEqual(proj.params.size_bins, [100, 200])
        self.assertEqual(proj.params.clust_threshold, 0.9)
        self.assertEqual(proj.params.oracle, "ungapped")
        self.assertTrue(proj.params.no_pack)
        self.assertFalse(proj.params.multi_representative)

        self.assertEqual(self._main("print", "-j", self.tmpdir / "CLI.json", "--params"), 0)

    def test_new_existing_json_needs_force(self):
        args = ["new", "-n", "CLI", "--project_dir", self.tmpdir, "--fasta_paths", self.fasta]
        self.assertEqual(self._main(*args), 0)
        self.assertEqual(self._main(*args), 1)
        self.assertEqual(self._main(*args, "-f"), 0)

    def test_new_bad_param_value(self):
        code = self._main(
            "new", "-n", "CLI", "--project_dir", self.tmpdir,
            "--fasta_paths", self.fasta, "--clust_threshold", "1.5")
        self.assertEqual(code, 1)
        self.assertFalse((self.tmpdir / "CLI.json").exists())

    def test_usage_error(self):
        self.assertEqual(self._main("run", "-s", "12"), 1)
        self.assertEqual(self._main(), 1)
        self.assertEqual(self._main("run", "-j", self.tmpdir / "none.json", "-s", "1"), 1)

    def test_purify(self):
        out = self.tmpdir / "profile.fasta"
        report = self.tmpdir / "report.tsv"
        code = self._main(
            "purify", "-i", self.fasta, "-o", out, "--report", report,
            "--oracle", "ungapped", "--max_identity", "0.9")
        self.assertEqual(code, 0)
        self.assertEqual([i.id for i in read_fasta(out)], ["a"])
        table = read_report(report)
        self.assertEqual(list(table.columns), REPORT_COLUMNS)
        self.assertEqual(list(table["status"]), ["in_profile", "redundant"])

    def test_purify_empty_input(self):
        empty = self.tmpdir / "empty.fasta"
        empty.write_text("", encoding="utf-8")
        code = self._main(
            "purify", "-i", empty, "-o", self.tmpdir / "out.fasta", "--oracle", "ungapped")
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
