#!/usr/bin/env python

"""Unittests of trimming, dereplication, and purification.

Tests
-----
1. trim amounts are read from the sorted terminal gap runs
2. the trailing trim never overlaps the leading trim
3. kept rows are pairwise below every redundancy ceiling
4. purification labels rows in_profile, redundant, or poor_match
5. purifying a purified profile returns it unchanged
6. an empty alignment raises, an all-failing one gives zero rows
7. the report is written as a tab-separated table
"""

import random
import tempfile
import unittest
from pathlib import Path
from profclust.core.sequence import Sequence
from profclust.core.exceptions import (
    ConfigurationError, EmptyAlignmentError, DuplicateIdError, InputFormatError,
)
from profclust.align.pairwise import to_codes, similarity
from profclust.oracle import UngappedOracle
from profclust.purify import (
    trim_amount, trim_amounts, trim_alignment, dereplicate, order_rows,
    PurifyConfig, purify_alignment, write_report, read_report,
    IN_PROFILE, REDUNDANT, POOR_MATCH, REPORT_COLUMNS,
)

AMINO = "ACDEFGHIKLMNPQRSTVWY"


def random_protein(rng: random.Random, length: int) -> str:
    return "".join(rng.choice(AMINO) for _ in range(length))


def mutate(rng: random.Random, residues: str, nsites: int) -> str:
    residues = list(residues)
    for pos in rng.sample(range(len(residues)), nsites):
        residues[pos] = rng.choice([i for i in AMINO if i != residues[pos]])
    return "".join(residues)


def _rows(*residues):
    return [Sequence(f"s{idx}", "", res) for idx, res in enumerate(residues)]


class TestTrim(unittest.TestCase):

    def test_trim_amount(self):
        self.assertEqual(trim_amount([0, 1, 3, 3, 5], 0.25), 1)
        self.assertEqual(trim_amount([5, 3, 3, 1, 0], 0.5), 3)
        self.assertEqual(trim_amount([0, 1, 3, 3, 5], 0.), 0)
        # the rank is capped at the last row
        self.assertEqual(trim_amount([0, 1, 3, 3, 5], 1.), 5)
        self.assertEqual(trim_amount([], 0.25), 0)
        with self.assertRaises(ConfigurationError):
            trim_amount([1], 1.5)

    def test_trim_alignment(self):
        align = _rows(
            "MKVLA",
            "-KVLA",
            "---LA",
            "---L-",
            "-----",
        )
        self.assertEqual(trim_amounts(align, 0.25), (1, 0))
        trimmed = trim_alignment(align, 0.25)
        self.assertEqual([i.residues for i in trimmed], ["KVLA", "KVLA", "--LA", "--L-", "----"])
        self.assertEqual([i.id for i in trimmed], [i.id for i in align])

    def test_trim_ends_do_not_overlap(self):
        align = _rows("---", "---")
        lead, trail = trim_amounts(align, 0.5)
        self.assertEqual(lead + trail, 3)
        self.assertEqual([i.residues for i in trim_alignment(align, 0.5)], ["", ""])


class TestDereplicate(unittest.TestCase):

    def setUp(self):
        rng = random.Random(5)
        base = random_protein(rng, 60)
        self.align = [Sequence("short", "", "-" * 10 + base[10:])]
        self.align += [
            Sequence(f"v{i}", "", mutate(rng, base, 2 + 4 * i)) for i in range(6)
        ]
        self.align.append(Sequence("other", "", random_protein(rng, 60)))

    def test_pairwise_below_ceiling(self):
        for ceilings in (
            [("identity", 0.85)],
            [("identity", 0.95), ("positives", 0.9)],
            [("nbs", 2.0)],
        ):
            kept, dropped = dereplicate(self.align, ceilings)
            self.assertEqual(len(kept) + len(dropped), len(self.align))
            codes = [to_codes(i.residues) for i in kept]
            for idx, row1 in enumerate(codes):
                for row2 in codes[idx + 1:]:
                    for measure, ceiling in ceilings:
                        self.assertLess(similarity(row1, row2, measure), ceiling)

    def test_order(self):
        ordered = order_rows(self.align)
        self.assertEqual(ordered[0].id, "v0")
        self.assertEqual(ordered[-1].id, "short")
        self.assertEqual(order_rows(self.align, keep_first=True)[0].id, "short")
        self.assertEqual(order_rows(self.align, no_reorder=True), self.align)

    def test_keep_first(self):
        kept, dropped = dereplicate(self.align, keep_first=True)
        self.assertEqual(kept[0].id, "short")
        self.assertIn("v0", dropped)
        self.assertIn("other", [i.id for i in kept])

    def test_unknown_measure(self):
        with self.assertRaises(ConfigurationError):
            dereplicate(self.align, [("evalue", 0.1)])


class TestPurify(unittest.TestCase):

    def setUp(self):
        rng = random.Random(9)
        base = random_protein(rng, 100)
        self.align = [Sequence("base", "first", base)]
        self.align += [Sequence(f"var{i}", "", mutate(rng, base, 3)) for i in range(3)]
        self.align.append(Sequence("stranger", "", random_protein(rng, 100)))
        self.oracle = UngappedOracle()

    def test_statuses(self):
        result = purify_alignment(self.align, self.oracle)
        status = {i.id: i.status for i in result.report}
        self.assertEqual(status["base"], IN_PROFILE)
        self.assertEqual(status["var0"], REDUNDANT)
        self.assertEqual(status["stranger"], POOR_MATCH)
        self.assertEqual(result.counts, {IN_PROFILE: 1, REDUNDANT: 3, POOR_MATCH: 1})
        self.assertEqual([i.id for i in result.report], [i.id for i in self.align])
        self.assertEqual([i.id for i in result.alignment], ["base"])
        self.assertEqual(len(result.filtered), 4)

        record = result.report[0]
        self.assertEqual(record.query_coverage, 1.)
        self.assertEqual(record.subject_coverage, 1.)
        self.assertLess(record.e_value, 1e-10)

    def test_ceiling_keeps_variants(self):
        config = PurifyConfig(max_identity=0.99)
        result = purify_alignment(self.align, self.oracle, config)
        self.assertEqual(len(result.alignment), 4)
        self.assertEqual(result.counts[POOR_MATCH], 1)

    def test_idempotent(self):
        config = PurifyConfig(max_identity=0.99)
        first = purify_alignment(self.align, self.oracle, config)
        second = purify_alignment(first.alignment, self.oracle, config)
        self.assertEqual(second.alignment, first.alignment)

    def test_case_and_packing(self):
        # an all-gap column in the middle is kept by trimming, removed by packing
        align = [
            seq.with_residues(seq.residues[:50].lower() + "-" + seq.residues[50:].lower())
            for seq in self.align[:2]
        ]
        result = purify_alignment(align, self.oracle, PurifyConfig(max_identity=0.99))
        self.assertEqual(result.alignment[0].residues, self.align[0].residues)

        keep = PurifyConfig(max_identity=0.99, keep_case=True, no_pack=True)
        result = purify_alignment(align, self.oracle, keep)
        self.assertEqual(result.alignment[0].residues, align[0].residues)

    def test_trim_exposes_redundant_rows(self):
        # a and b differ only in the three leading columns trimmed away
        rng = random.Random(3)
        core = "CDEFGHIKLMNPQ"
        align = [Sequence("a", "", "WWW" + core), Sequence("b", "", "YYY" + core)]
        align += [Sequence(f"o{i}", "", "---" + random_protein(rng, 13)) for i in range(6)]
        config = PurifyConfig(min_nbs=0, min_q_cover=0, min_s_cover=0, max_e_value=1000)
        result = purify_alignment(align, self.oracle, config)

        self.assertEqual(len(result.filtered), len(align))
        ids = [i.id for i in result.alignment]
        self.assertIn("a", ids)
        self.assertNotIn("b", ids)
        self.assertEqual({i.id: i.status for i in result.report}["b"], REDUNDANT)
        codes = [to_codes(i.residues) for i in result.alignment]
        for idx, row1 in enumerate(codes):
            for row2 in codes[idx + 1:]:
                self.assertLess(similarity(row1, row2, "identity"), 0.85)

    def test_all_fail(self):
        result = purify_alignment(self.align, self.oracle, PurifyConfig(min_nbs=100))
        self.assertEqual(result.alignment, [])
        self.assertEqual(result.counts[POOR_MATCH], len(self.align))

    def test_errors(self):
        with self.assertRaises(EmptyAlignmentError):
            purify_alignment([], self.oracle)
        with self.assertRaises(DuplicateIdError):
            purify_alignment(self.align + self.align[:1], self.oracle)
        with self.assertRaises(InputFormatError):
            purify_alignment(self.align + [Sequence("x", "", "MK")], self.oracle)
        for kwargs in ({"min_depth": 2}, {"max_identity": 0}, {"min_nbs": -1}, {"max_e_value": 0}):
            with self.assertRaises(ConfigurationError):
                PurifyConfig(**kwargs)

    def test_ceilings(self):
        self.assertEqual(PurifyConfig().ceilings, [("identity", 0.85)])
        self.assertEqual(
            PurifyConfig(max_nbs=1.5, max_positives=0.9).ceilings,
            [("positives", 0.9), ("nbs", 1.5)])

    def test_report(self):
        result = purify_alignment(self.align, self.oracle)
        with tempfile.TemporaryDirectory(prefix="profclust-tests-") as tmpdir:
            path = write_report(result.report, Path(tmpdir) / "report.tsv")
            header = path.read_text(encoding="utf-8").splitlines()[0]
            self.assertEqual(header.split("\t"), REPORT_COLUMNS)
            table = read_report(path)
            self.assertEqual(list(table["id"]), [i.id for i in self.align])
            self.assertEqual(table.loc[4, "status"], POOR_MATCH)


if __name__ == "__main__":
    unittest.main()
