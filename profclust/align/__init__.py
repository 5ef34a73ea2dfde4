#!/usr/bin/env python

from profclust.align.pairwise import BLOSUM62, MEASURES, to_codes, column_stats, similarity
from profclust.align.msa import alignment_array, pack_alignment, consensus, to_upper
from profclust.align.muscle import align_sequences
