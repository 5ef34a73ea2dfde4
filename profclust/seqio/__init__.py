#!/usr/bin/env python

from profclust.seqio.fasta import (
    FastaReader,
    read_fasta,
    format_fasta,
    write_fasta,
    write_id_list,
    write_text_atomic,
)
from profclust.seqio.clustal import (
    format_pseudoclustal,
    write_pseudoclustal,
    read_pseudoclustal,
)
