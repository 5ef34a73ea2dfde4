#!/usr/bin/env python

"""Read and write FASTA files and tab-separated id lists.

Malformed records (no id, or no residues) are skipped and counted
rather than raising, so a single broken record does not end a long
batch run. The counts are available from `FastaReader.nskipped`.
"""

from typing import Iterator, Iterable, List, TextIO, Tuple
import io
import os
import gzip
import tempfile
from pathlib import Path
from loguru import logger
from profclust.core.sequence import Sequence

logger = logger.bind(name="profclust")


def _open(path: Path, mode: str = "rt") -> TextIO:
    path = Path(path)
    if path.suffix == ".gz":
        return gzip.open(path, mode, encoding="utf-8")
    return io.open(path, mode, encoding="utf-8")


class FastaReader:
    """Iterator over Sequences in one FASTA file (gzip OK).

    Examples
    --------
    >>> reader = FastaReader("seqs.fa")
    >>> seqs = list(reader)
    >>> reader.nskipped
    """
    def __init__(self, path: Path, keep_gaps: bool = True):
        self.path = Path(path)
        self.keep_gaps = keep_gaps
        self.nread = 0
        self.nskipped = 0

    def __iter__(self) -> Iterator[Sequence]:
        with _open(self.path) as infile:
            yield from self._iter_records(infile)

    def _iter_records(self, handle: TextIO) -> Iterator[Sequence]:
        header = None
        chunks = []
        for line in handle:
            line = line.strip()
            if not line:
                continue
            if line.startswith(">"):
                if header is not None:
                    yield from self._make(header, chunks)
                header = line[1:]
                chunks = []
            elif header is not None:
                chunks.append(line)
            else:
                # residues before the first header line
                self.nskipped += 1
        if header is not None:
            yield from self._make(header, chunks)

    def _make(self, header: str, chunks: List[str]) -> Iterator[Sequence]:
        parts = header.split(None, 1)
        sid = parts[0] if parts else ""
        desc = parts[1] if len(parts) > 1 else ""
        residues = "".join("".join(chunks).split())
        seq = Sequence(sid, desc, residues)
        if not self.keep_gaps:
            seq = seq.to_ungapped()
        if not seq.is_valid():
            self.nskipped += 1
            logger.debug(f"skipped malformed FASTA record '{header}' in {self.path.name}")
            return
        self.nread += 1
        yield seq


def read_fasta(path: Path, keep_gaps: bool = True) -> List[Sequence]:
    """Return a list of Sequences from a FASTA file."""
    reader = FastaReader(path, keep_gaps=keep_gaps)
    seqs = list(reader)
    if reader.nskipped:
        logger.warning(f"skipped {reader.nskipped} malformed records in {path}")
    return seqs


def format_fasta(seqs: Iterable[Sequence], width: int = 0) -> str:
    """Return FASTA text. A width of 0 writes each sequence on one line."""
    lines = []
    for seq in seqs:
        header = f">{seq.id} {seq.description}" if seq.description else f">{seq.id}"
        lines.append(header)
        if width:
            lines.extend(
                seq.residues[i:i + width]
                for i in range(0, len(seq.residues), width))
        else:
            lines.append(seq.residues)
    return "\n".join(lines) + "\n" if lines else ""


def write_fasta(seqs: Iterable[Sequence], path: Path, width: int = 0) -> Path:
    """Write Sequences to a FASTA file atomically and return its path."""
    return write_text_atomic(format_fasta(seqs, width), path)


def write_id_list(rows: Iterable[Tuple], path: Path) -> Path:
    """Write tab-separated rows, e.g., (cluster, id, description)."""
    text = "".join("\t".join(str(i) for i in row) + "\n" for row in rows)
    return write_text_atomic(text, path)


def write_text_atomic(text: str, path: Path) -> Path:
    """Write text to a temp file in the same dir and rename it into place.

    Readers of `path` therefore never see a partially written file,
    which is what the idempotent restart logic relies on.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmpname = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as out:
            out.write(text)
        os.replace(tmpname, path)
    except BaseException:
        Path(tmpname).unlink(missing_ok=True)
        raise
    return path
