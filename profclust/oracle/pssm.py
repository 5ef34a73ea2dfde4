#!/usr/bin/env python

"""Read and edit PSSM files in the ASN.1 text format of psiblast.

The PSSM artifact is treated as opaque by the rest of the pipeline:
it is written once, atomically, and read back with `read_smp` when
the master sequence, scores, or calibration constants are needed.

A psiblast `-out_pssm` file stores the score matrix column-major:
`numRows` residue scores (in PSSM_RESIDUES order) for each of
`numColumns` positions of the master sequence.
"""

from typing import List, Optional
import re
import math
from pathlib import Path
from dataclasses import dataclass, field
import numpy as np
from profclust.core.exceptions import InputFormatError
from profclust.seqio.fasta import write_text_atomic

# residue order of psiblast PSSM score rows ('-' is the gap/terminator row)
PSSM_RESIDUES = list("-ABCDEFGHIKLMNPQRSTVWXYZU*OJ")

_SCALED = r"\{ (-?\d+), 10, (-?\d+) \}"


@dataclass
class Pssm:
    """A position specific scoring matrix with calibration constants."""
    master: str
    matrix: np.ndarray
    """: (ncolumns, nresidues) integer scores, one row per master position."""
    lambda_: Optional[float] = None
    kappa: Optional[float] = None
    entropy: Optional[float] = None
    id: str = ""
    title: str = ""
    residues: List[str] = field(default_factory=lambda: list(PSSM_RESIDUES))

    @property
    def ncolumns(self) -> int:
        return self.matrix.shape[0]

    def in_bits(self) -> np.ndarray:
        """Return the matrix scores converted to bits."""
        if not self.lambda_:
            raise InputFormatError("PSSM has no lambda; cannot convert to bits")
        return self.matrix * (self.lambda_ / math.log(2))


def _unquote(text: str) -> str:
    text = text.strip().rstrip(",").strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text.replace('""', '"')


def parse_smp(text: str) -> Pssm:
    """Return a Pssm parsed from ASN.1 text."""
    lines = iter(text.splitlines())
    nrows = ncols = None
    state = 0
    scores: List[int] = []
    pssm_id = title = master = None
    lambda_ = kappa = entropy = None

    for line in lines:
        if state == 2:
            match = re.match(r"\s*(-?\d+)", line)
            if match:
                scores.append(int(match.group(1)))
                continue
            state = 0

        if state and " scores " in line:
            state = 2
        elif " finalData " in line:
            state = 1
        elif re.search(r" numRows (\d+),", line):
            nrows = int(re.search(r" numRows (\d+),", line).group(1))
        elif re.search(r" numColumns (\d+),", line):
            ncols = int(re.search(r" numColumns (\d+),", line).group(1))
        elif pssm_id is None and re.match(r"^\s+id \{", line):
            nxt = next(lines, "")
            local = re.match(r"^\s+local (?:id|str) (.*)$", nxt)
            if local:
                pssm_id = f"lcl|{_unquote(local.group(1))}"
            elif re.match(r"^\s+general ", nxt):
                dbase = re.search(r' db "(.+)"', next(lines, ""))
                tag = re.sub(r"^\s+tag (?:id|str) ", "", next(lines, ""))
                tag = _unquote(tag)
                pssm_id = f"gnl|{dbase.group(1)}|{tag}" if dbase else f"gnl|{tag}"
        elif re.match(r"^\s+title\s+", line):
            title = re.sub(r"^\s+title\s+", "", line)
            # the title ends on the line with an odd number of trailing quotes
            while len(re.search(r'("*)$', title.rstrip(",")).group(1)) % 2 == 0:
                more = next(lines, None)
                if more is None:
                    break
                title += more
            title = _unquote(title)
        elif re.match(r'^ +seq-data \S+ "', line):
            master = re.sub(r'^ +seq-data \S+ "', "", line)
            while not master.rstrip().endswith('"'):
                more = next(lines, None)
                if more is None:
                    break
                master += more.strip()
            master = master.rstrip().rstrip('"')
        elif re.search(r" lambda " + _SCALED, line):
            man, exp = re.search(r" lambda " + _SCALED, line).groups()
            lambda_ = int(man) * 10 ** int(exp)
        elif re.search(r" kappa " + _SCALED, line):
            man, exp = re.search(r" kappa " + _SCALED, line).groups()
            kappa = int(man) * 10 ** int(exp)
        elif re.search(r" h " + _SCALED, line):
            man, exp = re.search(r" h " + _SCALED, line).groups()
            entropy = int(man) * 10 ** int(exp)

    if not nrows or ncols is None:
        raise InputFormatError("PSSM text is missing numRows or numColumns")
    if len(scores) != nrows * ncols:
        raise InputFormatError(
            f"number of PSSM scores ({len(scores)}) does not match "
            f"{ncols} columns x {nrows} rows")
    if master is not None and len(master) != ncols:
        raise InputFormatError("master sequence length does not match matrix columns")

    return Pssm(
        master=master or "",
        matrix=np.array(scores, dtype=np.int32).reshape(ncols, nrows),
        lambda_=lambda_,
        kappa=kappa,
        entropy=entropy,
        id=pssm_id or "",
        title=title or "",
        residues=PSSM_RESIDUES[:nrows],
    )


def read_smp(path: Path, bits: bool = False) -> Pssm:
    """Return a Pssm read from a psiblast ASN.1 text file.

    With bits=True the matrix holds float scores in bits.
    """
    pssm = parse_smp(Path(path).read_text(encoding="utf-8"))
    if bits:
        pssm.matrix = pssm.in_bits()
    return pssm


def id_block(pssm_id: str) -> str:
    """Return the ASN.1 id content for a 'gnl|db|tag', 'lcl|id' or plain id."""
    pssm_id = pssm_id.split()[0]
    match = re.match(r"^gnl\|([^|]+)\|(.+)$", pssm_id)
    if not match and not pssm_id.startswith("lcl|"):
        match = re.match(r"^([^|]+)\|(.+)$", pssm_id)
    if match:
        return (
            "        general {\n"
            f'          db "{match.group(1)}",\n'
            f'          tag str "{match.group(2)}"\n'
            "        }\n"
        )
    pssm_id = re.sub(r"^lcl\|", "", pssm_id)
    return f'        local str "{pssm_id}"\n'


def edit_smp(text: str, pssm_id: str, title: str) -> str:
    """Return psiblast PSSM text carrying an id and title.

    psiblast reports the title but not the id, so the id is also put
    at the front of the title. The (large) intermediateData block is
    dropped.
    """
    title = f"{pssm_id.split()[0]} {title}".strip().replace('"', '""')
    out = []
    lines = iter(text.splitlines(keepends=True))
    skip = False
    for line in lines:
        if re.match(r"^      id \{$", line.rstrip("\n")):
            out.append(line)
            out.append(id_block(pssm_id))
            old = next(lines, "")
            if " general {" in old:
                for _ in range(3):
                    next(lines, "")
            line = next(lines, "")

        if re.match(r"^      inst \{$", line.rstrip("\n")):
            out.append("      descr {\n")
            out.append(f'        title "{title}"\n')
            out.append("      },\n")

        if " intermediateData {" in line:
            skip = True
        if " finalData {" in line:
            skip = False
        if not skip:
            out.append(line)
    return "".join(out)


def write_smp(text: str, path: Path) -> Path:
    """Write PSSM text atomically."""
    return write_text_atomic(text, path)
