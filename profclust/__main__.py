#!/usr/bin/env python

"""Command line interface.

Examples
--------
>>> profclust new -n NEW --fasta_paths ./data/*.fasta --size_bins 100 250 500
>>> profclust run -j NEW.json -s 12 -c 8 -t 2
>>> profclust purify -i ALIGNED.fasta -o PROFILE.fasta --report REPORT.tsv
>>> profclust print -j NEW.json --stats
"""

from typing import List, Optional
import sys
import argparse
from pathlib import Path
from loguru import logger
from pydantic import ValidationError
import profclust as pc
from profclust.core.exceptions import ProfClustError
from profclust.schema import Params
from profclust.seqio import read_fasta, write_fasta
from profclust.oracle import get_oracle
from profclust.purify import PurifyConfig, purify_alignment, write_report

logger = logger.bind(name="profclust")

VERSION = str(pc.__version__)
HEADER = f"""
-------------------------------------------------------------
 profclust [v.{VERSION}]
 Sequence clustering and purified profile construction
-------------------------------------------------------------\
"""

DESCRIPTION = " profclust command line tool. Select a positional subcommand:"
EPILOG = """\
Note
----
Each subcommand has its own additional help screen, e.g.,:
>>> profclust run -h

Examples
--------
>>> # new: create a new project file and set parameters
>>> profclust new -n NAME --fasta_paths ./data/*.fasta
>>> profclust new -n NAME --fasta_paths ./data/*.fasta --size_bins 100 250 500 --clust_threshold 0.9

>>> # run: run step 1 (clustering) and/or step 2 (profiles)
>>> profclust run -j NAME.json -s 1
>>> profclust run -j NAME.json -s 12 -c 40 -t 2
>>> profclust run -j NAME.json -s 2 -f --logger DEBUG

>>> # purify: purify a single alignment into a profile
>>> profclust purify -i ALIGN.fasta -o PROFILE.fasta --report REPORT.tsv

>>> # print: show project parameters or stats.
>>> profclust print -j NAME.json --stats
>>> profclust print -j NAME.json --params
"""

RUN_EPILOG = """\
Examples
--------
>>> profclust run -j NAME.json -s 1
>>> profclust run -j NAME.json -s 12 -c 40 -t 2
>>> profclust run -j NAME.json -s 2 -f --logger DEBUG
"""

NEW_EPILOG = """\
Examples
--------
>>> profclust new -n NAME --fasta_paths ./data/*.fasta
>>> profclust new -n NAME --fasta_paths ./data/*.fasta --oracle ungapped
>>> profclust new -n NAME --fasta_paths a.fasta b.fasta --seed_paths reps.fasta -f
"""

PURIFY_EPILOG = """\
Examples
--------
>>> profclust purify -i ALIGN.fasta -o PROFILE.fasta
>>> profclust purify -i ALIGN.fasta -o PROFILE.fasta --max_identity 0.9 --min_nbs 0.3
>>> profclust purify -i ALIGN.fasta -o PROFILE.fasta --report R.tsv --oracle ungapped
"""

PRINT_EPILOG = """\
Examples
--------
>>> profclust print -j NAME.json --params
>>> profclust print -j NAME.json --stats
"""

LOGGER_HELP = (
    "Set logging level as a single value to log to STDERR (e.g., INFO) "
    "or as two values to log to a file (e.g., INFO log.txt).")


class ArgumentParser(argparse.ArgumentParser):
    """Exit with status 1, not 2, on usage errors."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def setup_new_subparser(subparsers: argparse._SubParsersAction) -> None:
    """Add `profclust new` subcommand parser."""
    new = subparsers.add_parser(
        "new",
        description=HEADER + "\n" + " profclust new: create a new named JSON project file",
        help="Create a new named JSON project file.",
        epilog=NEW_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    new.add_argument(
        "--force", "-f", action="store_true",
        help="Force overwrite of existing JSON file.",
    )
    new.add_argument("--logger", type=str, nargs="*", default=("INFO",), help=LOGGER_HELP)
    params = new.add_argument_group("params", "args to set parameters")
    params.add_argument(
        "--project_name", "-n", type=str, required=True,
        help="Name prefix used for the JSON file and outputs.")
    params.add_argument(
        "--project_dir", type=Path,
        help="The filepath at which to store the JSON file and output directories.")
    params.add_argument(
        "--fasta_paths", type=Path, nargs="+", required=True,
        help="One or more fasta files or globs (e.g., ./data/*.fasta).")
    params.add_argument(
        "--seed_paths", type=Path, nargs="*",
        help="Fasta files of existing representatives, each seeds a cluster.")
    params.add_argument(
        "--size_bins", type=int, nargs="*",
        help="Length boundaries of the size buckets, e.g., 100 250 500.")
    params.add_argument(
        "--clust_threshold", type=float,
        help="Min similarity to a representative to join its cluster. Default=0.8")
    params.add_argument(
        "--clust_measure", type=str, choices=["identity", "positives", "nbs"],
        help="Similarity measure used for clustering. Default=identity")
    params.add_argument(
        "--clust_min_coverage", type=float,
        help="Min aligned fraction of both sequences. Default=0.8")
    params.add_argument(
        "--clust_max_offset", type=float,
        help="Max shift of the aligned ends, as a fraction of the shorter. Default=None")
    params.add_argument(
        "--traversal", type=str, choices=["input", "length", "median"],
        help="Order in which sequences are clustered. Default=length")
    params.add_argument(
        "--multi_representative", action="store_true", default=None,
        help="Also compare to divergent members of each cluster.")
    params.add_argument(
        "--duplicate_policy", type=str, choices=["strict", "skip"],
        help="Error on, or skip, repeated sequence ids. Default=strict")
    params.add_argument(
        "--oracle", type=str, choices=["blast", "ungapped"],
        help="Similarity tool. Default=blast")
    params.add_argument(
        "--blast_program", type=str, choices=["blastp", "blastn"],
        help="BLAST+ program for clustering. Default=blastp")
    params.add_argument(
        "--max_e_value", type=float,
        help="Max e-value of clustering hits. Default=1e-3")
    params.add_argument(
        "--min_profile_size", type=int,
        help="Clusters with fewer members get no profile. Default=1")
    add_purify_params(params)


def add_purify_params(group) -> None:
    """Add the purification threshold args shared by `new` and `purify`."""
    group.add_argument(
        "--min_depth", type=float,
        help="Fraction of rows that must have residues at the trimmed ends. Default=0.25")
    group.add_argument(
        "--max_identity", type=float,
        help="Redundancy ceiling on identity. Default=0.85 if no other ceiling")
    group.add_argument("--max_positives", type=float, help="Redundancy ceiling on positives.")
    group.add_argument("--max_nbs", type=float, help="Redundancy ceiling on normalized bits.")
    group.add_argument("--min_nbs", type=float, help="Min normalized bit score. Default=0.25")
    group.add_argument("--min_q_cover", type=float, help="Min profile coverage. Default=0.8")
    group.add_argument("--min_s_cover", type=float, help="Min sequence coverage. Default=0.8")
    group.add_argument(
        "--purify_max_e_value", type=float,
        help="Max e-value of a sequence to the profile. Default=1e-4")
    group.add_argument(
        "--no_pack", action="store_true", default=None,
        help="Keep all-gap columns in the final profile.")
    group.add_argument(
        "--no_reorder", action="store_true", default=None,
        help="Dereplicate in input order rather than by length.")


def setup_run_subparser(subparsers: argparse._SubParsersAction) -> None:
    """Add `profclust run` subcommand parser."""
    run = subparsers.add_parser(
        "run",
        description=HEADER + "\n" + " profclust run: run pipeline steps",
        help="Cluster sequences (step 1) and build profiles (step 2).",
        epilog=RUN_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run.add_argument(
        "-j", metavar="json", type=Path, required=True,
        help="JSON project file path ({project_name}.json).")
    run.add_argument(
        "-s", metavar="steps", type=str, required=True,
        help="Steps to run, e.g., 1 or 2 or 12.")
    run.add_argument(
        "-c", metavar="cores", type=int, default=None,
        help="Number of cores for parallelization. Default=all")
    run.add_argument(
        "-t", metavar="threads", type=int, default=1,
        help="Number of threads per BLAST+ or muscle call.")
    run.add_argument(
        "--force", "-f", action="store_true",
        help="Redo buckets or clusters that already have results.")
    run.add_argument("--logger", type=str, nargs="*", help=LOGGER_HELP)


def setup_purify_subparser(subparsers: argparse._SubParsersAction) -> None:
    """Add `profclust purify` subcommand parser."""
    purify = subparsers.add_parser(
        "purify",
        description=HEADER + "\n" + " profclust purify: purify one alignment into a profile",
        help="Trim, dereplicate, and validate one alignment.",
        epilog=PURIFY_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    purify.add_argument("-i", metavar="input", type=Path, required=True, help="Aligned fasta.")
    purify.add_argument("-o", metavar="output", type=Path, required=True, help="Profile fasta.")
    purify.add_argument("--report", type=Path, help="Write the per-sequence report here.")
    purify.add_argument(
        "--oracle", type=str, choices=["blast", "ungapped"], default="blast",
        help="Similarity tool. Default=blast")
    purify.add_argument(
        "--keep_first", action="store_true",
        help="Always keep the first sequence first during dereplication.")
    purify.add_argument(
        "--keep_case", action="store_true",
        help="Do not upper-case the final profile.")
    purify.add_argument("--logger", type=str, nargs="*", help=LOGGER_HELP)
    add_purify_params(purify.add_argument_group("params", "purification thresholds"))


def setup_print_subparser(subparsers: argparse._SubParsersAction) -> None:
    """Add `profclust print` subcommand parser."""
    pprint = subparsers.add_parser(
        "print",
        description=HEADER + "\n" + " profclust print: show project parameters or stats.",
        help="Show project params or stats.",
        epilog=PRINT_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    pprint.add_argument(
        "--json", "-j", metavar="json", type=Path, required=True,
        help="path to {{name}}.json project file.")
    pprint.add_argument("--stats", action="store_true", help="Print project stats.")
    pprint.add_argument("--params", action="store_true", help="Print parameter settings.")


def setup_parsers() -> argparse.ArgumentParser:
    """Setup and return an ArgumentParser w/ subcommands."""
    parser = ArgumentParser(
        prog="profclust",
        description=HEADER + "\n" + DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--version", action="version", version=f"profclust {VERSION}")
    subparsers = parser.add_subparsers(
        help="sub-commands", dest="subcommand", parser_class=ArgumentParser)
    setup_new_subparser(subparsers)
    setup_run_subparser(subparsers)
    setup_purify_subparser(subparsers)
    setup_print_subparser(subparsers)
    return parser


def _set_logger(args: argparse.Namespace) -> None:
    if getattr(args, "logger", None):
        if len(args.logger) > 1:
            pc.set_log_level(args.logger[0], args.logger[1])
        else:
            pc.set_log_level(args.logger[0])


def _new(args: argparse.Namespace) -> None:
    tmp = pc.Project(args.project_name)
    set_params = {
        key: val for key, val in vars(args).items()
        if val is not None and key in Params.model_fields and key != "project_name"
    }
    logger.info(f"setting {1 + len(set_params)} parameters")
    # project_dir first, other paths are relative to the cwd
    if "project_dir" in set_params:
        tmp.params.project_dir = set_params.pop("project_dir")
    for key, val in set_params.items():
        setattr(tmp.params, key, val)
    if tmp.json_file.exists() and not args.force:
        raise ProfClustError(f"JSON file ({tmp.json_file}) exists. Use --force to overwrite.")
    tmp.save_json()
    logger.info(f"created project file {tmp.json_file}")


def _purify(args: argparse.Namespace) -> None:
    kwargs = {
        key: getattr(args, key) for key in PurifyConfig.__dataclass_fields__
        if getattr(args, key, None) is not None
    }
    if getattr(args, "purify_max_e_value", None) is not None:
        kwargs["max_e_value"] = args.purify_max_e_value
    config = PurifyConfig(**kwargs)
    align = read_fasta(args.i)
    result = purify_alignment(align, get_oracle(args.oracle), config)
    write_fasta(result.alignment, args.o)
    if args.report:
        write_report(result.report, args.report)
    logger.info(f"profile of {len(result.alignment)} sequences written to {args.o}: {result.counts}")


def _print(args: argparse.Namespace) -> None:
    tmp = pc.load_json(args.json)
    if args.params:
        logger.info(f"Printing parameter settings for Project ({tmp.name}):\n{tmp.params}")
    if args.stats:
        logger.info(f"Printing stats summary for Project ({tmp.name}):\n{tmp.stats}")


def main(argv: Optional[List[str]] = None) -> None:
    """Parse user CLI args and perform actions."""
    parser = setup_parsers()
    args = parser.parse_args(argv)
    if not args.subcommand:
        parser.print_help()
        raise SystemExit(1)
    _set_logger(args)

    try:
        if args.subcommand == "new":
            _new(args)
        elif args.subcommand == "run":
            data = pc.load_json(args.j)
            data.run(args.s, force=args.force, cores=args.c, threads=args.t)
        elif args.subcommand == "purify":
            _purify(args)
        elif args.subcommand == "print":
            _print(args)
    except (ProfClustError, ValidationError) as exc:
        logger.error(f"{type(exc).__name__}: {exc}")
        raise SystemExit(1) from exc
    raise SystemExit(0)


if __name__ == "__main__":
    main()
