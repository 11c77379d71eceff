from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .errors import BandingError
from .partition import DEFAULT_LOD_BOUNDARIES, NEGATIVE_SCORE_POLICIES, PartitionTable
from .pipeline import LOD_MODELS, run_banding
from .toy_data import make_toy_data
from .validation import check_bam_index, check_fasta_index, check_vcf_index, parse_lod_bands, parse_region


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _lod_bands(text: str) -> List[float]:
    try:
        return parse_lod_bands(text)
    except BandingError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    sys.stderr.write(f"{err.__class__.__name__}: {err}\n")
    if log_path is not None and log_path.exists():
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


_DEFAULT_BANDS = ",".join(f"{b:g}" for b in DEFAULT_LOD_BOUNDARIES)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="refbands",
        description=(
            "refbands: score positions without explicit calls for non-reference evidence and "
            "compress them into hom-ref blocks interleaved with the calls (single-sample gVCF)."
        ),
    )
    p.add_argument("--version", action="version", version=f"refbands {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # band
    # -----------------
    b = sub.add_parser(
        "band",
        help="Write a banded gVCF for one region from a BAM, reference FASTA and explicit calls.",
    )
    b.add_argument("--bam", required=True, type=_path_exists, help="Input BAM (sorted, indexed).")
    b.add_argument("--ref", required=True, type=_path_exists, help="Reference FASTA (indexed).")
    b.add_argument(
        "--calls",
        default=None,
        type=_path_exists,
        help="Explicit calls VCF (.vcf/.vcf.gz); emitted unmodified between the blocks.",
    )
    b.add_argument(
        "--region",
        required=True,
        help="Region to band: contig[:start[-end]] (1-based, inclusive).",
    )
    b.add_argument("--outdir", required=True, help="Output directory.")
    b.add_argument(
        "--sample",
        default=None,
        help="Sample name (default: first sample in --calls, else SAMPLE).",
    )
    b.add_argument(
        "--lod-bands",
        type=_lod_bands,
        default=list(DEFAULT_LOD_BOUNDARIES),
        help=f"Comma-separated, strictly increasing positive score boundaries (default: {_DEFAULT_BANDS}).",
    )
    b.add_argument(
        "--negative-scores",
        choices=list(NEGATIVE_SCORE_POLICIES),
        default="first",
        help="Negative scores: fold into the first band, or reject them as an error.",
    )
    b.add_argument(
        "--lod-model",
        choices=sorted(LOD_MODELS),
        default="somatic",
        help="Log-odds model: somatic (uniform allele fraction) or ploidy (k/ploidy fractions).",
    )
    b.add_argument("--ploidy", type=int, default=2, help="Sample ploidy (used by --lod-model ploidy).")
    b.add_argument(
        "--min-quality",
        type=int,
        default=6,
        help="Base quality assumed for reads without base qualities.",
    )
    b.add_argument(
        "--realigned",
        action="store_true",
        help="The BAM was realigned to assembled haplotypes: indel and soft-clip adjacency no longer count as alt.",
    )
    b.add_argument("--keep-duplicates", action="store_true", help="Do not skip duplicate reads.")
    b.add_argument("--include-secondary", action="store_true", help="Include secondary alignments.")
    b.add_argument(
        "--out-name",
        default="output.g.vcf.gz",
        help="Output file name inside --outdir (.vcf, .vcf.gz or .bcf).",
    )
    b.add_argument("--tsv", action="store_true", help="Also write blocks.tsv into outdir.")
    b.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    b.add_argument("--dry-run", action="store_true", help="Validate inputs and print planned outputs.")
    b.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # partitions
    # -----------------
    pt = sub.add_parser(
        "partitions",
        help="Print the score intervals for a list of boundaries.",
    )
    pt.add_argument(
        "--lod-bands",
        type=_lod_bands,
        default=list(DEFAULT_LOD_BOUNDARIES),
        help=f"Comma-separated score boundaries (default: {_DEFAULT_BANDS}).",
    )
    pt.add_argument(
        "--negative-scores",
        choices=list(NEGATIVE_SCORE_POLICIES),
        default="first",
        help="Negative score policy.",
    )

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny reference, BAM, and calls VCF for demos/tests.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    return p


def cmd_band(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    log_path = _log_path(outdir, "band.log")
    _setup_logging(args.verbose, logfile=None if args.dry_run else log_path)

    logger = logging.getLogger("refbands")
    logger.info("refbands %s", __version__)

    try:
        contig, start, end = parse_region(args.region)
        check_bam_index(args.bam)
        check_fasta_index(args.ref)
        if args.calls is not None:
            check_vcf_index(args.calls)

        if args.dry_run:
            print("Dry-run: inputs look OK.")
            print(f"Region: {args.region}")
            table = PartitionTable.from_boundaries(args.lod_bands, negative_scores=args.negative_scores)
            print(f"Score partitions: {', '.join(str(iv) for iv in table)}")
            print("Planned outputs:")
            print(f"  {args.out_name} -> {outdir / args.out_name}")
            if args.tsv:
                print(f"  blocks.tsv -> {outdir / 'blocks.tsv'}")
            print(f"  summary.json -> {outdir / 'summary.json'}")
            return 0

        summary = run_banding(
            bam_path=args.bam,
            ref_fa=args.ref,
            outdir=outdir,
            contig=contig,
            start=start,
            end=end,
            calls_vcf=args.calls,
            sample=args.sample,
            boundaries=args.lod_bands,
            negative_scores=args.negative_scores,
            lod_model=args.lod_model,
            ploidy=int(args.ploidy),
            min_quality=int(args.min_quality),
            reads_were_realigned=bool(args.realigned),
            skip_duplicates=not bool(args.keep_duplicates),
            include_secondary=bool(args.include_secondary),
            out_name=args.out_name,
            write_tsv=bool(args.tsv),
            progress=not bool(args.no_progress),
        )
        print(str(summary["out_vcf"]))
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def cmd_partitions(args: argparse.Namespace) -> int:
    try:
        table = PartitionTable.from_boundaries(args.lod_bands, negative_scores=args.negative_scores)
    except BandingError as e:
        return _handle_error(e)
    for interval in table:
        print(str(interval))
    return 0


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "band":
        return cmd_band(args)
    if args.cmd == "partitions":
        return cmd_partitions(args)
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
