"""Reference-confidence driver: BAM + FASTA + explicit calls -> banded gVCF."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Sequence

import pysam
from tqdm import tqdm

from .calls import load_explicit_calls
from .likelihood import ReferenceConfidenceModel, allele_fraction_log10_odds, ploidy_log10_odds
from .models import ExplicitCall, HomRefSite, PileupEvidence
from .partition import DEFAULT_LOD_BOUNDARIES
from .pileups import iter_pileups
from .sinks import RecordSink, TeeSink, TsvSink, VcfSink, make_gvcf_header
from .utils import ensure_outdir, write_json
from .writer import BandingWriter, InputRecord

logger = logging.getLogger(__name__)

LOD_MODELS = {
    "somatic": allele_fraction_log10_odds,
    "ploidy": ploidy_log10_odds,
}


def calculate_ref_confidence(
    pileups: Iterable[PileupEvidence],
    ref_seq: str,
    ref_start: int,
    calls: Sequence[ExplicitCall],
    *,
    sample: Optional[str] = None,
) -> Iterator[InputRecord]:
    """Yield, per pileup position, the explicit call starting there or a hom-ref site.

    ``ref_seq`` holds the reference bases from 1-based ``ref_start`` onward and
    must cover every pileup position. Calls are matched on their start only;
    positions covered by the rest of a multi-base call are still yielded as
    sites and left for the writer to suppress.
    """
    calls_by_start: Dict[tuple, ExplicitCall] = {(c.contig, c.start): c for c in calls}
    for pileup in pileups:
        call = calls_by_start.get((pileup.contig, pileup.position))
        if call is not None:
            yield call
            continue
        offset = pileup.position - ref_start
        if not 0 <= offset < len(ref_seq):
            raise ValueError(
                f"position {pileup.contig}:{pileup.position} is outside the reference span "
                f"starting at {ref_start} (length {len(ref_seq)})"
            )
        yield HomRefSite(
            contig=pileup.contig,
            position=pileup.position,
            pileup=pileup,
            reference_base=ref_seq[offset],
            sample=sample,
        )


def run_banding(
    *,
    bam_path: str,
    ref_fa: str,
    outdir: str | Path,
    contig: str,
    start: Optional[int] = None,
    end: Optional[int] = None,
    calls_vcf: Optional[str] = None,
    sample: Optional[str] = None,
    boundaries: Sequence[float] = DEFAULT_LOD_BOUNDARIES,
    negative_scores: str = "first",
    lod_model: str = "somatic",
    ploidy: int = 2,
    min_quality: int = 6,
    reads_were_realigned: bool = False,
    skip_duplicates: bool = True,
    include_secondary: bool = False,
    out_name: str = "output.g.vcf.gz",
    write_tsv: bool = False,
    progress: bool = True,
) -> Dict[str, object]:
    """Band one region and write a gVCF; return a summary dict.

    Also writes ``summary.json`` (and ``blocks.tsv`` when ``write_tsv``) into
    ``outdir``.
    """
    t0 = time.time()
    outdir_path = ensure_outdir(outdir)

    if lod_model not in LOD_MODELS:
        raise ValueError(f"lod_model must be one of: {', '.join(sorted(LOD_MODELS))}")
    model = ReferenceConfidenceModel(log10_odds=LOD_MODELS[lod_model])

    bam = pysam.AlignmentFile(bam_path, "rb")
    fasta = pysam.FastaFile(ref_fa)
    calls_fh = pysam.VariantFile(calls_vcf) if calls_vcf is not None else None

    try:
        if contig not in bam.references:
            raise ValueError(f"Contig '{contig}' not found in BAM header: {list(bam.references)[:10]}")
        contig_len = bam.get_reference_length(contig)
        start_used = 1 if start is None else int(start)
        end_used = contig_len if end is None else min(int(end), contig_len)
        if end_used < start_used:
            raise ValueError(f"Empty region {contig}:{start_used}-{end_used}")

        calls = []
        call_stats: Dict[str, int] = {}
        template = None
        if calls_fh is not None:
            calls, call_stats = load_explicit_calls(calls_fh, contig, start_used, end_used, sample=sample)
            template = calls_fh.header
            if sample is None and len(calls_fh.header.samples) > 0:
                sample = list(calls_fh.header.samples)[0]
        sample_used = sample or "SAMPLE"
        logger.info(
            "Banding %s:%d-%d for sample %s (%d explicit calls)",
            contig,
            start_used,
            end_used,
            sample_used,
            len(calls),
        )

        header = make_gvcf_header(
            sample_used,
            template=template,
            contigs=zip(bam.references, bam.lengths),
        )
        out_vcf = outdir_path / out_name
        out_tsv = outdir_path / "blocks.tsv" if write_tsv else None
        sink: RecordSink = VcfSink(out_vcf, header, sample_used, reference=fasta)
        try:
            if out_tsv is not None:
                sink = TeeSink(sink, TsvSink(out_tsv))
            writer = BandingWriter(
                sink,
                boundaries,
                model,
                ploidy=ploidy,
                min_quality=min_quality,
                reads_were_realigned=reads_were_realigned,
                negative_scores=negative_scores,
                sample=sample_used,
            )
        except Exception:
            sink.close()
            raise

        # writer closes the sink on any exit
        with writer:
            ref_seq = fasta.fetch(contig, start_used - 1, end_used).upper()
            pileups = iter_pileups(
                bam,
                contig,
                start_used,
                end_used,
                skip_duplicates=skip_duplicates,
                include_secondary=include_secondary,
            )
            records: Iterable[InputRecord] = calculate_ref_confidence(
                pileups, ref_seq, start_used, calls, sample=sample_used
            )
            if progress:
                records = tqdm(records, total=end_used - start_used + 1, unit="site", desc="Banding")
            for record in records:
                writer.add(record)
        counts = writer.counts
    finally:
        bam.close()
        fasta.close()
        if calls_fh is not None:
            calls_fh.close()

    dt = time.time() - t0
    summary: Dict[str, object] = {
        "bam_path": str(bam_path),
        "ref_fa": str(ref_fa),
        "calls_vcf": str(calls_vcf) if calls_vcf is not None else None,
        "region": f"{contig}:{start_used}-{end_used}",
        "sample": sample_used,
        "boundaries": [float(b) for b in boundaries],
        "negative_scores": negative_scores,
        "lod_model": lod_model,
        "ploidy": int(ploidy),
        "min_quality": int(min_quality),
        "reads_were_realigned": bool(reads_were_realigned),
        "out_vcf": str(out_vcf),
        "out_tsv": str(out_tsv) if out_tsv is not None else None,
        "counts": counts,
        "call_stats": call_stats,
        "runtime_seconds": float(dt),
    }
    write_json(outdir_path / "summary.json", summary)
    logger.info(
        "Wrote %d blocks and %d calls to %s",
        counts["blocks_emitted"],
        counts["calls_emitted"],
        out_vcf,
    )
    return summary
