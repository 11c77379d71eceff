from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import pysam

from .models import ExplicitCall

logger = logging.getLogger(__name__)


def _record_sample(vcf: pysam.VariantFile, sample: Optional[str]) -> Optional[str]:
    samples = list(vcf.header.samples)
    if sample is None:
        if len(samples) == 0:
            return None
        if len(samples) > 1:
            logger.warning(
                "Calls VCF has %d samples; using the first (%s). Only single-sample output is supported.",
                len(samples),
                samples[0],
            )
        return samples[0]
    if sample not in samples:
        raise ValueError(f"Sample '{sample}' not found in VCF samples: {samples}")
    return sample


def load_explicit_calls(
    vcf: pysam.VariantFile,
    contig: str,
    start: int,
    end: int,
    *,
    sample: Optional[str] = None,
    require_pass: bool = False,
) -> Tuple[List[ExplicitCall], Dict[str, int]]:
    """Load explicit calls starting in ``contig:start-end`` (1-based, inclusive).

    Each pysam record is wrapped untouched as the call payload. Calls are
    returned sorted by start; when several calls start at the same position
    only the first is kept, since the writer emits one record per position.

    Returns
    -------
    calls:
        Sorted explicit calls.
    stats:
        Simple counters about records kept/skipped.
    """
    sample_used = _record_sample(vcf, sample)
    stats: Dict[str, int] = {
        "records_total": 0,
        "records_kept": 0,
        "records_skipped_filter": 0,
        "records_skipped_same_start": 0,
        "records_skipped_outside": 0,
    }

    # VCF.fetch() requires an index for bgzipped VCFs; fall back to a scan.
    try:
        iterator = vcf.fetch(contig, start - 1, end)
    except (ValueError, OSError):
        iterator = (rec for rec in vcf if rec.contig == contig and rec.pos <= end and rec.stop >= start)

    calls: List[ExplicitCall] = []
    seen_starts = set()
    for rec in iterator:
        stats["records_total"] += 1
        if not (start <= rec.pos <= end):
            stats["records_skipped_outside"] += 1
            continue
        if require_pass:
            filt = list(rec.filter.keys())
            if len(filt) > 0 and not (len(filt) == 1 and filt[0] == "PASS"):
                stats["records_skipped_filter"] += 1
                continue
        if rec.pos in seen_starts:
            stats["records_skipped_same_start"] += 1
            continue
        seen_starts.add(rec.pos)
        calls.append(
            ExplicitCall(
                contig=str(rec.contig),
                start=int(rec.pos),
                end=int(rec.stop),
                payload=rec,
                sample=sample_used,
            )
        )

    calls.sort(key=lambda c: c.start)
    stats["records_kept"] = len(calls)
    return calls, stats
