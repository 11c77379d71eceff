"""Build per-position pileup evidence from an indexed BAM with pysam."""

from __future__ import annotations

import logging
from typing import Iterator, Optional, Tuple

import pysam

from .models import PileupEvidence, PileupObservation

logger = logging.getLogger(__name__)

# pysam CIGAR op codes
_MATCH_OPS = (0, 7, 8)  # M, =, X
_INS = 1
_DEL = 2
_SOFT_CLIP = 4

_DEFAULT_MAX_DEPTH = 100_000


def cigar_context(read: pysam.AlignedSegment, qpos: int) -> Tuple[bool, bool, bool]:
    """Return (after_deletion, after_insertion, next_to_softclip) for a query position.

    Walks the CIGAR once; the query position must fall in an aligned block.
    """
    cigar = read.cigartuples or []
    query_pos = 0
    for i, (op, length) in enumerate(cigar):
        if op in _MATCH_OPS:
            if query_pos <= qpos < query_pos + length:
                prev_op = cigar[i - 1][0] if i > 0 else None
                next_op = cigar[i + 1][0] if i + 1 < len(cigar) else None
                first = qpos == query_pos
                last = qpos == query_pos + length - 1
                return (
                    first and prev_op == _DEL,
                    first and prev_op == _INS,
                    (first and prev_op == _SOFT_CLIP) or (last and next_op == _SOFT_CLIP),
                )
            query_pos += length
        elif op in (_INS, _SOFT_CLIP):
            query_pos += length
        # D, N, H, P consume no query bases
    return False, False, False


def observation_from_pileup_read(pread: pysam.PileupRead) -> PileupObservation:
    """Translate one pysam pileup read into a :class:`PileupObservation`."""
    read = pread.alignment
    if pread.is_del or pread.query_position is None:
        return PileupObservation(
            base="-",
            base_quality=None,
            is_deletion=True,
            is_before_deletion=pread.indel < 0,
            is_before_insertion=pread.indel > 0,
        )

    qpos = pread.query_position
    seq = read.query_sequence or ""
    base = seq[qpos] if qpos < len(seq) else "N"
    quals = read.query_qualities
    bq: Optional[int] = int(quals[qpos]) if quals is not None else None
    after_del, after_ins, softclip = cigar_context(read, qpos)

    return PileupObservation(
        base=base,
        base_quality=bq,
        is_before_deletion=pread.indel < 0,
        is_after_deletion=after_del,
        is_before_insertion=pread.indel > 0,
        is_after_insertion=after_ins,
        is_next_to_softclip=softclip,
    )


def _keep_read(read: pysam.AlignedSegment, *, skip_duplicates: bool, include_secondary: bool) -> bool:
    if read.is_unmapped or read.is_qcfail:
        return False
    if read.is_secondary and not include_secondary:
        return False
    if skip_duplicates and read.is_duplicate:
        return False
    return True


def iter_pileups(
    bam: pysam.AlignmentFile,
    contig: str,
    start: int,
    end: int,
    *,
    skip_duplicates: bool = True,
    include_secondary: bool = False,
    max_depth: int = _DEFAULT_MAX_DEPTH,
) -> Iterator[PileupEvidence]:
    """Yield one :class:`PileupEvidence` per 1-based position in ``[start, end]``.

    Positions without coverage yield an empty pileup, so the stream is
    gap-free. Reads are not filtered on base quality.
    """
    if end < start:
        raise ValueError(f"end ({end}) must be >= start ({start})")

    pileup_iter = bam.pileup(
        contig,
        start - 1,
        end,
        truncate=True,
        stepper="nofilter",
        ignore_overlaps=False,
        ignore_orphans=False,
        min_base_quality=0,
        max_depth=max_depth,
    )

    next_pos = start
    for column in pileup_iter:
        pos1 = column.reference_pos + 1
        while next_pos < pos1:
            yield PileupEvidence(contig=contig, position=next_pos)
            next_pos += 1

        observations = [
            observation_from_pileup_read(pread)
            for pread in column.pileups
            if not pread.is_refskip
            and _keep_read(
                pread.alignment,
                skip_duplicates=skip_duplicates,
                include_secondary=include_secondary,
            )
        ]
        yield PileupEvidence(contig=contig, position=pos1, observations=tuple(observations))
        next_pos = pos1 + 1

    while next_pos <= end:
        yield PileupEvidence(contig=contig, position=next_pos)
        next_pos += 1
