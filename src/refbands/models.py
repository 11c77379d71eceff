from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class PileupObservation:
    """One read's evidence at one reference position.

    Attributes
    ----------
    base:
        Observed base (A/C/G/T/N), or ``"-"`` when the read has a deletion here.
    base_quality:
        Phred base quality, or None when the read carries no qualities.
    is_deletion:
        The read has a deletion over this position.
    is_before_deletion, is_after_deletion, is_before_insertion, is_after_insertion:
        The base is directly adjacent to an indel in the read's alignment.
    is_next_to_softclip:
        The base is the first or last aligned base next to a soft clip.
    supports_ref_haplotype:
        After local realignment: True if the read's best haplotype is the
        reference haplotype. None when the pileup was not realigned.
    """

    base: str
    base_quality: Optional[int] = None
    is_deletion: bool = False
    is_before_deletion: bool = False
    is_after_deletion: bool = False
    is_before_insertion: bool = False
    is_after_insertion: bool = False
    is_next_to_softclip: bool = False
    supports_ref_haplotype: Optional[bool] = None

    @property
    def is_next_to_indel(self) -> bool:
        return (
            self.is_before_deletion
            or self.is_after_deletion
            or self.is_before_insertion
            or self.is_after_insertion
        )


@dataclass(frozen=True)
class PileupEvidence:
    """Ordered read observations at one position (1-based)."""

    contig: str
    position: int
    observations: Tuple[PileupObservation, ...] = ()

    def __len__(self) -> int:
        return len(self.observations)

    def __iter__(self):
        return iter(self.observations)


@dataclass(frozen=True)
class LikelihoodResult:
    """Reference-vs-any result for a single site.

    ``score`` is a log10-odds for the non-reference allele; lower values mean
    more confidence that the site is homozygous reference.
    """

    ref_depth: int
    non_ref_depth: int
    score: float

    @property
    def total_depth(self) -> int:
        return self.ref_depth + self.non_ref_depth

    @property
    def allele_depths(self) -> Tuple[int, int]:
        return (self.ref_depth, self.non_ref_depth)


@dataclass(frozen=True)
class ScoreInterval:
    """Half-open score interval ``[lower, upper)``."""

    lower: float
    upper: float

    def contains(self, score: float) -> bool:
        return self.lower <= score < self.upper

    def __str__(self) -> str:
        return f"[{self.lower:g}, {self.upper:g})"


@dataclass(frozen=True)
class ExplicitCall:
    """A variant call decided upstream; ``payload`` is passed through untouched.

    Coordinates are 1-based inclusive. ``end`` is the last reference base
    the call covers (greater than ``start`` for deletions).
    """

    contig: str
    start: int
    end: int
    payload: Any = field(default=None, compare=False)
    sample: Optional[str] = None


@dataclass(frozen=True)
class HomRefSite:
    """A position without an explicit call, to be scored and banded."""

    contig: str
    position: int
    pileup: PileupEvidence
    reference_base: str
    sample: Optional[str] = None


@dataclass(frozen=True)
class HomRefBlock:
    """A finalized band: a contiguous run of hom-ref positions.

    Attributes
    ----------
    contig, start, end:
        1-based inclusive span of the block.
    score:
        Maximum site score in the block (the least confident site).
    median_depth:
        Median of the per-site depths; mean of the two central values for an
        even number of sites.
    min_depth:
        Minimum per-site depth.
    lower, upper:
        Bounds of the score partition the block was built in.
    """

    contig: str
    start: int
    end: int
    score: float
    median_depth: float
    min_depth: int
    sample: Optional[str] = None
    lower: float = 0.0
    upper: float = math.inf

    @property
    def size(self) -> int:
        return self.end - self.start + 1
