from __future__ import annotations

import math
from typing import List, Optional

from .errors import EmptyBand, NonContiguous, OutOfBand
from .models import HomRefBlock, ScoreInterval
from .utils import median


class ScoreBand:
    """A contiguous stretch of hom-ref sites whose scores share one partition.

    The band keeps per-site depths and the running maximum score. The same
    log-odds is used for hom-ref sites as for variants, so more confident
    reference sites have lower scores and the block maximum is the most
    conservative summary.
    """

    def __init__(self, contig: str, start: int, interval: ScoreInterval) -> None:
        if interval.lower > interval.upper:
            raise ValueError(f"bad interval {interval}: lower bound is above upper bound")
        self.contig = contig
        self.start = int(start)
        self.interval = interval
        self.end = self.start - 1
        self.depths: List[int] = []
        self.max_score = -math.inf

    def within_bounds(self, score: float) -> bool:
        return self.interval.contains(score)

    def is_contiguous(self, position: int, contig: str) -> bool:
        return position == self.end + 1 and contig == self.contig

    def add(self, position: int, depth: int, score: float) -> None:
        """Extend the band by one site.

        position must be exactly one past the current end, and score must
        fall inside the band's interval.
        """
        if position != self.end + 1:
            raise NonContiguous(position, self.end)
        if not self.within_bounds(score):
            raise OutOfBand(score, self.interval.lower, self.interval.upper)

        self.end = int(position)
        self.depths.append(max(int(depth), 0))
        self.max_score = max(self.max_score, score)

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def is_empty(self) -> bool:
        return not self.depths

    def median_depth(self) -> float:
        return median(self.depths)

    def min_depth(self) -> int:
        return min(self.depths)

    def finalize(self, sample: Optional[str] = None) -> HomRefBlock:
        """Summarize the band as an output record. Does not modify the band."""
        if self.is_empty():
            raise EmptyBand(f"band at {self.contig}:{self.start} never received a site")
        return HomRefBlock(
            contig=self.contig,
            start=self.start,
            end=self.end,
            score=self.max_score,
            median_depth=self.median_depth(),
            min_depth=self.min_depth(),
            sample=sample,
            lower=self.interval.lower,
            upper=self.interval.upper,
        )

    def __repr__(self) -> str:
        return f"ScoreBand({self.contig}:{self.start}-{self.end}, interval={self.interval})"
