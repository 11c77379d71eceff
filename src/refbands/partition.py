"""Score partition table.

Given boundaries ``[A, B, C]`` the hom-ref sites are partitioned into

    X < A
    A <= X < B
    B <= X < C
    X >= C

Every interval is half-open. Boundaries must be positive and strictly
increasing; the first interval starts at 0, or at -inf when negative scores
are folded into it (the default, since log-odds of confidently hom-ref sites
are usually negative).
"""

from __future__ import annotations

import bisect
import logging
import math
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from .errors import InvalidConfiguration, PartitionNotFound
from .models import ScoreInterval

logger = logging.getLogger(__name__)

DEFAULT_LOD_BOUNDARIES: Tuple[float, ...] = (1.0, 2.0, 3.5, 5.0, 10.0)

NEGATIVE_SCORE_POLICIES = ("first", "reject")


def validate_boundaries(boundaries: Sequence[Optional[float]]) -> List[float]:
    if boundaries is None or len(boundaries) == 0:
        raise InvalidConfiguration("The list of score partitions must be non-empty")
    if any(b is None for b in boundaries):
        raise InvalidConfiguration("The list of score partitions contains a null value")

    values = [float(b) for b in boundaries]  # type: ignore[arg-type]
    if not all(math.isfinite(v) for v in values):
        raise InvalidConfiguration("The list of score partitions contains a non-finite value")

    last = 0.0
    for v in values:
        if v < last:
            raise InvalidConfiguration(
                f"The list of score partitions is out of order. Previous value is {last:g} but the next is {v:g}."
            )
        if v == last:
            raise InvalidConfiguration(
                f"The value {v:g} appears more than once in the list of score partitions."
            )
        last = v
    return values


class PartitionTable:
    """Immutable, ordered set of disjoint score intervals."""

    def __init__(self, intervals: Iterable[ScoreInterval]) -> None:
        self._intervals: Tuple[ScoreInterval, ...] = tuple(intervals)
        if not self._intervals:
            raise InvalidConfiguration("A partition table needs at least one interval")
        for prev, cur in zip(self._intervals, self._intervals[1:]):
            if prev.upper != cur.lower:
                raise InvalidConfiguration(f"Intervals {prev} and {cur} are not adjacent")
        self._lowers = [iv.lower for iv in self._intervals]

    @classmethod
    def from_boundaries(
        cls,
        boundaries: Sequence[Optional[float]],
        *,
        negative_scores: str = "first",
    ) -> "PartitionTable":
        """Build the table from strictly increasing positive boundaries.

        negative_scores:
            ``"first"`` extends the first interval down to -inf; ``"reject"``
            leaves negative scores unmapped so :meth:`lookup` raises
            :class:`PartitionNotFound` for them.
        """
        if negative_scores not in NEGATIVE_SCORE_POLICIES:
            raise InvalidConfiguration(
                f"negative_scores must be one of {NEGATIVE_SCORE_POLICIES}, got {negative_scores!r}"
            )
        values = validate_boundaries(boundaries)

        intervals: List[ScoreInterval] = []
        last = 0.0
        for v in values:
            intervals.append(ScoreInterval(last, v))
            last = v
        intervals.append(ScoreInterval(last, math.inf))

        if negative_scores == "first":
            intervals[0] = ScoreInterval(-math.inf, intervals[0].upper)

        logger.debug("Built score partitions: %s", ", ".join(str(iv) for iv in intervals))
        return cls(intervals)

    @property
    def intervals(self) -> Tuple[ScoreInterval, ...]:
        return self._intervals

    @property
    def boundaries(self) -> Tuple[float, ...]:
        return tuple(iv.upper for iv in self._intervals[:-1])

    def lookup(self, score: float) -> ScoreInterval:
        """Return the interval containing ``score``."""
        if math.isnan(score):
            raise PartitionNotFound(score)
        idx = bisect.bisect_right(self._lowers, score) - 1
        if idx < 0 or not self._intervals[idx].contains(score):
            raise PartitionNotFound(score)
        return self._intervals[idx]

    def __len__(self) -> int:
        return len(self._intervals)

    def __iter__(self) -> Iterator[ScoreInterval]:
        return iter(self._intervals)

    def __repr__(self) -> str:
        return f"PartitionTable({', '.join(str(iv) for iv in self._intervals)})"
