"""Reference-vs-any likelihoods and log-odds for a single pileup.

Each read contributes a pair of log10 likelihoods (reference, non-reference)
derived from its base quality. The 2 x N matrix is then reduced to a single
log10-odds score for the non-reference allele by an injected strategy, so the
model can be exercised against synthetic pileups without a genotyping engine.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional

import numpy as np

from .models import LikelihoodResult, PileupEvidence, PileupObservation
from .utils import LOG10_ONE_THIRD, qual_to_error_prob_log10, qual_to_prob_log10

logger = logging.getLogger(__name__)

AltClassifier = Callable[[PileupObservation, str], bool]
Log10OddsFn = Callable[[np.ndarray, int], float]

REF_ROW = 0
NON_REF_ROW = 1

_LN10 = math.log(10.0)
_AF_GRID_SIZE = 1000


def is_alt_before_assembly(obs: PileupObservation, ref_base: str) -> bool:
    """Alt if the base mismatches, or sits on or next to an indel or soft clip."""
    return (
        obs.base.upper() != ref_base.upper()
        or obs.is_deletion
        or obs.is_next_to_indel
        or obs.is_next_to_softclip
    )


def is_alt_after_assembly(obs: PileupObservation, ref_base: str) -> bool:
    """Alt only on a base mismatch or a deletion.

    Adjacency to an indel or soft clip is ignored. Reads realigned to the
    reference haplotype always count as reference support.
    """
    if obs.supports_ref_haplotype is True:
        return False
    return obs.base.upper() != ref_base.upper() or obs.is_deletion


def _log10_evidence(matrix: np.ndarray, fractions: np.ndarray) -> float:
    """log10 of the mean over ``fractions`` of P(reads | alt allele fraction)."""
    ref_ln = matrix[REF_ROW] * _LN10
    alt_ln = matrix[NON_REF_ROW] * _LN10
    f = fractions[:, None]
    with np.errstate(divide="ignore"):
        per_read = np.logaddexp(np.log(f) + alt_ln, np.log1p(-f) + ref_ln)
    per_fraction = per_read.sum(axis=1)
    total = np.logaddexp.reduce(per_fraction) - math.log(len(fractions))
    return float(total / _LN10)


def allele_fraction_log10_odds(matrix: np.ndarray, ploidy: int) -> float:
    """Somatic log10-odds: alt allele fraction ~ Uniform(0, 1) versus no alt.

    The allele fraction is integrated on a grid of bin midpoints; ploidy does
    not constrain a somatic allele fraction and is ignored.
    """
    if matrix.shape[1] == 0:
        return 0.0
    fractions = (np.arange(_AF_GRID_SIZE) + 0.5) / _AF_GRID_SIZE
    null = float(matrix[REF_ROW].sum())
    return _log10_evidence(matrix, fractions) - null


def ploidy_log10_odds(matrix: np.ndarray, ploidy: int) -> float:
    """Germline-style log10-odds over the allele fractions ``k / ploidy``."""
    if ploidy < 1:
        raise ValueError(f"ploidy must be >= 1, got {ploidy}")
    if matrix.shape[1] == 0:
        return 0.0
    fractions = np.arange(1, ploidy + 1, dtype=float) / ploidy
    null = float(matrix[REF_ROW].sum())
    return _log10_evidence(matrix, fractions) - null


class ReferenceConfidenceModel:
    """Score pileups for evidence of a non-reference allele.

    Parameters
    ----------
    alt_before_assembly:
        Classifier used for pileups built from the original alignments.
    alt_after_assembly:
        Classifier used for pileups built after local realignment.
    log10_odds:
        Reduces a 2 x N log10 likelihood matrix (row 0 reference, row 1
        non-reference) and a ploidy to one log10-odds score.
    """

    def __init__(
        self,
        *,
        alt_before_assembly: AltClassifier = is_alt_before_assembly,
        alt_after_assembly: AltClassifier = is_alt_after_assembly,
        log10_odds: Log10OddsFn = allele_fraction_log10_odds,
    ) -> None:
        self.alt_before_assembly = alt_before_assembly
        self.alt_after_assembly = alt_after_assembly
        self.log10_odds = log10_odds

    def likelihood_matrix(
        self,
        pileup: PileupEvidence,
        ref_base: str,
        min_quality: int,
        reads_were_realigned: bool,
    ) -> tuple[np.ndarray, int, int]:
        """Return the per-read log10 likelihood matrix and (ref, non-ref) depths."""
        is_alt = self.alt_after_assembly if reads_were_realigned else self.alt_before_assembly
        matrix = np.empty((2, len(pileup)), dtype=float)
        ref_depth = 0
        non_ref_depth = 0

        for i, obs in enumerate(pileup):
            q = obs.base_quality if obs.base_quality is not None else min_quality
            q = max(int(q), 0)
            right = qual_to_prob_log10(q)
            wrong = qual_to_error_prob_log10(q) + LOG10_ONE_THIRD
            if is_alt(obs, ref_base):
                matrix[NON_REF_ROW, i] = right
                matrix[REF_ROW, i] = wrong
                non_ref_depth += 1
            else:
                matrix[REF_ROW, i] = right
                matrix[NON_REF_ROW, i] = wrong
                ref_depth += 1

        return matrix, ref_depth, non_ref_depth

    def score(
        self,
        ploidy: int,
        pileup: Optional[PileupEvidence],
        ref_base: str,
        min_quality: int = 6,
        reads_were_realigned: bool = True,
    ) -> LikelihoodResult:
        """Compute depths and the non-reference log10-odds for one pileup.

        Every observation is counted; no quality filtering happens here.
        ``min_quality`` is the quality assumed for observations without one.
        """
        if pileup is None:
            raise ValueError("pileup cannot be None")

        matrix, ref_depth, non_ref_depth = self.likelihood_matrix(
            pileup, ref_base, min_quality, reads_were_realigned
        )
        lod = float(self.log10_odds(matrix, ploidy))
        return LikelihoodResult(ref_depth=ref_depth, non_ref_depth=non_ref_depth, score=lod)
