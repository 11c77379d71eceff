import math

import numpy as np
import pytest

from refbands.likelihood import (
    NON_REF_ROW,
    REF_ROW,
    ReferenceConfidenceModel,
    allele_fraction_log10_odds,
    is_alt_after_assembly,
    is_alt_before_assembly,
    ploidy_log10_odds,
)
from refbands.models import PileupEvidence, PileupObservation


def pileup(*observations: PileupObservation) -> PileupEvidence:
    return PileupEvidence(contig="chr1", position=100, observations=tuple(observations))


def ref_obs(q=30, **kw):
    return PileupObservation(base="A", base_quality=q, **kw)


def alt_obs(q=30, **kw):
    return PileupObservation(base="G", base_quality=q, **kw)


class RecordingOdds:
    def __init__(self, value=0.0):
        self.value = value
        self.calls = []

    def __call__(self, matrix, ploidy):
        self.calls.append((matrix.copy(), ploidy))
        return self.value


def test_depths_count_every_observation():
    model = ReferenceConfidenceModel()
    result = model.score(2, pileup(ref_obs(), ref_obs(q=2), alt_obs(), ref_obs(q=0), alt_obs(q=5)), "A")
    assert result.ref_depth == 3
    assert result.non_ref_depth == 2
    assert result.total_depth == 5
    assert result.allele_depths == (3, 2)


def test_likelihood_matrix_values():
    odds = RecordingOdds(1.25)
    model = ReferenceConfidenceModel(log10_odds=odds)
    result = model.score(2, pileup(ref_obs(q=30), alt_obs(q=20)), "A", reads_were_realigned=False)

    assert result.score == 1.25
    matrix, ploidy = odds.calls[0]
    assert ploidy == 2
    assert matrix.shape == (2, 2)
    third = math.log10(1.0 / 3.0)
    assert matrix[REF_ROW, 0] == pytest.approx(math.log10(1 - 1e-3))
    assert matrix[NON_REF_ROW, 0] == pytest.approx(-3.0 + third)
    assert matrix[NON_REF_ROW, 1] == pytest.approx(math.log10(1 - 1e-2))
    assert matrix[REF_ROW, 1] == pytest.approx(-2.0 + third)


def test_min_quality_used_for_observations_without_quality():
    odds = RecordingOdds()
    model = ReferenceConfidenceModel(log10_odds=odds)
    model.score(2, pileup(PileupObservation(base="A")), "A", min_quality=10)
    matrix, _ = odds.calls[0]
    assert matrix[REF_ROW, 0] == pytest.approx(math.log10(0.9))


def test_realignment_flag_selects_classifier():
    obs = alt_obs(supports_ref_haplotype=True)
    model = ReferenceConfidenceModel()
    before = model.score(2, pileup(obs), "A", reads_were_realigned=False)
    after = model.score(2, pileup(obs), "A", reads_were_realigned=True)
    assert (before.ref_depth, before.non_ref_depth) == (0, 1)
    assert (after.ref_depth, after.non_ref_depth) == (1, 0)


def test_injected_classifiers_are_used():
    model = ReferenceConfidenceModel(
        alt_before_assembly=lambda obs, ref: True,
        alt_after_assembly=lambda obs, ref: False,
    )
    p = pileup(ref_obs(), ref_obs())
    assert model.score(2, p, "A", reads_were_realigned=False).non_ref_depth == 2
    assert model.score(2, p, "A", reads_were_realigned=True).ref_depth == 2


def test_before_assembly_rule():
    assert not is_alt_before_assembly(ref_obs(), "A")
    assert not is_alt_before_assembly(PileupObservation(base="a", base_quality=30), "A")
    assert is_alt_before_assembly(alt_obs(), "A")
    assert is_alt_before_assembly(PileupObservation(base="-", is_deletion=True), "A")
    assert is_alt_before_assembly(ref_obs(is_before_insertion=True), "A")
    assert is_alt_before_assembly(ref_obs(is_after_deletion=True), "A")
    assert is_alt_before_assembly(ref_obs(is_next_to_softclip=True), "A")


def test_after_assembly_rule():
    assert is_alt_after_assembly(alt_obs(), "A")
    assert is_alt_after_assembly(alt_obs(supports_ref_haplotype=False), "A")
    assert not is_alt_after_assembly(alt_obs(supports_ref_haplotype=True), "A")
    assert not is_alt_after_assembly(ref_obs(), "A")
    assert is_alt_after_assembly(PileupObservation(base="-", is_deletion=True), "A")
    assert not is_alt_after_assembly(ref_obs(is_before_insertion=True), "A")
    assert not is_alt_after_assembly(ref_obs(is_after_deletion=True), "A")
    assert not is_alt_after_assembly(ref_obs(is_next_to_softclip=True), "A")


def test_empty_pileup_scores_zero():
    result = ReferenceConfidenceModel().score(2, pileup(), "A")
    assert result.score == 0.0
    assert result.total_depth == 0


def test_none_pileup_is_rejected():
    with pytest.raises(ValueError):
        ReferenceConfidenceModel().score(2, None, "A")


def test_confident_reference_scores_lower_than_alt_evidence():
    model = ReferenceConfidenceModel()
    all_ref = model.score(2, pileup(*[ref_obs() for _ in range(10)]), "A")
    one_alt = model.score(2, pileup(*[ref_obs() for _ in range(9)], alt_obs()), "A")
    all_alt = model.score(2, pileup(*[alt_obs() for _ in range(10)]), "A")

    assert all_ref.score < 0
    assert all_ref.score < one_alt.score < all_alt.score
    assert all_alt.score > 10


def test_more_reference_reads_lower_the_score():
    model = ReferenceConfidenceModel()
    shallow = model.score(2, pileup(*[ref_obs() for _ in range(5)]), "A")
    deep = model.score(2, pileup(*[ref_obs() for _ in range(50)]), "A")
    assert deep.score < shallow.score


def test_allele_fraction_odds_for_ref_reads_matches_integral():
    # for error-free ref reads the evidence ratio is the integral of (1 - f)^n, i.e. 1 / (n + 1)
    matrix = np.array([[0.0] * 4, [-np.inf] * 4])
    assert allele_fraction_log10_odds(matrix, 2) == pytest.approx(math.log10(1 / 5), abs=1e-3)


def test_ploidy_odds():
    # one error-free ref read: only f = 1/2 keeps any likelihood for diploid
    matrix = np.array([[0.0], [-np.inf]])
    assert ploidy_log10_odds(matrix, 2) == pytest.approx(math.log10(0.25))
    assert ploidy_log10_odds(np.empty((2, 0)), 2) == 0.0
    with pytest.raises(ValueError):
        ploidy_log10_odds(matrix, 0)


def test_scoring_is_deterministic():
    model = ReferenceConfidenceModel()
    p = pileup(ref_obs(q=12), alt_obs(q=33), ref_obs(q=40))
    assert model.score(2, p, "A") == model.score(2, p, "A")
