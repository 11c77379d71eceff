import math

import pytest

from refbands.band import ScoreBand
from refbands.errors import EmptyBand, NonContiguous, OutOfBand
from refbands.models import ScoreInterval


def make_band(start=1, lower=0.0, upper=2.0, contig="chr1"):
    return ScoreBand(contig, start, ScoreInterval(lower, upper))


def test_new_band_is_empty():
    band = make_band(start=10)
    assert band.end == 9
    assert band.max_score == -math.inf
    assert band.is_empty()
    assert band.size == 0


def test_add_extends_band_and_tracks_max_score():
    band = make_band(start=1)
    band.add(1, 10, 0.5)
    band.add(2, 12, 1.5)
    band.add(3, 11, 0.1)
    assert band.end == 3
    assert band.size == 3
    assert band.max_score == 1.5
    assert band.depths == [10, 12, 11]


def test_negative_depth_is_stored_as_zero():
    band = make_band()
    band.add(1, -3, 0.0)
    assert band.depths == [0]


def test_non_contiguous_add_raises():
    band = make_band(start=1)
    band.add(1, 5, 0.1)
    band.add(2, 5, 0.1)
    with pytest.raises(NonContiguous):
        band.add(4, 5, 0.1)
    assert band.end == 2
    assert band.depths == [5, 5]


def test_out_of_band_add_raises():
    band = make_band(lower=1.0, upper=2.0)
    with pytest.raises(OutOfBand):
        band.add(1, 5, 2.0)
    with pytest.raises(OutOfBand):
        band.add(1, 5, 0.99)
    assert band.is_empty()


def test_within_bounds_is_half_open():
    band = make_band(lower=1.0, upper=2.0)
    assert band.within_bounds(1.0)
    assert band.within_bounds(1.999)
    assert not band.within_bounds(2.0)


def test_is_contiguous_checks_position_and_contig():
    band = make_band(start=5)
    band.add(5, 1, 0.0)
    assert band.is_contiguous(6, "chr1")
    assert not band.is_contiguous(7, "chr1")
    assert not band.is_contiguous(6, "chr2")


def test_finalize_summary_odd_count():
    band = make_band(start=100)
    for pos, depth, score in [(100, 30, 0.2), (101, 10, 1.1), (102, 20, 0.7)]:
        band.add(pos, depth, score)
    block = band.finalize("S1")
    assert (block.contig, block.start, block.end) == ("chr1", 100, 102)
    assert block.score == 1.1
    assert block.median_depth == 20
    assert block.min_depth == 10
    assert block.sample == "S1"
    assert block.size == 3


def test_finalize_median_of_even_count_is_mean_of_middle_values():
    band = make_band()
    for pos, depth in enumerate([4, 9, 1, 6], start=1):
        band.add(pos, depth, 0.0)
    block = band.finalize()
    assert block.median_depth == 5.0
    assert block.min_depth == 1


def test_finalize_is_idempotent():
    band = make_band()
    band.add(1, 7, 0.3)
    band.add(2, 8, 0.4)
    assert band.finalize("S") == band.finalize("S")


def test_finalize_empty_band_raises():
    with pytest.raises(EmptyBand):
        make_band().finalize()


def test_bad_interval_rejected():
    with pytest.raises(ValueError):
        ScoreBand("chr1", 1, ScoreInterval(3.0, 1.0))
