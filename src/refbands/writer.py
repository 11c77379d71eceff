"""Banding writer: interleaves explicit calls with hom-ref blocks.

The writer consumes, in increasing genomic order, either explicit calls or
hom-ref sites. Sites are merged into the current band while they stay
contiguous and within the band's score partition; anything else flushes the
band. An explicit call always flushes the band, is emitted unmodified, and
suppresses hom-ref evaluation of the positions it covers.

Use the writer as a context manager so the pending band is emitted even if
the caller fails part-way:

    with BandingWriter(sink, [1.0, 2.0]) as writer:
        for record in records:
            writer.add(record)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Union

from .band import ScoreBand
from .errors import SampleMismatch, WriterClosed
from .likelihood import ReferenceConfidenceModel
from .models import ExplicitCall, HomRefSite, LikelihoodResult
from .partition import DEFAULT_LOD_BOUNDARIES, PartitionTable
from .sinks import RecordSink

logger = logging.getLogger(__name__)

InputRecord = Union[ExplicitCall, HomRefSite]


@dataclass
class WriterState:
    """Mutable state of one writer; owned and mutated only by that writer."""

    current_band: Optional[ScoreBand] = None
    next_available_start: Optional[int] = None
    contig_of_next_available_start: Optional[str] = None
    sample: Optional[str] = None
    closed: bool = False
    counts: Dict[str, int] = field(
        default_factory=lambda: {
            "calls_emitted": 0,
            "blocks_emitted": 0,
            "sites_banded": 0,
            "sites_suppressed": 0,
        }
    )

    @property
    def accumulating(self) -> bool:
        return self.current_band is not None


class BandingWriter:
    """Single-sample gVCF-style banding writer.

    Parameters
    ----------
    sink:
        Destination for output records (explicit call payload wrappers and
        :class:`~refbands.models.HomRefBlock`).
    boundaries:
        Non-empty, strictly increasing positive score boundaries.
    model:
        Scores :class:`HomRefSite` records; a default
        :class:`ReferenceConfidenceModel` is used when omitted.
    ploidy, min_quality, reads_were_realigned:
        Passed to the model for every scored site.
    negative_scores:
        Partition policy for negative scores (see :class:`PartitionTable`).
    sample:
        Optional sample name to bind up front.
    """

    def __init__(
        self,
        sink: RecordSink,
        boundaries: Sequence[float] = DEFAULT_LOD_BOUNDARIES,
        model: Optional[ReferenceConfidenceModel] = None,
        *,
        ploidy: int = 2,
        min_quality: int = 6,
        reads_were_realigned: bool = True,
        negative_scores: str = "first",
        sample: Optional[str] = None,
    ) -> None:
        if sink is None:
            raise ValueError("sink cannot be None")
        self.sink = sink
        self.partitions = PartitionTable.from_boundaries(boundaries, negative_scores=negative_scores)
        self.model = model if model is not None else ReferenceConfidenceModel()
        self.ploidy = int(ploidy)
        self.min_quality = int(min_quality)
        self.reads_were_realigned = bool(reads_were_realigned)
        self.state = WriterState(sample=sample)

    def __enter__(self) -> "BandingWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
            return
        # keep the in-flight exception; a failed close is only logged
        try:
            self.close()
        except Exception as close_err:
            logger.error("Failed to close writer while handling %s: %s", exc_type.__name__, close_err)

    @property
    def counts(self) -> Dict[str, int]:
        return dict(self.state.counts)

    def _check_open(self) -> None:
        if self.state.closed:
            raise WriterClosed("cannot add records to a closed writer")

    def _bind_sample(self, sample: Optional[str]) -> None:
        if sample is None:
            return
        if self.state.sample is None:
            self.state.sample = sample
        elif sample != self.state.sample:
            raise SampleMismatch(
                f"writer is bound to sample '{self.state.sample}' but saw a record for '{sample}'"
            )

    def _emit_current_band(self) -> None:
        band = self.state.current_band
        if band is None:
            return
        block = band.finalize(self.state.sample)
        self.state.current_band = None  # idle before the sink sees the block
        logger.debug(
            "Emitting block %s:%d-%d score=%.3f interval=%s",
            block.contig,
            block.start,
            block.end,
            block.score,
            band.interval,
        )
        self.sink.accept(block)
        self.state.counts["blocks_emitted"] += 1

    def add(self, record: InputRecord) -> None:
        """Add an explicit call or a hom-ref site."""
        if isinstance(record, ExplicitCall):
            self.add_call(record)
        elif isinstance(record, HomRefSite):
            self.add_site(record)
        else:
            raise TypeError(f"expected ExplicitCall or HomRefSite, got {type(record).__name__}")

    def add_call(self, call: ExplicitCall) -> None:
        """Flush the current band, emit ``call`` and suppress the span it covers."""
        self._check_open()
        if call is None:
            raise ValueError("call cannot be None")
        self._bind_sample(call.sample)

        self._emit_current_band()
        self.sink.accept(call)
        self.state.counts["calls_emitted"] += 1

        self.state.next_available_start = call.end
        self.state.contig_of_next_available_start = call.contig

    def add_site(self, site: HomRefSite) -> None:
        """Score ``site`` with the model and band it."""
        self._check_open()
        if site is None:
            raise ValueError("site cannot be None")
        self._bind_sample(site.sample)

        result = self.model.score(
            self.ploidy,
            site.pileup,
            site.reference_base,
            self.min_quality,
            self.reads_were_realigned,
        )
        self.add_scored_site(site.contig, site.position, result)

    def add_scored_site(self, contig: str, position: int, result: LikelihoodResult) -> None:
        """Band a hom-ref site whose likelihoods were already computed."""
        self._check_open()
        state = self.state

        if state.next_available_start is not None:
            # positions still covered by a prior multi-base call (e.g. a deletion)
            if position <= state.next_available_start and contig == state.contig_of_next_available_start:
                logger.debug("Suppressing hom-ref site %s:%d covered by a call", contig, position)
                state.counts["sites_suppressed"] += 1
                return
            state.next_available_start = None
            state.contig_of_next_available_start = None

        depth = result.total_depth
        band = state.current_band
        if band is not None and band.is_contiguous(position, contig) and band.within_bounds(result.score):
            band.add(position, depth, result.score)
        else:
            self._emit_current_band()
            interval = self.partitions.lookup(result.score)
            band = ScoreBand(contig, position, interval)
            band.add(position, depth, result.score)
            state.current_band = band
        state.counts["sites_banded"] += 1

    def close(self) -> None:
        """Emit any pending band, then close the sink. Later calls are no-ops."""
        if self.state.closed:
            logger.debug("close() called on an already closed writer")
            return
        self.state.closed = True
        try:
            self._emit_current_band()
        finally:
            self.sink.close()
