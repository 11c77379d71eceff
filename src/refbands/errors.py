"""Exceptions raised by the banding core.

Every error here is a contract violation by the caller (or an internal
invariant failure); none of them is retried or suppressed.
"""

from __future__ import annotations


class BandingError(Exception):
    """Base class for all refbands errors."""


class InvalidConfiguration(BandingError, ValueError):
    """Malformed score partition boundaries."""


class NonContiguous(BandingError, ValueError):
    """A position was added that does not directly follow the band's end."""

    def __init__(self, position: int, end: int) -> None:
        super().__init__(
            f"adding site at position {position} isn't contiguous with previous end {end}"
        )
        self.position = int(position)
        self.end = int(end)


class OutOfBand(BandingError, ValueError):
    """A score was added to a band whose interval does not contain it."""

    def __init__(self, score: float, lower: float, upper: float) -> None:
        super().__init__(
            f"cannot add a site with score={score} because it's not within bounds [{lower}, {upper})"
        )
        self.score = score
        self.lower = lower
        self.upper = upper


class PartitionNotFound(BandingError, LookupError):
    """A score fell outside every registered partition interval."""

    def __init__(self, score: float) -> None:
        super().__init__(f"score {score} didn't fit into any partition")
        self.score = score


class EmptyBand(BandingError, RuntimeError):
    """Finalize was requested on a band that never received a site."""


class WriterClosed(BandingError, RuntimeError):
    """A record was added to a writer after close()."""


class SampleMismatch(BandingError, ValueError):
    """A record named a different sample than the one bound to the writer."""
