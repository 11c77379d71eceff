from __future__ import annotations

import gzip
import json
import math
from pathlib import Path
from typing import Any, Sequence, TextIO

LOG10_ONE_THIRD = math.log10(1.0 / 3.0)

# A Q0 base is treated as no worse than a uniformly random base.
_MAX_ERROR_PROB = 0.75
_MIN_ERROR_PROB = 1e-10


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def phred_to_error_prob(q: int) -> float:
    # Guard against negative values (can occur if qualities are missing).
    if q <= 0:
        return _MAX_ERROR_PROB
    return clamp(10 ** (-q / 10), _MIN_ERROR_PROB, _MAX_ERROR_PROB)


def qual_to_prob_log10(q: int) -> float:
    """log10 probability that a base of quality ``q`` is correct."""
    return math.log10(1.0 - phred_to_error_prob(q))


def qual_to_error_prob_log10(q: int) -> float:
    """log10 probability that a base of quality ``q`` is wrong."""
    return math.log10(phred_to_error_prob(q))


def median(values: Sequence[float]) -> float:
    """Median; the mean of the two central values for an even-sized input."""
    if len(values) == 0:
        raise ValueError("median of an empty sequence")
    vals = sorted(values)
    mid = len(vals) // 2
    if len(vals) % 2 == 1:
        return float(vals[mid])
    return 0.5 * (vals[mid - 1] + vals[mid])


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def ensure_outdir(path: str | Path) -> Path:
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


def open_textmaybe_gzip(path: str | Path, mode: str = "rt") -> TextIO:
    p = str(path)
    if p.endswith(".gz"):
        return gzip.open(p, mode)  # type: ignore[return-value]
    return open(p, mode)


def write_json(path: str | Path, obj: Any) -> None:
    with open(path, "wt", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, sort_keys=True)
