from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import InvalidConfiguration
from .partition import validate_boundaries

logger = logging.getLogger(__name__)

_REGION_RE = re.compile(r"^(?P<contig>[^:]+)(?::(?P<start>[\d,]+)(?:-(?P<end>[\d,]+))?)?$")


def check_bam_index(bam_path: str | Path) -> None:
    """Ensure a BAM has an index; raise ValueError with fix instructions."""
    bam = Path(bam_path)
    bai1 = bam.with_suffix(bam.suffix + ".bai")
    bai2 = bam.with_suffix(".bai")
    csi = bam.with_suffix(bam.suffix + ".csi")
    if bai1.exists() or bai2.exists() or csi.exists():
        return
    raise ValueError(
        "BAM is not indexed. Run: samtools index " + str(bam)
    )


def check_vcf_index(vcf_path: str | Path) -> None:
    """Ensure a bgzipped VCF has a tabix index; raise ValueError with fix instructions."""
    vcf = Path(vcf_path)
    if vcf.suffixes[-2:] == [".vcf", ".gz"]:
        tbi = vcf.with_suffix(vcf.suffix + ".tbi")
        if not tbi.exists():
            raise ValueError(
                "VCF is not bgzip/tabix indexed. Run: tabix -p vcf " + str(vcf)
            )
    elif vcf.suffix == ".vcf":
        logger.info(
            "VCF is uncompressed (.vcf). This is supported but every record is scanned; "
            "consider bgzip+tabix for large files."
        )


def check_fasta_index(fasta_path: str | Path) -> None:
    """Ensure a FASTA has a .fai index; raise ValueError with fix instructions."""
    fa = Path(fasta_path)
    if not fa.with_suffix(fa.suffix + ".fai").exists():
        raise ValueError("FASTA is not indexed. Run: samtools faidx " + str(fa))


def parse_region(region: str) -> Tuple[str, Optional[int], Optional[int]]:
    """Parse ``contig[:start[-end]]`` (1-based, inclusive; commas allowed).

    Missing start/end are returned as None.
    """
    m = _REGION_RE.match(region.strip())
    if m is None:
        raise ValueError(f"Malformed region: {region!r} (expected contig[:start[-end]])")
    contig = m.group("contig")
    start = int(m.group("start").replace(",", "")) if m.group("start") else None
    end = int(m.group("end").replace(",", "")) if m.group("end") else None
    if start is not None and start < 1:
        raise ValueError(f"Region start must be >= 1: {region!r}")
    if start is not None and end is not None and end < start:
        raise ValueError(f"Region end is before start: {region!r}")
    return contig, start, end


def parse_lod_bands(text: str) -> List[float]:
    """Parse a comma-separated list of score boundaries and validate it."""
    try:
        values = [float(x) for x in text.split(",") if x.strip()]
    except ValueError as exc:
        raise InvalidConfiguration(f"Score boundaries must be numbers: {text!r}") from exc
    return validate_boundaries(values)
