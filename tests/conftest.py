from pathlib import Path
from typing import Dict, List

import pysam
import pytest

from refbands.toy_data import make_toy_data


@pytest.fixture(scope="session")
def toy(tmp_path_factory) -> Dict[str, str]:
    """Toy reference/BAM/calls shared across tests (read-only)."""
    return make_toy_data(outdir=tmp_path_factory.mktemp("toy"))


def _write_bam(path: Path, contig: str, length: int, reads: List[pysam.AlignedSegment]) -> Path:
    header = {"HD": {"VN": "1.6", "SO": "coordinate"}, "SQ": [{"SN": contig, "LN": length}]}
    with pysam.AlignmentFile(str(path), "wb", header=header) as bam:
        for r in sorted(reads, key=lambda r: r.reference_start):
            bam.write(r)
    pysam.index(str(path))
    return path


@pytest.fixture
def write_bam():
    """Write reads to a sorted, indexed single-contig BAM."""
    return _write_bam
