"""refbands: somatic reference-confidence bands for single-sample gVCF output.

Positions without an explicit variant call are scored for evidence of a
non-reference allele (a log-odds, lower = more confidently hom-ref) and runs
of adjacent positions whose scores fall in the same partition are collapsed
into hom-ref blocks, interleaved in genomic order with the explicit calls.

Most users should use the CLI:

    refbands band --bam ... --ref ... --calls ... --region ... --outdir ...

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
