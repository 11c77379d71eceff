from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pysam

from .utils import ensure_outdir, write_json

TOY_CONTIG = "chr1"
TOY_SAMPLE = "TUMOR"
TOY_SNV_POS0 = 80
TOY_DEL_POS0 = 120
TOY_DEL_LEN = 2


def _write_fasta(path: Path, contig: str, seq: str, width: int = 60) -> None:
    with open(path, "wt", encoding="utf-8") as fh:
        fh.write(f">{contig}\n")
        for i in range(0, len(seq), width):
            fh.write(seq[i : i + width] + "\n")


# Fixed substitution for the toy SNV
_SNV_ALT = {"A": "C", "C": "A", "G": "T", "T": "G"}


def make_read(
    name: str,
    start0: int,
    seq: str,
    cigar: Optional[List[Tuple[int, int]]] = None,
    *,
    qual: str = "I",
    flag: int = 0,
    mapq: int = 60,
) -> pysam.AlignedSegment:
    """Build an unpaired read on reference 0; ``cigar`` defaults to all-match."""
    read = pysam.AlignedSegment()
    read.query_name = name
    read.query_sequence = seq
    read.flag = flag
    read.reference_id = 0
    read.reference_start = start0
    read.mapping_quality = mapq
    read.cigartuples = cigar if cigar is not None else [(0, len(seq))]
    read.query_qualities = pysam.qualitystring_to_array(qual * len(seq))
    return read


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create a tiny reference, BAM, and explicit-calls VCF for demos/tests.

    The outputs include:
    - toy_ref.fa (+ .fai)
    - tumor.bam (+ .bai), 2 reads per start position tiling the contig
    - calls.vcf.gz (+ .tbi) with one SNV and one 2-bp deletion supported
      by half of the reads covering them

    Returns
    -------
    dict
        Paths to the generated files and the call coordinates.
    """
    outdir_p = ensure_outdir(outdir)

    ref_seq = ("ACGT" * 50)[:200]
    ref_fa = outdir_p / "toy_ref.fa"
    _write_fasta(ref_fa, TOY_CONTIG, ref_seq)
    pysam.faidx(str(ref_fa))

    snv_ref = ref_seq[TOY_SNV_POS0]
    snv_alt = _SNV_ALT[snv_ref]

    read_len = 50
    reads: List[pysam.AlignedSegment] = []
    for i, start0 in enumerate(range(0, len(ref_seq) - read_len + 1, 10)):
        for copy in range(2):
            name = f"r{i}_{copy}"
            end0 = start0 + read_len
            seq = list(ref_seq[start0:end0])
            cigar = [(0, read_len)]
            carries_alt = copy == 1
            if carries_alt and start0 <= TOY_SNV_POS0 < end0:
                seq[TOY_SNV_POS0 - start0] = snv_alt
            if carries_alt and start0 < TOY_DEL_POS0 and TOY_DEL_POS0 + TOY_DEL_LEN + 1 < end0:
                # delete the two bases after the anchor base
                left = TOY_DEL_POS0 + 1 - start0
                del seq[left : left + TOY_DEL_LEN]
                seq.extend(ref_seq[end0 : end0 + TOY_DEL_LEN])
                cigar = [(0, left), (2, TOY_DEL_LEN), (0, read_len - left)]
            reads.append(make_read(name, start0, "".join(seq), cigar))

    reads.sort(key=lambda r: r.reference_start)

    bam_path = outdir_p / "tumor.bam"
    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": TOY_CONTIG, "LN": len(ref_seq)}],
    }
    with pysam.AlignmentFile(str(bam_path), "wb", header=header) as bam:
        for r in reads:
            bam.write(r)
    pysam.index(str(bam_path))

    vcf_path = outdir_p / "calls.vcf"
    vheader = pysam.VariantHeader()
    vheader.add_meta("fileformat", "VCFv4.2")
    vheader.add_sample(TOY_SAMPLE)
    vheader.contigs.add(TOY_CONTIG, length=len(ref_seq))
    vheader.formats.add("GT", number=1, type="String", description="Genotype")
    vheader.formats.add("DP", number=1, type="Integer", description="Depth")

    del_ref = ref_seq[TOY_DEL_POS0 : TOY_DEL_POS0 + TOY_DEL_LEN + 1]
    del_alt = ref_seq[TOY_DEL_POS0]
    with pysam.VariantFile(str(vcf_path), "w", header=vheader) as vcf:
        for pos0, ref, alt in [
            (TOY_SNV_POS0, snv_ref, snv_alt),
            (TOY_DEL_POS0, del_ref, del_alt),
        ]:
            rec = vcf.new_record(
                contig=TOY_CONTIG,
                start=pos0,
                stop=pos0 + len(ref),
                alleles=(ref, alt),
                qual=60,
                filter="PASS",
            )
            rec.samples[0]["GT"] = (0, 1)
            rec.samples[0]["DP"] = 10
            vcf.write(rec)

    vcf_gz = outdir_p / "calls.vcf.gz"
    pysam.tabix_compress(str(vcf_path), str(vcf_gz), force=True)
    pysam.tabix_index(str(vcf_gz), preset="vcf", force=True)

    summary = {
        "ref_fa": str(ref_fa),
        "tumor_bam": str(bam_path),
        "calls_vcf": str(vcf_gz),
        "contig": TOY_CONTIG,
        "sample": TOY_SAMPLE,
        "outdir": str(outdir_p),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
