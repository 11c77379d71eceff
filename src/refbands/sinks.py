"""Record sinks for the banding writer.

A sink has two operations, ``accept(record)`` and ``close()``. Records are
either :class:`~refbands.models.ExplicitCall` (payload passed through) or
:class:`~refbands.models.HomRefBlock`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Protocol, Tuple, Union

import pysam

from .models import ExplicitCall, HomRefBlock
from .utils import open_textmaybe_gzip, round_half_up

logger = logging.getLogger(__name__)

OutputRecord = Union[ExplicitCall, HomRefBlock]

NON_REF_ALLELE = "<NON_REF>"

# Summary payload keys of a hom-ref block
END_KEY = "END"
TLOD_KEY = "TLOD"
DP_KEY = "DP"
MIN_DP_KEY = "MIN_DP"


class RecordSink(Protocol):
    def accept(self, record: OutputRecord) -> None:
        ...

    def close(self) -> None:
        ...


class ListSink:
    """Collect records in memory."""

    def __init__(self) -> None:
        self.records: List[OutputRecord] = []
        self.closed = False

    def accept(self, record: OutputRecord) -> None:
        if self.closed:
            raise RuntimeError("sink is closed")
        self.records.append(record)

    def close(self) -> None:
        self.closed = True

    @property
    def blocks(self) -> List[HomRefBlock]:
        return [r for r in self.records if isinstance(r, HomRefBlock)]

    @property
    def calls(self) -> List[ExplicitCall]:
        return [r for r in self.records if isinstance(r, ExplicitCall)]


class TeeSink:
    """Forward every record to several sinks."""

    def __init__(self, *sinks: RecordSink) -> None:
        if not sinks:
            raise ValueError("TeeSink needs at least one sink")
        self.sinks = sinks

    def accept(self, record: OutputRecord) -> None:
        for sink in self.sinks:
            sink.accept(record)

    def close(self) -> None:
        errors: List[Exception] = []
        for sink in self.sinks:
            try:
                sink.close()
            except Exception as e:
                logger.error("Failed to close sink %r: %s", sink, e)
                errors.append(e)
        if errors:
            raise errors[0]


_TSV_COLUMNS = ["kind", "contig", "start", "end", "score", "median_depth", "min_depth", "sample"]


class TsvSink:
    """Write one tab-separated row per record (``.gz`` paths are gzipped)."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._fh = open_textmaybe_gzip(self.path, "wt")
        self._fh.write("\t".join(_TSV_COLUMNS) + "\n")

    def accept(self, record: OutputRecord) -> None:
        if isinstance(record, HomRefBlock):
            row = [
                "BLOCK",
                record.contig,
                str(record.start),
                str(record.end),
                f"{record.score:.6f}",
                f"{record.median_depth:.1f}",
                str(record.min_depth),
                record.sample or ".",
            ]
        else:
            row = [
                "CALL",
                record.contig,
                str(record.start),
                str(record.end),
                ".",
                ".",
                ".",
                record.sample or ".",
            ]
        self._fh.write("\t".join(row) + "\n")

    def close(self) -> None:
        self._fh.close()


def make_gvcf_header(
    sample: str,
    *,
    template: Optional[pysam.VariantHeader] = None,
    contigs: Iterable[Tuple[str, Optional[int]]] = (),
) -> pysam.VariantHeader:
    """Build a VCF header declaring the hom-ref block fields.

    Parameters
    ----------
    sample:
        The single sample written to the file.
    template:
        Optional header to start from (e.g. the header of the explicit calls
        VCF, so its records can be passed through). It is copied, not modified.
    contigs:
        (name, length) pairs to declare if absent.
    """
    if template is not None:
        header = template.copy()
    else:
        header = pysam.VariantHeader()
        header.add_meta("fileformat", "VCFv4.2")

    for name, length in contigs:
        if name not in header.contigs:
            if length is None:
                header.contigs.add(name)
            else:
                header.contigs.add(name, length=int(length))

    if "NON_REF" not in header.alts:
        header.add_line(
            '##ALT=<ID=NON_REF,Description="Represents any possible alternative allele not already represented at this location">'
        )
    if END_KEY not in header.info:
        header.info.add(END_KEY, number=1, type="Integer", description="Stop position of the interval")
    if "GT" not in header.formats:
        header.formats.add("GT", number=1, type="String", description="Genotype")
    if DP_KEY not in header.formats:
        header.formats.add(DP_KEY, number=1, type="Integer", description="Approximate read depth")
    if MIN_DP_KEY not in header.formats:
        header.formats.add(
            MIN_DP_KEY, number=1, type="Integer", description="Minimum DP observed within the GVCF block"
        )
    if TLOD_KEY not in header.formats:
        header.formats.add(
            TLOD_KEY,
            number=1,
            type="Float",
            description="Maximum log10 likelihood ratio score of a variant within the GVCF block",
        )
    if sample not in header.samples:
        header.add_sample(sample)
    return header


def _vcf_mode(path: Path) -> str:
    if path.suffix == ".bcf":
        return "wb"
    if path.name.endswith(".gz"):
        return "wz"
    return "w"


class VcfSink:
    """Write hom-ref blocks and pass-through calls to a VCF/BCF with pysam.

    Explicit calls must carry a ``pysam.VariantRecord`` payload; it is
    translated to this file's header and written as is.
    """

    def __init__(
        self,
        path: str | Path,
        header: pysam.VariantHeader,
        sample: str,
        *,
        reference: Optional[pysam.FastaFile] = None,
    ) -> None:
        self.path = Path(path)
        self.sample = sample
        self.reference = reference
        self._vcf = pysam.VariantFile(str(self.path), _vcf_mode(self.path), header=header)

    def _ref_base(self, contig: str, pos1: int) -> str:
        if self.reference is None:
            return "N"
        base = self.reference.fetch(contig, pos1 - 1, pos1).upper()
        return base or "N"

    def accept(self, record: OutputRecord) -> None:
        if isinstance(record, HomRefBlock):
            self._write_block(record)
            return

        payload = record.payload
        if not isinstance(payload, pysam.VariantRecord):
            raise TypeError(
                f"VcfSink can only pass through pysam.VariantRecord payloads, got {type(payload).__name__}"
            )
        payload.translate(self._vcf.header)
        self._vcf.write(payload)

    def _write_block(self, block: HomRefBlock) -> None:
        rec = self._vcf.new_record(
            contig=block.contig,
            start=block.start - 1,
            stop=block.end,
            alleles=(self._ref_base(block.contig, block.start), NON_REF_ALLELE),
        )
        rec.info[END_KEY] = block.end
        fields = rec.samples[self.sample]
        fields["GT"] = (0, 0)
        fields[DP_KEY] = round_half_up(block.median_depth)
        fields[MIN_DP_KEY] = int(block.min_depth)
        fields[TLOD_KEY] = float(block.score)
        self._vcf.write(rec)

    def close(self) -> None:
        self._vcf.close()
