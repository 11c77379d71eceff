import subprocess
import sys
from pathlib import Path

import pysam

from refbands.cli import main


def _run_cli(args: list[str]) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "refbands"] + args,
        check=False,
        capture_output=True,
        text=True,
    )


def test_partitions_output(capsys) -> None:
    assert main(["partitions", "--lod-bands", "1,2.5"]) == 0
    assert capsys.readouterr().out.splitlines() == ["[-inf, 1)", "[1, 2.5)", "[2.5, inf)"]


def test_partitions_reject_policy(capsys) -> None:
    assert main(["partitions", "--lod-bands", "3", "--negative-scores", "reject"]) == 0
    assert capsys.readouterr().out.splitlines() == ["[0, 3)", "[3, inf)"]


def test_out_of_order_bands_are_a_usage_error() -> None:
    cp = _run_cli(["partitions", "--lod-bands", "2,1"])
    assert cp.returncode == 2
    assert "out of order" in cp.stderr


def test_band_dry_run_does_not_write_outputs(tmp_path: Path, toy) -> None:
    outdir = tmp_path / "dry"
    cp = _run_cli(
        [
            "band",
            "--bam",
            toy["tumor_bam"],
            "--ref",
            toy["ref_fa"],
            "--calls",
            toy["calls_vcf"],
            "--region",
            "chr1:1-100",
            "--outdir",
            str(outdir),
            "--dry-run",
        ]
    )
    assert cp.returncode == 0
    assert "Dry-run" in cp.stdout
    assert "[-inf, 1)" in cp.stdout
    assert not (outdir / "summary.json").exists()


def test_make_toy_data_and_band(tmp_path: Path) -> None:
    toy_dir = tmp_path / "toy"
    cp = _run_cli(["make-toy-data", "--outdir", str(toy_dir)])
    assert cp.returncode == 0

    outdir = tmp_path / "out"
    cp = _run_cli(
        [
            "band",
            "--bam",
            str(toy_dir / "tumor.bam"),
            "--ref",
            str(toy_dir / "toy_ref.fa"),
            "--calls",
            str(toy_dir / "calls.vcf.gz"),
            "--region",
            "chr1",
            "--outdir",
            str(outdir),
            "--tsv",
            "--no-progress",
        ]
    )
    assert cp.returncode == 0, cp.stderr
    out_vcf = outdir / "output.g.vcf.gz"
    assert Path(cp.stdout.strip()).name == out_vcf.name
    assert (outdir / "blocks.tsv").exists()
    assert (outdir / "summary.json").exists()
    assert (outdir / "logs" / "band.log").exists()
    with pysam.VariantFile(str(out_vcf)) as vcf:
        assert len(list(vcf)) > 2


def test_bad_region_message(tmp_path: Path, toy) -> None:
    cp = _run_cli(
        [
            "band",
            "--bam",
            toy["tumor_bam"],
            "--ref",
            toy["ref_fa"],
            "--region",
            "chr1:50-10",
            "--outdir",
            str(tmp_path / "out"),
        ]
    )
    assert cp.returncode == 2
    assert "Region end is before start" in cp.stderr


def test_missing_index_message(tmp_path: Path, toy) -> None:
    bam = tmp_path / "noindex.bam"
    bam.write_bytes(Path(toy["tumor_bam"]).read_bytes())
    cp = _run_cli(
        [
            "band",
            "--bam",
            str(bam),
            "--ref",
            toy["ref_fa"],
            "--region",
            "chr1",
            "--outdir",
            str(tmp_path / "out"),
        ]
    )
    assert cp.returncode == 2
    assert "samtools index" in cp.stderr
