"""
Unit tests for CLI functionality (input handles, stats command, main).
"""
import gzip
import io
import json
import sys
from contextlib import ExitStack
from io import BytesIO

import pytest
import zstandard

from fqstat.cli import (
    get_input_handle, get_output_handle, open_inputs,
    stats_command, build_parser, main,
    EXIT_OPEN_FAILURE, EXIT_READ_FAILURE,
)


# --- Test Data ---

FASTQ_DATA = b"""@read1
ACGTACGT
+
IIIIIIII
@read2
TGCATGCA
+
IIIIIIII
@read3
AAAACCCCGGGG
+
IIIIIIIIIIII
"""

READ1_DATA = b"""@pair1/1
ACGT
+
IIII
@pair2/1
ACGT
+
++++
"""

READ2_DATA = b"""@pair1/2
TTTTTTTT
+
55555555
"""

TRUNCATED_DATA = b"""@read1
ACGT
+
IIII
@read2
ACGT
"""


def make_args(**kwargs):
    class Args:
        read1 = None
        read2 = None
        stat = None
        length_mismatch = "stop"
        output = None
        indent = 2
        compact = False
        quiet = True

    args = Args()
    for key, value in kwargs.items():
        setattr(args, key, value)
    return args


def run_to_json(tmp_path, **kwargs):
    out_path = tmp_path / "report.json"
    args = make_args(output=str(out_path), **kwargs)
    assert stats_command(args) == 0
    with open(out_path) as f:
        return json.load(f)


# --- Input Handle Tests ---

class TestInputHandles:
    def test_plain(self, tmp_path):
        path = tmp_path / "reads.fastq"
        path.write_bytes(FASTQ_DATA)
        with get_input_handle(str(path)) as fh:
            assert fh.readline() == b"@read1\n"

    def test_gzip(self, tmp_path):
        path = tmp_path / "reads.fastq.gz"
        with gzip.open(path, "wb") as f:
            f.write(FASTQ_DATA)
        with get_input_handle(str(path)) as fh:
            assert fh.read() == FASTQ_DATA

    def test_zstd(self, tmp_path):
        path = tmp_path / "reads.fq.zst"
        path.write_bytes(zstandard.ZstdCompressor().compress(FASTQ_DATA))
        with get_input_handle(str(path)) as fh:
            assert fh.readline() == b"@read1\n"
            assert fh.readline() == b"ACGTACGT\n"

    def test_extension_only_detection(self, tmp_path):
        # gzip bytes behind a plain name are returned untouched
        path = tmp_path / "reads.fastq"
        path.write_bytes(gzip.compress(FASTQ_DATA))
        with get_input_handle(str(path)) as fh:
            assert fh.read() == gzip.compress(FASTQ_DATA)

    def test_stdin(self):
        assert get_input_handle("-") is sys.stdin.buffer
        assert get_input_handle(None) is sys.stdin.buffer

    def test_stdout(self):
        assert get_output_handle(None) is sys.stdout
        assert get_output_handle("-") is sys.stdout

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_input_handle(str(tmp_path / "missing.fastq.gz"))

    def test_open_inputs_reports_bad_path(self, tmp_path):
        good = tmp_path / "r1.fastq"
        good.write_bytes(FASTQ_DATA)
        bad = str(tmp_path / "r2.fastq")
        with ExitStack() as stack:
            with pytest.raises(OSError) as exc_info:
                open_inputs(stack, [str(good), bad])
        assert exc_info.value.filename == bad


# --- Stats Command Tests ---

class TestStatsCommand:
    def test_single_end(self, tmp_path):
        path = tmp_path / "reads.fastq"
        path.write_bytes(FASTQ_DATA)
        report = run_to_json(tmp_path, read1=str(path))

        assert report["average_read_quality"] == 40.0
        assert report["read_count"] == 3
        assert report["average_base_quality_per_position"] == [40.0] * 12
        comp = report["base_composition_per_position"]
        assert len(comp) == 12
        assert comp[0] == {"A": 2 / 3, "C": 0.0, "G": 0.0, "T": 1 / 3, "other": 0.0}
        assert comp[11] == {"A": 0.0, "C": 0.0, "G": 1.0, "T": 0.0, "other": 0.0}

    def test_paired_end_pooled(self, tmp_path):
        r1 = tmp_path / "r1.fastq"
        r2 = tmp_path / "r2.fastq.gz"
        r1.write_bytes(READ1_DATA)
        with gzip.open(r2, "wb") as f:
            f.write(READ2_DATA)

        report = run_to_json(tmp_path, read1=str(r1), read2=str(r2))

        assert report["read_count"] == 3
        # Per-read means 40, 10, 20
        assert report["average_read_quality"] == pytest.approx(70 / 3)
        assert report["average_base_quality_per_position"] == (
            [pytest.approx(70 / 3)] * 4 + [20.0] * 4
        )

        combined = tmp_path / "combined.fastq"
        combined.write_bytes(READ1_DATA + READ2_DATA)
        out = tmp_path / "combined.json"
        assert stats_command(make_args(read1=str(combined), output=str(out))) == 0
        with open(out) as f:
            assert json.load(f) == report

    def test_stat_selection(self, tmp_path):
        path = tmp_path / "reads.fastq"
        path.write_bytes(FASTQ_DATA)
        report = run_to_json(tmp_path, read1=str(path), stat=["read_quality"])
        assert report == {"average_read_quality": 40.0}

    def test_empty_input(self, tmp_path):
        path = tmp_path / "empty.fastq"
        path.write_bytes(b"")
        report = run_to_json(tmp_path, read1=str(path))
        assert report == {
            "average_read_quality": 0.0,
            "read_count": 0,
            "average_read_length": 0.0,
            "average_base_quality_per_position": [],
            "base_composition_per_position": [],
        }

    def test_truncated_input_warns(self, tmp_path, capsys):
        path = tmp_path / "trunc.fastq"
        path.write_bytes(TRUNCATED_DATA)
        report = run_to_json(tmp_path, read1=str(path))
        assert report["read_count"] == 1
        err = capsys.readouterr().err
        assert "[Warning]" in err
        assert "trunc.fastq" in err

    def test_truncated_gzip_input_warns(self, tmp_path, capsys):
        reads = b"".join(
            b"@r%d\nACGTACGTAC\n+\nIIIII55555\n" % i for i in range(2000)
        )
        blob = gzip.compress(reads)
        path = tmp_path / "cut.fastq.gz"
        path.write_bytes(blob[:len(blob) // 2])
        report = run_to_json(tmp_path, read1=str(path))
        assert report["read_count"] < 2000
        err = capsys.readouterr().err
        assert "[Warning]" in err
        assert "cut.fastq.gz" in err

    @pytest.mark.parametrize("name", ["bad.fastq.gz", "bad.fastq.zst"])
    def test_corrupt_compressed_input(self, tmp_path, capsys, name):
        path = tmp_path / name
        path.write_bytes(FASTQ_DATA)
        status = stats_command(make_args(read1=str(path)))
        assert status == EXIT_READ_FAILURE
        captured = capsys.readouterr()
        assert captured.out == ""
        assert f"Error: {path}" in captured.err

    def test_unwritable_output_fails_before_reading(self, tmp_path, capsys):
        path = tmp_path / "reads.fastq"
        path.write_bytes(FASTQ_DATA)
        out = str(tmp_path / "no" / "o.json")
        status = stats_command(make_args(read1=str(path), output=out, quiet=False))
        assert status == EXIT_OPEN_FAILURE
        err = capsys.readouterr().err
        assert f"Error: cannot open {out}" in err
        assert "[FQSTAT] Reading" not in err

    def test_length_mismatch_policy(self, tmp_path, capsys):
        path = tmp_path / "mismatch.fastq"
        path.write_bytes(b"@a\nACGT\n+\nII\n@b\nAC\n+\nII\n")
        assert run_to_json(tmp_path, read1=str(path))["read_count"] == 0
        assert run_to_json(tmp_path, read1=str(path),
                           length_mismatch="skip")["read_count"] == 1
        assert run_to_json(tmp_path, read1=str(path),
                           length_mismatch="tolerate")["read_count"] == 2
        assert "[Warning]" in capsys.readouterr().err

    def test_missing_read1(self, tmp_path, capsys):
        missing = str(tmp_path / "nope.fastq")
        out = tmp_path / "report.json"
        status = stats_command(make_args(read1=missing, output=str(out)))
        assert status == EXIT_OPEN_FAILURE
        assert missing in capsys.readouterr().err
        assert not out.exists()

    def test_missing_read2_fails_before_processing(self, tmp_path, capsys):
        r1 = tmp_path / "r1.fastq"
        r1.write_bytes(READ1_DATA)
        missing = str(tmp_path / "r2.fastq")
        status = stats_command(make_args(read1=str(r1), read2=missing))
        assert status == EXIT_OPEN_FAILURE
        captured = capsys.readouterr()
        assert captured.out == ""
        assert f"Error: cannot open {missing}" in captured.err

    def test_stdout_compact(self, tmp_path, capsys):
        path = tmp_path / "reads.fastq"
        path.write_bytes(b"@a\nAC\n+\nII\n")
        assert stats_command(make_args(read1=str(path), compact=True,
                                       stat=["read_length"])) == 0
        out = capsys.readouterr().out
        assert out == '{"read_count": 1, "average_read_length": 2.0}\n'

    def test_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(BytesIO(FASTQ_DATA)))
        assert stats_command(make_args(read1="-", stat=["read_length"])) == 0
        report = json.loads(capsys.readouterr().out)
        assert report["read_count"] == 3

    def test_progress_messages(self, tmp_path, capsys):
        path = tmp_path / "reads.fastq"
        path.write_bytes(FASTQ_DATA)
        assert stats_command(make_args(read1=str(path), quiet=False,
                                       output=str(tmp_path / "r.json"))) == 0
        err = capsys.readouterr().err
        assert "[FQSTAT] Reading" in err
        assert "Processed 3 records" in err

    def test_gzip_output(self, tmp_path):
        path = tmp_path / "reads.fastq"
        path.write_bytes(FASTQ_DATA)
        out = tmp_path / "report.json.gz"
        assert stats_command(make_args(read1=str(path), output=str(out))) == 0
        with gzip.open(out, "rt") as f:
            assert json.load(f)["read_count"] == 3


# --- Argument Parsing Tests ---

class TestArgParsing:
    def test_defaults(self):
        args = build_parser().parse_args(["-1", "r1.fq"])
        assert args.read1 == "r1.fq"
        assert args.read2 is None
        assert args.stat is None
        assert args.length_mismatch == "stop"
        assert args.indent == 2
        assert not args.compact

    def test_paired_and_stats(self):
        args = build_parser().parse_args([
            "--read1", "r1.fq", "--read2", "r2.fq",
            "-s", "read_quality", "-s", "base_composition_per_position",
        ])
        assert args.read2 == "r2.fq"
        assert args.stat == ["read_quality", "base_composition_per_position"]

    def test_read1_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_unknown_stat(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-1", "r1.fq", "-s", "gc"])

    def test_main_exit_codes(self, tmp_path, capsys):
        path = tmp_path / "reads.fastq"
        path.write_bytes(FASTQ_DATA)
        with pytest.raises(SystemExit) as exc_info:
            main(["-1", str(path), "-q", "-o", str(tmp_path / "out.json")])
        assert exc_info.value.code == 0

        with pytest.raises(SystemExit) as exc_info:
            main(["-1", str(tmp_path / "missing.fq")])
        assert exc_info.value.code == EXIT_OPEN_FAILURE
