"""
fqstat: streaming FASTQ record parsing.

A FASTQ record is four lines::

    @identifier
    SEQUENCE
    +
    QUALITIES

Only the sequence and quality lines are kept.  The identifier and
separator lines are consumed without validation.  Parsing works on any
object exposing ``readline()`` returning ``bytes`` (plain files, gzip
streams, buffered zstd readers, ``BytesIO``).
"""
from __future__ import annotations

from typing import BinaryIO, Iterator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Phred+33 (Sanger / Illumina 1.8+)
PHRED_OFFSET = 33

_LINE_NAMES = ("identifier", "sequence", "separator", "quality")

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class FastqError(Exception):
    """Base class for malformed FASTQ input."""


class TruncatedRecordError(FastqError, EOFError):
    """Raised when the stream ends in the middle of a record."""

    def __init__(self, missing: str, record_index: int | None = None):
        self.missing = missing
        self.record_index = record_index
        where = f" in record {record_index}" if record_index is not None else ""
        super().__init__(f"Unexpected EOF before {missing} line{where}")


class LengthMismatchError(FastqError, ValueError):
    """Raised when a record's sequence and quality lengths differ."""

    def __init__(self, seq_len: int, qual_len: int, record_index: int | None = None):
        self.seq_len = seq_len
        self.qual_len = qual_len
        self.record_index = record_index
        where = f"Record {record_index}" if record_index is not None else "Record"
        super().__init__(
            f"{where} has {seq_len} sequence bases but {qual_len} quality codes"
        )


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------


class FastqRecord:
    """Sequence and quality bytes of one FASTQ record.

    A parser reuses a single instance and overwrites both fields for
    every record, so consumers must not hold on to it.
    """

    __slots__ = ("symbols", "qualities")

    def __init__(self, symbols: bytes = b"", qualities: bytes = b"") -> None:
        self.symbols = symbols
        self.qualities = qualities

    def __len__(self) -> int:
        return len(self.symbols)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FastqRecord):
            return NotImplemented
        return self.symbols == other.symbols and self.qualities == other.qualities

    def __repr__(self) -> str:
        return f"FastqRecord(symbols={self.symbols!r}, qualities={self.qualities!r})"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _strip_eol(line: bytes) -> bytes:
    # Slice instead of rstrip() so trailing spaces stay part of the data
    end = len(line)
    if end > 0 and line[end - 1] == 10:  # \n
        end -= 1
    if end > 0 and line[end - 1] == 13:  # \r
        end -= 1
    return line[:end]


def parse_record(
    fh: BinaryIO, record: FastqRecord, record_index: int | None = None
) -> bool:
    """Read the next four lines of *fh* into *record*.

    Returns ``True`` when *record* was filled and ``False`` on a clean
    end of input: nothing left before the identifier line, or only
    blank lines left before the end of the stream.

    Raises
    ------
    TruncatedRecordError
        If the stream ends after the identifier line but before the
        quality line, or if a compressed stream is cut off (its
        ``readline()`` raises ``EOFError``).
    """
    readline = fh.readline
    lines = []
    blank = True
    for name in _LINE_NAMES:
        try:
            line = readline()
        except EOFError as exc:
            raise TruncatedRecordError(name, record_index) from exc
        if not line:
            if blank:
                return False
            raise TruncatedRecordError(name, record_index)
        if blank and _strip_eol(line):
            blank = False
        lines.append(line)

    record.symbols = _strip_eol(lines[1])
    record.qualities = _strip_eol(lines[3])
    return True


def parse_fastq(fh: BinaryIO) -> Iterator[FastqRecord]:
    """Yield records from *fh* until it is exhausted.

    The same :class:`FastqRecord` object is yielded every time.  A
    truncated final record propagates :class:`TruncatedRecordError`.
    """
    record = FastqRecord()
    index = 0
    while parse_record(fh, record, index):
        yield record
        index += 1


def check_lengths(record: FastqRecord, record_index: int | None = None) -> None:
    """Raise :class:`LengthMismatchError` unless both lines have equal length."""
    if len(record.symbols) != len(record.qualities):
        raise LengthMismatchError(
            len(record.symbols), len(record.qualities), record_index
        )
