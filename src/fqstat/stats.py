"""
Running statistics over FASTQ records.

Every statistic exposes two methods:

    process(record) -> None
        Fold one record into the running state.  Never raises.
    report() -> dict
        Return a fresh fragment describing the current state.  Calling
        it does not change anything, so it can be called at any time.

Each class lists the report keys it owns in ``keys``.  Keys are unique
across all statistics so fragments can be merged into one flat report.
"""
from __future__ import annotations

from typing import Any, ClassVar, Dict, List, Tuple

from .core import PHRED_OFFSET, FastqRecord

# Composition classes, in report order.  Index 4 is "other".
BASE_CLASSES = ("A", "C", "G", "T", "other")

_OTHER = 4


def _make_class_table() -> bytes:
    """Translation table: byte -> class index (A=0 C=1 G=2 T=3, else 4).

    Matching is case-sensitive, so lower case and IUPAC codes are "other".
    """
    table = bytearray([_OTHER] * 256)
    for i, base in enumerate(BASE_CLASSES[:4]):
        table[ord(base)] = i
    return bytes(table)


_CLASS_TABLE = _make_class_table()


class Statistic:
    """Base class for a running statistic."""

    __slots__ = ()

    name: ClassVar[str] = ""
    keys: ClassVar[Tuple[str, ...]] = ()

    def process(self, record: FastqRecord) -> None:
        raise NotImplementedError

    def report(self) -> Dict[str, Any]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ---------------------------------------------------------------------------
# Per-read statistics
# ---------------------------------------------------------------------------


class ReadQualityStatistic(Statistic):
    """Mean of per-read mean base qualities.

    Each read contributes one value regardless of its length, so this is
    not the same as the mean over every base once read lengths differ.
    Reads with an empty quality line have no mean and are not counted.
    """

    name = "read_quality"
    keys = ("average_read_quality",)

    __slots__ = ("total", "count")

    def __init__(self) -> None:
        self.total = 0.0
        self.count = 0

    def process(self, record: FastqRecord) -> None:
        qual = record.qualities
        n = len(qual)
        if n == 0:
            return
        self.total += (sum(qual) - PHRED_OFFSET * n) / n
        self.count += 1

    def report(self) -> Dict[str, Any]:
        mean = self.total / self.count if self.count else 0.0
        return {"average_read_quality": mean}


class ReadLengthStatistic(Statistic):
    """Number of reads and their mean sequence length."""

    name = "read_length"
    keys = ("read_count", "average_read_length")

    __slots__ = ("count", "total_bases")

    def __init__(self) -> None:
        self.count = 0
        self.total_bases = 0

    def process(self, record: FastqRecord) -> None:
        self.count += 1
        self.total_bases += len(record.symbols)

    def report(self) -> Dict[str, Any]:
        return {
            "read_count": self.count,
            "average_read_length": self.total_bases / self.count if self.count else 0.0,
        }


# ---------------------------------------------------------------------------
# Per-position statistics
# ---------------------------------------------------------------------------


class BaseQualityPosStatistic(Statistic):
    """Mean base quality at every read position.

    ``sums`` and ``counts`` grow to the longest quality line seen so far.
    Growth appends zeros and never touches existing positions.
    """

    name = "base_quality_per_position"
    keys = ("average_base_quality_per_position",)

    __slots__ = ("sums", "counts")

    def __init__(self) -> None:
        self.sums: List[int] = []
        self.counts: List[int] = []

    def _grow(self, length: int) -> None:
        extra = length - len(self.sums)
        if extra > 0:
            self.sums.extend([0] * extra)
            self.counts.extend([0] * extra)

    def process(self, record: FastqRecord) -> None:
        qual = record.qualities
        self._grow(len(qual))
        sums = self.sums
        counts = self.counts
        for i, code in enumerate(qual):
            sums[i] += code - PHRED_OFFSET
            counts[i] += 1

    def report(self) -> Dict[str, Any]:
        means = [
            s / c if c else 0.0
            for s, c in zip(self.sums, self.counts)
        ]
        return {"average_base_quality_per_position": means}


class BaseCompositionPosStatistic(Statistic):
    """Proportion of A, C, G, T and other symbols at every read position.

    ``counts[i]`` holds five counters for position *i*, in
    :data:`BASE_CLASSES` order.
    """

    name = "base_composition_per_position"
    keys = ("base_composition_per_position",)

    __slots__ = ("counts",)

    def __init__(self) -> None:
        self.counts: List[List[int]] = []

    def _grow(self, length: int) -> None:
        extra = length - len(self.counts)
        if extra > 0:
            self.counts.extend([0, 0, 0, 0, 0] for _ in range(extra))

    def process(self, record: FastqRecord) -> None:
        classes = record.symbols.translate(_CLASS_TABLE)
        self._grow(len(classes))
        counts = self.counts
        for i, cls in enumerate(classes):
            counts[i][cls] += 1

    def report(self) -> Dict[str, Any]:
        rows = []
        for counters in self.counts:
            total = sum(counters)
            if total:
                rows.append({k: c / total for k, c in zip(BASE_CLASSES, counters)})
            else:
                rows.append({k: 0.0 for k in BASE_CLASSES})
        return {"base_composition_per_position": rows}
