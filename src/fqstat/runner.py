"""
Drive FASTQ streams through a set of statistics.

A :class:`WorkflowRunner` owns its statistics until :meth:`finalize`
hands them back.  :meth:`WorkflowRunner.process` can be called once per
input stream; records from every stream pool into the same
accumulators, so read 1 and read 2 of a paired-end sample end up in one
combined report.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, Callable, Iterable, List, Optional

from .core import (
    FastqRecord,
    LengthMismatchError,
    TruncatedRecordError,
    check_lengths,
    parse_record,
)
from .registry import check_unique_keys
from .stats import Statistic

# Length-mismatch policies
MISMATCH_STOP = "stop"
MISMATCH_SKIP = "skip"
MISMATCH_TOLERATE = "tolerate"
LENGTH_MISMATCH_POLICIES = (MISMATCH_STOP, MISMATCH_SKIP, MISMATCH_TOLERATE)

DEFAULT_LENGTH_MISMATCH = MISMATCH_STOP


class RunnerFinalizedError(RuntimeError):
    """Raised when a finalized runner is used again."""


class RunnerState(Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    FINALIZED = "finalized"


@dataclass
class StreamSummary:
    """Outcome of processing one input stream.

    ``truncated`` is set when the stream ended inside a record; the
    records before it were still dispatched.  ``mismatched`` counts
    records whose sequence and quality lengths differed.
    """

    source: Optional[str] = None
    records: int = 0
    truncated: bool = False
    mismatched: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.truncated and self.mismatched == 0


class WorkflowRunner:
    """Dispatch every parsed record to every registered statistic."""

    __slots__ = ("_statistics", "_length_mismatch", "_state", "_records")

    def __init__(
        self,
        statistics: Optional[Iterable[Statistic]] = None,
        length_mismatch: str = DEFAULT_LENGTH_MISMATCH,
    ) -> None:
        if length_mismatch not in LENGTH_MISMATCH_POLICIES:
            raise ValueError(
                f"length_mismatch must be one of {LENGTH_MISMATCH_POLICIES}, "
                f"got {length_mismatch!r}"
            )
        stats = list(statistics) if statistics is not None else []
        check_unique_keys(stats)
        self._statistics: Optional[List[Statistic]] = stats
        self._length_mismatch = length_mismatch
        self._state = RunnerState.IDLE
        self._records = 0

    # -- properties ----------------------------------------------------------

    @property
    def state(self) -> RunnerState:
        return self._state

    @property
    def records_processed(self) -> int:
        """Records dispatched so far, across all streams."""
        return self._records

    @property
    def statistics(self) -> List[Statistic]:
        return list(self._owned())

    # -- public --------------------------------------------------------------

    def register(self, statistic: Statistic) -> None:
        """Add *statistic* to the dispatch list."""
        stats = self._owned()
        check_unique_keys([*stats, statistic])
        stats.append(statistic)

    def process(
        self,
        fh: BinaryIO,
        source: Optional[str] = None,
        progress: Optional[Callable[[int], None]] = None,
    ) -> StreamSummary:
        """Parse *fh* to exhaustion and feed every record to every statistic.

        Malformed input never raises here: a truncated final record or a
        length mismatch under the ``"stop"`` policy ends the stream and is
        reported on the returned :class:`StreamSummary`.

        Parameters
        ----------
        fh
            Binary stream supporting ``readline()``.
        source
            Label for warnings, usually the input path.
        progress
            Called with the running record total after each record.
        """
        stats = self._owned()
        self._state = RunnerState.PROCESSING

        summary = StreamSummary(source=source)
        label = source if source is not None else "<stream>"
        policy = self._length_mismatch
        check = policy != MISMATCH_TOLERATE
        record = FastqRecord()
        index = 0

        while True:
            try:
                if not parse_record(fh, record, index):
                    break
            except TruncatedRecordError as exc:
                summary.truncated = True
                summary.warnings.append(
                    f"{label}: {exc}; input may be incomplete"
                )
                break

            index += 1
            if check:
                try:
                    check_lengths(record, index - 1)
                except LengthMismatchError as exc:
                    summary.mismatched += 1
                    if policy == MISMATCH_STOP:
                        summary.warnings.append(
                            f"{label}: {exc}; stopped reading this input"
                        )
                        break
                    if summary.mismatched == 1:
                        summary.warnings.append(
                            f"{label}: {exc}; skipping mismatched records"
                        )
                    continue

            for stat in stats:
                stat.process(record)
            summary.records += 1
            self._records += 1
            if progress is not None:
                progress(self._records)

        if summary.mismatched > 1 and policy == MISMATCH_SKIP:
            summary.warnings.append(
                f"{label}: skipped {summary.mismatched} mismatched records"
            )
        return summary

    def finalize(self) -> List[Statistic]:
        """Hand the statistics over to the caller and retire the runner."""
        stats = self._owned()
        self._statistics = None
        self._state = RunnerState.FINALIZED
        return stats

    # -- private -------------------------------------------------------------

    def _owned(self) -> List[Statistic]:
        if self._statistics is None:
            raise RunnerFinalizedError("WorkflowRunner has already been finalized")
        return self._statistics
