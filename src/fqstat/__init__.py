__version__ = "0.1.0"


from .core import (
    FastqRecord,
    parse_record, parse_fastq, check_lengths,
    FastqError, TruncatedRecordError, LengthMismatchError,
    PHRED_OFFSET,
)
from .stats import (
    Statistic,
    ReadQualityStatistic, ReadLengthStatistic,
    BaseQualityPosStatistic, BaseCompositionPosStatistic,
)
from .registry import (
    available_statistics, get_statistic, create_statistics,
    register_statistic, ReportKeyCollisionError,
)
from .runner import WorkflowRunner, RunnerState, StreamSummary, RunnerFinalizedError
from .report import assemble_report, render_report


__all__ = [
    "FastqRecord",
    "parse_record", "parse_fastq", "check_lengths",
    "FastqError", "TruncatedRecordError", "LengthMismatchError",
    "PHRED_OFFSET",
    "Statistic",
    "ReadQualityStatistic", "ReadLengthStatistic",
    "BaseQualityPosStatistic", "BaseCompositionPosStatistic",
    "available_statistics", "get_statistic", "create_statistics",
    "register_statistic", "ReportKeyCollisionError",
    "WorkflowRunner", "RunnerState", "StreamSummary", "RunnerFinalizedError",
    "assemble_report", "render_report",
    "__version__",
]
