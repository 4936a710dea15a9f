"""
Result aggregation and report output.

Modules:
    - sink: per-worker outcome recording, phase results and the ReportSink
    - formats: report encodings (JSON, CSV, text table) and write_report
"""

from cachebench.reporting.sink import (
    CategoryStats,
    OutcomeRecorder,
    PhaseResult,
    Report,
    ReportSink,
)

from cachebench.reporting.formats import (
    FormatRegistry,
    ReportFormat,
    write_report,
)

__all__ = [
    'CategoryStats',
    'OutcomeRecorder',
    'PhaseResult',
    'Report',
    'ReportSink',
    'FormatRegistry',
    'ReportFormat',
    'write_report',
]
