"""
JSON format handler for harness results.

Provides JSON export for programmatic access.
"""

import json

from typing import TYPE_CHECKING

from cachebench.reporting.formats import ReportFormat, FormatRegistry
from cachebench.utils import CBJsonEncoder

if TYPE_CHECKING:
    from cachebench.reporting.sink import Report


@FormatRegistry.register
class JSONFormat(ReportFormat):
    """Format the report as JSON."""

    def __init__(self, indent: int = 2):
        self.indent = indent

    @property
    def name(self) -> str:
        return "json"

    @property
    def extension(self) -> str:
        return "json"

    def generate(self, report: 'Report') -> bytes:
        return json.dumps(report.as_dict(), indent=self.indent, cls=CBJsonEncoder).encode('utf-8')

    def generate_pretty(self, report: 'Report') -> str:
        return self.generate(report).decode('utf-8')
