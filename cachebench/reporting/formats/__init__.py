"""
Report format handlers for harness results.

This package provides multiple encodings of a Report:
- JSON: the full report for programmatic access
- CSV: one row per phase and outcome category, for spreadsheets
- Table: plain-text tables for terminals and log files
- HTML: a single page with the same tables, for browsers

Usage:
    from cachebench.reporting.formats import FormatRegistry, write_report

    write_report("results/", report, "json")
"""

import os

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, TYPE_CHECKING, Union

from cachebench.errors import ReportWriteError

if TYPE_CHECKING:
    from cachebench.reporting.sink import Report


class ReportFormat(ABC):
    """Abstract base class for report format handlers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the format name."""
        pass

    @property
    @abstractmethod
    def extension(self) -> str:
        """Return the file extension for this format."""
        pass

    @property
    def file_name(self) -> str:
        return f"report.{self.extension}"

    @abstractmethod
    def generate(self, report: 'Report') -> Union[bytes, str]:
        """
        Encode the report in this format.

        Args:
            report: Report built by the ReportSink.

        Returns:
            Encoded report, bytes or str.
        """
        pass

    def generate_to_file(self, report: 'Report', output_path: str) -> str:
        """
        Encode the report and write it to output_path.

        Returns:
            Path to the written file.
        """
        content = self.generate(report)

        mode = 'wb' if isinstance(content, bytes) else 'w'
        with open(output_path, mode) as f:
            f.write(content)

        return output_path


class FormatRegistry:
    """Registry for available report formats."""

    _formats: Dict[str, type] = {}

    @classmethod
    def register(cls, format_class: type) -> type:
        """
        Register a format class.

        Can be used as a decorator:
            @FormatRegistry.register
            class MyFormat(ReportFormat):
                ...
        """
        instance = format_class()
        cls._formats[instance.name] = format_class
        return format_class

    @classmethod
    def get(cls, name: str) -> Optional[type]:
        return cls._formats.get(name)

    @classmethod
    def create(cls, name: str) -> ReportFormat:
        format_class = cls._formats.get(name)
        if format_class is None:
            raise ReportWriteError(f"Unknown report format: {name}", report_format=name,
                                   suggestion=f"Use one of: {', '.join(cls.available_formats())}")
        return format_class()

    @classmethod
    def available_formats(cls) -> List[str]:
        return list(cls._formats.keys())


def write_report(path: str, report: 'Report', format_name: str) -> str:
    """
    Write a report into the directory ``path``.

    Parent directories are created as needed. The file is named
    ``report.<extension>`` of the chosen format.

    Returns:
        Path of the written file.

    Raises:
        ReportWriteError: Unknown format or the file could not be written.
    """
    report_format = FormatRegistry.create(format_name)
    output_path = os.path.join(path, report_format.file_name)
    try:
        os.makedirs(path, exist_ok=True)
        return report_format.generate_to_file(report, output_path)
    except OSError as e:
        raise ReportWriteError(f"Failed to write {format_name} report: {e}", path=output_path,
                               report_format=format_name) from e


# Import format implementations to register them
from cachebench.reporting.formats.json_format import JSONFormat
from cachebench.reporting.formats.csv_format import CSVFormat
from cachebench.reporting.formats.table import TableFormat
from cachebench.reporting.formats.html_format import HTMLFormat

__all__ = [
    'ReportFormat',
    'FormatRegistry',
    'write_report',
    'JSONFormat',
    'CSVFormat',
    'TableFormat',
    'HTMLFormat',
]
