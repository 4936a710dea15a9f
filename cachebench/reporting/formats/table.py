"""
Table format handler for harness results.

Provides plain-text tables for terminal display and the report.txt artifact.
"""

import re

from typing import List, TYPE_CHECKING

from cachebench.reporting.formats import ReportFormat, FormatRegistry
from cachebench.reporting.sink import percentile_label
from cachebench.config import LATENCY_PERCENTILES

if TYPE_CHECKING:
    from cachebench.reporting.sink import Report

ANSI_PATTERN = re.compile(r'\x1b\[[0-9;]*m')


@FormatRegistry.register
class TableFormat(ReportFormat):
    """Format the report as text tables, one per phase."""

    STYLES = {
        'simple': {
            'horizontal': '-',
            'vertical': '|',
            'corner': '+',
            'header_sep': '-',
        },
        'grid': {
            'horizontal': '-',
            'vertical': '|',
            'corner': '+',
            'header_sep': '=',
        },
    }

    COLORS = {
        'reset': '\033[0m',
        'bold': '\033[1m',
        'red': '\033[91m',
        'green': '\033[92m',
        'yellow': '\033[93m',
    }

    def __init__(self, style: str = 'simple', use_colors: bool = False):
        """
        Args:
            style: Table style ('simple' or 'grid').
            use_colors: Color error categories; off by default since the
                output is usually written to a file.
        """
        self.style = self.STYLES.get(style, self.STYLES['simple'])
        self.use_colors = use_colors

    @property
    def name(self) -> str:
        return "table"

    @property
    def extension(self) -> str:
        return "txt"

    def _color(self, text: str, color: str) -> str:
        if self.use_colors and color in self.COLORS:
            return f"{self.COLORS[color]}{text}{self.COLORS['reset']}"
        return text

    def _category_color(self, category: str) -> str:
        if category.endswith('ERROR'):
            return 'red'
        elif category.endswith('MISS'):
            return 'yellow'
        return 'green'

    @staticmethod
    def _strip_ansi(text: str) -> str:
        return ANSI_PATTERN.sub('', text)

    @staticmethod
    def _number(value, fmt: str) -> str:
        if value is None:
            return '-'
        return format(value, fmt)

    def _calculate_column_widths(self, headers: List[str], rows: List[List[str]]) -> List[int]:
        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], len(self._strip_ansi(str(cell))))
        return widths

    def _format_row(self, cells: List[str], widths: List[int]) -> str:
        sep = self.style['vertical']
        formatted = []
        for cell, width in zip(cells, widths):
            padding = width - len(self._strip_ansi(str(cell)))
            formatted.append(f" {cell}{' ' * padding} ")
        return sep + sep.join(formatted) + sep

    def _format_separator(self, widths: List[int], char: str = None) -> str:
        if char is None:
            char = self.style['horizontal']
        corner = self.style['corner']
        return corner + corner.join(char * (w + 2) for w in widths) + corner

    def format_phase_table(self, phase: dict) -> str:
        """Render one phase summary as a title line plus a category table."""
        hit_ratio = phase['hit_ratio']
        title = (f"{phase['name']} ({phase['operation']}, {phase['iterations']}, "
                 f"{phase['concurrency']} worker(s)): {phase['total_operations']} operations in "
                 f"{phase['elapsed_seconds']:.2f}s, {phase['throughput_ops_per_sec']:,.0f} ops/s")
        if hit_ratio is not None:
            title += f", hit ratio {hit_ratio:.2%}"
        if phase['stopped_early']:
            title += " [stopped early]"

        if not phase['categories']:
            return f"{title}\nNo categories to display."

        headers = ['Category', 'Count', 'Ops/s', 'Mean ms', 'Max ms']
        headers += [f"{percentile_label(p)} ms" for p in LATENCY_PERCENTILES]

        rows = []
        for category, summary in phase['categories'].items():
            latency = summary['latency_ms']
            rows.append([
                self._color(category, self._category_color(category)),
                str(summary['count']),
                self._number(summary['throughput_ops_per_sec'], ',.0f'),
                self._number(latency['mean'], '.4f'),
                self._number(latency['max'], '.4f'),
            ] + [self._number(latency[percentile_label(p)], '.4f') for p in LATENCY_PERCENTILES])

        widths = self._calculate_column_widths(headers, rows)
        lines = [title,
                 self._format_separator(widths),
                 self._format_row(headers, widths),
                 self._format_separator(widths, self.style['header_sep'])]
        lines.extend(self._format_row(row, widths) for row in rows)
        lines.append(self._format_separator(widths))
        return '\n'.join(lines)

    def format_snapshots(self, snapshots: List[dict]) -> str:
        if not snapshots:
            return "No statistics snapshots."
        lines = ["Statistics snapshots:"]
        for snapshot in snapshots:
            lines.append(f"  +{snapshot['elapsed_seconds']:8.2f}s  {snapshot['tier']} hits: {snapshot['hits']}")
        return '\n'.join(lines)

    def generate(self, report: 'Report') -> str:
        sections = [f"Report generated at {report.generated_at}"]
        if not report.phases:
            sections.append("No phases to display.")
        sections.extend(self.format_phase_table(phase) for phase in report.phases)
        sections.append(self.format_snapshots(report.snapshots))
        return '\n\n'.join(sections) + '\n'
