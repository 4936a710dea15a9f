"""
CSV format handler for harness results.

One row per (phase, outcome category), with the phase's totals repeated on
every row so the file can be pivoted without joins. A phase with no visible
category still gets a single row holding its totals.
"""

import csv
import io
import math

from typing import Any, Dict, List, TYPE_CHECKING

from cachebench.reporting.formats import ReportFormat, FormatRegistry
from cachebench.utils import flatten_nested_dict

if TYPE_CHECKING:
    from cachebench.reporting.sink import Report


PHASE_FIELDS = ['phase', 'operation', 'concurrency', 'iterations', 'elapsed_seconds',
                'total_operations', 'hit_ratio', 'stopped_early']


@FormatRegistry.register
class CSVFormat(ReportFormat):
    """Format the report as a flat CSV table."""

    @property
    def name(self) -> str:
        return "csv"

    @property
    def extension(self) -> str:
        return "csv"

    @staticmethod
    def _clean(value):
        if value is None:
            return ''
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return ''
        return value

    def rows(self, report: 'Report') -> List[Dict[str, Any]]:
        rows = []
        for phase in report.phases:
            base = {
                'phase': phase['name'],
                'operation': phase['operation'],
                'concurrency': phase['concurrency'],
                'iterations': phase['iterations'],
                'elapsed_seconds': phase['elapsed_seconds'],
                'total_operations': phase['total_operations'],
                'hit_ratio': phase['hit_ratio'],
                'stopped_early': phase['stopped_early'],
            }
            if not phase['categories']:
                rows.append(base)
                continue
            for category, summary in phase['categories'].items():
                row = dict(base, category=category)
                row.update(flatten_nested_dict(summary))
                rows.append(row)
        return [{k: self._clean(v) for k, v in row.items()} for row in rows]

    def generate(self, report: 'Report') -> str:
        rows = self.rows(report)
        if not rows:
            return ""

        fieldnames = set()
        for row in rows:
            fieldnames.update(row.keys())

        ordered_fields = PHASE_FIELDS + ['category']
        ordered_fields = [f for f in ordered_fields if f in fieldnames]
        ordered_fields.extend(sorted(f for f in fieldnames if f not in ordered_fields))

        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=ordered_fields, restval='', lineterminator='\n')
        writer.writeheader()
        writer.writerows(rows)
        return output.getvalue()
