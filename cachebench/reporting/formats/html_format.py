"""
HTML format handler for harness results.

A single self-contained page: run metadata, one table per phase and the
statistics snapshots. Every value taken from the report is escaped.
"""

import html

from typing import Any, List, TYPE_CHECKING

from cachebench.config import LATENCY_PERCENTILES
from cachebench.reporting.formats import ReportFormat, FormatRegistry
from cachebench.reporting.sink import percentile_label

if TYPE_CHECKING:
    from cachebench.reporting.sink import Report

STYLE = """
body { font-family: sans-serif; margin: 2em; color: #222; }
table { border-collapse: collapse; margin: 0.5em 0 1.5em 0; }
th, td { border: 1px solid #ccc; padding: 4px 10px; text-align: right; }
th { background: #f0f0f0; }
td.name { text-align: left; font-weight: bold; }
.GET_MISS td.name { color: #b58900; }
.PUT_ERROR td.name, .GET_ERROR td.name { color: #dc322f; }
"""


def _cell(value: Any, fmt: str = '') -> str:
    if value is None:
        return '-'
    return html.escape(format(value, fmt))


def _row(cells: List[str], header: bool = False, css_class: str = None) -> str:
    tag = 'th' if header else 'td'
    attr = f' class="{css_class}"' if css_class else ''
    return f"<tr{attr}>" + "".join(f"<{tag}>{c}</{tag}>" for c in cells) + "</tr>"


@FormatRegistry.register
class HTMLFormat(ReportFormat):
    """Format the report as an HTML page."""

    @property
    def name(self) -> str:
        return "html"

    @property
    def extension(self) -> str:
        return "html"

    def format_metadata(self, report: 'Report') -> str:
        metadata = report.metadata
        rows = [_row(['Parameter', 'Value'], header=True)]
        for key in ('status', 'runtime_seconds', 'key_domain_size', 'skipped_sampling_cycles', 'error'):
            if key in metadata:
                rows.append(f'<tr><td class="name">{html.escape(key)}</td><td>{_cell(metadata[key])}</td></tr>')
        reported = report.reported_categories
        reported = ', '.join(reported) if reported is not None else 'all'
        rows.append(f'<tr><td class="name">reported_categories</td><td>{html.escape(reported)}</td></tr>')
        return "<table>\n" + "\n".join(rows) + "\n</table>"

    def format_phase(self, phase: dict) -> str:
        title = (f"{phase['name']}: {phase['operation']}, {phase['iterations']}, "
                 f"{phase['concurrency']} worker(s)")
        summary = (f"{phase['total_operations']:,} operations in {phase['elapsed_seconds']:.2f}s, "
                   f"{phase['throughput_ops_per_sec']:,.0f} ops/s")
        if phase['hit_ratio'] is not None:
            summary += f", hit ratio {phase['hit_ratio']:.2%}"
        if phase['stopped_early']:
            summary += " (stopped early)"

        parts = [f"<h2>{html.escape(title)}</h2>", f"<p>{html.escape(summary)}</p>"]
        if not phase['categories']:
            parts.append("<p>No categories to display.</p>")
            return "\n".join(parts)

        headers = ['Category', 'Count', 'Ops/s', 'Mean ms', 'Min ms', 'Max ms']
        headers += [f"{percentile_label(p)} ms" for p in LATENCY_PERCENTILES]
        rows = [_row(headers, header=True)]
        for category, stats in phase['categories'].items():
            latency = stats['latency_ms']
            cells = [
                html.escape(category),
                _cell(stats['count'], ','),
                _cell(stats['throughput_ops_per_sec'], ',.0f'),
                _cell(latency['mean'], '.4f'),
                _cell(latency['min'], '.4f'),
                _cell(latency['max'], '.4f'),
            ] + [_cell(latency[percentile_label(p)], '.4f') for p in LATENCY_PERCENTILES]
            row = _row(cells, css_class=html.escape(category))
            rows.append(row.replace("<td>", '<td class="name">', 1))
        parts.append("<table>\n" + "\n".join(rows) + "\n</table>")
        return "\n".join(parts)

    def format_snapshots(self, snapshots: List[dict]) -> str:
        if not snapshots:
            return "<h2>Statistics snapshots</h2>\n<p>No statistics snapshots.</p>"
        rows = [_row(['Elapsed s', 'Tier', 'Hits'], header=True)]
        for snapshot in snapshots:
            rows.append(_row([_cell(snapshot['elapsed_seconds'], '.2f'), _cell(snapshot['tier']),
                              _cell(snapshot['hits'], ',')]))
        return "<h2>Statistics snapshots</h2>\n<table>\n" + "\n".join(rows) + "\n</table>"

    def generate(self, report: 'Report') -> str:
        sections = [self.format_metadata(report)]
        if not report.phases:
            sections.append("<p>No phases to display.</p>")
        sections.extend(self.format_phase(phase) for phase in report.phases)
        sections.append(self.format_snapshots(report.snapshots))
        body = "\n".join(sections)
        return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>cachebench report</title>
<style>{STYLE}</style>
</head>
<body>
<h1>cachebench report</h1>
<p>Generated at {html.escape(report.generated_at)}</p>
{body}
</body>
</html>
"""
