"""
Tests for report format handlers in cachebench.reporting.formats.

Tests cover:
- FormatRegistry lookup and creation
- JSON, CSV, table and HTML encodings of a Report
- write_report() file output and failure handling
"""

import csv
import io
import json
import os

import pytest

from cachebench.config import OperationKind, OutcomeCategory
from cachebench.errors import ReportWriteError
from cachebench.reporting.formats import (
    CSVFormat,
    FormatRegistry,
    HTMLFormat,
    JSONFormat,
    ReportFormat,
    TableFormat,
    write_report,
)
from cachebench.reporting.sink import OutcomeRecorder, PhaseResult, Report, ReportSink


def build_report(categories=None, stopped_early=False):
    load, test = OutcomeRecorder(), OutcomeRecorder()
    for _ in range(10):
        load.record(OutcomeCategory.PUT_OK, 0.0005)
    for _ in range(6):
        test.record(OutcomeCategory.GET_HIT, 0.0002)
    test.record(OutcomeCategory.GET_MISS, 0.0004)
    sink = ReportSink()
    sink.add_phase(PhaseResult("Loading phase", OperationKind.PUT, 1, "10 operations", 0.5,
                               "2026-01-01T00:00:00", "2026-01-01T00:00:01",
                               OutcomeRecorder.merge([load])))
    sink.add_phase(PhaseResult("Testing phase", OperationKind.GET, 2, "1.0s", 1.0,
                               "2026-01-01T00:00:01", "2026-01-01T00:00:02",
                               OutcomeRecorder.merge([test]), stopped_early=stopped_early))
    snapshots = [{'timestamp': 't', 'elapsed_seconds': 0.5, 'tier': 'OnHeap', 'hits': 3, 'counters': {}}]
    return sink.build_report(categories=categories, snapshots=snapshots,
                             metadata={'status': 'SHUTDOWN', 'formats': {'json', 'csv'}})


class TestFormatRegistry:

    def test_builtin_formats(self):
        assert set(FormatRegistry.available_formats()) >= {'json', 'csv', 'table', 'html'}
        assert FormatRegistry.get('json') is JSONFormat
        assert isinstance(FormatRegistry.create('csv'), CSVFormat)

    def test_unknown_format(self):
        with pytest.raises(ReportWriteError) as exc_info:
            FormatRegistry.create('xlsx')
        assert 'json' in exc_info.value.suggestion

    def test_register_custom_format(self):
        class CountFormat(ReportFormat):
            @property
            def name(self):
                return "count"

            @property
            def extension(self):
                return "count"

            def generate(self, report):
                return str(report.total_operations)

        try:
            FormatRegistry.register(CountFormat)
            assert FormatRegistry.create("count").generate(build_report()) == "17"
        finally:
            FormatRegistry._formats.pop("count", None)

    def test_file_names(self):
        assert JSONFormat().file_name == "report.json"
        assert CSVFormat().file_name == "report.csv"
        assert TableFormat().file_name == "report.txt"
        assert HTMLFormat().file_name == "report.html"


class TestJSONFormat:

    def test_round_trips_structure(self):
        data = json.loads(JSONFormat().generate(build_report()))
        assert data['total_operations'] == 17
        assert data['reported_categories'] == 'all'
        assert [p['name'] for p in data['phases']] == ["Loading phase", "Testing phase"]
        assert data['phases'][1]['categories']['GET_HIT']['count'] == 6
        assert data['statistics_snapshots'][0]['hits'] == 3
        assert data['metadata']['formats'] == ['csv', 'json']

    def test_filtered_report(self):
        data = json.loads(JSONFormat().generate(build_report(categories=[OutcomeCategory.GET_MISS])))
        assert data['reported_categories'] == ['GET_MISS']
        assert data['phases'][0]['categories'] == {}
        assert list(data['phases'][1]['categories']) == ['GET_MISS']
        assert data['phases'][1]['total_operations'] == 7

    def test_pretty(self):
        text = JSONFormat(indent=4).generate_pretty(build_report())
        assert isinstance(text, str)
        assert '\n    "generated_at"' in text


class TestCSVFormat:

    def parse(self, text):
        return list(csv.DictReader(io.StringIO(text)))

    def test_one_row_per_phase_category(self):
        rows = self.parse(CSVFormat().generate(build_report()))
        assert [(r['phase'], r['category']) for r in rows] == [
            ("Loading phase", "PUT_OK"),
            ("Testing phase", "GET_HIT"),
            ("Testing phase", "GET_MISS"),
        ]
        assert rows[1]['count'] == '6'
        assert rows[1]['total_operations'] == '7'
        assert 'latency_ms.p99' in rows[1]

    def test_leading_columns(self):
        header = CSVFormat().generate(build_report()).splitlines()[0].split(',')
        assert header[:9] == ['phase', 'operation', 'concurrency', 'iterations', 'elapsed_seconds',
                              'total_operations', 'hit_ratio', 'stopped_early', 'category']

    def test_missing_values_are_blank(self):
        rows = self.parse(CSVFormat().generate(build_report()))
        assert rows[0]['hit_ratio'] == ''

    def test_phase_without_visible_categories(self):
        rows = self.parse(CSVFormat().generate(build_report(categories=[OutcomeCategory.GET_HIT])))
        assert rows[0]['phase'] == "Loading phase"
        assert rows[0]['category'] == ''
        assert rows[0]['total_operations'] == '10'

    def test_empty_report(self):
        assert CSVFormat().generate(Report(phases=[])) == ""


class TestTableFormat:

    def test_contains_phases_and_categories(self):
        text = TableFormat().generate(build_report())
        assert "Loading phase (PUT, 10 operations, 1 worker(s)): 10 operations" in text
        assert "hit ratio 85.71%" in text
        assert "GET_MISS" in text
        assert "p99.9 ms" in text
        assert "OnHeap hits: 3" in text

    def test_no_colors_by_default(self):
        assert '\x1b[' not in TableFormat().generate(build_report())

    def test_colors(self):
        text = TableFormat(use_colors=True).generate(build_report())
        assert '\x1b[91m' not in text
        assert '\x1b[93mGET_MISS' in text

    def test_stopped_early_marker(self):
        assert "[stopped early]" in TableFormat().generate(build_report(stopped_early=True))

    def test_empty_report(self):
        text = TableFormat().generate(Report(phases=[]))
        assert "No phases to display." in text
        assert "No statistics snapshots." in text

    def test_hidden_categories(self):
        text = TableFormat().generate(build_report(categories=[]))
        assert text.count("No categories to display.") == 2

    def test_grid_style(self):
        text = TableFormat(style='grid').generate(build_report())
        assert '+=' in text


class TestHTMLFormat:

    def test_page_contains_phases_and_snapshots(self):
        text = HTMLFormat().generate(build_report())
        assert text.startswith("<!DOCTYPE html>")
        assert text.rstrip().endswith("</html>")
        assert "<h2>Loading phase: PUT, 10 operations, 1 worker(s)</h2>" in text
        assert "hit ratio 85.71%" in text
        assert '<tr class="GET_MISS"><td class="name">GET_MISS</td><td>1</td>' in text
        assert "<th>p99.9 ms</th>" in text
        assert "<td>OnHeap</td><td>3</td>" in text
        assert '<td class="name">status</td><td>SHUTDOWN</td>' in text

    def test_values_are_escaped(self):
        recorder = OutcomeRecorder()
        recorder.record(OutcomeCategory.GET_HIT, 0.001)
        sink = ReportSink()
        sink.add_phase(PhaseResult("<script>x</script>", OperationKind.GET, 1, "1.0s", 1.0, "", "",
                                   OutcomeRecorder.merge([recorder])))
        text = HTMLFormat().generate(sink.build_report())
        assert "<script>" not in text
        assert "&lt;script&gt;x&lt;/script&gt;" in text

    def test_empty_category_shows_dashes(self):
        report = build_report()
        report.phases[1]['categories']['GET_ERROR'] = {
            'count': 0,
            'throughput_ops_per_sec': 0.0,
            'latency_ms': {'mean': None, 'min': None, 'max': None, 'p50': None, 'p90': None,
                           'p95': None, 'p99': None, 'p99.9': None},
        }
        text = HTMLFormat().generate(report)
        assert '<tr class="GET_ERROR"><td class="name">GET_ERROR</td><td>0</td><td>0</td><td>-</td>' in text

    def test_stopped_early_and_empty_report(self):
        assert "(stopped early)" in HTMLFormat().generate(build_report(stopped_early=True))
        text = HTMLFormat().generate(Report(phases=[]))
        assert "No phases to display." in text
        assert "No statistics snapshots." in text


class TestWriteReport:

    @pytest.mark.parametrize("format_name,file_name", [
        ("json", "report.json"),
        ("csv", "report.csv"),
        ("table", "report.txt"),
        ("html", "report.html"),
    ])
    def test_writes_file(self, tmp_path, format_name, file_name):
        path = write_report(str(tmp_path), build_report(), format_name)
        assert path == os.path.join(str(tmp_path), file_name)
        assert os.path.getsize(path) > 0

    def test_creates_directories(self, tmp_path):
        target = tmp_path / "nested" / "run1"
        path = write_report(str(target), build_report(), "json")
        assert json.loads(open(path).read())['total_operations'] == 17

    def test_unwritable_path_raises(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("x")
        with pytest.raises(ReportWriteError) as exc_info:
            write_report(str(blocker), build_report(), "json")
        assert exc_info.value.error.context['report_format'] == "json"

    def test_unknown_format_raises(self, tmp_path):
        with pytest.raises(ReportWriteError):
            write_report(str(tmp_path), build_report(), "parquet")
