"""
Tests for grid normalization and table renderings.
"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from labtable.utils.grid import (
    EMPTY_MARKUP,
    GridNormalizer,
    TableReconstruction,
    escape_html,
)


def make_table(rows, headers=None):
    normalizer = GridNormalizer()
    grid = normalizer.normalize(rows)
    headers = set(headers or [])
    return TableReconstruction(grid=grid, header_row_indices=headers,
                               markup=normalizer.render_html(grid, headers))


class TestGridNormalizer:
    """Tests for GridNormalizer."""

    def test_empty(self):
        assert GridNormalizer().normalize([]) == []

    def test_pads_short_rows(self):
        grid = GridNormalizer().normalize([["a", "b", "c"], ["d", "e"], ["f"]])
        assert grid == [["a", "b", "c"], ["d", "e", "—"], ["f", "—", "—"]]

    def test_custom_placeholder(self):
        grid = GridNormalizer(placeholder="").normalize([["a", "b"], ["c"]])
        assert grid[1] == ["c", ""]

    def test_grid_is_rectangular(self):
        rows = [["x"] * n for n in (1, 4, 2, 3)]
        grid = GridNormalizer().normalize(rows)
        assert {len(r) for r in grid} == {4}

    def test_html_header_and_body_cells(self):
        normalizer = GridNormalizer()
        html = normalizer.render_html([["Test", "Result"], ["Hb", "8.4"]], {0})
        assert html == ("<table><tr><th>Test</th><th>Result</th></tr>"
                        "<tr><td>Hb</td><td>8.4</td></tr></table>")

    def test_html_blank_cell_shows_placeholder(self):
        html = GridNormalizer().render_html([["a", "  "]])
        assert "<td>—</td>" in html

    def test_html_escapes_text(self):
        html = GridNormalizer().render_html([["<5", "A&B"]])
        assert "<td>&lt;5</td>" in html
        assert "<td>A&amp;B</td>" in html

    def test_escape_html(self):
        assert escape_html('"<>&') == "&quot;&lt;&gt;&amp;"


class TestTableReconstruction:
    """Tests for TableReconstruction renderings."""

    def test_empty(self):
        table = TableReconstruction.empty(words_in=3)
        assert table.is_empty
        assert table.status == "empty"
        assert table.markup == EMPTY_MARKUP
        assert table.header_row_indices == set()
        assert table.num_cols == 0
        assert table.to_markdown() == ""
        assert table.to_tsv() == ""
        assert table.words_in == 3

    def test_markdown_with_header(self):
        table = make_table([["Test", "Result"], ["Hb", "8.4"]], headers=[0])
        lines = table.to_markdown().split("\n")
        assert lines[0] == "| Test | Result |"
        assert lines[1] == "| --- | --- |"
        assert lines[2] == "| Hb | 8.4 |"

    def test_markdown_without_header(self):
        table = make_table([["Hb", "8.4"]])
        lines = table.to_markdown().split("\n")
        assert lines[0] == "|  |  |"
        assert lines[2] == "| Hb | 8.4 |"

    def test_markdown_escapes_pipes(self):
        table = make_table([["a|b"]])
        assert "a\\|b" in table.to_markdown()

    def test_tsv_keeps_columns(self):
        table = make_table([["Natrium", "140", "mmol/L"], ["Kalium", "4.1"]])
        assert table.to_tsv() == "Natrium\t140\tmmol/L\nKalium\t4.1\t—"

    def test_tsv_collapses_inner_whitespace(self):
        table = make_table([["Alkalische   fosfatase", "81"]])
        assert table.to_tsv() == "Alkalische fosfatase\t81"

    def test_csv(self):
        table = make_table([["a", "b,c"]])
        assert table.to_csv().strip() == 'a,"b,c"'

    def test_struct_and_json(self):
        table = make_table([["Test", "Result"], ["Hb", "8.4"]], headers=[0])
        struct = table.to_struct()
        assert struct["num_rows"] == 2
        assert struct["num_cols"] == 2
        assert struct["header_rows"] == [0]
        assert json.loads(table.to_json()) == struct

    def test_to_dict(self):
        table = make_table([["Test"]], headers=[0])
        d = table.to_dict()
        assert d["status"] == "success"
        assert d["html"] == "<table><tr><th>Test</th></tr></table>"
