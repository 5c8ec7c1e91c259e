"""
Grid normalization and table representations.

Provides:
- GridNormalizer: pads rows of cells into a rectangular grid
- TableReconstruction: grid, header flags and markup, with Markdown, CSV,
  TSV and JSON renderings for downstream consumers
"""

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from ..config import PLACEHOLDER

logger = logging.getLogger(__name__)

Grid = List[List[str]]

EMPTY_MARKUP = "<table></table>"


# ============================================================================
# Helpers
# ============================================================================

def escape_html(text: str) -> str:
    """Escape HTML special characters."""
    return (text
        .replace('&', '&amp;')
        .replace('<', '&lt;')
        .replace('>', '&gt;')
        .replace('"', '&quot;')
    )


def display_cell(text: str, placeholder: str = PLACEHOLDER) -> str:
    """Cell text as rendered: trimmed, blank cells shown as the placeholder."""
    stripped = text.strip()
    return stripped if stripped else placeholder


# ============================================================================
# Grid Normalizer
# ============================================================================

class GridNormalizer:
    """Turn ragged rows of cells into a rectangular grid plus HTML markup."""

    def __init__(self, placeholder: str = PLACEHOLDER):
        self.placeholder = placeholder

    def normalize(self, rows_of_cells: Sequence[Sequence[str]]) -> Grid:
        """
        Right-pad every row to the widest row.

        Args:
            rows_of_cells: Cell strings per row, top to bottom

        Returns:
            Rectangular grid; empty when there are no rows
        """
        if not rows_of_cells:
            return []

        num_columns = max((len(row) for row in rows_of_cells), default=1)
        num_columns = max(num_columns, 1)

        grid = []
        for row in rows_of_cells:
            padded = list(row)
            if len(padded) < num_columns:
                padded.extend([self.placeholder] * (num_columns - len(padded)))
            grid.append(padded)

        padded_rows = sum(1 for row in rows_of_cells if len(row) < num_columns)
        if padded_rows:
            logger.debug(f"Padded {padded_rows} of {len(grid)} rows to {num_columns} columns")
        return grid

    def render_html(self, grid: Grid, header_rows: Optional[Set[int]] = None) -> str:
        """
        Render the grid as an HTML table.

        Header rows use ``<th>`` cells, all others ``<td>``.
        """
        header_rows = header_rows or set()
        parts = ["<table>"]
        for index, row in enumerate(grid):
            tag = "th" if index in header_rows else "td"
            parts.append("<tr>")
            for cell in row:
                content = escape_html(display_cell(cell, self.placeholder))
                parts.append(f"<{tag}>{content}</{tag}>")
            parts.append("</tr>")
        parts.append("</table>")
        return "".join(parts)


# ============================================================================
# Reconstruction Result
# ============================================================================

@dataclass
class TableReconstruction:
    """Result of reconstructing one table from OCR words."""
    grid: Grid
    header_row_indices: Set[int]
    markup: str
    placeholder: str = PLACEHOLDER
    words_in: int = 0
    words_used: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def empty(cls, placeholder: str = PLACEHOLDER, words_in: int = 0) -> "TableReconstruction":
        return cls(
            grid=[],
            header_row_indices=set(),
            markup=EMPTY_MARKUP,
            placeholder=placeholder,
            words_in=words_in,
        )

    @property
    def is_empty(self) -> bool:
        return not self.grid

    @property
    def status(self) -> str:
        return "empty" if self.is_empty else "success"

    @property
    def num_rows(self) -> int:
        return len(self.grid)

    @property
    def num_cols(self) -> int:
        return len(self.grid[0]) if self.grid else 0

    def _display_rows(self) -> Grid:
        return [[display_cell(c, self.placeholder) for c in row] for row in self.grid]

    def to_markdown(self) -> str:
        """Markdown table; a leading header row becomes the Markdown header."""
        if self.is_empty:
            return ""

        rows = [[c.replace("|", "\\|") for c in row] for row in self._display_rows()]
        if 0 in self.header_row_indices:
            header, body = rows[0], rows[1:]
        else:
            header, body = [""] * self.num_cols, rows

        lines = ["| " + " | ".join(header) + " |",
                 "| " + " | ".join("---" for _ in range(self.num_cols)) + " |"]
        for row in body:
            lines.append("| " + " | ".join(row) + " |")
        return "\n".join(lines)

    def to_csv(self) -> str:
        """CSV rendering of the grid."""
        if self.is_empty:
            return ""

        output = io.StringIO()
        writer = csv.writer(output)
        for row in self.grid:
            writer.writerow(row)
        return output.getvalue()

    def to_tsv(self) -> str:
        """
        Tab-separated rows, one line per grid row.

        This is the serialization handed to the language-model analysis step;
        column positions survive because every row has the same cell count.
        """
        lines = []
        for row in self.grid:
            lines.append("\t".join(" ".join(cell.split()) for cell in row))
        return "\n".join(lines)

    def to_struct(self) -> Dict[str, Any]:
        return {
            "rows": [list(row) for row in self.grid],
            "header_rows": sorted(self.header_row_indices),
            "num_rows": self.num_rows,
            "num_cols": self.num_cols,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "struct": self.to_struct(),
            "html": self.markup,
            "markdown": self.to_markdown(),
            "tsv": self.to_tsv(),
            "words_in": self.words_in,
            "words_used": self.words_used,
            "metadata": self.metadata,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_struct(), indent=indent, ensure_ascii=False)
