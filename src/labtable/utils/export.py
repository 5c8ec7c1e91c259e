"""
Export module for reconstructed tables.

Provides:
- HTML, Markdown, CSV, TSV and JSON files
- DOCX export (using python-docx), header rows in bold
- GridExporter convenience class for several formats at once
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .grid import TableReconstruction, display_cell

logger = logging.getLogger(__name__)

TEXT_FORMATS = ["html", "markdown", "csv", "tsv", "json"]
ALL_FORMATS = TEXT_FORMATS + ["docx"]

_SUFFIXES = {
    "html": ".html",
    "markdown": ".md",
    "csv": ".csv",
    "tsv": ".tsv",
    "json": ".json",
    "docx": ".docx",
}


# ============================================================================
# DOCX Exporter
# ============================================================================

class DocxExporter:
    """Export a table to DOCX format using python-docx."""

    def __init__(self, template_path: Optional[str] = None, title: Optional[str] = None):
        self.template_path = template_path
        self.title = title

    def export(
        self,
        table: TableReconstruction,
        output_path: Union[str, Path]
    ) -> Path:
        """
        Export a table to a DOCX file.

        Args:
            table: Reconstructed table
            output_path: Output file path

        Returns:
            Path to the generated DOCX file
        """
        try:
            from docx import Document as DocxDocument
        except ImportError:
            raise ImportError(
                "python-docx is required for DOCX export. "
                "Install with: pip install python-docx"
            )

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if self.template_path and Path(self.template_path).exists():
            doc = DocxDocument(self.template_path)
        else:
            doc = DocxDocument()

        if self.title:
            doc.add_heading(self.title, level=1)

        if table.is_empty:
            doc.add_paragraph("No table data could be reconstructed.")
        else:
            self._add_table(doc, table)

        doc.save(str(output_path))
        logger.info(f"Exported DOCX to: {output_path}")
        return output_path

    def _add_table(self, doc, table: TableReconstruction):
        """Add the grid to the DOCX document."""
        rows = table.grid
        docx_table = doc.add_table(rows=len(rows), cols=table.num_cols)
        docx_table.style = 'Table Grid'

        for i, row_data in enumerate(rows):
            row = docx_table.rows[i]
            for j, cell_text in enumerate(row_data):
                cell = row.cells[j]
                cell.text = display_cell(cell_text, table.placeholder)
                if i in table.header_row_indices:
                    for run in cell.paragraphs[0].runs:
                        run.bold = True


# ============================================================================
# Multi-format Exporter
# ============================================================================

class GridExporter:
    """Convenience class for exporting a table to multiple formats."""

    def __init__(
        self,
        output_dir: Union[str, Path],
        base_name: str = "table"
    ):
        self.output_dir = Path(output_dir)
        self.base_name = base_name
        self.docx_exporter = DocxExporter(title=base_name)

    def path_for(self, fmt: str) -> Path:
        return self.output_dir / f"{self.base_name}{_SUFFIXES[fmt]}"

    def export(
        self,
        table: TableReconstruction,
        formats: Optional[List[str]] = None
    ) -> Dict[str, Path]:
        """
        Export a table to several formats.

        Args:
            table: Reconstructed table
            formats: Any of html, markdown, csv, tsv, json, docx or 'all'

        Returns:
            Dictionary mapping format to output path
        """
        if formats is None:
            formats = ["html", "tsv"]
        if "all" in formats:
            formats = list(ALL_FORMATS)

        unknown = [f for f in formats if f not in _SUFFIXES]
        if unknown:
            raise ValueError(f"Unknown export format(s): {', '.join(unknown)}")

        self.output_dir.mkdir(parents=True, exist_ok=True)
        results = {}

        renderers = {
            "html": lambda: table.markup,
            "markdown": table.to_markdown,
            "csv": table.to_csv,
            "tsv": table.to_tsv,
            "json": table.to_json,
        }

        for fmt in formats:
            path = self.path_for(fmt)
            if fmt == "docx":
                results[fmt] = self.docx_exporter.export(table, path)
                continue
            # newline='' keeps the csv module's \r\n row endings intact
            with open(path, 'w', encoding='utf-8', newline='') as f:
                f.write(renderers[fmt]())
            logger.info(f"Exported {fmt}: {path}")
            results[fmt] = path

        return results
