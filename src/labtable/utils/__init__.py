"""
Utility modules for the lab-report table reconstruction pipeline.
"""

from .words import BoundingBox, RecognizedWord, sanitize_words, document_bounds
from .rows import Row, RowClusterer, cluster_rows
from .headers import HeaderClassifier, RowSignals
from .columns import ColumnSegmenter, segment_words
from .grid import GridNormalizer, TableReconstruction
from .builder import TableBuilder, build_table
from .text_cleanup import clean_ocr_text
from .export import GridExporter, DocxExporter

__all__ = [
    # Words
    "BoundingBox", "RecognizedWord", "sanitize_words", "document_bounds",
    # Rows
    "Row", "RowClusterer", "cluster_rows",
    # Headers
    "HeaderClassifier", "RowSignals",
    # Columns
    "ColumnSegmenter", "segment_words",
    # Grid
    "GridNormalizer", "TableReconstruction",
    # Builder
    "TableBuilder", "build_table",
    # Cleanup
    "clean_ocr_text",
    # Export
    "GridExporter", "DocxExporter",
]
