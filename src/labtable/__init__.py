"""
Lab Report Table Reconstruction
===============================

Rebuilds the row/column table of a scanned lab report from OCR word boxes.

Main components:
- Row clustering by vertical center
- Header row classification (lexical + structural signals)
- Column segmentation by horizontal gaps
- Grid normalization and HTML/Markdown/TSV rendering
- PDF rendering, image enhancement and Tesseract OCR around the core
"""

__version__ = "1.0.0"
__author__ = "Lab Table Reconstruction Team"

from .config import PipelineConfig, ReconstructionConfig, get_config
from .utils.words import BoundingBox, RecognizedWord
from .utils.grid import TableReconstruction
from .utils.builder import TableBuilder, build_table

__all__ = [
    "__version__",
    "PipelineConfig", "ReconstructionConfig", "get_config",
    "BoundingBox", "RecognizedWord",
    "TableReconstruction",
    "TableBuilder", "build_table",
]
