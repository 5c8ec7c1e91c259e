"""
Table builder: the public entry point of the reconstruction core.

Pipeline:
    words -> sanitize -> RowClusterer -> HeaderClassifier
          -> ColumnSegmenter (per row) -> GridNormalizer

``TableBuilder.build`` is a pure function of its input. It keeps no state
between calls, so independent word sets (pages, documents) may be built
concurrently with one shared builder.
"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Union

from ..config import ReconstructionConfig
from .columns import ColumnSegmenter
from .grid import GridNormalizer, TableReconstruction
from .headers import HeaderClassifier
from .rows import RowClusterer
from .text_cleanup import clean_ocr_text
from .words import RecognizedWord, document_bounds, sanitize_words

logger = logging.getLogger(__name__)

WordLike = Union[RecognizedWord, Mapping[str, Any]]


def coerce_words(words: Optional[Iterable[WordLike]]) -> List[RecognizedWord]:
    """
    Accept RecognizedWord objects or plain mappings.

    Mappings that cannot be read as a word are dropped with a debug log.
    """
    if words is None:
        return []

    result = []
    for item in words:
        if isinstance(item, RecognizedWord):
            result.append(item)
            continue
        try:
            result.append(RecognizedWord.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Dropping unreadable word {item!r}: {e}")
    return result


class TableBuilder:
    """Reconstruct a table from OCR words."""

    def __init__(self, config: Optional[ReconstructionConfig] = None):
        self.config = config or ReconstructionConfig()

        self.row_clusterer = RowClusterer(
            tolerance=self.config.row.tolerance,
            strategy=self.config.row.strategy
        )
        self.header_classifier = HeaderClassifier(self.config.header)
        self.column_segmenter = ColumnSegmenter(
            gap_threshold=self.config.column.gap_threshold,
            text_filter=clean_ocr_text if self.config.cleanup.enabled else None
        )
        self.grid_normalizer = GridNormalizer(placeholder=self.config.grid.placeholder)

    def build(self, words: Optional[Iterable[WordLike]]) -> TableReconstruction:
        """
        Reconstruct the table.

        Args:
            words: Recognized words with bounding boxes (any order)

        Returns:
            TableReconstruction; an empty grid means nothing was reconstructable
        """
        raw = coerce_words(words)
        clean = sanitize_words(raw)
        placeholder = self.config.grid.placeholder

        if not clean:
            logger.info(f"No usable words ({len(raw)} received); returning empty table")
            return TableReconstruction.empty(placeholder=placeholder, words_in=len(raw))

        rows = self.row_clusterer.cluster(clean)
        bounds = document_bounds(clean)
        header_rows = self.header_classifier.classify(rows, bounds)
        rows_of_cells = self.column_segmenter.segment_rows(rows)

        grid = self.grid_normalizer.normalize(rows_of_cells)
        markup = self.grid_normalizer.render_html(grid, header_rows)

        result = TableReconstruction(
            grid=grid,
            header_row_indices=header_rows,
            markup=markup,
            placeholder=placeholder,
            words_in=len(raw),
            words_used=len(clean),
            metadata={
                "doc_bounds": bounds.to_dict(),
                "row_tolerance": self.config.row.tolerance,
                "gap_threshold": self.config.column.gap_threshold,
                "row_strategy": self.config.row.strategy,
                "header_strategy": self.config.header.strategy,
            },
        )
        logger.info(f"Reconstructed table: {result.num_rows} rows x {result.num_cols} columns, "
                    f"header rows {sorted(header_rows)}")
        return result


def build_table(
    words: Optional[Iterable[WordLike]],
    config: Optional[ReconstructionConfig] = None
) -> TableReconstruction:
    """Build a table with a throwaway TableBuilder."""
    return TableBuilder(config).build(words)
