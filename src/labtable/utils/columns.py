"""
Column segmentation within a row.

Adjacent words are merged into one cell unless the horizontal gap between
them exceeds ``gap_threshold``. The threshold shares the pixel space of the
row tolerance; tune both together.
"""

import logging
from typing import Callable, List, Optional, Sequence

from .rows import Row
from .words import RecognizedWord

logger = logging.getLogger(__name__)


class ColumnSegmenter:
    """Split a row into cell strings by horizontal gaps."""

    def __init__(
        self,
        gap_threshold: float = 20.0,
        text_filter: Optional[Callable[[str], str]] = None
    ):
        self.gap_threshold = gap_threshold
        self.text_filter = text_filter

    def segment(self, row: Row) -> List[str]:
        """
        Segment a row into cells.

        Args:
            row: Row from RowClusterer

        Returns:
            One string per detected cell, left to right
        """
        cells = segment_words(row.sorted_words(), self.gap_threshold)
        if self.text_filter is not None:
            cells = [self.text_filter(cell) for cell in cells]
        return cells

    def segment_rows(self, rows: Sequence[Row]) -> List[List[str]]:
        return [self.segment(row) for row in rows]


def segment_words(words: Sequence[RecognizedWord], gap_threshold: float) -> List[str]:
    """
    Merge left-to-right sorted words into cells.

    A gap strictly greater than ``gap_threshold`` closes the current cell.
    """
    if not words:
        return []

    cells = []
    current = words[0].text
    previous = words[0]

    for word in words[1:]:
        gap = word.bbox.x0 - previous.bbox.x1
        if gap > gap_threshold:
            cells.append(current)
            current = word.text
        else:
            current += " " + word.text
        previous = word

    cells.append(current)
    return cells
