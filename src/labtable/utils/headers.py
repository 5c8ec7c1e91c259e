"""
Header row classification.

Provides:
- Lexical signal (column-label vocabulary)
- Structural signal (word count, horizontal span, vertical position,
  regularity of inter-word gaps)
- Fallback scan over the first rows
- Strategy selection (combined, lexical, structural)

A row is a header if either signal fires.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

import numpy as np

from ..config import HeaderConfig
from .rows import Row
from .words import BoundingBox

logger = logging.getLogger(__name__)

STRATEGIES = ("combined", "lexical", "structural")


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class RowSignals:
    """Per-row header evidence, kept for logging and debugging."""
    index: int
    word_count: int
    span_ratio: float
    in_top_region: bool
    gap_cv: Optional[float]
    lexical_terms: List[str] = field(default_factory=list)

    @property
    def lexical(self) -> bool:
        return bool(self.lexical_terms)

    def structural(self, config: HeaderConfig) -> bool:
        return (
            self.word_count >= config.min_structural_words
            and self.span_ratio >= config.min_span_ratio
            and self.in_top_region
            and self.gap_cv is not None
            and self.gap_cv < config.max_gap_cv
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "index": self.index,
            "word_count": self.word_count,
            "span_ratio": round(self.span_ratio, 3),
            "in_top_region": self.in_top_region,
            "gap_cv": None if self.gap_cv is None else round(self.gap_cv, 3),
            "lexical_terms": self.lexical_terms,
        }


# ============================================================================
# Signal Helpers
# ============================================================================

def gap_coefficient_of_variation(row: Row) -> Optional[float]:
    """
    Coefficient of variation of consecutive horizontal gaps.

    Gaps are measured left-to-right as ``next.x0 - prev.x1``; overlaps count
    as zero. Needs at least two gaps (three words), otherwise None.
    """
    words = row.sorted_words()
    if len(words) < 3:
        return None

    gaps = np.array(
        [max(0.0, cur.bbox.x0 - prev.bbox.x1) for prev, cur in zip(words, words[1:])],
        dtype=float,
    )
    mean = float(gaps.mean())
    if mean == 0.0:
        return 0.0
    return float(gaps.std() / mean)


def span_ratio(row: Row, doc_bounds: BoundingBox) -> float:
    """Row width as a fraction of the document width."""
    doc_width = doc_bounds.width
    if doc_width <= 0 or not row.words:
        return 0.0
    return row.width / doc_width


def in_top_region(row: Row, doc_bounds: BoundingBox, fraction: float) -> bool:
    """
    True if the row's top edge lies within the top ``fraction`` of the document.

    The top edge is used rather than the center so that a single-row table,
    whose center always sits halfway down, still counts as top.
    """
    doc_height = doc_bounds.height
    if doc_height <= 0:
        return True
    top = min(w.bbox.y0 for w in row.words) if row.words else row.representative_y
    return (top - doc_bounds.y0) <= doc_height * fraction


def _normalize_vocabulary(vocabulary: Sequence[str]) -> List[str]:
    terms = []
    for term in vocabulary:
        term = term.strip().lower()
        if term and term not in terms:
            terms.append(term)
    return terms


# ============================================================================
# Header Classifier
# ============================================================================

class HeaderClassifier:
    """Flag header rows among clustered rows."""

    def __init__(self, config: Optional[HeaderConfig] = None):
        self.config = config or HeaderConfig()
        if self.config.strategy not in STRATEGIES:
            raise ValueError(f"Unknown header strategy: {self.config.strategy}")
        self._terms = _normalize_vocabulary(self.config.vocabulary)

    def lexical_terms(self, row: Row) -> List[str]:
        """Vocabulary terms contained in the row's lowercased text."""
        text = row.text.lower()
        return [term for term in self._terms if term in text]

    def signals(self, rows: Sequence[Row], doc_bounds: BoundingBox) -> List[RowSignals]:
        """Compute header evidence for each row."""
        results = []
        for index, row in enumerate(rows):
            results.append(RowSignals(
                index=index,
                word_count=len(row.words),
                span_ratio=span_ratio(row, doc_bounds),
                in_top_region=in_top_region(row, doc_bounds, self.config.top_fraction),
                gap_cv=gap_coefficient_of_variation(row),
                lexical_terms=self.lexical_terms(row) if row.words else [],
            ))
        return results

    def classify(self, rows: Sequence[Row], doc_bounds: Optional[BoundingBox]) -> Set[int]:
        """
        Classify header rows.

        Args:
            rows: Rows in top-to-bottom order, as produced by RowClusterer
            doc_bounds: Bounding box over all words on the page

        Returns:
            Set of 0-based row indices; empty means no header identified
        """
        if not rows or doc_bounds is None:
            return set()

        config = self.config
        row_signals = self.signals(rows, doc_bounds)
        headers: Set[int] = set()

        for sig in row_signals:
            if sig.word_count == 0:
                continue
            lexical = sig.lexical and config.strategy in ("combined", "lexical")
            structural = sig.structural(config) and config.strategy in ("combined", "structural")
            if lexical or structural:
                headers.add(sig.index)
                logger.debug(f"Header row {sig.index}: lexical={sig.lexical_terms} "
                             f"structural={structural} signals={sig.to_dict()}")

        if not headers and config.fallback_enabled and len(rows) >= 2:
            fallback = self._fallback(row_signals)
            if fallback is not None:
                headers.add(fallback)
                logger.debug(f"Header row {fallback} chosen by fallback scan")

        if not headers:
            logger.info("No header row identified")
        return headers

    def _fallback(self, row_signals: List[RowSignals]) -> Optional[int]:
        config = self.config
        for sig in row_signals[:config.fallback_scan_rows]:
            if (sig.word_count >= config.min_structural_words
                    and sig.span_ratio > config.fallback_span_ratio):
                return sig.index
        return None
