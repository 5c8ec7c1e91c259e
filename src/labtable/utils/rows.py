"""
Row clustering for table reconstruction.

Groups recognized words into horizontal rows by vertical-center proximity.

Two strategies are available behind ``RowClusterer``:

- ``running_average`` (default): single pass over words sorted by vertical
  center. A word joins the first row whose running-average center is within
  ``tolerance``; the average is updated incrementally, so it drifts as rows
  grow. Tightly packed multi-line cells stay together with this model.
- ``agglomerative``: single-linkage over sorted centers, a new row starts
  whenever two consecutive centers are ``tolerance`` or more apart. Order
  independent, but chains of close lines merge into one row.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from .words import RecognizedWord

logger = logging.getLogger(__name__)

STRATEGIES = ("running_average", "agglomerative")


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class Row:
    """A horizontal row of words."""
    representative_y: float
    words: List[RecognizedWord] = field(default_factory=list)
    # |center_y - representative_y| measured when each word joined
    assignment_distances: List[float] = field(default_factory=list, repr=False)

    @classmethod
    def seed(cls, word: RecognizedWord) -> "Row":
        return cls(representative_y=word.center_y, words=[word], assignment_distances=[0.0])

    def add(self, word: RecognizedWord) -> None:
        """Append ``word`` and fold its center into the running average."""
        center = word.center_y
        n = len(self.words)
        self.assignment_distances.append(abs(center - self.representative_y))
        self.words.append(word)
        self.representative_y = (self.representative_y * n + center) / (n + 1)

    def sorted_words(self) -> List[RecognizedWord]:
        """Words ordered left-to-right."""
        return sorted(self.words, key=_horizontal_key)

    @property
    def x0(self) -> float:
        return min(w.bbox.x0 for w in self.words)

    @property
    def x1(self) -> float:
        return max(w.bbox.x1 for w in self.words)

    @property
    def width(self) -> float:
        if not self.words:
            return 0.0
        return self.x1 - self.x0

    @property
    def text(self) -> str:
        return " ".join(w.text for w in self.sorted_words())

    def __len__(self) -> int:
        return len(self.words)


def _horizontal_key(word: RecognizedWord):
    # Full ordering so identical word sets always segment the same way
    return (word.bbox.x0, word.bbox.x1, word.text, word.bbox.y0, word.bbox.y1)


# ============================================================================
# Row Clusterer
# ============================================================================

class RowClusterer:
    """Group words into rows ordered top-to-bottom."""

    def __init__(self, tolerance: float = 10.0, strategy: str = "running_average"):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown row clustering strategy: {strategy}")
        self.tolerance = tolerance
        self.strategy = strategy

    def cluster(self, words: Sequence[RecognizedWord]) -> List[Row]:
        """
        Cluster words into rows.

        Args:
            words: Sanitized words

        Returns:
            Rows sorted by representative_y ascending; empty for no words
        """
        if not words:
            return []

        # sorted() is stable, so original order breaks ties
        ordered = sorted(words, key=lambda w: w.center_y)

        if self.strategy == "agglomerative":
            rows = self._cluster_agglomerative(ordered)
        else:
            rows = self._cluster_running_average(ordered)

        rows.sort(key=lambda r: r.representative_y)
        logger.debug(f"Clustered {len(words)} words into {len(rows)} rows "
                     f"(tolerance={self.tolerance}, strategy={self.strategy})")
        return rows

    def _cluster_running_average(self, ordered: List[RecognizedWord]) -> List[Row]:
        rows: List[Row] = []
        for word in ordered:
            center = word.center_y
            target = None
            for row in rows:
                if abs(row.representative_y - center) < self.tolerance:
                    target = row
                    break

            if target is not None:
                target.add(word)
            else:
                rows.append(Row.seed(word))
        return rows

    def _cluster_agglomerative(self, ordered: List[RecognizedWord]) -> List[Row]:
        groups: List[List[RecognizedWord]] = [[ordered[0]]]
        for prev, word in zip(ordered, ordered[1:]):
            if word.center_y - prev.center_y < self.tolerance:
                groups[-1].append(word)
            else:
                groups.append([word])

        rows = []
        for group in groups:
            mean_y = sum(w.center_y for w in group) / len(group)
            rows.append(Row(
                representative_y=mean_y,
                words=list(group),
                assignment_distances=[abs(w.center_y - mean_y) for w in group],
            ))
        return rows


def cluster_rows(words: Sequence[RecognizedWord], tolerance: float = 10.0) -> List[Row]:
    """Cluster with the default running-average strategy."""
    return RowClusterer(tolerance=tolerance).cluster(words)
