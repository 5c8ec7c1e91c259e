"""
Word model for table reconstruction.

Provides:
- BoundingBox and RecognizedWord data classes
- Sanitizing of malformed OCR output (degenerate or non-finite boxes)
- Document bounds over a set of words
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in page pixels, origin top-left."""
    x0: float
    y0: float
    x1: float
    y1: float

    @property
    def width(self) -> float:
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        return self.y1 - self.y0

    @property
    def center_x(self) -> float:
        return (self.x0 + self.x1) / 2.0

    @property
    def center_y(self) -> float:
        return (self.y0 + self.y1) / 2.0

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x0, self.y0, self.x1, self.y1)

    def to_dict(self) -> Dict[str, float]:
        return {"x0": self.x0, "y0": self.y0, "x1": self.x1, "y1": self.y1}

    @classmethod
    def union(cls, boxes: Iterable["BoundingBox"]) -> Optional["BoundingBox"]:
        """Smallest box enclosing all boxes, or None for an empty input."""
        boxes = list(boxes)
        if not boxes:
            return None
        return cls(
            x0=min(b.x0 for b in boxes),
            y0=min(b.y0 for b in boxes),
            x1=max(b.x1 for b in boxes),
            y1=max(b.y1 for b in boxes),
        )


@dataclass(frozen=True)
class RecognizedWord:
    """A recognized token with its box and optional OCR confidence (0-100)."""
    text: str
    bbox: BoundingBox
    confidence: Optional[float] = None

    @property
    def center_x(self) -> float:
        return self.bbox.center_x

    @property
    def center_y(self) -> float:
        return self.bbox.center_y

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "bbox": self.bbox.to_dict(),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecognizedWord":
        """
        Build a word from a plain mapping.

        Accepts ``{"text", "bbox": {x0, y0, x1, y1}, "confidence"}`` as well
        as a flat ``bbox`` list/tuple ``[x0, y0, x1, y1]``.
        """
        bbox = data["bbox"]
        if isinstance(bbox, dict):
            box = BoundingBox(float(bbox["x0"]), float(bbox["y0"]),
                              float(bbox["x1"]), float(bbox["y1"]))
        else:
            x0, y0, x1, y1 = bbox
            box = BoundingBox(float(x0), float(y0), float(x1), float(y1))

        confidence = data.get("confidence")
        if confidence is not None:
            try:
                confidence = float(confidence)
            except (TypeError, ValueError):
                confidence = None
        return cls(text=str(data.get("text", "")), bbox=box, confidence=confidence)


# ============================================================================
# Sanitizing
# ============================================================================

def _sanitize_word(word: RecognizedWord) -> Optional[RecognizedWord]:
    """Return a clean copy of ``word`` or None if it must be dropped."""
    text = word.text.strip() if isinstance(word.text, str) else ""
    if not text:
        logger.debug("Dropping word with blank text")
        return None

    if not isinstance(word.bbox, BoundingBox):
        logger.debug(f"Dropping word {text!r}: missing box")
        return None

    coords = word.bbox.to_tuple()
    try:
        values = [float(c) for c in coords]
    except (TypeError, ValueError):
        logger.debug(f"Dropping word {text!r}: non-numeric box {coords}")
        return None
    if not all(math.isfinite(v) for v in values):
        logger.debug(f"Dropping word {text!r}: non-finite box {coords}")
        return None

    # Negative coordinates are clamped onto the page
    x0, y0, x1, y1 = (max(0.0, v) for v in values)
    if x1 <= x0 or y1 <= y0:
        logger.debug(f"Dropping word {text!r}: degenerate box {coords}")
        return None

    confidence = word.confidence
    try:
        if confidence is not None and not math.isfinite(float(confidence)):
            confidence = None
    except (TypeError, ValueError):
        confidence = None

    box = BoundingBox(x0, y0, x1, y1)
    if box == word.bbox and text == word.text and confidence == word.confidence:
        return word
    return RecognizedWord(text=text, bbox=box, confidence=confidence)


def sanitize_words(words: Iterable[RecognizedWord]) -> List[RecognizedWord]:
    """
    Filter malformed words before clustering.

    Drops words with blank text, non-finite coordinates, or zero/negative
    width or height; clamps negative coordinates to zero. Input order is kept.

    Args:
        words: Raw words from the OCR collaborator

    Returns:
        List of well-formed words
    """
    kept = []
    total = 0
    for word in words:
        total += 1
        clean = _sanitize_word(word)
        if clean is not None:
            kept.append(clean)

    dropped = total - len(kept)
    if dropped:
        logger.info(f"Filtered {dropped} malformed word(s) out of {total}")
    return kept


def document_bounds(words: Iterable[RecognizedWord]) -> Optional[BoundingBox]:
    """Min/max extent over all word boxes, or None when there are no words."""
    return BoundingBox.union(w.bbox for w in words)
