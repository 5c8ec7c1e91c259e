"""
Text OCR module for lab-report pages.

Provides:
- Tesseract word recognition with bounding boxes and confidences
- Tesseract option building (whitelist, page segmentation, interword spaces)
- Scoped engine acquisition (``ocr_session``) so an engine never outlives
  the page it was opened for
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

import numpy as np

from ..config import OCRConfig
from .words import BoundingBox, RecognizedWord

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class OCRPageResult:
    """OCR output for one bitmap: full text plus positioned words."""
    text: str
    words: List[RecognizedWord] = field(default_factory=list)
    confidence: float = 0.0  # mean word confidence, 0-100
    engine_used: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self.words

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "confidence": round(self.confidence, 2),
            "engine": self.engine_used,
            "words": [w.to_dict() for w in self.words],
            "metadata": self.metadata
        }


class OCRUnavailableError(RuntimeError):
    """Raised when the OCR engine cannot be started."""


# ============================================================================
# Tesseract Options
# ============================================================================

def build_tesseract_config(config: OCRConfig) -> str:
    """
    Build the Tesseract command-line config string.

    Args:
        config: OCR settings

    Returns:
        Config string for pytesseract (``--oem``, ``--psm`` and ``-c`` vars)
    """
    parts = [f"--oem {config.oem}", f"--psm {config.psm}"]

    if config.char_whitelist:
        # pytesseract splits with shlex, so the quoted value may hold spaces
        escaped = config.char_whitelist.replace('"', '')
        parts.append(f'-c "tessedit_char_whitelist={escaped}"')
    if config.preserve_interword_spaces:
        parts.append("-c preserve_interword_spaces=1")
    if config.disable_dictionary:
        parts.append("-c load_system_dawg=0")
        parts.append("-c load_freq_dawg=0")

    return " ".join(parts)


def parse_tesseract_data(
    data: Dict[str, List[Any]],
    min_confidence: float = -1.0
) -> Tuple[List[RecognizedWord], str]:
    """
    Convert ``image_to_data`` output into words and line-joined text.

    Entries with empty text or confidence at or below ``min_confidence``
    (Tesseract reports -1 for non-word boxes) are skipped.

    Returns:
        (words, text) where text has one line per Tesseract text line
    """
    words: List[RecognizedWord] = []
    lines: Dict[Tuple[int, int, int, int], List[str]] = {}

    for i in range(len(data.get('text', []))):
        text = str(data['text'][i]).strip()
        try:
            conf = float(data['conf'][i])
        except (TypeError, ValueError):
            continue

        if not text or conf <= min_confidence:
            continue

        left = float(data['left'][i])
        top = float(data['top'][i])
        box = BoundingBox(
            x0=left,
            y0=top,
            x1=left + float(data['width'][i]),
            y1=top + float(data['height'][i])
        )
        words.append(RecognizedWord(text=text, bbox=box, confidence=conf))

        key = tuple(
            int(data[name][i]) if name in data else 0
            for name in ('page_num', 'block_num', 'par_num', 'line_num')
        )
        lines.setdefault(key, []).append(text)

    full_text = '\n'.join(' '.join(tokens) for tokens in lines.values())
    return words, full_text


# ============================================================================
# Image Handoff
# ============================================================================

def to_pil_image(image: np.ndarray):
    """
    Convert an OpenCV bitmap to a PIL image for Tesseract.

    pytesseract reads numpy input as RGB, so BGR pages are converted first.
    Grayscale pages stay single-channel.
    """
    from PIL import Image
    import cv2

    if len(image.shape) == 2:
        return Image.fromarray(image)
    rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    return Image.fromarray(rgb)


# ============================================================================
# Tesseract Engine
# ============================================================================

class TesseractEngine:
    """OCR using Tesseract."""

    def __init__(self, config: Optional[OCRConfig] = None):
        try:
            import pytesseract
            self.pytesseract = pytesseract

            # Test that tesseract is installed
            pytesseract.get_tesseract_version()

        except Exception as e:
            raise OCRUnavailableError(
                f"Tesseract not available: {e}\n"
                "Install with: pip install pytesseract\n"
                "Also install Tesseract: https://github.com/tesseract-ocr/tesseract"
            )

        self.config = config or OCRConfig()
        self.tesseract_config = build_tesseract_config(self.config)
        self._closed = False

    def recognize(self, image: np.ndarray) -> OCRPageResult:
        """
        Recognize words in a page bitmap.

        Args:
            image: Enhanced page image (grayscale or BGR)

        Returns:
            OCRPageResult with text and positioned words
        """
        if self._closed:
            raise OCRUnavailableError("OCR engine used after release")

        data = self.pytesseract.image_to_data(
            to_pil_image(image),
            lang=self.config.language,
            config=self.tesseract_config,
            output_type=self.pytesseract.Output.DICT
        )

        words, text = parse_tesseract_data(data, self.config.min_confidence)
        confidences = [w.confidence for w in words if w.confidence is not None]
        avg_confidence = float(np.mean(confidences)) if confidences else 0.0

        logger.debug(f"Tesseract recognized {len(words)} words (mean conf {avg_confidence:.1f})")

        return OCRPageResult(
            text=text,
            words=words,
            confidence=avg_confidence,
            engine_used="tesseract",
            metadata={"language": self.config.language, "psm": self.config.psm}
        )

    def close(self) -> None:
        self._closed = True


@contextmanager
def ocr_session(config: Optional[OCRConfig] = None) -> Iterator[TesseractEngine]:
    """
    Acquire an OCR engine for the duration of one recognition pass.

    The engine is released on every exit path, including exceptions and
    cancellation.
    """
    engine = TesseractEngine(config)
    try:
        yield engine
    finally:
        engine.close()
        logger.debug("OCR engine released")


def recognize_image(image: np.ndarray, config: Optional[OCRConfig] = None) -> OCRPageResult:
    """Recognize one bitmap with a freshly acquired engine."""
    with ocr_session(config) as engine:
        return engine.recognize(image)
