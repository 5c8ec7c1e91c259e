"""
I/O utilities for the lab-report pipeline.

Handles:
- PDF page rendering to images (pdf2image / poppler)
- Embedded PDF text extraction (PyMuPDF) for the text-layer fast path
- Image loading and input type detection
- JSON serialization of results and word dumps
"""

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, List, Optional, Union

import numpy as np

from .words import RecognizedWord

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.webp')


# ============================================================================
# PDF Rendering
# ============================================================================

def render_pdf_page(
    pdf_path: Union[str, Path],
    page_number: int,
    scale: float = 1.5
) -> np.ndarray:
    """
    Render one PDF page to an image.

    Args:
        pdf_path: Path to the PDF file
        page_number: Page number (1-indexed)
        scale: Zoom relative to 72 dpi (1.5 == 108 dpi)

    Returns:
        Numpy array (BGR format)

    Raises:
        FileNotFoundError: If PDF file doesn't exist
        ImportError: If pdf2image is not installed
        RuntimeError: If the PDF cannot be parsed or poppler is missing
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise FileNotFoundError(f"PDF file not found: {pdf_path}")

    try:
        from pdf2image import convert_from_path
        from pdf2image.exceptions import PDFPageCountError, PDFSyntaxError
    except ImportError:
        raise ImportError(
            "pdf2image is required. Install with: pip install pdf2image\n"
            "Also ensure poppler is installed on your system."
        )

    dpi = int(round(72 * scale))
    try:
        logger.debug(f"Rendering {pdf_path} page {page_number} at {dpi} DPI")
        pil_images = convert_from_path(
            pdf_path,
            dpi=dpi,
            first_page=page_number,
            last_page=page_number,
            fmt='png'
        )
    except (PDFPageCountError, PDFSyntaxError) as e:
        raise RuntimeError(f"Failed to parse PDF: {e}")
    except Exception as e:
        if "poppler" in str(e).lower():
            raise RuntimeError(
                "Poppler is not installed. Install with:\n"
                "  macOS: brew install poppler\n"
                "  Linux: sudo apt-get install poppler-utils"
            )
        raise

    if not pil_images:
        raise RuntimeError(f"Page {page_number} could not be rendered from {pdf_path}")

    img_array = np.array(pil_images[0].convert("RGB"))
    # RGB -> BGR for OpenCV compatibility
    return img_array[:, :, ::-1].copy()


def get_pdf_page_count(pdf_path: Union[str, Path]) -> int:
    """Get the number of pages in a PDF file."""
    try:
        from pdf2image import pdfinfo_from_path
        info = pdfinfo_from_path(str(pdf_path))
        return int(info.get('Pages', 0))
    except Exception as e:
        logger.warning(f"Could not get PDF page count: {e}")
        return 0


# ============================================================================
# Embedded Text
# ============================================================================

def extract_pdf_page_text(pdf_path: Union[str, Path], page_number: int) -> str:
    """
    Return the embedded text of one PDF page.

    Scanned pages usually return an empty string. Any PyMuPDF failure is
    logged and treated as "no text layer" so the caller falls back to OCR.
    """
    try:
        import fitz  # PyMuPDF
    except ImportError:
        logger.warning("PyMuPDF not available; skipping embedded text extraction")
        return ""

    try:
        with fitz.open(str(pdf_path)) as doc:
            if page_number < 1 or page_number > len(doc):
                return ""
            return doc[page_number - 1].get_text("text") or ""
    except Exception as e:
        logger.warning(f"Embedded text extraction failed for page {page_number}: {e}")
        return ""


def has_text_layer(text: str, min_chars: int = 50) -> bool:
    """True when stripped embedded text is long enough to skip OCR."""
    return len(text.strip()) > min_chars


# ============================================================================
# Image Loading
# ============================================================================

def load_image(
    image_path: Union[str, Path],
    grayscale: bool = False
) -> np.ndarray:
    """
    Load an image from file.

    Args:
        image_path: Path to the image file
        grayscale: If True, load as grayscale

    Returns:
        Numpy array representing the image (BGR format if color)

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If image cannot be decoded
    """
    import cv2

    image_path = Path(image_path)
    if not image_path.exists():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR
    img = cv2.imread(str(image_path), flag)

    if img is None:
        raise ValueError(f"Could not decode image: {image_path}")

    logger.debug(f"Loaded image: {image_path}, shape: {img.shape}")
    return img


def detect_input_type(input_path: Union[str, Path]) -> str:
    """
    Detect the type of input file.

    Returns:
        One of: 'pdf', 'image', 'words', 'unknown'
    """
    input_path = Path(input_path)

    if not input_path.is_file():
        return 'unknown'

    suffix = input_path.suffix.lower()
    if suffix == '.pdf':
        return 'pdf'
    elif suffix in IMAGE_EXTENSIONS:
        return 'image'
    elif suffix == '.json':
        return 'words'

    return 'unknown'


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values, sets, dataclasses and paths."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, (set, frozenset)):
            return sorted(obj)
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_words_json(json_path: Union[str, Path]) -> List[RecognizedWord]:
    """
    Load a word dump written by ``save_json`` or by another OCR tool.

    Accepts a top-level list of words or an object with a ``words`` list.
    Entries that are not readable words are skipped with a warning.
    """
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"JSON file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, dict):
        data = data.get("words", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of words in {json_path}")

    words = []
    for i, item in enumerate(data):
        try:
            words.append(RecognizedWord.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping word #{i} in {json_path}: {e}")
    logger.info(f"Loaded {len(words)} words from {json_path}")
    return words


def ensure_dir(path: Union[str, Path]) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path
