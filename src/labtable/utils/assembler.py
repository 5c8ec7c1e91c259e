"""
Lab report assembler: the document-level pipeline around the table core.

Provides:
- LabReport / PageResult data model
- Per-page flow: embedded-text fast path, else render -> enhance -> OCR
- Table reconstruction over all pages (merged) or per page
- Cooperative cancellation between pages
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np

from ..config import PipelineConfig, get_config
from .builder import TableBuilder
from .grid import TableReconstruction
from .words import BoundingBox, RecognizedWord

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


class ProcessingCancelled(Exception):
    """Raised when the caller cancels a running document."""


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class PageResult:
    """One processed page."""
    page_number: int
    source: str  # text_layer, ocr
    text: str = ""
    words: List[RecognizedWord] = field(default_factory=list)
    width: int = 0
    height: int = 0
    confidence: float = 0.0
    transformations: List[str] = field(default_factory=list)
    table: Optional[TableReconstruction] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "page_number": self.page_number,
            "source": self.source,
            "text": self.text,
            "width": self.width,
            "height": self.height,
            "confidence": round(self.confidence, 2),
            "word_count": len(self.words),
            "transformations": self.transformations,
        }
        if self.table is not None:
            result["table"] = self.table.to_dict()
        return result


@dataclass
class LabReport:
    """Complete processed lab report."""
    task_id: str
    source_file: str
    pages: List[PageResult] = field(default_factory=list)
    table: Optional[TableReconstruction] = None  # set when pages are merged
    created_at: str = ""
    processing_time_seconds: float = 0.0

    def __post_init__(self):
        if not self.task_id:
            self.task_id = str(uuid.uuid4())
        if not self.created_at:
            self.created_at = datetime.now().isoformat()

    @property
    def text(self) -> str:
        return "\n".join(p.text for p in self.pages)

    @property
    def tables(self) -> List[TableReconstruction]:
        """Non-empty reconstructed tables, merged or per page."""
        if self.table is not None:
            candidates = [self.table]
        else:
            candidates = [p.table for p in self.pages if p.table is not None]
        return [t for t in candidates if not t.is_empty]

    @property
    def has_table(self) -> bool:
        return bool(self.tables)

    def analysis_text(self) -> str:
        """
        Text for the downstream language-model analysis.

        Reconstructed tables are serialized as TSV; without any table the raw
        page text is returned.
        """
        tables = self.tables
        if tables:
            return "\n\n".join(t.to_tsv() for t in tables)
        return self.text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "source_file": self.source_file,
            "created_at": self.created_at,
            "processing_time_seconds": round(self.processing_time_seconds, 2),
            "pages": [p.to_dict() for p in self.pages],
            "table": self.table.to_dict() if self.table is not None else None,
            "has_table": self.has_table,
        }


# ============================================================================
# Assembler
# ============================================================================

class LabReportAssembler:
    """
    Orchestrates the lab report pipeline.

    Coordinates:
    - PDF rendering / embedded text extraction
    - Image enhancement
    - OCR (one scoped engine per page)
    - Table reconstruction
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        output_dir: Optional[Union[str, Path]] = None,
        progress: Optional[ProgressCallback] = None
    ):
        self.config = config or get_config()
        self.output_dir = Path(output_dir) if output_dir else None
        self.progress = progress

    def _report(self, status: str, percent: float) -> None:
        logger.info(status)
        if self.progress is not None:
            self.progress(status, percent)

    @staticmethod
    def _check_cancel(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise ProcessingCancelled("Operation cancelled")

    def process_file(
        self,
        input_path: Union[str, Path],
        cancel_event: Optional[threading.Event] = None
    ) -> LabReport:
        """
        Process a PDF or image file.

        Args:
            input_path: Path to a PDF or image
            cancel_event: Set it from another thread to stop between pages

        Returns:
            LabReport with pages and reconstructed table(s)

        Raises:
            FileNotFoundError: If the input does not exist
            ValueError: If the input type is unsupported
            ProcessingCancelled: If cancel_event was set
        """
        from .io import detect_input_type

        input_path = Path(input_path)
        if not input_path.exists():
            raise FileNotFoundError(f"Input file not found: {input_path}")

        input_type = detect_input_type(input_path)
        logger.info(f"Input type detected: {input_type}")

        if input_type == "pdf":
            return self.process_pdf(input_path, cancel_event)
        if input_type == "image":
            return self.process_image_file(input_path, cancel_event)
        raise ValueError(f"Unsupported input type for {input_path}: {input_type}")

    def process_pdf(
        self,
        pdf_path: Union[str, Path],
        cancel_event: Optional[threading.Event] = None
    ) -> LabReport:
        """Process every page of a PDF sequentially."""
        from .io import get_pdf_page_count

        start_time = time.time()
        pdf_path = Path(pdf_path)
        report = LabReport(task_id="", source_file=str(pdf_path))

        self._report("Loading PDF document...", 0.0)
        num_pages = get_pdf_page_count(pdf_path)
        if num_pages == 0:
            raise RuntimeError(f"Could not read any pages from {pdf_path}")
        if self.config.max_pages:
            num_pages = min(num_pages, self.config.max_pages)

        for page_number in range(1, num_pages + 1):
            self._check_cancel(cancel_event)
            self._report(f"Processing page {page_number} of {num_pages}...",
                         (page_number - 1) / num_pages * 100)
            page = self._process_pdf_page(pdf_path, page_number)
            report.pages.append(page)

        self._check_cancel(cancel_event)
        self._reconstruct(report, is_pdf=True)

        report.processing_time_seconds = time.time() - start_time
        self._report("Processing complete", 100.0)
        return report

    def process_image_file(
        self,
        image_path: Union[str, Path],
        cancel_event: Optional[threading.Event] = None
    ) -> LabReport:
        """Process a single photographed or scanned image."""
        from .io import load_image

        start_time = time.time()
        report = LabReport(task_id="", source_file=str(image_path))

        self._report("Preparing image for OCR...", 0.0)
        image = load_image(image_path)
        self._check_cancel(cancel_event)

        self._report("Performing OCR on image...", 25.0)
        report.pages.append(self.process_image(image, page_number=1))

        self._check_cancel(cancel_event)
        self._reconstruct(report, is_pdf=False)

        report.processing_time_seconds = time.time() - start_time
        self._report("Processing complete", 100.0)
        return report

    def process_image(self, image: np.ndarray, page_number: int = 1) -> PageResult:
        """
        Enhance and OCR one bitmap.

        Args:
            image: Page image (BGR or grayscale)
            page_number: Page number (1-indexed)

        Returns:
            PageResult with OCR words in enhanced-image coordinates
        """
        from .images import enhance_for_ocr
        from .ocr_text import ocr_session

        enhancement = enhance_for_ocr(image, self.config.enhance)
        enhanced = enhancement.image
        h, w = enhanced.shape[:2]

        with ocr_session(self.config.ocr) as engine:
            ocr_result = engine.recognize(enhanced)

        logger.info(f"Page {page_number}: OCR found {len(ocr_result.words)} words")

        if self.config.debug_mode:
            self._save_debug_image(enhanced, ocr_result.words, page_number)

        return PageResult(
            page_number=page_number,
            source="ocr",
            text=ocr_result.text,
            words=ocr_result.words,
            width=w,
            height=h,
            confidence=ocr_result.confidence,
            transformations=enhancement.transformations,
        )

    def _process_pdf_page(self, pdf_path: Path, page_number: int) -> PageResult:
        from .io import extract_pdf_page_text, has_text_layer, render_pdf_page

        render = self.config.render
        if render.use_text_fast_path:
            embedded = extract_pdf_page_text(pdf_path, page_number)
            if has_text_layer(embedded, render.min_text_chars):
                logger.info(f"Page {page_number}: using embedded text, skipping OCR")
                return PageResult(page_number=page_number, source="text_layer", text=embedded)

        image = render_pdf_page(pdf_path, page_number, scale=render.scale)
        return self.process_image(image, page_number=page_number)

    def _reconstruct(self, report: LabReport, is_pdf: bool) -> None:
        reconstruction = self.config.reconstruction_for_pipeline(is_pdf=is_pdf)
        builder = TableBuilder(reconstruction)
        ocr_pages = [p for p in report.pages if p.source == "ocr"]

        if not ocr_pages:
            logger.info("No OCR pages; table reconstruction skipped")
            return

        if self.config.merge_pages:
            report.table = builder.build(stack_page_words(ocr_pages))
        else:
            for page in ocr_pages:
                page.table = builder.build(page.words)

    def _save_debug_image(
        self,
        image: np.ndarray,
        words: List[RecognizedWord],
        page_number: int
    ):
        """Save debug image with word boxes."""
        if not self.output_dir:
            return

        import cv2
        from .images import draw_debug_image

        boxes = [w.bbox.to_tuple() for w in words]
        debug_img = draw_debug_image(image, boxes, line_width=1)
        debug_path = self.output_dir / f"debug/page_{page_number:04d}_words.png"
        debug_path.parent.mkdir(parents=True, exist_ok=True)
        cv2.imwrite(str(debug_path), debug_img)
        logger.debug(f"Saved debug image: {debug_path}")


def stack_page_words(pages: List[PageResult]) -> List[RecognizedWord]:
    """
    Concatenate page words into one coordinate space.

    Each page is shifted down by the heights of the pages above it so rows
    from different pages never cluster together.
    """
    stacked: List[RecognizedWord] = []
    offset = 0.0
    for page in pages:
        for word in page.words:
            box = word.bbox
            stacked.append(RecognizedWord(
                text=word.text,
                bbox=BoundingBox(box.x0, box.y0 + offset, box.x1, box.y1 + offset),
                confidence=word.confidence,
            ))
        page_height = page.height
        if page_height <= 0 and page.words:
            page_height = max(w.bbox.y1 for w in page.words)
        offset += page_height
    return stacked
