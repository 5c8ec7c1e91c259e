"""
Tests for the lab report assembler.

PDF rendering and OCR are replaced with fakes so the tests exercise the
page flow without poppler or Tesseract.
"""

import sys
import threading
from contextlib import contextmanager
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import labtable.utils.io as io_module
import labtable.utils.ocr_text as ocr_module
from labtable.config import PipelineConfig
from labtable.utils.assembler import (
    LabReport,
    LabReportAssembler,
    PageResult,
    ProcessingCancelled,
    stack_page_words,
)
from labtable.utils.builder import build_table
from labtable.utils.ocr_text import OCRPageResult
from labtable.utils.words import BoundingBox, RecognizedWord


def word(text, x0, y0, x1, y1):
    return RecognizedWord(text=text, bbox=BoundingBox(x0, y0, x1, y1))


PAGE_WORDS = [
    word("Testen", 0, 0, 60, 10),
    word("Resultaten", 200, 0, 290, 10),
    word("Eenheden", 400, 0, 470, 10),
    word("Natrium", 0, 50, 60, 60),
    word("140", 90, 50, 120, 60),
    word("mmol/L", 400, 50, 450, 60),
]

EMBEDDED_TEXT = "BIOCHEMIE\nNatrium 140 mmol/L\nKalium 4.1 mmol/L\nUreum 5.2 mmol/L\n"


class FakeEngine:
    calls = 0

    def recognize(self, image):
        FakeEngine.calls += 1
        return OCRPageResult(
            text="Testen Resultaten Eenheden\nNatrium 140 mmol/L",
            words=list(PAGE_WORDS),
            confidence=90.0,
            engine_used="fake",
        )


@contextmanager
def fake_session(config=None):
    yield FakeEngine()


@pytest.fixture
def config():
    """Pipeline config whose thresholds stay at baseline with enhancement off."""
    config = PipelineConfig()
    config.enhance.enabled = False
    config.render.scale = 4.5
    return config


@pytest.fixture
def fake_pdf(tmp_path, monkeypatch):
    """A two-page PDF whose pages have no embedded text."""
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4")

    state = {"pages": 2, "text": "", "rendered": []}

    def render(pdf_path, page_number, scale=1.5):
        state["rendered"].append(page_number)
        return np.full((100, 500, 3), 255, dtype=np.uint8)

    monkeypatch.setattr(io_module, "get_pdf_page_count", lambda p: state["pages"])
    monkeypatch.setattr(io_module, "extract_pdf_page_text", lambda p, n: state["text"])
    monkeypatch.setattr(io_module, "render_pdf_page", render)
    monkeypatch.setattr(ocr_module, "ocr_session", fake_session)
    FakeEngine.calls = 0
    return path, state


class TestStackPageWords:
    """Tests for merging pages into one coordinate space."""

    def test_pages_are_offset(self):
        pages = [
            PageResult(1, "ocr", words=[word("a", 0, 10, 10, 20)], height=100),
            PageResult(2, "ocr", words=[word("b", 0, 10, 10, 20)], height=100),
        ]
        stacked = stack_page_words(pages)
        assert stacked[0].bbox.y0 == 10
        assert stacked[1].bbox.y0 == 110

    def test_unknown_height_uses_lowest_word(self):
        pages = [
            PageResult(1, "ocr", words=[word("a", 0, 10, 10, 40)]),
            PageResult(2, "ocr", words=[word("b", 0, 0, 10, 10)]),
        ]
        assert stack_page_words(pages)[1].bbox.y0 == 40


class TestLabReport:
    """Tests for the LabReport data model."""

    def test_analysis_text_prefers_table(self):
        table = build_table(PAGE_WORDS)
        report = LabReport(task_id="", source_file="x.pdf", table=table,
                           pages=[PageResult(1, "ocr", text="raw")])
        assert report.has_table
        assert report.analysis_text() == table.to_tsv()

    def test_analysis_text_falls_back_to_raw_text(self):
        report = LabReport(task_id="t1", source_file="x.pdf",
                           pages=[PageResult(1, "text_layer", text="p1"),
                                  PageResult(2, "text_layer", text="p2")])
        assert not report.has_table
        assert report.analysis_text() == "p1\np2"

    def test_ids_and_timestamps(self):
        report = LabReport(task_id="", source_file="x.pdf")
        assert report.task_id
        assert report.created_at
        assert report.to_dict()["table"] is None


class TestPdfProcessing:
    """Tests for the PDF page flow."""

    def test_ocr_pages_merged(self, config, fake_pdf):
        path, state = fake_pdf
        report = LabReportAssembler(config).process_file(path)

        assert [p.source for p in report.pages] == ["ocr", "ocr"]
        assert state["rendered"] == [1, 2]
        assert FakeEngine.calls == 2
        assert report.table is not None
        assert report.table.num_rows == 4
        assert report.table.grid[2] == ["Testen", "Resultaten", "Eenheden"]
        assert report.table.header_row_indices == {0, 2}

    def test_ocr_pages_separate(self, config, fake_pdf):
        path, _ = fake_pdf
        config.merge_pages = False
        report = LabReportAssembler(config).process_file(path)

        assert report.table is None
        assert all(p.table.num_rows == 2 for p in report.pages)
        assert len(report.tables) == 2

    def test_text_layer_skips_ocr(self, config, fake_pdf):
        path, state = fake_pdf
        state["text"] = EMBEDDED_TEXT
        report = LabReportAssembler(config).process_file(path)

        assert [p.source for p in report.pages] == ["text_layer", "text_layer"]
        assert state["rendered"] == []
        assert FakeEngine.calls == 0
        assert not report.has_table
        assert "Kalium 4.1" in report.analysis_text()

    def test_text_layer_disabled(self, config, fake_pdf):
        path, state = fake_pdf
        state["text"] = EMBEDDED_TEXT
        config.render.use_text_fast_path = False
        report = LabReportAssembler(config).process_file(path)
        assert [p.source for p in report.pages] == ["ocr", "ocr"]

    def test_max_pages(self, config, fake_pdf):
        path, state = fake_pdf
        state["pages"] = 5
        config.max_pages = 2
        report = LabReportAssembler(config).process_file(path)
        assert len(report.pages) == 2

    def test_unreadable_pdf(self, config, fake_pdf):
        path, state = fake_pdf
        state["pages"] = 0
        with pytest.raises(RuntimeError):
            LabReportAssembler(config).process_file(path)

    def test_progress_reported(self, config, fake_pdf):
        path, _ = fake_pdf
        seen = []
        LabReportAssembler(config, progress=lambda s, p: seen.append(p)).process_file(path)
        assert seen[0] == 0.0
        assert seen[-1] == 100.0


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancel_before_start(self, config, fake_pdf):
        path, state = fake_pdf
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(ProcessingCancelled):
            LabReportAssembler(config).process_file(path, cancel)
        assert state["rendered"] == []

    def test_cancel_between_pages(self, config, fake_pdf):
        path, state = fake_pdf
        cancel = threading.Event()

        def progress(status, percent):
            if "page 1" in status:
                cancel.set()

        with pytest.raises(ProcessingCancelled):
            LabReportAssembler(config, progress=progress).process_file(path, cancel)
        assert state["rendered"] == [1]


class TestImageProcessing:
    """Tests for single-image input."""

    def test_image_file(self, tmp_path, monkeypatch):
        cv2 = pytest.importorskip("cv2")
        path = tmp_path / "scan.png"
        cv2.imwrite(str(path), np.full((40, 60, 3), 255, dtype=np.uint8))
        monkeypatch.setattr(ocr_module, "ocr_session", fake_session)

        config = PipelineConfig()  # images keep baseline thresholds at 3x upscale
        report = LabReportAssembler(config).process_file(path)

        assert len(report.pages) == 1
        assert report.pages[0].width == 180
        assert report.table.grid[0] == ["Testen", "Resultaten", "Eenheden"]

    def test_debug_image_written(self, tmp_path, monkeypatch):
        cv2 = pytest.importorskip("cv2")
        path = tmp_path / "scan.png"
        cv2.imwrite(str(path), np.full((40, 60, 3), 255, dtype=np.uint8))
        monkeypatch.setattr(ocr_module, "ocr_session", fake_session)

        config = PipelineConfig(debug_mode=True)
        LabReportAssembler(config, output_dir=tmp_path / "out").process_file(path)
        assert (tmp_path / "out" / "debug" / "page_0001_words.png").exists()

    def test_missing_file(self, config, tmp_path):
        with pytest.raises(FileNotFoundError):
            LabReportAssembler(config).process_file(tmp_path / "nope.png")

    def test_unsupported_file(self, config, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("x")
        with pytest.raises(ValueError):
            LabReportAssembler(config).process_file(path)
