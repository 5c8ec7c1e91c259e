"""
Tests for the Tesseract OCR wrapper.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from labtable.config import OCRConfig
from labtable.utils.ocr_text import (
    OCRUnavailableError,
    TesseractEngine,
    build_tesseract_config,
    ocr_session,
    parse_tesseract_data,
    to_pil_image,
)
from labtable.utils.words import BoundingBox


@pytest.fixture
def tesseract_data():
    """Shape of pytesseract.image_to_data(..., output_type=DICT)."""
    return {
        'level':     [1, 5, 5, 5, 5, 5],
        'page_num':  [1, 1, 1, 1, 1, 1],
        'block_num': [0, 1, 1, 1, 1, 1],
        'par_num':   [0, 1, 1, 1, 1, 1],
        'line_num':  [0, 1, 1, 2, 2, 2],
        'left':      [0, 10, 120, 10, 120, 200],
        'top':       [0, 5, 5, 40, 41, 40],
        'width':     [300, 80, 60, 70, 30, 50],
        'height':    [100, 12, 12, 12, 12, 12],
        'conf':      ['-1', '96.2', '91', '88.4', '12.5', '-1'],
        'text':      ['', 'Testen', 'Resultaten', 'Natrium', '140', ' '],
    }


class TestTesseractOptions:
    """Tests for Tesseract config building."""

    def test_default_options(self):
        options = build_tesseract_config(OCRConfig())
        assert options.startswith("--oem 1 --psm 3")
        assert "-c preserve_interword_spaces=1" in options
        assert "-c load_system_dawg=0" in options
        assert "-c load_freq_dawg=0" in options
        assert 'tessedit_char_whitelist=0123456789' in options

    def test_minimal_options(self):
        config = OCRConfig(char_whitelist=None, preserve_interword_spaces=False,
                           disable_dictionary=False, psm=6)
        assert build_tesseract_config(config) == "--oem 1 --psm 6"


class TestParseTesseractData:
    """Tests for image_to_data parsing."""

    def test_words_and_boxes(self, tesseract_data):
        words, _ = parse_tesseract_data(tesseract_data)
        assert [w.text for w in words] == ["Testen", "Resultaten", "Natrium", "140"]
        assert words[0].bbox == BoundingBox(10, 5, 90, 17)
        assert words[0].confidence == pytest.approx(96.2)

    def test_text_grouped_by_line(self, tesseract_data):
        _, text = parse_tesseract_data(tesseract_data)
        assert text == "Testen Resultaten\nNatrium 140"

    def test_min_confidence(self, tesseract_data):
        words, _ = parse_tesseract_data(tesseract_data, min_confidence=50)
        assert "140" not in [w.text for w in words]

    def test_empty(self):
        assert parse_tesseract_data({}) == ([], "")


class TestImageHandoff:
    """Tests for the bitmap conversion handed to Tesseract."""

    def test_bgr_becomes_rgb(self):
        image = np.zeros((2, 4, 3), dtype=np.uint8)
        image[:, :] = (0, 0, 255)  # red in BGR
        pil_image = to_pil_image(image)
        assert pil_image.mode == "RGB"
        assert pil_image.size == (4, 2)
        assert pil_image.getpixel((0, 0)) == (255, 0, 0)

    def test_grayscale_stays_single_channel(self):
        pil_image = to_pil_image(np.full((3, 5), 200, dtype=np.uint8))
        assert pil_image.mode == "L"
        assert pil_image.getpixel((4, 2)) == 200


class TestTesseractEngine:
    """Tests for engine lifecycle, with pytesseract calls replaced."""

    @pytest.fixture
    def fake_pytesseract(self, monkeypatch, tesseract_data):
        pytesseract = pytest.importorskip("pytesseract")
        monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
        monkeypatch.setattr(pytesseract, "image_to_data", lambda *args, **kwargs: tesseract_data)
        return pytesseract

    def test_unavailable(self, monkeypatch):
        pytesseract = pytest.importorskip("pytesseract")

        def missing():
            raise EnvironmentError("tesseract is not installed")

        monkeypatch.setattr(pytesseract, "get_tesseract_version", missing)
        with pytest.raises(OCRUnavailableError):
            TesseractEngine()

    def test_recognize(self, fake_pytesseract):
        engine = TesseractEngine(OCRConfig(language="nld"))
        result = engine.recognize(np.zeros((20, 20), dtype=np.uint8))
        assert result.engine_used == "tesseract"
        assert len(result.words) == 4
        assert result.confidence == pytest.approx((96.2 + 91 + 88.4 + 12.5) / 4)
        assert result.metadata["language"] == "nld"

    def test_recognize_passes_pil_image(self, monkeypatch, fake_pytesseract, tesseract_data):
        from PIL import Image

        seen = []
        monkeypatch.setattr(fake_pytesseract, "image_to_data",
                            lambda image, **kwargs: seen.append(image) or tesseract_data)
        TesseractEngine().recognize(np.zeros((20, 30, 3), dtype=np.uint8))
        assert isinstance(seen[0], Image.Image)
        assert seen[0].size == (30, 20)

    def test_session_releases_engine(self, fake_pytesseract):
        with ocr_session() as engine:
            engine.recognize(np.zeros((20, 20), dtype=np.uint8))
        with pytest.raises(OCRUnavailableError):
            engine.recognize(np.zeros((20, 20), dtype=np.uint8))

    def test_session_releases_engine_on_error(self, fake_pytesseract):
        with pytest.raises(RuntimeError):
            with ocr_session() as engine:
                raise RuntimeError("page failed")
        assert engine._closed
