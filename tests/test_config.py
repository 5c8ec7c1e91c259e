"""
Tests for configuration, threshold scaling and environment overrides.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from labtable.config import (
    PipelineConfig,
    ReconstructionConfig,
    RenderConfig,
    get_config,
)


class TestReconstructionConfig:
    """Tests for threshold scaling."""

    def test_defaults(self):
        config = ReconstructionConfig()
        assert config.row.tolerance == 10.0
        assert config.column.gap_threshold == 20.0
        assert config.header.max_gap_cv == 0.7
        assert config.grid.placeholder == "—"

    def test_scaled_multiplies_pixel_thresholds(self):
        scaled = ReconstructionConfig().scaled(2.5)
        assert scaled.row.tolerance == pytest.approx(25.0)
        assert scaled.column.gap_threshold == pytest.approx(50.0)

    def test_scaled_leaves_ratios_alone(self):
        base = ReconstructionConfig()
        scaled = base.scaled(3.0)
        assert scaled.header.min_span_ratio == base.header.min_span_ratio
        assert scaled.header.top_fraction == base.header.top_fraction
        assert scaled.header.max_gap_cv == base.header.max_gap_cv

    def test_scaled_returns_copy(self):
        base = ReconstructionConfig()
        scaled = base.scaled(2.0)
        scaled.header.vocabulary.append("uitslag")
        assert base.row.tolerance == 10.0
        assert "uitslag" not in base.header.vocabulary

    @pytest.mark.parametrize("factor", [0, -1.0])
    def test_scaled_rejects_non_positive(self, factor):
        with pytest.raises(ValueError):
            ReconstructionConfig().scaled(factor)


class TestPipelineConfig:
    """Tests for pipeline-level scale coupling."""

    def test_baseline_scale_is_one(self):
        assert PipelineConfig().effective_scale() == pytest.approx(1.0)

    def test_higher_render_scale(self):
        config = PipelineConfig()
        config.render.scale = 3.0
        assert config.effective_scale() == pytest.approx(2.0)
        assert config.reconstruction_for_pipeline().row.tolerance == pytest.approx(20.0)

    def test_enhancement_disabled(self):
        config = PipelineConfig()
        config.enhance.enabled = False
        assert config.effective_scale() == pytest.approx(1.0 / 3.0)

    def test_images_ignore_render_scale(self):
        config = PipelineConfig()
        config.render.scale = 3.0
        assert config.effective_scale(is_pdf=False) == pytest.approx(1.0)

    def test_render_dpi(self):
        assert RenderConfig().dpi == 108
        assert RenderConfig(scale=2.0).dpi == 144


class TestEnvironmentOverrides:
    """Tests for get_config()."""

    def test_no_overrides(self, monkeypatch):
        for name in ("LABTABLE_ROW_TOLERANCE", "LABTABLE_GAP_THRESHOLD", "LABTABLE_OCR_LANG",
                     "LABTABLE_RENDER_SCALE", "LABTABLE_DEBUG"):
            monkeypatch.delenv(name, raising=False)
        config = get_config()
        assert config.reconstruction.row.tolerance == 10.0
        assert config.ocr.language == "eng"
        assert not config.debug_mode

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("LABTABLE_ROW_TOLERANCE", "15")
        monkeypatch.setenv("LABTABLE_GAP_THRESHOLD", "30.5")
        monkeypatch.setenv("LABTABLE_OCR_LANG", "nld+eng")
        monkeypatch.setenv("LABTABLE_RENDER_SCALE", "2")
        monkeypatch.setenv("LABTABLE_DEBUG", "true")
        config = get_config()
        assert config.reconstruction.row.tolerance == 15.0
        assert config.reconstruction.column.gap_threshold == 30.5
        assert config.ocr.language == "nld+eng"
        assert config.render.scale == 2.0
        assert config.debug_mode

    def test_invalid_values_ignored(self, monkeypatch):
        monkeypatch.setenv("LABTABLE_ROW_TOLERANCE", "wide")
        monkeypatch.setenv("LABTABLE_RENDER_SCALE", "-1")
        config = get_config()
        assert config.reconstruction.row.tolerance == 10.0
        assert config.render.scale == 1.5
