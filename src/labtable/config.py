"""
Configuration and constants for the lab-report table reconstruction pipeline.

This module provides:
- Reconstruction thresholds (row tolerance, gap threshold, header heuristics)
- Rendering, enhancement and OCR settings for the surrounding pipeline
- Environment overrides

Scale coupling
--------------
Every pixel threshold below (``RowConfig.tolerance``,
``ColumnConfig.gap_threshold``) lives in the coordinate space of the image the
OCR engine saw. The defaults were tuned on PDF pages rendered at 1.5x and then
up-scaled 3x by the enhancer. If either factor changes, the thresholds must be
scaled by the same ratio; ``PipelineConfig.reconstruction_for_pipeline()`` does
this, and ``ReconstructionConfig.scaled()`` is available for callers that feed
word boxes from another source. Ratio thresholds (span ratios, gap CV, top
fraction) are scale-free and are never rescaled.
"""

import os
from dataclasses import dataclass, field, replace
from typing import List, Optional
import logging

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger("labtable")


def setup_logging(level: int = logging.INFO) -> None:
    """Configure root logging the same way for the CLI and scripts."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


# ============================================================================
# Constants
# ============================================================================

PLACEHOLDER = "—"  # em dash, used for padded and blank cells

# Render scale x enhancer upscale the default pixel thresholds were tuned for
BASELINE_RENDER_SCALE = 1.5
BASELINE_UPSCALE = 3.0

DEFAULT_HEADER_VOCABULARY: List[str] = [
    # English column labels
    "test", "result", "unit", "reference", "range", "parameter",
    # Dutch column labels found on the source lab reports
    "testen", "resultaten", "resultaat", "vorige", "onderl", "bovenl",
    "eenheden", "eenheid", "referentie", "normaalwaarden",
]

# Whitelist handed to Tesseract; keeps lab values, units and ranges intact
DEFAULT_CHAR_WHITELIST = (
    "0123456789"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    ".,%<>/-+()μ: "
)


# ============================================================================
# Reconstruction Configuration
# ============================================================================

@dataclass
class RowConfig:
    """Row clustering configuration."""
    tolerance: float = 10.0  # pixels, scales with resolution
    strategy: str = "running_average"  # running_average, agglomerative


@dataclass
class ColumnConfig:
    """Column segmentation configuration."""
    gap_threshold: float = 20.0  # pixels, same space as RowConfig.tolerance


@dataclass
class HeaderConfig:
    """Header row classification configuration."""
    strategy: str = "combined"  # combined, lexical, structural
    vocabulary: List[str] = field(default_factory=lambda: list(DEFAULT_HEADER_VOCABULARY))
    min_structural_words: int = 3
    min_span_ratio: float = 0.5
    top_fraction: float = 1.0 / 3.0
    max_gap_cv: float = 0.7
    # Fallback when nothing qualifies
    fallback_enabled: bool = True
    fallback_scan_rows: int = 5
    fallback_span_ratio: float = 0.4


@dataclass
class GridConfig:
    """Grid normalization configuration."""
    placeholder: str = PLACEHOLDER


@dataclass
class CleanupConfig:
    """Optional OCR-noise cleanup applied to cell text."""
    enabled: bool = False


@dataclass
class ReconstructionConfig:
    """Everything the table reconstruction core needs."""
    row: RowConfig = field(default_factory=RowConfig)
    column: ColumnConfig = field(default_factory=ColumnConfig)
    header: HeaderConfig = field(default_factory=HeaderConfig)
    grid: GridConfig = field(default_factory=GridConfig)
    cleanup: CleanupConfig = field(default_factory=CleanupConfig)

    def scaled(self, factor: float) -> "ReconstructionConfig":
        """
        Return a copy with pixel thresholds multiplied by ``factor``.

        Args:
            factor: Resolution ratio relative to the tuning baseline

        Returns:
            New ReconstructionConfig; ratio thresholds are left untouched
        """
        if factor <= 0:
            raise ValueError(f"Scale factor must be positive, got {factor}")

        return replace(
            self,
            row=replace(self.row, tolerance=self.row.tolerance * factor),
            column=replace(self.column, gap_threshold=self.column.gap_threshold * factor),
            header=replace(self.header, vocabulary=list(self.header.vocabulary)),
        )


# ============================================================================
# Pipeline Configuration
# ============================================================================

@dataclass
class RenderConfig:
    """PDF rendering configuration."""
    scale: float = BASELINE_RENDER_SCALE  # 1.0 == 72 dpi
    use_text_fast_path: bool = True
    min_text_chars: int = 50  # embedded text shorter than this falls back to OCR

    @property
    def dpi(self) -> int:
        return int(round(72 * self.scale))


@dataclass
class EnhanceConfig:
    """Image enhancement configuration."""
    enabled: bool = True
    upscale: float = BASELINE_UPSCALE
    contrast: float = 1.05
    soft_band: int = 40  # half-width of the gray ramp around the threshold
    reinforce_lines: bool = True
    line_alpha: float = 0.7
    line_min_fraction: float = 1.0 / 20.0  # line length vs image dimension
    line_dark_level: int = 150


@dataclass
class OCRConfig:
    """OCR configuration."""
    language: str = "eng"
    char_whitelist: Optional[str] = DEFAULT_CHAR_WHITELIST
    psm: int = 3  # 3 = automatic layout, 6 = uniform block
    oem: int = 1  # LSTM only
    preserve_interword_spaces: bool = True
    disable_dictionary: bool = True
    min_confidence: float = -1.0  # words at or below are dropped (-1 == no box)


@dataclass
class PipelineConfig:
    """Main pipeline configuration."""
    reconstruction: ReconstructionConfig = field(default_factory=ReconstructionConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    enhance: EnhanceConfig = field(default_factory=EnhanceConfig)
    ocr: OCRConfig = field(default_factory=OCRConfig)

    # Global settings
    merge_pages: bool = True  # one table over all pages vs one per page
    debug_mode: bool = False
    max_pages: Optional[int] = None

    def effective_scale(self, is_pdf: bool = True) -> float:
        """Resolution of OCR'd images relative to the tuning baseline."""
        upscale = self.enhance.upscale if self.enhance.enabled else 1.0
        render = self.render.scale if is_pdf else BASELINE_RENDER_SCALE
        return (render * upscale) / (BASELINE_RENDER_SCALE * BASELINE_UPSCALE)

    def reconstruction_for_pipeline(self, is_pdf: bool = True) -> ReconstructionConfig:
        """Reconstruction thresholds rescaled to the pipeline's image resolution."""
        return self.reconstruction.scaled(self.effective_scale(is_pdf))


# ============================================================================
# Default Configuration Instance
# ============================================================================

def _env_float(name: str) -> Optional[float]:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid value for {name}: {raw!r}")
        return None


def get_config() -> PipelineConfig:
    """Get the default pipeline configuration with environment overrides."""
    config = PipelineConfig()

    tolerance = _env_float("LABTABLE_ROW_TOLERANCE")
    if tolerance is not None and tolerance > 0:
        config.reconstruction.row.tolerance = tolerance

    gap = _env_float("LABTABLE_GAP_THRESHOLD")
    if gap is not None and gap >= 0:
        config.reconstruction.column.gap_threshold = gap

    scale = _env_float("LABTABLE_RENDER_SCALE")
    if scale is not None and scale > 0:
        config.render.scale = scale

    lang = os.environ.get("LABTABLE_OCR_LANG")
    if lang:
        config.ocr.language = lang

    if os.environ.get("LABTABLE_DEBUG", "").lower() == "true":
        config.debug_mode = True

    return config
