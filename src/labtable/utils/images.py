"""
Image enhancement utilities applied before OCR.

Provides:
- Grayscale conversion and up-scaling
- Mild contrast stretch
- Brightness-adaptive soft thresholding
- Table-line reinforcement (long horizontal/vertical dark runs)
- Debug visualization of word boxes and rows
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..config import EnhanceConfig

logger = logging.getLogger(__name__)


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class EnhancementResult:
    """Result of image enhancement."""
    image: np.ndarray
    original_shape: Tuple[int, int]
    scale: float = 1.0
    mean_brightness: float = 0.0
    threshold: int = 0
    transformations: List[str] = field(default_factory=list)
    fell_back: bool = False


# ============================================================================
# Core Functions
# ============================================================================

def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        image: Input image (BGR, BGRA or grayscale)

    Returns:
        Grayscale image
    """
    import cv2

    if len(image.shape) == 2:
        return image
    elif len(image.shape) == 3:
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image.squeeze()

    raise ValueError(f"Unexpected image shape: {image.shape}")


def upscale(image: np.ndarray, factor: float) -> np.ndarray:
    """Resize by ``factor`` with cubic interpolation (no-op for 1.0)."""
    import cv2

    if factor == 1.0:
        return image
    if factor <= 0:
        raise ValueError(f"Scale factor must be positive, got {factor}")

    h, w = image.shape[:2]
    new_size = (max(1, int(round(w * factor))), max(1, int(round(h * factor))))
    interpolation = cv2.INTER_CUBIC if factor > 1 else cv2.INTER_AREA
    return cv2.resize(image, new_size, interpolation=interpolation)


def adjust_contrast(gray: np.ndarray, contrast: float = 1.05) -> np.ndarray:
    """
    Linear contrast stretch around mid-gray.

    Uses the classic ``259 * (c + 255) / (255 * (259 - c))`` factor; the
    result is float so the thresholding step sees the unclipped values.
    """
    factor = (259.0 * (contrast + 255.0)) / (255.0 * (259.0 - contrast))
    return factor * (gray.astype(np.float32) - 128.0) + 128.0


def select_threshold(mean_brightness: float) -> int:
    """Pick a binarization level from the page's average brightness."""
    if mean_brightness > 200:
        return 180  # white paper, keep faint table lines
    if mean_brightness < 100:
        return 120  # dark scan
    return 160


def soft_threshold(values: np.ndarray, threshold: int, band: int = 40) -> np.ndarray:
    """
    Threshold with a linear gray ramp of ``+-band`` around ``threshold``.

    Pixels clearly above become white, clearly below black, and the ramp in
    between keeps thin strokes from breaking apart.
    """
    low = threshold - band
    ramp = (values - low) / float(2 * band) * 255.0
    out = np.where(values > threshold + band, 255.0, np.where(values < low, 0.0, ramp))
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)


def reinforce_lines(
    gray: np.ndarray,
    dark_level: int = 150,
    min_fraction: float = 1.0 / 20.0
) -> np.ndarray:
    """
    Blacken and thicken long horizontal and vertical dark runs.

    A run counts as a table line when it is longer than ``min_fraction`` of
    the image width (horizontal) or height (vertical).

    Args:
        gray: Grayscale image
        dark_level: Pixels darker than this are line candidates
        min_fraction: Minimum run length relative to the image dimension

    Returns:
        Copy of ``gray`` with detected lines drawn black and 3 px thick
    """
    import cv2

    h, w = gray.shape[:2]
    dark = (gray < dark_level).astype(np.uint8) * 255

    h_len = max(2, int(w * min_fraction) + 1)
    v_len = max(2, int(h * min_fraction) + 1)

    horizontal_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (h_len, 1))
    vertical_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (1, v_len))

    horizontal = cv2.morphologyEx(dark, cv2.MORPH_OPEN, horizontal_kernel)
    vertical = cv2.morphologyEx(dark, cv2.MORPH_OPEN, vertical_kernel)

    horizontal = cv2.dilate(horizontal, cv2.getStructuringElement(cv2.MORPH_RECT, (1, 3)))
    vertical = cv2.dilate(vertical, cv2.getStructuringElement(cv2.MORPH_RECT, (3, 1)))

    lines = cv2.bitwise_or(horizontal, vertical)
    out = gray.copy()
    out[lines > 0] = 0

    logger.debug(f"Reinforced {int(np.count_nonzero(lines))} line pixels")
    return out


# ============================================================================
# Main Enhancement Pipeline
# ============================================================================

def enhance_for_ocr(
    image: np.ndarray,
    config: Optional[EnhanceConfig] = None
) -> EnhancementResult:
    """
    Apply the full enhancement pipeline to a page image.

    Args:
        image: Input image (BGR or grayscale)
        config: Enhancement settings

    Returns:
        EnhancementResult with a uint8 grayscale image
    """
    config = config or EnhanceConfig()
    original_shape = image.shape[:2]

    if not config.enabled:
        return EnhancementResult(
            image=to_grayscale(image),
            original_shape=original_shape,
            transformations=["grayscale"]
        )

    transformations = []
    scaled = upscale(image, config.upscale)
    if config.upscale != 1.0:
        transformations.append(f"upscale_{config.upscale:g}x")

    gray = to_grayscale(scaled)
    transformations.append("grayscale")

    try:
        mean_brightness = float(np.mean(gray))
        threshold = select_threshold(mean_brightness)

        enhanced = adjust_contrast(gray, config.contrast)
        thresholded = soft_threshold(enhanced, threshold, config.soft_band)
        transformations.append(f"soft_threshold_{threshold}")

        result_image = thresholded
        if config.reinforce_lines:
            import cv2

            lined = reinforce_lines(gray, config.line_dark_level, config.line_min_fraction)
            result_image = cv2.addWeighted(
                lined, config.line_alpha, thresholded, 1.0 - config.line_alpha, 0
            )
            transformations.append("reinforce_lines")
    except (ValueError, MemoryError) as e:
        logger.warning(f"Image enhancement failed, using unenhanced image: {e}")
        return EnhancementResult(
            image=gray,
            original_shape=original_shape,
            scale=config.upscale,
            transformations=transformations,
            fell_back=True
        )

    logger.info(f"Enhancement complete: {' -> '.join(transformations)}")

    return EnhancementResult(
        image=result_image,
        original_shape=original_shape,
        scale=config.upscale,
        mean_brightness=mean_brightness,
        threshold=threshold,
        transformations=transformations
    )


# ============================================================================
# Debug Visualization
# ============================================================================

def draw_debug_image(
    image: np.ndarray,
    boxes: Sequence[Tuple[float, float, float, float]],
    labels: Optional[Sequence[str]] = None,
    colors: Optional[Sequence[Tuple[int, int, int]]] = None,
    line_width: int = 2
) -> np.ndarray:
    """
    Draw bounding boxes on image for debugging.

    Args:
        image: Input image
        boxes: List of (x0, y0, x1, y1) tuples
        labels: Optional labels for each box
        colors: Optional colors for each box (BGR)
        line_width: Line thickness

    Returns:
        Color image with drawn boxes
    """
    import cv2

    if len(image.shape) == 2:
        debug_img = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    else:
        debug_img = image.copy()

    default_colors = [
        (255, 0, 0),    # Blue
        (0, 255, 0),    # Green
        (0, 0, 255),    # Red
        (255, 255, 0),  # Cyan
        (255, 0, 255),  # Magenta
        (0, 255, 255),  # Yellow
    ]

    for i, box in enumerate(boxes):
        x0, y0, x1, y1 = (int(round(v)) for v in box)
        color = colors[i] if colors and i < len(colors) else default_colors[i % len(default_colors)]

        cv2.rectangle(debug_img, (x0, y0), (x1, y1), color, line_width)

        if labels and i < len(labels):
            cv2.putText(
                debug_img,
                labels[i],
                (x0, max(0, y0 - 5)),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.5,
                color,
                1
            )

    return debug_img
