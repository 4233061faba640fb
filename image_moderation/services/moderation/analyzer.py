"""
Heuristic pixel analysis for inappropriate content.

This is a coarse, explainable first line of defense rather than a trained
classifier: it counts skin-toned pixels and extreme brightness over a strided
sample. Its false-positive rate is high, so a positive result only ever
routes an image to human review or strengthens an external signal.
"""
import logging

import numpy as np
from PIL import Image

from image_moderation.schemas import ImageAnalysis
from image_moderation.services.errors import AnalyzerError

logger = logging.getLogger(__name__)

SKIN_RATIO_THRESHOLD = 0.3
CONTRAST_RATIO_THRESHOLD = 0.4
DARK_BRIGHTNESS = 50
BRIGHT_BRIGHTNESS = 200
HIGH_SKIN_CONFIDENCE = 0.6
BASE_CONFIDENCE = 0.3


class ContentAnalyzer:
    """Scores decoded pixel data for likely nudity"""

    def __init__(self, sample_stride=10):
        self.sample_stride = sample_stride

    def analyze_file(self, image_path) -> ImageAnalysis:
        """Decode to RGBA and analyze; never raises"""
        try:
            with Image.open(image_path) as img:
                rgba = img.convert('RGBA')
                width, height = rgba.size
                data = rgba.tobytes()
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            logger.warning(f"Content analysis could not decode {image_path}: {str(e)}")
            return ImageAnalysis.neutral('Content analysis failed')

        return self.analyze_pixels(data, width, height, 4)

    def analyze_pixels(self, data, width, height, channels) -> ImageAnalysis:
        """Analyze a raw interleaved RGB or RGBA buffer; never raises"""
        try:
            return self._analyze(data, width, height, channels)
        except AnalyzerError as e:
            logger.warning(f"Content analysis failed: {e.message}")
            return ImageAnalysis.neutral(f'Content analysis failed: {e.message}')

    def _analyze(self, data, width, height, channels) -> ImageAnalysis:
        if channels not in (3, 4):
            raise AnalyzerError(f"Unsupported channel count: {channels}")
        if width <= 0 or height <= 0:
            raise AnalyzerError(f"Invalid dimensions: {width}x{height}")

        try:
            buffer = np.frombuffer(data, dtype=np.uint8)
        except (TypeError, ValueError) as e:
            raise AnalyzerError(f"Unreadable pixel buffer: {str(e)}") from e
        expected = width * height * channels
        if buffer.size != expected:
            raise AnalyzerError(
                f"Buffer holds {buffer.size} bytes, expected {expected} for {width}x{height}x{channels}")

        # Widen before arithmetic so differences and sums cannot wrap
        sampled = buffer.reshape(-1, channels)[::self.sample_stride, :3].astype(np.int16)
        sampled_count = sampled.shape[0]
        r, g, b = sampled[:, 0], sampled[:, 1], sampled[:, 2]

        skin_mask = (
            (r > 95) & (g > 40) & (b > 20) &
            (sampled.max(axis=1) - sampled.min(axis=1) > 15) &
            (np.abs(r - g) > 15) & (r > g) & (r > b)
        )
        brightness = sampled.sum(axis=1) / 3.0

        skin_ratio = float(np.count_nonzero(skin_mask)) / sampled_count
        dark_ratio = float(np.count_nonzero(brightness < DARK_BRIGHTNESS)) / sampled_count
        bright_ratio = float(np.count_nonzero(brightness > BRIGHT_BRIGHTNESS)) / sampled_count

        has_high_skin_tone = skin_ratio > SKIN_RATIO_THRESHOLD
        has_extreme_contrast = (dark_ratio > CONTRAST_RATIO_THRESHOLD or
                                bright_ratio > CONTRAST_RATIO_THRESHOLD)
        flagged = has_high_skin_tone and has_extreme_contrast

        return ImageAnalysis(
            has_nudity=flagged,
            has_violence=False,
            has_inappropriate_content=flagged,
            confidence=HIGH_SKIN_CONFIDENCE if has_high_skin_tone else BASE_CONFIDENCE,
            details=[
                f"Skin tone ratio: {skin_ratio * 100:.2f}%",
                f"Dark pixel ratio: {dark_ratio * 100:.2f}%",
                f"Bright pixel ratio: {bright_ratio * 100:.2f}%",
                f"Sampled {sampled_count} of {width * height} pixels"
            ]
        )
