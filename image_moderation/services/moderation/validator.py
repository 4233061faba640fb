import logging

from PIL import Image

from image_moderation.schemas import ValidationReport
from image_moderation.services.errors import ImageValidationError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ('JPEG', 'PNG', 'WEBP')
# Camera JPEGs with a multi-picture segment open as MPO
FORMAT_ALIASES = {'MPO': 'JPEG'}


class ImageValidator:
    """Checks that a stored upload decodes as a sane, supported image"""

    def __init__(self, min_dimension=50, max_dimension=10000, supported_formats=SUPPORTED_FORMATS):
        self.min_dimension = min_dimension
        self.max_dimension = max_dimension
        self.supported_formats = tuple(supported_formats)

    def validate(self, image_path) -> ValidationReport:
        """Inspect format, dimensions and integrity without raising"""
        details = []
        try:
            with Image.open(image_path) as img:
                image_format = FORMAT_ALIASES.get(img.format, img.format)
                width, height = img.size

                if not image_format or image_format not in self.supported_formats:
                    details.append(f"Unsupported format: {image_format}")
                    return ValidationReport(is_valid=False, details=details, format=image_format)

                if not width or not height:
                    details.append("Unable to determine image dimensions")
                    return ValidationReport(is_valid=False, details=details, format=image_format)

                if width < self.min_dimension or height < self.min_dimension:
                    details.append(f"Image too small: {width}x{height}")
                    return ValidationReport(is_valid=False, details=details, format=image_format,
                                            width=width, height=height)

                if width > self.max_dimension or height > self.max_dimension:
                    details.append(f"Image too large: {width}x{height}")
                    return ValidationReport(is_valid=False, details=details, format=image_format,
                                            width=width, height=height)

                # Dimensions are checked before verify() so oversized files are never decoded
                img.verify()

        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            details.append(f"Image processing failed: {str(e)}")
            return ValidationReport(is_valid=False, details=details)

        details.append(f"Valid {image_format.lower()} image: {width}x{height}")
        return ValidationReport(is_valid=True, details=details, format=image_format,
                                width=width, height=height)

    def ensure_valid(self, image_path) -> ValidationReport:
        """Validate and raise ImageValidationError on failure"""
        report = self.validate(image_path)
        if not report.is_valid:
            logger.info(f"Image validation failed for {image_path}: {'; '.join(report.details)}")
            raise ImageValidationError(
                "Invalid image format or corrupted file", details=report.details)
        return report
