"""
Exceptions raised by the moderation pipeline and its storage layer
"""


class ModerationError(Exception):
    """Base class for moderation failures"""

    def __init__(self, message, image_id=None):
        super().__init__(message)
        self.message = message
        self.image_id = image_id


class ImageValidationError(ModerationError):
    """The uploaded file is not a usable image"""

    def __init__(self, message, details=None, image_id=None):
        super().__init__(message, image_id=image_id)
        self.details = details or []


class AnalyzerError(ModerationError):
    """Pixel analysis could not run on the decoded buffer"""


class ExternalServiceError(ModerationError):
    """The external classifier failed, timed out or returned garbage"""


class ImageNotFoundError(ModerationError):
    """No image record exists for the requested id"""

    def __init__(self, image_id):
        super().__init__(f"Image {image_id} not found", image_id=image_id)


class InvalidTransitionError(ModerationError):
    """A status change that the moderation lifecycle does not allow"""

    def __init__(self, image_id, current_status, requested_status):
        super().__init__(
            f"Image {image_id} cannot move from '{current_status}' to '{requested_status}'",
            image_id=image_id)
        self.current_status = current_status
        self.requested_status = requested_status


class StorageError(ModerationError):
    """A database operation failed and was rolled back"""
