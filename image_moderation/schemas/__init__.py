"""
Pydantic schemas for results, settings and request validation
"""
from .api_schemas import (
    FlaggedImagesQuery,
    ImageAnalysis,
    ManualReviewRequest,
    ModerationResult,
    ModerationSettings,
    ModerationStatus,
    ReviewAction,
    StatsQuery,
    UploadForm,
    ValidationReport,
)

__all__ = [
    'FlaggedImagesQuery',
    'ImageAnalysis',
    'ManualReviewRequest',
    'ModerationResult',
    'ModerationSettings',
    'ModerationStatus',
    'ReviewAction',
    'StatsQuery',
    'UploadForm',
    'ValidationReport'
]
