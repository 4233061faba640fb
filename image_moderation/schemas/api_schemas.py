"""
Pydantic schemas for moderation results and API request/response validation
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, validator


class ModerationStatus(str, Enum):
    """Lifecycle states of an image's moderation"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    FLAGGED = "flagged"


class ReviewAction(str, Enum):
    """Manual review actions available to admins"""
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def status(self) -> ModerationStatus:
        if self is ReviewAction.APPROVE:
            return ModerationStatus.APPROVED
        return ModerationStatus.REJECTED


class ValidationReport(BaseModel):
    """Outcome of the image validator"""
    is_valid: bool
    details: List[str] = Field(default_factory=list)
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


class ImageAnalysis(BaseModel):
    """Heuristic pixel analysis of one image"""
    has_nudity: bool = False
    has_violence: bool = False
    has_inappropriate_content: bool = False
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    details: List[str] = Field(default_factory=list)

    @classmethod
    def neutral(cls, note: str) -> 'ImageAnalysis':
        """No positive signal; used when analysis could not run"""
        return cls(confidence=0.0, details=[note])


class ModerationResult(BaseModel):
    """A moderation verdict, from one signal or from the whole pipeline"""
    is_appropriate: bool
    score: float = Field(ge=0.0, le=1.0, description="0 is clean, 1 is certainly inappropriate")
    reason: Optional[str] = None
    categories: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "is_appropriate": False,
                "score": 0.6,
                "reason": "Potential inappropriate content detected",
                "categories": ["suspicious_content"]
            }
        }


class ModerationSettings(BaseModel):
    """Tunable thresholds and validator bounds for the pipeline"""
    flag_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    nsfw_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    min_dimension: int = Field(default=50, ge=1)
    max_dimension: int = Field(default=10000, ge=1)
    sample_stride: int = Field(default=10, ge=1)

    @validator('nsfw_threshold')
    def validate_threshold_order(cls, v, values):
        flag_threshold = values.get('flag_threshold')
        if flag_threshold is not None and v < flag_threshold:
            raise ValueError('nsfw_threshold must be >= flag_threshold')
        return v

    @validator('max_dimension')
    def validate_dimension_order(cls, v, values):
        min_dimension = values.get('min_dimension')
        if min_dimension is not None and v < min_dimension:
            raise ValueError('max_dimension must be >= min_dimension')
        return v

    def status_for(self, result: ModerationResult) -> ModerationStatus:
        """
        Map an automated verdict onto a lifecycle status.

        Only nsfw_threshold decides here: every positive verdict under it is
        flagged, whatever its score. flag_threshold is informational (reported
        by the health endpoint and kept <= nsfw_threshold) and never turns a
        positive verdict into an approval.
        """
        if result.is_appropriate:
            return ModerationStatus.APPROVED
        if result.score >= self.nsfw_threshold:
            return ModerationStatus.REJECTED
        return ModerationStatus.FLAGGED


class ManualReviewRequest(BaseModel):
    """Schema for admin review decisions"""
    action: ReviewAction
    reason: Optional[str] = Field(default=None, max_length=2000)

    @validator('reason')
    def validate_reason(cls, v):
        if v is not None:
            v = v.strip()
            return v or None
        return v

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "action": "approve",
                "reason": "false positive"
            }
        }


class FlaggedImagesQuery(BaseModel):
    """Query parameters for the flagged image list"""
    limit: int = Field(default=50, ge=1, le=500)
    include_pending: bool = False


class StatsQuery(BaseModel):
    """Query parameters for moderation statistics"""
    days: int = Field(default=30, ge=1, le=365)


class UploadForm(BaseModel):
    """Form fields accompanying an image upload"""
    listing_id: int = Field(ge=1)
