import logging
import os
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from image_moderation.schemas import ModerationResult
from image_moderation.services.error_tracker import error_tracker
from image_moderation.services.errors import ExternalServiceError

logger = logging.getLogger(__name__)

DEEPAI_NSFW_URL = 'https://api.deepai.org/api/nsfw-detector'
EXPLICIT_REASON = 'Explicit content detected by AI analysis'
EXPLICIT_CATEGORY = 'explicit_content'


class DeepAIOutput(BaseModel):
    nsfw_score: float = Field(ge=0.0, le=1.0)
    detections: List[Dict[str, Any]] = Field(default_factory=list)


class DeepAIResponse(BaseModel):
    id: Optional[str] = None
    output: DeepAIOutput


class DeepAIClient:
    """Optional NSFW check against DeepAI; any failure degrades to None"""

    def __init__(self, api_key=None, api_url=DEEPAI_NSFW_URL, timeout=8.0,
                 nsfw_threshold=0.7, transport=None):
        self.api_key = api_key or None
        self.api_url = api_url
        self.nsfw_threshold = nsfw_threshold
        self.timeout = httpx.Timeout(timeout, connect=min(timeout, 3.0))
        # Tests inject an httpx.MockTransport here
        self._transport = transport

    def is_configured(self):
        """Check if the DeepAI API key is present"""
        return self.api_key is not None

    async def classify(self, image_path, image_id=None) -> Optional[ModerationResult]:
        """Return a normalized verdict, or None when unconfigured or unavailable"""
        if not self.is_configured():
            logger.debug("DeepAI API key not configured, skipping external check")
            return None

        try:
            payload = await self._request(image_path)
            return self._to_result(payload)
        except ExternalServiceError as e:
            logger.warning(f"DeepAI check failed for image {image_id}: {e.message}")
            error_tracker.track_error('external', e.message, image_id=image_id)
            return None

    async def _request(self, image_path) -> DeepAIResponse:
        try:
            with open(image_path, 'rb') as f:
                image_bytes = f.read()
        except OSError as e:
            raise ExternalServiceError(f"Could not read image for DeepAI: {str(e)}") from e

        files = {'image': (os.path.basename(str(image_path)), image_bytes)}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url, headers={'Api-Key': self.api_key}, files=files)
                response.raise_for_status()
                body = response.json()
        except httpx.TimeoutException as e:
            raise ExternalServiceError(f"DeepAI request timed out: {str(e)}") from e
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                f"DeepAI API error: {e.response.status_code} {e.response.reason_phrase}") from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"DeepAI request failed: {str(e)}") from e
        except ValueError as e:
            raise ExternalServiceError(f"DeepAI returned invalid JSON: {str(e)}") from e

        try:
            return DeepAIResponse.model_validate(body)
        except ValidationError as e:
            # A missing score is a broken response, not a clean image
            raise ExternalServiceError(f"Malformed DeepAI response: {e.error_count()} error(s)") from e

    def _to_result(self, payload: DeepAIResponse) -> ModerationResult:
        nsfw_score = payload.output.nsfw_score
        is_inappropriate = nsfw_score > self.nsfw_threshold
        return ModerationResult(
            is_appropriate=not is_inappropriate,
            score=nsfw_score,
            reason=EXPLICIT_REASON if is_inappropriate else None,
            categories=[EXPLICIT_CATEGORY] if is_inappropriate else []
        )
