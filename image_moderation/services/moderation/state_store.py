import logging
from datetime import datetime
from typing import Any, Dict, Optional

from image_moderation.schemas import ModerationResult, ModerationStatus
from image_moderation.services.errors import ImageNotFoundError, InvalidTransitionError

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = 'system'

# Automated verdicts only ever leave the pending state
AUTOMATED_SOURCES = {ModerationStatus.PENDING.value}
AUTOMATED_TARGETS = {
    ModerationStatus.APPROVED,
    ModerationStatus.REJECTED,
    ModerationStatus.FLAGGED,
}
MANUAL_TARGETS = {ModerationStatus.APPROVED, ModerationStatus.REJECTED}


class ModerationStateStore:
    """Single write path for moderation status changes and their audit rows"""

    def __init__(self, db_service):
        self.db_service = db_service

    async def get_image(self, image_id) -> Dict[str, Any]:
        image = await self.db_service.get_image_by_id(image_id)
        if image is None:
            raise ImageNotFoundError(image_id)
        return image

    async def record_automated(self, image_id, status: ModerationStatus, result: ModerationResult,
                               details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Persist a pipeline verdict for a pending image"""
        if status not in AUTOMATED_TARGETS:
            raise InvalidTransitionError(image_id, ModerationStatus.PENDING.value, status.value)

        now = datetime.utcnow()
        fields = {
            'moderation_status': status.value,
            'moderation_score': result.score,
            'moderation_reason': result.reason,
            'moderated_at': now,
            'moderated_by': SYSTEM_ACTOR
        }
        log_details = {'categories': result.categories}
        log_details.update(details or {})
        log_entry = {
            'moderation_type': 'nsfw',
            'score': result.score,
            'action': status.value,
            'reason': result.reason,
            'details': log_details,
            'moderated_by': SYSTEM_ACTOR,
            'moderated_at': now
        }
        image = await self.db_service.apply_moderation_transition(
            image_id, fields, log_entry, allowed_from=AUTOMATED_SOURCES)
        logger.info(f"Image {image_id}: {status.value} (score {result.score:.2f})")
        return image

    async def record_manual(self, image_id, status: ModerationStatus, admin_id: str,
                            reason: Optional[str] = None) -> Dict[str, Any]:
        """Persist an admin decision; authoritative over any prior verdict"""
        if status not in MANUAL_TARGETS:
            raise InvalidTransitionError(image_id, 'any', status.value)

        image = await self.get_image(image_id)
        score = image['moderation_score']
        if score is None:
            # Reviewed straight from pending: keep status and score coupled
            score = 0.0 if status == ModerationStatus.APPROVED else 1.0

        now = datetime.utcnow()
        fields = {
            'moderation_status': status.value,
            'moderation_score': score,
            'moderation_reason': reason,
            'moderated_at': now,
            'moderated_by': admin_id
        }
        log_entry = {
            'moderation_type': 'manual_review',
            'score': score,
            'action': status.value,
            'reason': reason,
            'details': {'previous_status': image['moderation_status']},
            'moderated_by': admin_id,
            'moderated_at': now
        }
        updated = await self.db_service.apply_moderation_transition(image_id, fields, log_entry)
        logger.info(f"Image {image_id}: {status.value} by admin {admin_id}")
        return updated

    async def reset(self, image_id, actor: str = SYSTEM_ACTOR) -> Dict[str, Any]:
        """Return an image to pending, clearing every verdict field"""
        fields = {
            'moderation_status': ModerationStatus.PENDING.value,
            'moderation_score': None,
            'moderation_reason': None,
            'moderated_at': None,
            'moderated_by': None
        }
        log_entry = {
            'moderation_type': 'reset',
            'score': None,
            'action': ModerationStatus.PENDING.value,
            'reason': 'Reset for re-moderation',
            'details': {},
            'moderated_by': actor,
            'moderated_at': datetime.utcnow()
        }
        return await self.db_service.apply_moderation_transition(image_id, fields, log_entry)
