"""
Async Centralized Database Service Layer for image moderation
Runs SQLAlchemy work in a thread pool with consistent error handling
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from image_moderation import db
from image_moderation.models.image_record import ImageRecord
from image_moderation.models.moderation_log import ModerationLog
from image_moderation.services.errors import (
    ImageNotFoundError,
    InvalidTransitionError,
    ModerationError,
    StorageError,
)

logger = logging.getLogger(__name__)


class DatabaseService:
    """Async centralized database operations with consistent error handling"""

    def __init__(self, max_workers: int = 8):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix='moderation-db')

    async def _safe_execute(self, operation_func, *args, **kwargs):
        """Execute database operation asynchronously in thread pool"""
        from flask import current_app

        loop = asyncio.get_running_loop()
        # The worker thread needs its own app context (and so its own session)
        app = current_app._get_current_object()

        def context_operation():
            with app.app_context():
                try:
                    return operation_func(*args, **kwargs)
                except Exception:
                    db.session.rollback()
                    raise

        try:
            return await loop.run_in_executor(self._executor, context_operation)
        except ModerationError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Database error: {str(e)}")
            raise StorageError(f"Database error: {str(e)}") from e

    # Image Operations
    async def create_image_record(self, listing_id: int, image_url: str, storage_key: str,
                                  original_filename: Optional[str] = None,
                                  mime_type: Optional[str] = None,
                                  file_size: Optional[int] = None) -> Dict[str, Any]:
        """Create a pending image record and return it as a dictionary"""
        def _create_image():
            image = ImageRecord(
                listing_id=listing_id,
                image_url=image_url,
                storage_key=storage_key,
                original_filename=original_filename,
                mime_type=mime_type,
                file_size=file_size,
                moderation_status='pending'
            )
            db.session.add(image)
            db.session.commit()
            # Return the needed data as a dictionary to avoid detached instance issues
            return image.to_dict()

        return await self._safe_execute(_create_image)

    async def get_image_by_id(self, image_id: int) -> Optional[Dict[str, Any]]:
        """Get image record by ID"""
        def _get_image():
            image = db.session.get(ImageRecord, image_id)
            return image.to_dict() if image else None

        return await self._safe_execute(_get_image)

    async def apply_moderation_transition(self, image_id: int, fields: Dict[str, Any],
                                          log_entry: Dict[str, Any],
                                          allowed_from: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """
        Update the image's moderation fields and append one audit row in a
        single transaction. Raises ImageNotFoundError for unknown ids and
        InvalidTransitionError when the current status is not in allowed_from.
        """
        allowed = set(allowed_from) if allowed_from is not None else None

        def _apply():
            image = db.session.query(ImageRecord).filter_by(
                id=image_id).with_for_update().first()
            if image is None:
                raise ImageNotFoundError(image_id)
            if allowed is not None and image.moderation_status not in allowed:
                raise InvalidTransitionError(
                    image_id, image.moderation_status, fields.get('moderation_status'))

            for key, value in fields.items():
                setattr(image, key, value)
            db.session.add(ModerationLog(image_id=image_id, **log_entry))
            db.session.commit()
            return image.to_dict()

        return await self._safe_execute(_apply)

    async def list_images_by_status(self, statuses: List[str], limit: int = 50) -> List[Dict[str, Any]]:
        """Images in the given statuses, highest score first, then oldest first"""
        def _list_images():
            images = ImageRecord.query.filter(
                ImageRecord.moderation_status.in_(statuses)
            ).order_by(
                ImageRecord.moderation_score.is_(None),
                ImageRecord.moderation_score.desc(),
                ImageRecord.created_at.asc(),
                ImageRecord.id.asc()
            ).limit(limit).all()
            return [image.to_dict() for image in images]

        return await self._safe_execute(_list_images) or []

    # Moderation Log Operations
    async def get_moderation_logs(self, image_id: int) -> List[Dict[str, Any]]:
        """All audit rows for an image in chronological order"""
        def _get_logs():
            logs = ModerationLog.query.filter_by(image_id=image_id)\
                .order_by(ModerationLog.moderated_at.asc(), ModerationLog.id.asc()).all()
            return [log.to_dict() for log in logs]

        return await self._safe_execute(_get_logs) or []

    # Statistics
    async def get_image_counts_by_status(self) -> Dict[str, int]:
        """Count image records per moderation status"""
        def _count():
            rows = db.session.query(
                ImageRecord.moderation_status, func.count(ImageRecord.id)
            ).group_by(ImageRecord.moderation_status).all()
            counts = {'pending': 0, 'approved': 0, 'rejected': 0, 'flagged': 0}
            for status, count in rows:
                counts[status] = count
            counts['total'] = sum(counts.values())
            return counts

        return await self._safe_execute(_count)

    async def get_log_stats_since(self, since: datetime) -> Dict[str, Any]:
        """Aggregate automated and manual decisions logged since a cutoff"""
        def _stats():
            rows = db.session.query(
                ModerationLog.action,
                func.count(ModerationLog.id),
                func.avg(ModerationLog.score)
            ).filter(
                ModerationLog.moderated_at >= since,
                ModerationLog.moderation_type != 'reset'
            ).group_by(ModerationLog.action).all()

            stats = {'total': 0, 'approved': 0, 'flagged': 0, 'rejected': 0}
            weighted_score = 0.0
            for action, count, avg_score in rows:
                stats[action] = count
                stats['total'] += count
                weighted_score += (avg_score or 0.0) * count
            stats['average_score'] = weighted_score / stats['total'] if stats['total'] else 0.0
            return stats

        return await self._safe_execute(_stats)
