import asyncio
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from image_moderation.schemas import (
    ModerationResult,
    ModerationSettings,
    ModerationStatus,
    ReviewAction,
)

from .ai.deepai_client import DeepAIClient
from .database_service import DatabaseService
from .error_tracker import error_tracker
from .errors import ImageValidationError, InvalidTransitionError, ModerationError, StorageError
from .image_storage import LocalImageStorage
from .moderation.analyzer import ContentAnalyzer
from .moderation.combiner import combine_results
from .moderation.image_locks import ImageLockRegistry
from .moderation.state_store import SYSTEM_ACTOR, ModerationStateStore
from .moderation.validator import ImageValidator
from .moderation.websocket_notifier import WebSocketNotifier
from .watermark import add_watermark, watermark_path_for

logger = logging.getLogger(__name__)

TECHNICAL_ERROR = 'technical_error'
MAX_FLAGGED_LIMIT = 500


class ImageModerationService:
    """Main coordinator for the image moderation workflow"""

    def __init__(self, settings: ModerationSettings, db_service: DatabaseService,
                 classifier: DeepAIClient, storage: LocalImageStorage,
                 watermark_text: Optional[str] = None, workers: int = 4):
        self.settings = settings
        self.validator = ImageValidator(settings.min_dimension, settings.max_dimension)
        self.analyzer = ContentAnalyzer(settings.sample_stride)
        self.classifier = classifier
        self.db_service = db_service
        self.state_store = ModerationStateStore(db_service)
        self.storage = storage
        self.locks = ImageLockRegistry()
        self.websocket_notifier = WebSocketNotifier()
        self.watermark_text = watermark_text
        # Decode and pixel work stays off the event loop
        self._executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix='moderation-cpu')

    @classmethod
    def from_config(cls, app_config) -> 'ImageModerationService':
        settings = ModerationSettings(
            flag_threshold=app_config['MODERATION_FLAG_THRESHOLD'],
            nsfw_threshold=app_config['MODERATION_NSFW_THRESHOLD'],
            min_dimension=app_config['IMAGE_MIN_DIMENSION'],
            max_dimension=app_config['IMAGE_MAX_DIMENSION'],
            sample_stride=app_config['PIXEL_SAMPLE_STRIDE']
        )
        classifier = DeepAIClient(
            api_key=app_config.get('DEEPAI_API_KEY'),
            api_url=app_config['DEEPAI_API_URL'],
            timeout=app_config['EXTERNAL_CLASSIFIER_TIMEOUT'],
            nsfw_threshold=settings.nsfw_threshold
        )
        storage = LocalImageStorage(
            app_config['UPLOAD_FOLDER'],
            base_url=app_config['UPLOAD_URL_PREFIX'],
            max_file_size=app_config['MAX_UPLOAD_SIZE'],
            allowed_mime_types=app_config['ALLOWED_MIME_TYPES']
        )
        watermark_text = app_config['WATERMARK_TEXT'] if app_config.get(
            'WATERMARK_APPROVED_IMAGES') else None
        return cls(
            settings,
            DatabaseService(max_workers=app_config['DB_THREAD_POOL_WORKERS']),
            classifier,
            storage,
            watermark_text=watermark_text,
            workers=app_config['MODERATION_WORKERS']
        )

    # Automated pipeline
    async def moderate_image(self, file_path, image_id) -> ModerationResult:
        """Validate, analyze, classify and persist a verdict for a pending image"""
        async with self.locks.hold(image_id):
            return await self._run_pipeline(file_path, image_id)

    async def moderate_images(self, items: Iterable[Tuple[str, int]],
                              delay: float = 0.1) -> Dict[int, ModerationResult]:
        """Moderate several images one after another"""
        results = {}
        for file_path, image_id in items:
            try:
                results[image_id] = await self.moderate_image(file_path, image_id)
            except ModerationError as e:
                logger.error(f"Batch moderation skipped image {image_id}: {e.message}")
            if delay:
                await asyncio.sleep(delay)
        return results

    async def re_moderate_image(self, image_id) -> ModerationResult:
        """Reset an image to pending and run the full pipeline again"""
        async with self.locks.hold(image_id):
            image = await self.state_store.get_image(image_id)
            file_path = self.storage.resolve_path(image['storage_key'])
            await self.state_store.reset(image_id)
            logger.info(f"Re-moderating image {image_id} from {file_path}")
            return await self._run_pipeline(file_path, image_id)

    def schedule_moderation(self, app, file_path, image_id) -> threading.Thread:
        """Moderate after the upload response, on a daemon thread with its own loop"""
        def _run():
            with app.app_context():
                try:
                    asyncio.run(self.moderate_image(file_path, image_id))
                except Exception as e:
                    app.logger.error(f"Failed to moderate image {image_id}: {str(e)}", exc_info=True)
                    error_tracker.track_error('moderation', str(e), image_id=image_id)

        thread = threading.Thread(target=_run, daemon=True, name=f'moderate-{image_id}')
        thread.start()
        return thread

    async def _run_pipeline(self, file_path, image_id) -> ModerationResult:
        image = await self.state_store.get_image(image_id)
        if image['moderation_status'] != ModerationStatus.PENDING.value:
            raise InvalidTransitionError(image_id, image['moderation_status'], 'automated verdict')

        start_time = time.time()
        loop = asyncio.get_running_loop()
        try:
            try:
                report = await loop.run_in_executor(
                    self._executor, self.validator.ensure_valid, file_path)
            except ImageValidationError as e:
                result = ModerationResult(
                    is_appropriate=False,
                    score=1.0,
                    reason=f"{e.message} ({'; '.join(e.details)})",
                    categories=[TECHNICAL_ERROR]
                )
                await self._persist(image, ModerationStatus.REJECTED, result,
                                    {'validation': e.details}, start_time)
                return result

            analysis = await loop.run_in_executor(
                self._executor, self.analyzer.analyze_file, file_path)
            external = await self.classifier.classify(file_path, image_id=image_id)

            result = combine_results(analysis, external)
            status = self.settings.status_for(result)
            await self._persist(image, status, result, {
                'validation': report.details,
                'analysis': analysis.details,
                'heuristic_confidence': analysis.confidence,
                'external_checked': external is not None,
                'external_score': external.score if external is not None else None
            }, start_time)

        except Exception as e:
            return await self._fail_closed(image, e, start_time)

        if status == ModerationStatus.APPROVED and self.watermark_text:
            await self._watermark_approved(file_path, image_id)
        return result

    async def _persist(self, image, status, result, details, start_time):
        total_time = time.time() - start_time
        details = dict(details, processing_time=total_time)
        updated = await self.state_store.record_automated(image['id'], status, result, details)
        self.websocket_notifier.send_update_async(updated, status.value, result, total_time)
        return updated

    async def _fail_closed(self, image, error, start_time) -> ModerationResult:
        """Any unexpected failure ends as a rejected, maximally untrusted verdict"""
        image_id = image['id']
        if isinstance(error, StorageError):
            error_type = 'database'
        elif isinstance(error, (ValueError, TypeError, AttributeError)):
            error_type = 'processing'
        else:
            error_type = 'moderation'
        logger.error(f"Unexpected error during moderation of image {image_id}: {str(error)}",
                     exc_info=True)
        error_tracker.track_error(error_type, str(error), image_id=image_id)

        result = ModerationResult(
            is_appropriate=False,
            score=1.0,
            reason=f"Moderation error: {str(error)}",
            categories=[TECHNICAL_ERROR]
        )
        try:
            await self._persist(image, ModerationStatus.REJECTED, result,
                                {'error_type': error_type, 'is_error': True}, start_time)
        except Exception as save_error:
            # Don't raise - the caller still gets the fail-closed verdict
            logger.error(f"Failed to save error result for image {image_id}: {str(save_error)}")
        return result

    async def _watermark_approved(self, file_path, image_id):
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                self._executor, add_watermark, file_path,
                watermark_path_for(file_path), self.watermark_text)
        except OSError as e:
            logger.error(f"Watermarking failed for image {image_id}: {str(e)}")

    # Review workflow
    async def get_flagged_images(self, limit: int = 50,
                                 include_pending: bool = False) -> List[Dict[str, Any]]:
        """Images awaiting a human, most suspicious first"""
        statuses = [ModerationStatus.FLAGGED.value]
        if include_pending:
            statuses.append(ModerationStatus.PENDING.value)
        limit = max(1, min(int(limit), MAX_FLAGGED_LIMIT))
        return await self.db_service.list_images_by_status(statuses, limit=limit)

    async def manual_review(self, image_id, action, admin_id,
                            reason: Optional[str] = None) -> Dict[str, Any]:
        """Record an admin approve/reject decision without rerunning the pipeline"""
        action = ReviewAction(action)
        admin_id = str(admin_id or '').strip()
        if not admin_id or admin_id == SYSTEM_ACTOR:
            raise ValueError('Manual review requires an admin id')

        async with self.locks.hold(image_id):
            return await self.state_store.record_manual(image_id, action.status, admin_id, reason)

    # Lookups and statistics
    async def get_image(self, image_id) -> Dict[str, Any]:
        return await self.state_store.get_image(image_id)

    async def get_image_logs(self, image_id) -> List[Dict[str, Any]]:
        await self.state_store.get_image(image_id)
        return await self.db_service.get_moderation_logs(image_id)

    async def get_status_counts(self) -> Dict[str, int]:
        return await self.db_service.get_image_counts_by_status()

    async def get_moderation_stats(self, days: int = 30) -> Dict[str, Any]:
        """Current status counts plus decisions logged over the last N days"""
        since = datetime.utcnow() - timedelta(days=days)
        counts = await self.get_status_counts()
        decisions = await self.db_service.get_log_stats_since(since)
        return {
            'period_days': days,
            'by_status': counts,
            'decisions': decisions
        }

    def get_system_stats(self) -> Dict[str, Any]:
        return {
            'external_classifier_configured': self.classifier.is_configured(),
            'flag_threshold': self.settings.flag_threshold,
            'nsfw_threshold': self.settings.nsfw_threshold,
            'watermarking': self.watermark_text is not None
        }


def get_moderation_service() -> ImageModerationService:
    """The service built for the current application"""
    from flask import current_app
    return current_app.extensions['image_moderation']
