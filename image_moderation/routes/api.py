from typing import Any, Dict, List

from flask import Blueprint, current_app, request
from pydantic import ValidationError

from image_moderation.schemas import UploadForm
from image_moderation.services.error_tracker import error_tracker
from image_moderation.services.image_storage import UploadRejected
from image_moderation.services.moderation_service import get_moderation_service
from image_moderation.utils.error_handlers import (
    APIError,
    api_success_response,
    handle_api_error,
)

api_bp = Blueprint('api', __name__)


@api_bp.route('/upload', methods=['POST'])
@handle_api_error
async def upload_images():
    """
    Store uploaded listing images and queue each one for moderation.
    Every returned record is still pending; verdicts arrive over the socket
    or through GET /api/images/<id>.
    """
    try:
        form = UploadForm(listing_id=request.form.get('listing_id'))
    except ValidationError:
        raise APIError('A positive integer listing_id is required', 400, 'VALIDATION_ERROR')

    files = [f for f in request.files.getlist('images') if f and f.filename]
    if not files:
        raise APIError('No images uploaded', 400, 'NO_FILES')

    max_files = current_app.config['MAX_FILES_PER_REQUEST']
    if len(files) > max_files:
        raise APIError(f'At most {max_files} images per request', 400, 'TOO_MANY_FILES')

    service = get_moderation_service()
    storage = service.storage

    # Check every file before any of them is written
    uploads = []
    for upload in files:
        data = upload.read()
        try:
            storage.validate_upload(upload.mimetype, len(data))
        except UploadRejected as e:
            raise APIError(str(e), 400, 'INVALID_UPLOAD', {'filename': upload.filename})
        uploads.append((upload, data))

    created: List[Dict[str, Any]] = []
    for upload, data in uploads:
        key, path, url = storage.save(data, upload.mimetype)
        image = await service.db_service.create_image_record(
            listing_id=form.listing_id,
            image_url=url,
            storage_key=key,
            original_filename=upload.filename,
            mime_type=upload.mimetype,
            file_size=len(data)
        )
        created.append(image)
        current_app.logger.info(f"Stored image {image['id']} for listing {form.listing_id}")

        if current_app.config.get('MODERATE_IN_BACKGROUND', True):
            service.schedule_moderation(current_app._get_current_object(), path, image['id'])
        else:
            try:
                await service.moderate_image(path, image['id'])
            except Exception as e:
                current_app.logger.error(f"Inline moderation failed for image {image['id']}: {str(e)}")
                error_tracker.track_error('moderation', str(e), image_id=image['id'])

    response = api_success_response({
        'images': created,
        'count': len(created)
    }, message='Images uploaded and queued for moderation')
    return response, 201


@api_bp.route('/<int:image_id>', methods=['GET'])
@handle_api_error
async def get_image(image_id):
    """Get an image record with its moderation fields"""
    image = await get_moderation_service().get_image(image_id)
    return api_success_response({'image': image})
