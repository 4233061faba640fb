from flask import Blueprint, current_app, request

from image_moderation.schemas import FlaggedImagesQuery, ManualReviewRequest, StatsQuery
from image_moderation.services.moderation_service import get_moderation_service
from image_moderation.utils.admin_auth import require_admin
from image_moderation.utils.error_handlers import (
    APIError,
    api_success_response,
    handle_api_error,
    validate_json_request,
    validate_query_params,
)

manual_review_bp = Blueprint('manual_review', __name__)


@manual_review_bp.route('/flagged', methods=['GET'])
@require_admin
@validate_query_params(FlaggedImagesQuery)
@handle_api_error
async def flagged_images(validated_params=None):
    """Review queue: flagged images, most suspicious first"""
    images = await get_moderation_service().get_flagged_images(
        limit=validated_params.limit,
        include_pending=validated_params.include_pending
    )
    return api_success_response({
        'images': images,
        'count': len(images)
    })


@manual_review_bp.route('/review/<int:image_id>', methods=['POST'])
@require_admin
@validate_json_request(ManualReviewRequest)
@handle_api_error
async def review_image(image_id, validated_data=None):
    """Approve or reject an image by hand"""
    try:
        image = await get_moderation_service().manual_review(
            image_id,
            validated_data.action.value,
            request.admin_id,
            reason=validated_data.reason
        )
    except ValueError as e:
        raise APIError(str(e), 400, 'INVALID_REVIEW')

    current_app.logger.info(
        f"Admin {request.admin_id} set image {image_id} to {image['moderation_status']}")
    return api_success_response({'image': image}, message='Review recorded')


@manual_review_bp.route('/remoderate/<int:image_id>', methods=['POST'])
@require_admin
@handle_api_error
async def remoderate_image(image_id):
    """Reset an image to pending and run automated moderation again"""
    service = get_moderation_service()
    current_app.logger.info(f"Admin {request.admin_id} requested re-moderation of image {image_id}")
    result = await service.re_moderate_image(image_id)
    image = await service.get_image(image_id)
    return api_success_response({
        'image': image,
        'result': result.model_dump()
    })


@manual_review_bp.route('/stats', methods=['GET'])
@require_admin
@validate_query_params(StatsQuery)
@handle_api_error
async def moderation_stats(validated_params=None):
    stats = await get_moderation_service().get_moderation_stats(days=validated_params.days)
    return api_success_response({'stats': stats})


@manual_review_bp.route('/<int:image_id>/logs', methods=['GET'])
@require_admin
@handle_api_error
async def image_logs(image_id):
    """Full moderation history of one image, oldest first"""
    logs = await get_moderation_service().get_image_logs(image_id)
    return api_success_response({
        'image_id': image_id,
        'logs': logs
    })
