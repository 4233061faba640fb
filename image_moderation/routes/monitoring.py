"""Monitoring and health check endpoints"""
from flask import Blueprint, jsonify, request

from image_moderation.services.error_tracker import error_tracker
from image_moderation.services.moderation_service import get_moderation_service
from image_moderation.utils.admin_auth import require_admin

monitoring_bp = Blueprint('monitoring', __name__)


@monitoring_bp.route('/health')
def health_check():
    """Basic health check endpoint for load balancers and uptime monitoring"""
    return jsonify({
        'status': 'healthy',
        'service': 'ImageModeration'
    })


@monitoring_bp.route('/health/errors')
@require_admin
async def recent_errors():
    """Recent tracked errors plus the moderation configuration in effect"""
    limit = request.args.get('limit', 20, type=int)
    limit = max(1, min(limit, 100))
    return jsonify({
        'success': True,
        'errors': error_tracker.get_error_stats(),
        'recent': error_tracker.get_recent_errors(limit),
        'moderation': get_moderation_service().get_system_stats()
    })
