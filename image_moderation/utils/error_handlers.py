"""
Error handling utilities for consistent error responses
"""
import logging
from functools import wraps

from flask import jsonify, request
from pydantic import BaseModel, ValidationError

from image_moderation.services.errors import (
    ImageNotFoundError,
    InvalidTransitionError,
    ModerationError,
)

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Custom exception for API errors with structured response data"""

    def __init__(self, message, status_code=400, error_code=None, details=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


def api_error_response(message, status_code=400, error_code=None, details=None):
    """Generate standardized API error response"""
    response_data = {
        'success': False,
        'error': message
    }

    if error_code:
        response_data['error_code'] = error_code

    if details:
        response_data['details'] = details

    return jsonify(response_data), status_code


def api_success_response(data=None, message=None):
    """Generate standardized API success response"""
    response_data = {'success': True}

    if message:
        response_data['message'] = message

    if data:
        response_data.update(data)

    return jsonify(response_data)


def _format_validation_errors(error: ValidationError):
    error_details = []
    for err in error.errors():
        field = '.'.join(str(loc) for loc in err['loc'])
        error_details.append(f"{field}: {err['msg']}")
    return error_details


def handle_api_error(f):
    """Decorator to handle API errors consistently"""
    @wraps(f)
    async def decorated_function(*args, **kwargs):
        try:
            return await f(*args, **kwargs)
        except APIError as e:
            logger.warning(f"API error in {f.__name__}: {e.message}")
            return api_error_response(
                e.message,
                e.status_code,
                e.error_code,
                e.details
            )
        except ImageNotFoundError as e:
            return api_error_response(e.message, 404, 'IMAGE_NOT_FOUND')
        except InvalidTransitionError as e:
            logger.warning(f"Rejected status change in {f.__name__}: {e.message}")
            return api_error_response(e.message, 409, 'INVALID_TRANSITION')
        except ModerationError as e:
            logger.error(f"Moderation error in {f.__name__}: {e.message}")
            return api_error_response("Internal server error", 500)
        except Exception as e:
            logger.error(f"Unexpected error in {f.__name__}: {str(e)}", exc_info=True)
            return api_error_response("Internal server error", 500)

    return decorated_function


def validate_json_request(schema_class: BaseModel):
    """
    Decorator to validate JSON request data against a Pydantic schema
    Adds 'validated_data' to the route function's keyword arguments
    """
    def decorator(f):
        @wraps(f)
        async def decorated_function(*args, **kwargs):
            json_data = request.get_json(silent=True)
            if json_data is None:
                return api_error_response(
                    "JSON data required",
                    400,
                    "MISSING_JSON_DATA"
                )
            if not isinstance(json_data, dict):
                return api_error_response(
                    "JSON object required",
                    400,
                    "VALIDATION_ERROR"
                )

            try:
                validated_data = schema_class(**json_data)
            except ValidationError as e:
                return api_error_response(
                    "Invalid input data",
                    400,
                    "VALIDATION_ERROR",
                    {"field_errors": _format_validation_errors(e)}
                )

            kwargs['validated_data'] = validated_data
            return await f(*args, **kwargs)

        return decorated_function
    return decorator


def validate_query_params(schema_class: BaseModel):
    """
    Decorator to validate query parameters against a Pydantic schema
    Adds 'validated_params' to the route function's keyword arguments
    """
    def decorator(f):
        @wraps(f)
        async def decorated_function(*args, **kwargs):
            query_data = request.args.to_dict()

            # Convert common query param types
            for key, value in query_data.items():
                if value.isdigit():
                    query_data[key] = int(value)
                elif value.lower() in ('true', 'false'):
                    query_data[key] = value.lower() == 'true'

            try:
                validated_params = schema_class(**query_data)
            except ValidationError as e:
                return api_error_response(
                    "Invalid query parameters",
                    400,
                    "VALIDATION_ERROR",
                    {"field_errors": _format_validation_errors(e)}
                )

            kwargs['validated_params'] = validated_params
            return await f(*args, **kwargs)

        return decorated_function
    return decorator
