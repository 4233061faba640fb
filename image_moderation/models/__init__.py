from .image_record import ImageRecord
from .moderation_log import ModerationLog

__all__ = ['ImageRecord', 'ModerationLog']
