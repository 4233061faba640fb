from datetime import datetime

from sqlalchemy.orm import validates

from image_moderation import db


class ImageRecord(db.Model):
    __tablename__ = 'listing_images'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    # Owning listing; listings live outside this service
    listing_id = db.Column(db.Integer, nullable=False, index=True)
    image_url = db.Column(db.String(500), nullable=False)
    # Path relative to UPLOAD_FOLDER
    storage_key = db.Column(db.String(500), nullable=False)
    original_filename = db.Column(db.String(255))
    mime_type = db.Column(db.String(50))
    file_size = db.Column(db.Integer)

    # pending, approved, rejected, flagged
    moderation_status = db.Column(
        db.String(20), nullable=False, default='pending', index=True)
    moderation_score = db.Column(db.Float)  # 0.0 to 1.0
    moderation_reason = db.Column(db.Text)
    moderated_at = db.Column(db.DateTime)
    # 'system' or an admin id
    moderated_by = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    moderation_logs = db.relationship(
        'ModerationLog', backref='image', lazy=True,
        order_by='ModerationLog.moderated_at')

    @validates('moderation_score')
    def validate_score(self, key, value):
        if value is not None and not 0.0 <= value <= 1.0:
            raise ValueError(f"moderation_score must be within [0, 1], got {value}")
        return value

    def to_dict(self):
        return {
            'id': self.id,
            'listing_id': self.listing_id,
            'image_url': self.image_url,
            'storage_key': self.storage_key,
            'original_filename': self.original_filename,
            'mime_type': self.mime_type,
            'file_size': self.file_size,
            'moderation_status': self.moderation_status,
            'moderation_score': self.moderation_score,
            'moderation_reason': self.moderation_reason,
            'moderated_at': self.moderated_at.isoformat() if self.moderated_at else None,
            'moderated_by': self.moderated_by,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<ImageRecord {self.id} {self.moderation_status}>'
