from datetime import datetime

from image_moderation import db


class ModerationLog(db.Model):
    """Append-only audit row, one per moderation decision or reset"""
    __tablename__ = 'moderation_logs'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    image_id = db.Column(db.Integer, db.ForeignKey(
        'listing_images.id'), nullable=False, index=True)
    # nsfw, manual_review, reset
    moderation_type = db.Column(db.String(30), nullable=False)
    score = db.Column(db.Float)
    # approved, rejected, flagged, pending
    action = db.Column(db.String(20), nullable=False)
    reason = db.Column(db.Text)
    details = db.Column(db.JSON)  # categories, diagnostics, timing
    moderated_by = db.Column(db.String(100), nullable=False)
    moderated_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'image_id': self.image_id,
            'moderation_type': self.moderation_type,
            'score': self.score,
            'action': self.action,
            'reason': self.reason,
            'details': self.details,
            'moderated_by': self.moderated_by,
            'moderated_at': self.moderated_at.isoformat() if self.moderated_at else None
        }

    def __repr__(self):
        return f'<ModerationLog {self.id} image={self.image_id} {self.action}>'
