# awwal/models.py

from datetime import datetime
from . import db


class User(db.Model):
    """A signed-in account, linked to a Google identity by its `sub` claim."""
    __tablename__ = 'user'

    id = db.Column(db.Integer, primary_key=True)
    google_user_id = db.Column(db.String(255), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=True)
    name = db.Column(db.String(120), nullable=True)
    image_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    last_seen_at = db.Column(db.DateTime, nullable=True)

    attendances = db.relationship('PrayerAttendance', backref='user', lazy='dynamic', cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "image": self.image_url,
        }

    def __repr__(self):
        return f'<User {self.email} (Google: {self.google_user_id})>'


class PrayerAttendance(db.Model):
    """One attended prayer per user, prayer name and calendar date."""
    __tablename__ = 'prayer_attendance'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'prayer_name', 'prayer_date', name='uq_user_prayer_date'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    prayer_name = db.Column(db.String(20), nullable=False)
    prayer_date = db.Column(db.Date, nullable=False, index=True)

    # Time-of-day strings, "HH:MM"
    scheduled_time = db.Column(db.String(5), nullable=False)
    custom_time = db.Column(db.String(5), nullable=True)

    # Derived from scheduled_time and custom_time, only for the 'detailed' method
    is_early = db.Column(db.Boolean, nullable=True)
    delay_minutes = db.Column(db.Integer, nullable=True)

    # 'simple' or 'detailed'
    method = db.Column(db.String(10), default='simple', nullable=False)

    attended_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<PrayerAttendance {self.prayer_name} {self.prayer_date} user:{self.user_id}>'
