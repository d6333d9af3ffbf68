"""Task model for location-bound work assigned to a worker."""

from datetime import datetime
from dispatch import db


class Task(db.Model):
    """One unit of assigned work, addressed as tasks/{assigned_to}/{id}."""

    __tablename__ = 'tasks'

    # Ids are unique per worker only, so the key is (assigned_to, id)
    id = db.Column(db.String(32), primary_key=True)  # millisecond timestamp, see next_task_id()
    title = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=False)  # address as typed by the admin
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    time = db.Column(db.String(50), nullable=True)  # informational only, e.g. '09:30'
    assigned_to = db.Column(db.String(80), db.ForeignKey('users.username'), primary_key=True, index=True)
    assigned_by = db.Column(db.String(80), nullable=False)

    is_on_site = db.Column(db.Boolean, default=False, nullable=False)
    last_checked = db.Column(db.DateTime, nullable=True)
    last_location = db.Column(db.JSON, nullable=True)  # {latitude, longitude, accuracy, timestamp}

    completed = db.Column(db.Boolean, default=False, nullable=False, index=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    completed_location = db.Column(db.JSON, nullable=True)  # {latitude, longitude, accuracy}

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        """Convert task to dictionary."""
        return {
            'id': self.id,
            'title': self.title,
            'location': self.location,
            'coordinates': {
                'latitude': self.latitude,
                'longitude': self.longitude,
            },
            'time': self.time,
            'assigned_to': self.assigned_to,
            'assigned_by': self.assigned_by,
            'is_on_site': self.is_on_site,
            'last_checked': self.last_checked.isoformat() if self.last_checked else None,
            'last_location': self.last_location,
            'completed': self.completed,
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'completed_location': self.completed_location,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Task {self.assigned_to}/{self.id}: {self.title}>'
