# tradehub/models/user.py

from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .base import db


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), index=True, unique=True, nullable=False)
    email = db.Column(db.String(120), index=True, unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(120))
    business_name = db.Column(db.String(200))
    role = db.Column(db.String(20), default='member', nullable=False)  # 'admin', 'member'
    is_active = db.Column(db.Boolean, default=True)

    # Trade & business verification
    primary_trade = db.Column(db.String(100))
    abn = db.Column(db.String(20))
    abn_status = db.Column(db.String(20), default='NONE')  # VERIFIED, PENDING, REJECTED, NONE

    # Subscription
    active_plan = db.Column(db.String(40), default='NONE')
    subscription_status = db.Column(db.String(20), default='NONE')
    complimentary_premium_until = db.Column(db.DateTime, nullable=True)

    # Location & search radius
    preferred_radius_km = db.Column(db.Integer, default=15)
    location = db.Column(db.String(120))
    postcode = db.Column(db.String(10))
    location_lat = db.Column(db.Float, nullable=True)
    location_lng = db.Column(db.Float, nullable=True)
    search_location = db.Column(db.String(120))
    search_postcode = db.Column(db.String(10))
    search_lat = db.Column(db.Float, nullable=True)
    search_lng = db.Column(db.Float, nullable=True)

    # Public reputation
    rating_avg = db.Column(db.Float, default=0.0)
    rating_count = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_login = db.Column(db.DateTime)

    def set_password(self, password):
        """Creates a hashed password."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Checks a password against the stored hash."""
        return check_password_hash(self.password_hash, password)

    def display_name(self):
        return (self.business_name or self.name or self.username or '').strip()

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'name': self.name,
            'business_name': self.business_name,
            'role': self.role,
            'is_active': self.is_active,
            'primary_trade': self.primary_trade,
            'abn_status': self.abn_status,
            'active_plan': self.active_plan,
            'subscription_status': self.subscription_status,
            'preferred_radius_km': self.preferred_radius_km,
            'location': self.location,
            'postcode': self.postcode,
            'last_login': self.last_login.isoformat() if self.last_login else None,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

    def __repr__(self):
        return f'<User id={self.id} username={self.username} role={self.role}>'
