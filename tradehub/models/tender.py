# tradehub/models/tender.py

from datetime import datetime

from .base import db

# Lifecycle status
STATUS_DRAFT = 'DRAFT'
STATUS_PENDING_APPROVAL = 'PENDING_APPROVAL'
STATUS_LIVE = 'LIVE'
STATUS_PUBLISHED = 'PUBLISHED'
STATUS_CLOSED = 'CLOSED'
STATUS_CANCELLED = 'CANCELLED'

TENDER_STATUSES = (
    STATUS_DRAFT,
    STATUS_PENDING_APPROVAL,
    STATUS_LIVE,
    STATUS_PUBLISHED,
    STATUS_CLOSED,
    STATUS_CANCELLED,
)
OPEN_STATUSES = (STATUS_LIVE, STATUS_PUBLISHED)

# Moderation outcome, written by the admin workflow only
APPROVAL_PENDING = 'PENDING'
APPROVAL_APPROVED = 'APPROVED'
APPROVAL_REJECTED = 'REJECTED'

# Paid visibility tier
TIER_FREE_TRIAL = 'FREE_TRIAL'
TIER_BASIC_8 = 'BASIC_8'
TIER_PREMIUM_14 = 'PREMIUM_14'

TENDER_TIERS = (TIER_FREE_TRIAL, TIER_BASIC_8, TIER_PREMIUM_14)
PREMIUM_TIERS = (TIER_PREMIUM_14,)


class Tender(db.Model):
    __tablename__ = 'tenders'

    id = db.Column(db.Integer, primary_key=True)
    builder_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    status = db.Column(db.String(20), default=STATUS_DRAFT, nullable=False)
    approval_status = db.Column(db.String(20), default=APPROVAL_PENDING, nullable=False)
    tier = db.Column(db.String(20), default=TIER_FREE_TRIAL, nullable=False)

    is_name_hidden = db.Column(db.Boolean, default=False, nullable=False)
    limited_quotes_enabled = db.Column(db.Boolean, default=False, nullable=False)
    quote_cap_total = db.Column(db.Integer, nullable=True)
    quote_count_total = db.Column(db.Integer, default=0, nullable=False)

    project_name = db.Column(db.String(200), nullable=False)
    project_description = db.Column(db.Text, nullable=True)
    suburb = db.Column(db.String(120), nullable=True)
    postcode = db.Column(db.String(10), nullable=True)
    lat = db.Column(db.Float, nullable=True)
    lng = db.Column(db.Float, nullable=True)

    desired_start_date = db.Column(db.Date, nullable=True)
    desired_end_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    deleted_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    builder = db.relationship('User', backref=db.backref('tenders', lazy='dynamic'))
    trade_requirements = db.relationship(
        'TenderTradeRequirement',
        backref='tender',
        lazy='selectin',
        cascade="all, delete-orphan",
        order_by='TenderTradeRequirement.id',
    )
    quotes = db.relationship('Quote', backref='tender', lazy='dynamic', cascade="all, delete-orphan")

    def is_publicly_visible(self):
        return self.status in OPEN_STATUSES and self.approval_status == APPROVAL_APPROVED

    def __repr__(self):
        return f'<Tender id={self.id} status={self.status} approval={self.approval_status}>'


class TenderTradeRequirement(db.Model):
    __tablename__ = 'tender_trade_requirements'

    id = db.Column(db.Integer, primary_key=True)
    tender_id = db.Column(db.Integer, db.ForeignKey('tenders.id'), nullable=False, index=True)
    trade = db.Column(db.String(100), nullable=False)
    sub_description = db.Column(db.Text, nullable=True)
    min_budget_cents = db.Column(db.Integer, nullable=True)
    max_budget_cents = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
