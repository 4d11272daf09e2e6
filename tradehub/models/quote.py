# tradehub/models/quote.py

from datetime import datetime

from .base import db

QUOTE_SUBMITTED = 'SUBMITTED'
QUOTE_WITHDRAWN = 'WITHDRAWN'
QUOTE_ACCEPTED = 'ACCEPTED'
QUOTE_REJECTED = 'REJECTED'

BILLING_FREE_MONTHLY_TRIAL = 'FREE_MONTHLY_TRIAL'
BILLING_SUBSCRIPTION = 'SUBSCRIPTION'


class Quote(db.Model):
    __tablename__ = 'tender_quotes'

    id = db.Column(db.Integer, primary_key=True)
    tender_id = db.Column(db.Integer, db.ForeignKey('tenders.id'), nullable=False, index=True)
    contractor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    trade = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), default=QUOTE_SUBMITTED, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    billing_mode = db.Column(db.String(30), default=BILLING_FREE_MONTHLY_TRIAL, nullable=False)
    billing_month_key = db.Column(db.String(7), nullable=False, index=True)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    contractor = db.relationship('User', backref=db.backref('quotes', lazy='dynamic'))

    # One live quote per contractor per tender; withdrawn rows don't count
    __table_args__ = (
        db.Index(
            'uq_tender_quotes_active',
            'tender_id',
            'contractor_id',
            unique=True,
            sqlite_where=db.text("status != 'WITHDRAWN'"),
            postgresql_where=db.text("status != 'WITHDRAWN'"),
        ),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'tender_id': self.tender_id,
            'contractor_id': self.contractor_id,
            'trade': self.trade,
            'status': self.status,
            'price_cents': self.price_cents,
            'notes': self.notes,
            'billing_mode': self.billing_mode,
            'billing_month_key': self.billing_month_key,
            'submitted_at': self.submitted_at.isoformat() if self.submitted_at else None,
        }

    def __repr__(self):
        return f'<Quote id={self.id} tender={self.tender_id} contractor={self.contractor_id} status={self.status}>'
