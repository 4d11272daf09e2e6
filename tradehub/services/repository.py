# tradehub/services/repository.py
"""
Data store interface for tenders, quotes and viewers.

A repository is created per request around the Flask-SQLAlchemy scoped
session and handed to the services. It returns canonical records
(TenderRecord, ViewerProfile) for reads and turns every SQLAlchemyError into
a StoreError so callers only ever deal with one fault category.
"""

import logging
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import joinedload

from tradehub.models import Quote, Tender, TenderTradeRequirement, User, db
from tradehub.models.quote import BILLING_FREE_MONTHLY_TRIAL, QUOTE_SUBMITTED, QUOTE_WITHDRAWN
from tradehub.models.tender import APPROVAL_APPROVED, OPEN_STATUSES
from tradehub.services.exceptions import DuplicateQuoteError, StoreError
from tradehub.services.records import TenderRecord, ViewerActivity, ViewerProfile

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(action):
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"Store failure while {action}: {e}")
        raise StoreError(f"Could not {action}") from e


class TenderRepository:

    def __init__(self, session=None):
        self.session = session or db.session

    # --- Reads -------------------------------------------------------------

    def _tender_query(self):
        return (
            select(Tender)
            .options(joinedload(Tender.builder))
            .where(Tender.deleted_at.is_(None))
            .order_by(Tender.created_at.desc(), Tender.id.desc())
        )

    def list_candidates(self, include_unpublished=False):
        """
        Candidate tenders for the listing pipeline, newest first.

        Only publicly visible tenders are fetched unless include_unpublished is
        set (administrators); the evaluator still makes the final call.
        """
        query = self._tender_query()
        if not include_unpublished:
            query = query.where(
                Tender.status.in_(OPEN_STATUSES),
                Tender.approval_status == APPROVAL_APPROVED,
            )
        with _store_errors('list tenders'):
            tenders = self.session.execute(query).unique().scalars().all()
            return [TenderRecord.from_model(t) for t in tenders]

    def list_owned(self, owner_id):
        """Every non-deleted tender owned by one user, in any lifecycle state."""
        query = self._tender_query().where(Tender.builder_id == owner_id)
        with _store_errors('list owned tenders'):
            tenders = self.session.execute(query).unique().scalars().all()
            return [TenderRecord.from_model(t) for t in tenders]

    def get_tender_model(self, tender_id):
        with _store_errors('load tender'):
            tender = self.session.get(Tender, tender_id)
        if tender is None or tender.deleted_at is not None:
            return None
        return tender

    def get_tender(self, tender_id):
        tender = self.get_tender_model(tender_id)
        if tender is None:
            return None
        with _store_errors('load tender'):
            return TenderRecord.from_model(tender)

    def get_user(self, user_id):
        with _store_errors('load user'):
            return self.session.get(User, user_id)

    def get_viewer(self, user_id, now=None):
        user = self.get_user(user_id)
        if user is None or not user.is_active:
            return None
        return ViewerProfile.from_user(user, now=now)

    def _free_quotes_query(self, viewer_id, month_key):
        return (
            select(func.count(Quote.id))
            .where(
                Quote.contractor_id == viewer_id,
                Quote.billing_month_key == month_key,
                Quote.billing_mode == BILLING_FREE_MONTHLY_TRIAL,
            )
        )

    def viewer_activity(self, viewer_id, month_key):
        """
        Quotes the viewer holds and free-trial quotes used this billing month.

        Withdrawn quotes still use up the monthly free allowance.
        """
        quoted = (
            select(Quote.tender_id)
            .where(Quote.contractor_id == viewer_id, Quote.status != QUOTE_WITHDRAWN)
        )
        with _store_errors('load quote activity'):
            tender_ids = frozenset(self.session.execute(quoted).scalars().all())
            free_count = self.session.execute(self._free_quotes_query(viewer_id, month_key)).scalar() or 0
        return ViewerActivity(month_key=month_key, quoted_tender_ids=tender_ids, free_quotes_this_month=free_count)

    def free_quotes_used(self, viewer_id, month_key):
        with _store_errors('count free quotes'):
            return self.session.execute(self._free_quotes_query(viewer_id, month_key)).scalar() or 0

    def active_quote(self, tender_id, contractor_id):
        query = select(Quote).where(
            Quote.tender_id == tender_id,
            Quote.contractor_id == contractor_id,
            Quote.status != QUOTE_WITHDRAWN,
        )
        with _store_errors('load quote'):
            return self.session.execute(query).scalars().first()

    # --- Writes ------------------------------------------------------------

    def claim_quote_slot(self, tender_id, cap=None):
        """
        Atomically take one quote slot on a tender.

        A single conditional UPDATE increments quote_count_total only while the
        tender is still open and, when a cap applies, still below it. Returns
        False when no row matched (tender closed or cap taken meanwhile).
        """
        stmt = update(Tender).where(
            Tender.id == tender_id,
            Tender.deleted_at.is_(None),
            Tender.status.in_(OPEN_STATUSES),
            Tender.approval_status == APPROVAL_APPROVED,
        )
        if cap is not None:
            stmt = stmt.where(Tender.quote_count_total < cap)
        stmt = stmt.values(quote_count_total=Tender.quote_count_total + 1).execution_options(
            synchronize_session=False
        )

        with _store_errors('claim quote slot'):
            result = self.session.execute(stmt)
        return result.rowcount == 1

    def lock_viewer(self, viewer_id):
        """
        Row-lock the viewer inside the current transaction (SELECT ... FOR UPDATE).

        Serialises a viewer's concurrent free-quota spends. SQLite has no row
        locks; there the preceding slot claim already holds the database write lock.
        """
        query = select(User.id).where(User.id == viewer_id).with_for_update()
        with _store_errors('lock viewer'):
            self.session.execute(query)

    def add_quote(self, tender_id, contractor_id, trade, price_cents, notes, billing_mode, billing_month_key,
                  submitted_at=None):
        quote = Quote(
            tender_id=tender_id,
            contractor_id=contractor_id,
            trade=trade,
            status=QUOTE_SUBMITTED,
            price_cents=price_cents,
            notes=notes,
            billing_mode=billing_mode,
            billing_month_key=billing_month_key,
            submitted_at=submitted_at or datetime.utcnow(),
        )
        try:
            self.session.add(quote)
            self.session.flush()
        except IntegrityError as e:
            logger.info(f"Duplicate quote blocked by unique index: tender={tender_id} contractor={contractor_id}")
            raise DuplicateQuoteError('Quote already exists for this tender') from e
        except SQLAlchemyError as e:
            logger.error(f"Store failure while saving quote: {e}")
            raise StoreError('Could not save quote') from e
        return quote

    def withdraw(self, quote):
        with _store_errors('withdraw quote'):
            quote.status = QUOTE_WITHDRAWN
            self.session.flush()
        return quote

    def create_tender(self, builder_id, requirements, **fields):
        tender = Tender(builder_id=builder_id, **fields)
        for req in requirements:
            tender.trade_requirements.append(TenderTradeRequirement(**req))
        with _store_errors('create tender'):
            self.session.add(tender)
            self.session.flush()
        return tender

    def set_status(self, tender, status):
        with _store_errors('update tender status'):
            tender.status = status
            tender.updated_at = datetime.utcnow()
            self.session.flush()
        return tender

    def commit(self):
        with _store_errors('commit'):
            self.session.commit()

    def rollback(self):
        self.session.rollback()
