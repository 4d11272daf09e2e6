# tradehub/services/quote_gate.py
"""
Quote Submission Gate.

Re-validates eligibility against current store state at submission time and,
when everything passes, claims a quote slot and records the quote in one
transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from tradehub.services import eligibility
from tradehub.services.date_utils import billing_month_key
from tradehub.services.exceptions import DuplicateQuoteError, StoreError
from tradehub.services.records import MatchingSettings

logger = logging.getLogger(__name__)

INVALID_PRICE = 'INVALID_PRICE'
CAP_RACE_LOST = 'CAP_RACE_LOST'
NO_ACTIVE_QUOTE = 'NO_ACTIVE_QUOTE'

REJECTION_MESSAGES = dict(eligibility.REASON_MESSAGES)
REJECTION_MESSAGES.update({
    INVALID_PRICE: 'Quote price must be a positive amount in cents',
    CAP_RACE_LOST: 'Someone just took the last quote slot on this tender',
    NO_ACTIVE_QUOTE: 'You have no active quote on this tender',
})

CAP_REJECTIONS = (eligibility.QUOTE_CAP_REACHED, CAP_RACE_LOST)


@dataclass(frozen=True)
class QuoteRejection:
    kind: str
    message: str

    @classmethod
    def of(cls, kind, message=None):
        return cls(kind=kind, message=message or REJECTION_MESSAGES.get(kind, kind))

    @property
    def is_cap_rejection(self) -> bool:
        return self.kind in CAP_REJECTIONS


@dataclass(frozen=True)
class SubmissionResult:
    quote: Optional[object] = None
    rejection: Optional[QuoteRejection] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None


def _reject(kind, message=None, tender_id=None, viewer=None):
    rejection = QuoteRejection.of(kind, message)
    logger.info(
        f"Quote rejected: tender={tender_id} viewer={getattr(viewer, 'id', None)} reason={rejection.kind}"
    )
    return SubmissionResult(rejection=rejection)


def _valid_price(price_cents):
    return isinstance(price_cents, int) and not isinstance(price_cents, bool) and price_cents > 0


def _lost_claim_reason(repository, viewer, tender_id):
    """Rejection for a slot claim that matched no row."""
    if repository.active_quote(tender_id, viewer.id) is not None:
        return eligibility.DUPLICATE_QUOTE
    current = repository.get_tender(tender_id)
    if current is None or not current.is_publicly_visible:
        return eligibility.TENDER_NOT_OPEN
    return CAP_RACE_LOST


def attempt_submit_quote(repository, viewer, tender_id, price_cents, notes=None, settings=None, now=None):
    """
    Submit a quote on behalf of a viewer.

    Args:
        repository (TenderRepository): Per-request store access
        viewer (ViewerProfile or None): Submitting professional
        tender_id (int): Tender being quoted on
        price_cents (int): Quoted price, must be positive
        notes (str, optional): Free-text notes for the tender owner
        settings (MatchingSettings, optional): Quota and cap limits
        now (datetime, optional): Submission time, used for the billing month

    Returns:
        SubmissionResult: .quote on success, .rejection otherwise

    Raises:
        StoreError: the store failed; the transaction has been rolled back
    """
    settings = settings or MatchingSettings()
    now = now or datetime.utcnow()

    if not _valid_price(price_cents):
        return _reject(INVALID_PRICE, tender_id=tender_id, viewer=viewer)
    if viewer is None:
        return _reject(eligibility.SIGN_IN_REQUIRED, tender_id=tender_id)

    tender = repository.get_tender(tender_id)
    if tender is None:
        return _reject(eligibility.TENDER_NOT_FOUND, tender_id=tender_id, viewer=viewer)

    month_key = billing_month_key(now, settings.billing_timezone)
    activity = repository.viewer_activity(viewer.id, month_key)

    decision = eligibility.evaluate_eligibility(viewer, tender, activity, settings)
    if not decision.can_quote:
        return _reject(decision.reason_code, decision.reason, tender_id=tender_id, viewer=viewer)

    try:
        if not repository.claim_quote_slot(tender.id, tender.effective_quote_cap(settings)):
            repository.rollback()
            return _reject(_lost_claim_reason(repository, viewer, tender.id), tender_id=tender_id, viewer=viewer)

        if tender.limited_quotes_enabled and not viewer.is_premium:
            repository.lock_viewer(viewer.id)
            if repository.free_quotes_used(viewer.id, month_key) >= settings.free_monthly_quote_limit:
                repository.rollback()
                return _reject(eligibility.MONTHLY_QUOTA_REACHED, tender_id=tender_id, viewer=viewer)

        quote = repository.add_quote(
            tender_id=tender.id,
            contractor_id=viewer.id,
            trade=viewer.trade,
            price_cents=price_cents,
            notes=notes,
            billing_mode=viewer.billing_mode,
            billing_month_key=month_key,
            submitted_at=now,
        )
        repository.commit()
    except DuplicateQuoteError:
        repository.rollback()
        return _reject(eligibility.DUPLICATE_QUOTE, tender_id=tender_id, viewer=viewer)
    except StoreError:
        repository.rollback()
        raise

    logger.info(f"Quote {quote.id} accepted: tender={tender.id} viewer={viewer.id} month={month_key}")
    return SubmissionResult(quote=quote)


def withdraw_quote(repository, viewer, tender_id):
    """
    Withdraw the viewer's live quote on a tender.

    The tender's quote_count_total is left as is; a withdrawn quote still
    used its slot.
    """
    if viewer is None:
        return _reject(eligibility.SIGN_IN_REQUIRED, tender_id=tender_id)

    quote = repository.active_quote(tender_id, viewer.id)
    if quote is None:
        return _reject(NO_ACTIVE_QUOTE, tender_id=tender_id, viewer=viewer)

    try:
        repository.withdraw(quote)
        repository.commit()
    except StoreError:
        repository.rollback()
        raise

    logger.info(f"Quote {quote.id} withdrawn: tender={tender_id} viewer={viewer.id}")
    return SubmissionResult(quote=quote)
