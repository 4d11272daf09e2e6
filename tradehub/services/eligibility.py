# tradehub/services/eligibility.py
"""
Eligibility Evaluator.

Single source of truth for whether a viewer may see a tender and whether they
may quote on it. Both the listing pipeline and the quote submission gate call
evaluate_eligibility(); neither re-implements any of these rules.

Rules run in order and the first failing rule decides the outcome:

1. Lifecycle: non-owners and non-admins only see LIVE/PUBLISHED + APPROVED tenders.
2. Ownership/admin bypass: owners and admins always see the tender.
3. Trade match: the viewer's primary trade must match a trade requirement.
   Tenders with no trades or a budget minimum above its maximum match nobody.
4. Radius: restricted tiers hide tenders further away than the viewer's radius.
5. Write-path rules (can_quote only): duplicate quote, quote cap, monthly
   free quota, ABN.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from tradehub.models.tender import STATUS_CANCELLED, STATUS_CLOSED, STATUS_DRAFT, STATUS_PENDING_APPROVAL
from tradehub.services.geo import distance_km
from tradehub.services.records import MatchingSettings, ViewerActivity

logger = logging.getLogger(__name__)

# Reason codes
TENDER_NOT_FOUND = 'TENDER_NOT_FOUND'
TENDER_NOT_OPEN = 'TENDER_NOT_OPEN'
OWN_TENDER = 'OWN_TENDER'
SIGN_IN_REQUIRED = 'SIGN_IN_REQUIRED'
NO_TRADE_REQUIREMENTS = 'NO_TRADE_REQUIREMENTS'
INVALID_TENDER_CONFIG = 'INVALID_TENDER_CONFIG'
TRADE_MISMATCH = 'TRADE_MISMATCH'
OUT_OF_RADIUS = 'OUT_OF_RADIUS'
DUPLICATE_QUOTE = 'DUPLICATE_QUOTE'
QUOTE_CAP_REACHED = 'QUOTE_CAP_REACHED'
MONTHLY_QUOTA_REACHED = 'MONTHLY_QUOTA_REACHED'
ABN_REQUIRED = 'ABN_REQUIRED'
ABN_NOT_VERIFIED = 'ABN_NOT_VERIFIED'

REASON_MESSAGES = {
    TENDER_NOT_FOUND: 'Tender not found',
    TENDER_NOT_OPEN: 'This tender is not open for quotes',
    OWN_TENDER: 'You cannot quote on your own tender',
    SIGN_IN_REQUIRED: 'Sign in to submit a quote',
    NO_TRADE_REQUIREMENTS: 'Trade mismatch: this tender has no trade requirements',
    INVALID_TENDER_CONFIG: 'This tender is not fully set up yet',
    TRADE_MISMATCH: 'Trade mismatch: this tender is not looking for your trade',
    OUT_OF_RADIUS: 'This tender is outside your search radius',
    DUPLICATE_QUOTE: 'You have already submitted a quote for this tender',
    QUOTE_CAP_REACHED: 'Quote limit reached for this tender',
    MONTHLY_QUOTA_REACHED: 'Monthly free quote limit reached. Upgrade to keep quoting on limited tenders',
    ABN_REQUIRED: 'ABN required to submit quotes',
    ABN_NOT_VERIFIED: 'ABN verification required',
}

# Public quote status labels
LABEL_CLOSED = 'Closed'
LABEL_COMING_SOON = 'Coming soon'
LABEL_QUOTES_FULL = 'Quotes full'
LABEL_LIMITED = 'Limited quotes'
LABEL_OPEN = 'Open quotes'


@dataclass(frozen=True)
class Eligibility:
    visible: bool
    can_quote: bool
    reason: Optional[str] = None
    reason_code: Optional[str] = None
    distance_km: Optional[float] = None
    warnings: List[str] = field(default_factory=list)


def _outcome(visible, code=None, distance=None, warnings=None):
    return Eligibility(
        visible=visible,
        can_quote=False,
        reason=REASON_MESSAGES.get(code),
        reason_code=code,
        distance_km=distance,
        warnings=list(warnings or []),
    )


def quote_blocker(viewer, tender, activity, settings):
    """
    Reason code blocking this viewer from quoting on a tender they can see, or None.

    Order: duplicate, tender cap, monthly free quota, ABN.
    """
    if not tender.is_publicly_visible:
        return TENDER_NOT_OPEN
    if tender.has_invalid_budget:
        return INVALID_TENDER_CONFIG
    if activity.has_quoted(tender.id):
        return DUPLICATE_QUOTE
    if viewer.trade is None or viewer.trade not in tender.canonical_trades:
        return TRADE_MISMATCH

    cap = tender.effective_quote_cap(settings)
    if cap is not None and tender.quote_count_total >= cap:
        return QUOTE_CAP_REACHED
    if (tender.limited_quotes_enabled and not viewer.is_premium
            and activity.free_quotes_this_month >= settings.free_monthly_quote_limit):
        return MONTHLY_QUOTA_REACHED

    # Unknown ABN statuses were folded to NONE when the profile was built
    if not viewer.has_abn:
        return ABN_REQUIRED
    if not viewer.abn_verified:
        return ABN_NOT_VERIFIED
    return None


def evaluate_eligibility(viewer, tender, activity=None, settings=None):
    """
    Decide visibility and quote eligibility for one (viewer, tender) pair.

    Args:
        viewer (ViewerProfile or None): None for an anonymous visitor
        tender (TenderRecord): Candidate tender
        activity (ViewerActivity, optional): Viewer's quotes and free-quota usage
        settings (MatchingSettings, optional): Radius and quota limits

    Returns:
        Eligibility
    """
    settings = settings or MatchingSettings()
    activity = activity or ViewerActivity()

    is_owner = viewer is not None and viewer.id == tender.builder_id
    is_admin = viewer is not None and viewer.is_admin
    distance = distance_km(viewer.search_origin, tender.location) if viewer is not None else None

    if not (is_owner or is_admin) and not tender.is_publicly_visible:
        return _outcome(False, TENDER_NOT_OPEN, distance)

    if is_owner:
        return _outcome(True, OWN_TENDER, distance, tender.data_quality_warnings())

    if viewer is None:
        if not tender.canonical_trades:
            return _outcome(False, NO_TRADE_REQUIREMENTS)
        if tender.has_invalid_budget:
            return _outcome(False, INVALID_TENDER_CONFIG)
        return _outcome(True, SIGN_IN_REQUIRED)

    warnings = []
    if is_admin:
        warnings = tender.data_quality_warnings()
    else:
        if not tender.canonical_trades:
            return _outcome(False, NO_TRADE_REQUIREMENTS, distance)
        if tender.has_invalid_budget:
            return _outcome(False, INVALID_TENDER_CONFIG, distance)
        if viewer.trade is None or viewer.trade not in tender.canonical_trades:
            return _outcome(False, TRADE_MISMATCH, distance)
        if tender.restricts_radius and distance is not None and distance > viewer.effective_radius_km(settings):
            return _outcome(False, OUT_OF_RADIUS, distance)

    blocker = quote_blocker(viewer, tender, activity, settings)
    if blocker is not None:
        return _outcome(True, blocker, distance, warnings)

    return Eligibility(visible=True, can_quote=True, distance_km=distance, warnings=warnings)


def public_quote_status(tender, settings=None):
    """Badge label describing how open a tender is to new quotes."""
    settings = settings or MatchingSettings()

    if tender.status in (STATUS_CLOSED, STATUS_CANCELLED):
        return LABEL_CLOSED
    if tender.status in (STATUS_DRAFT, STATUS_PENDING_APPROVAL):
        return LABEL_COMING_SOON

    cap = tender.effective_quote_cap(settings)
    if cap is not None and cap > 0:
        if tender.quote_count_total >= cap:
            return LABEL_QUOTES_FULL
        return LABEL_LIMITED
    return LABEL_OPEN
