# tradehub/services/tender_search.py
"""
Filter & Rank Pipeline.

Turns candidate tenders into the ordered list a viewer sees: eligibility
first, then the viewer's own filters, then the chosen sort. Anonymous viewers
get the same set of tenders with project details masked.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple

from tradehub.services.date_utils import (
    billing_month_key,
    date_ranges_overlap,
    format_date_for_response,
    parse_iso_date,
)
from tradehub.services.eligibility import evaluate_eligibility, public_quote_status
from tradehub.services.exceptions import StoreError, ValidationError
from tradehub.services.records import MatchingSettings
from tradehub.services.trades import normalize_trade

logger = logging.getLogger(__name__)

SORT_RECOMMENDED = 'recommended'
SORT_PREMIUM = 'premium'
SORT_NEAREST = 'nearest'
SORT_RATING = 'rating'
SORT_NAME = 'name'
SORT_MODES = (SORT_RECOMMENDED, SORT_PREMIUM, SORT_NEAREST, SORT_RATING, SORT_NAME)

VIEW_LISTED = 'listed'
VIEW_MINE = 'mine'

LISTING_ERROR_MESSAGE = 'Tenders could not be loaded right now. Please try again.'

HIDDEN_PROJECT_NAME = 'Project details hidden'
HIDDEN_DESCRIPTION = 'Description hidden - sign in to view'
SIGN_IN_CALL_TO_ACTION = 'Sign in to view'

MASKED_FOR_ANONYMOUS = ('project_name', 'project_description', 'budget', 'timeline')


@dataclass(frozen=True)
class TenderFilters:
    search: str = ''
    # Canonical trade per selected entry, None where the entry was not recognised
    trades: Tuple[Optional[str], ...] = ()
    min_budget_cents: Optional[int] = None
    max_budget_cents: Optional[int] = None
    include_no_budget: bool = True
    available_from: Optional[date] = None
    available_to: Optional[date] = None
    sort: str = SORT_RECOMMENDED
    view: str = VIEW_LISTED

    @classmethod
    def from_args(cls, args):
        """Build filters from request query arguments, raising ValidationError on bad input."""
        raw_trades = [t for t in (args.get('trades') or '').split(',') if t.strip()]

        sort = (args.get('sort') or SORT_RECOMMENDED).strip().lower()
        if sort not in SORT_MODES:
            raise ValidationError(f"Unknown sort '{sort}'", field='sort')

        view = (args.get('view') or VIEW_LISTED).strip().lower()
        if view not in (VIEW_LISTED, VIEW_MINE):
            raise ValidationError(f"Unknown view '{view}'", field='view')

        min_budget = _cents_arg(args, 'min_budget_cents')
        max_budget = _cents_arg(args, 'max_budget_cents')
        if min_budget is not None and max_budget is not None and min_budget > max_budget:
            raise ValidationError('min_budget_cents cannot exceed max_budget_cents', field='min_budget_cents')

        return cls(
            search=(args.get('search') or '').strip(),
            trades=tuple(normalize_trade(t) for t in raw_trades),
            min_budget_cents=min_budget,
            max_budget_cents=max_budget,
            include_no_budget=_bool_arg(args.get('include_no_budget'), default=True),
            available_from=_date_arg(args, 'available_from'),
            available_to=_date_arg(args, 'available_to'),
            sort=sort,
            view=view,
        )


def _cents_arg(args, name):
    value = args.get(name)
    if value in (None, ''):
        return None
    try:
        cents = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a whole number of cents", field=name)
    if cents < 0:
        raise ValidationError(f"{name} cannot be negative", field=name)
    return cents


def _date_arg(args, name):
    try:
        return parse_iso_date(args.get(name))
    except ValueError as e:
        raise ValidationError(str(e), field=name)


def _bool_arg(value, default):
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class ListedTender:
    tender: dict
    can_quote: bool
    reason: Optional[str] = None
    reason_code: Optional[str] = None
    masked_fields: List[str] = field(default_factory=list)
    distance_km: Optional[float] = None
    quote_status: str = ''
    call_to_action: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    # Sort inputs, not serialised
    record: object = field(default=None, repr=False, compare=False)

    def to_dict(self):
        return {
            'tender': self.tender,
            'can_quote': self.can_quote,
            'reason': self.reason,
            'reason_code': self.reason_code,
            'masked_fields': list(self.masked_fields),
            'distance_km': round(self.distance_km, 1) if self.distance_km is not None else None,
            'quote_status': self.quote_status,
            'call_to_action': self.call_to_action,
            'warnings': list(self.warnings),
        }


@dataclass
class TenderListing:
    items: List[ListedTender] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self):
        return {
            'items': [item.to_dict() for item in self.items],
            'error': self.error,
            'count': len(self.items),
        }


# --- Filters ---------------------------------------------------------------

def matches_search(tender, search):
    if not search:
        return True
    needle = search.lower()
    return needle in tender.project_name.lower() or needle in (tender.location.suburb or '').lower()


def matches_trades(tender, trades):
    if not trades:
        return True
    return any(trade is not None and trade in tender.canonical_trades for trade in trades)


def matches_budget(tender, min_cents, max_cents, include_no_budget=True):
    """Budget band overlap; tenders without any budget follow include_no_budget."""
    low, high = tender.budget_band()
    if low is None and high is None:
        return include_no_budget
    if max_cents is not None and low is not None and low > max_cents:
        return False
    if min_cents is not None and high is not None and high < min_cents:
        return False
    return True


def matches_dates(tender, available_from, available_to):
    return date_ranges_overlap(tender.desired_start_date, tender.desired_end_date, available_from, available_to)


def apply_filters(tender, filters):
    return (
        matches_search(tender, filters.search)
        and matches_trades(tender, filters.trades)
        and matches_budget(tender, filters.min_budget_cents, filters.max_budget_cents, filters.include_no_budget)
        and matches_dates(tender, filters.available_from, filters.available_to)
    )


# --- Ranking ---------------------------------------------------------------

def _rating(tender):
    return tender.owner.rating_avg if tender.owner else 0.0


def recommended_score(tender):
    """Average rating damped by how many ratings back it up."""
    if tender.owner is None:
        return 0.0
    return tender.owner.rating_avg * math.log10(tender.owner.rating_count + 1)


def _sort_key(mode):
    if mode == SORT_PREMIUM:
        return lambda item: (
            not item.record.is_premium_tier,
            not (item.record.owner and item.record.owner.verified),
            -_rating(item.record),
            item.record.project_name.lower(),
        )
    if mode == SORT_NEAREST:
        return lambda item: (item.distance_km is None, item.distance_km or 0.0)
    if mode == SORT_RATING:
        return lambda item: -_rating(item.record)
    if mode == SORT_NAME:
        return lambda item: item.record.project_name.lower()
    return lambda item: -recommended_score(item.record)


def rank(items, mode):
    """Stable sort, so ties keep the store's newest-first order."""
    return sorted(items, key=_sort_key(mode))


# --- Presentation ----------------------------------------------------------

def serialize_tender(tender, viewer):
    """
    Tender as the viewer may see it.

    Returns:
        tuple: (dict, list of masked field names)
    """
    is_owner = viewer is not None and viewer.id == tender.builder_id
    is_admin = viewer is not None and viewer.is_admin
    anonymous = viewer is None
    masked = list(MASKED_FOR_ANONYMOUS) if anonymous else []

    builder = None
    if tender.owner is not None:
        builder = {
            'id': tender.owner.id,
            'display_name': tender.owner.display_name,
            'rating_avg': tender.owner.rating_avg,
            'rating_count': tender.owner.rating_count,
            'verified': tender.owner.verified,
        }
    if anonymous or (tender.is_name_hidden and not (is_owner or is_admin)):
        builder = None
        masked.append('builder')

    requirements = []
    for req in tender.requirements:
        sees_detail = is_owner or is_admin or (viewer is not None and viewer.trade == req.trade)
        requirements.append({
            'trade': req.trade or req.raw_trade,
            'sub_description': req.sub_description if sees_detail else None,
            'min_budget_cents': None if anonymous else req.min_budget_cents,
            'max_budget_cents': None if anonymous else req.max_budget_cents,
        })

    data = {
        'id': tender.id,
        'status': tender.status,
        'approval_status': tender.approval_status,
        'tier': tender.tier,
        'project_name': HIDDEN_PROJECT_NAME if anonymous else tender.project_name,
        'project_description': HIDDEN_DESCRIPTION if anonymous else tender.project_description,
        'suburb': tender.location.suburb,
        'postcode': tender.location.postcode,
        'desired_start_date': None if anonymous else format_date_for_response(tender.desired_start_date),
        'desired_end_date': None if anonymous else format_date_for_response(tender.desired_end_date),
        'is_name_hidden': tender.is_name_hidden,
        'limited_quotes_enabled': tender.limited_quotes_enabled,
        'quote_cap_total': tender.quote_cap_total,
        'quote_count_total': tender.quote_count_total,
        'builder': builder,
        'trade_requirements': requirements,
        'created_at': format_date_for_response(tender.created_at),
    }
    return data, masked


def present(viewer, tender, decision, settings):
    data, masked = serialize_tender(tender, viewer)
    return ListedTender(
        tender=data,
        can_quote=decision.can_quote,
        reason=decision.reason,
        reason_code=decision.reason_code,
        masked_fields=masked,
        distance_km=decision.distance_km,
        quote_status=public_quote_status(tender, settings),
        call_to_action=SIGN_IN_CALL_TO_ACTION if viewer is None else None,
        warnings=decision.warnings,
        record=tender,
    )


# --- Pipeline --------------------------------------------------------------

def list_eligible_tenders(repository, viewer, filters=None, settings=None, activity=None, now=None):
    """
    Ordered tenders the viewer may see.

    Args:
        repository (TenderRepository): Per-request store access
        viewer (ViewerProfile or None): None for anonymous visitors
        filters (TenderFilters, optional): Search, trade, budget, date and sort options
        settings (MatchingSettings, optional): Radius and quota limits
        activity (ViewerActivity, optional): Preloaded viewer activity

    Returns:
        TenderListing: items in display order; on a store failure items is
        empty and error carries a message for the viewer
    """
    filters = filters or TenderFilters()
    settings = settings or MatchingSettings()

    try:
        if filters.view == VIEW_MINE:
            candidates = repository.list_owned(viewer.id) if viewer is not None else []
        else:
            candidates = repository.list_candidates(include_unpublished=viewer is not None and viewer.is_admin)
        if activity is None and viewer is not None:
            month_key = billing_month_key(now, settings.billing_timezone)
            activity = repository.viewer_activity(viewer.id, month_key)
    except StoreError as e:
        logger.error(f"Tender listing failed for viewer {getattr(viewer, 'id', None)}: {e}")
        return TenderListing(items=[], error=LISTING_ERROR_MESSAGE)

    items = []
    for tender in candidates:
        decision = evaluate_eligibility(viewer, tender, activity, settings)
        if not decision.visible:
            continue
        if not apply_filters(tender, filters):
            continue
        items.append(present(viewer, tender, decision, settings))

    return TenderListing(items=rank(items, filters.sort))


def get_tender_detail(repository, viewer, tender_id, settings=None, now=None):
    """
    A single tender with the viewer's eligibility, or None when it is missing
    or not visible to them. Store failures propagate as StoreError.
    """
    settings = settings or MatchingSettings()

    tender = repository.get_tender(tender_id)
    if tender is None:
        return None

    activity = None
    if viewer is not None:
        activity = repository.viewer_activity(viewer.id, billing_month_key(now, settings.billing_timezone))

    decision = evaluate_eligibility(viewer, tender, activity, settings)
    if not decision.visible:
        return None
    return present(viewer, tender, decision, settings)
