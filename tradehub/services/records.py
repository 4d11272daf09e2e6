# tradehub/services/records.py
"""
Canonical records the matching engine works on.

Rows from the users/tenders tables are turned into these dataclasses once,
at the data-access boundary, so eligibility code never reads raw columns or
guesses between naming variants.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import FrozenSet, Optional, Tuple

from tradehub.models.quote import BILLING_FREE_MONTHLY_TRIAL, BILLING_SUBSCRIPTION
from tradehub.models.tender import APPROVAL_APPROVED, OPEN_STATUSES, PREMIUM_TIERS
from tradehub.services.date_utils import DEFAULT_BILLING_TIMEZONE
from tradehub.services.trades import normalize_trade

ROLE_ADMIN = 'admin'

ABN_VERIFIED = 'VERIFIED'
ABN_STATUSES = ('VERIFIED', 'PENDING', 'REJECTED', 'NONE')

PAID_PLANS = ('BUSINESS_PRO_20', 'SUBCONTRACTOR_PRO_10', 'ALL_ACCESS_PRO_26')


@dataclass(frozen=True)
class MatchingSettings:
    """Tunable limits for eligibility and quoting."""

    default_radius_km: int = 15
    max_premium_radius_km: int = 100
    free_monthly_quote_limit: int = 1
    limited_quotes_default_cap: int = 3
    billing_timezone: str = DEFAULT_BILLING_TIMEZONE

    @classmethod
    def from_config(cls, config):
        return cls(
            default_radius_km=int(config.get('DEFAULT_RADIUS_KM', cls.default_radius_km)),
            max_premium_radius_km=int(config.get('MAX_PREMIUM_RADIUS_KM', cls.max_premium_radius_km)),
            free_monthly_quote_limit=int(config.get('FREE_MONTHLY_QUOTE_LIMIT', cls.free_monthly_quote_limit)),
            limited_quotes_default_cap=int(config.get('LIMITED_QUOTES_DEFAULT_CAP', cls.limited_quotes_default_cap)),
            billing_timezone=config.get('BILLING_TIMEZONE', cls.billing_timezone),
        )


@dataclass(frozen=True)
class Location:
    suburb: Optional[str] = None
    postcode: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lng is not None

    @property
    def is_empty(self) -> bool:
        return not (self.suburb or self.postcode or self.has_coordinates)


@dataclass(frozen=True)
class TradeRequirement:
    trade: Optional[str]
    raw_trade: str = ''
    sub_description: str = ''
    min_budget_cents: Optional[int] = None
    max_budget_cents: Optional[int] = None
    id: Optional[int] = None

    @property
    def has_budget(self) -> bool:
        return self.min_budget_cents is not None or self.max_budget_cents is not None

    @property
    def budget_is_valid(self) -> bool:
        if self.min_budget_cents is None or self.max_budget_cents is None:
            return True
        return self.min_budget_cents <= self.max_budget_cents


@dataclass(frozen=True)
class OwnerSummary:
    """Public face of the professional who posted a tender."""

    id: int
    display_name: str = ''
    rating_avg: float = 0.0
    rating_count: int = 0
    verified: bool = False


@dataclass(frozen=True)
class TenderRecord:
    id: int
    builder_id: int
    status: str
    approval_status: str
    tier: str
    project_name: str = ''
    project_description: str = ''
    location: Location = field(default_factory=Location)
    desired_start_date: Optional[date] = None
    desired_end_date: Optional[date] = None
    is_name_hidden: bool = False
    limited_quotes_enabled: bool = False
    quote_cap_total: Optional[int] = None
    quote_count_total: int = 0
    requirements: Tuple[TradeRequirement, ...] = ()
    owner: Optional[OwnerSummary] = None
    created_at: Optional[datetime] = None

    @property
    def is_publicly_visible(self) -> bool:
        return self.status in OPEN_STATUSES and self.approval_status == APPROVAL_APPROVED

    @property
    def is_premium_tier(self) -> bool:
        return self.tier in PREMIUM_TIERS

    @property
    def restricts_radius(self) -> bool:
        # Unknown tiers fall back to the restricted behaviour
        return not self.is_premium_tier

    @property
    def canonical_trades(self) -> Tuple[str, ...]:
        return tuple(req.trade for req in self.requirements if req.trade)

    def requires_trade(self, trade) -> bool:
        canonical = normalize_trade(trade)
        return canonical is not None and canonical in self.canonical_trades

    @property
    def has_invalid_budget(self) -> bool:
        return any(not req.budget_is_valid for req in self.requirements)

    def budget_band(self):
        """(lowest minimum, highest maximum) across trades in cents; (None, None) when no budget is set."""
        minimums = [r.min_budget_cents for r in self.requirements if r.min_budget_cents is not None]
        maximums = [r.max_budget_cents for r in self.requirements if r.max_budget_cents is not None]
        return (min(minimums) if minimums else None, max(maximums) if maximums else None)

    def effective_quote_cap(self, settings):
        """
        Quote cap actually enforced for this tender.

        Premium tiers lift the cap unless limited quotes are switched on, and a
        limited-quotes tender without an explicit cap falls back to the default.
        """
        if self.limited_quotes_enabled:
            if self.quote_cap_total is not None:
                return self.quote_cap_total
            return settings.limited_quotes_default_cap
        if self.is_premium_tier:
            return None
        return self.quote_cap_total

    def data_quality_warnings(self):
        warnings = []
        if not self.canonical_trades:
            warnings.append('Tender has no recognised trade requirements and is hidden from professionals')
        for req in self.requirements:
            if req.raw_trade and req.trade is None:
                warnings.append(f"Trade '{req.raw_trade}' is not a recognised trade")
            if not req.budget_is_valid:
                warnings.append(
                    f"Budget for {req.trade or req.raw_trade} has a minimum above its maximum; "
                    "the tender is hidden from professionals until it is fixed"
                )
        return warnings

    @classmethod
    def from_model(cls, tender):
        requirements = tuple(
            TradeRequirement(
                id=req.id,
                trade=normalize_trade(req.trade),
                raw_trade=req.trade or '',
                sub_description=req.sub_description or '',
                min_budget_cents=req.min_budget_cents,
                max_budget_cents=req.max_budget_cents,
            )
            for req in tender.trade_requirements
        )

        owner = None
        if tender.builder is not None:
            builder = tender.builder
            owner = OwnerSummary(
                id=builder.id,
                display_name=builder.display_name(),
                rating_avg=float(builder.rating_avg or 0.0),
                rating_count=int(builder.rating_count or 0),
                verified=(builder.abn_status or '').upper() == ABN_VERIFIED,
            )

        return cls(
            id=tender.id,
            builder_id=tender.builder_id,
            status=(tender.status or '').upper(),
            approval_status=(tender.approval_status or '').upper(),
            tier=(tender.tier or '').upper(),
            project_name=tender.project_name or '',
            project_description=tender.project_description or '',
            location=Location(tender.suburb, tender.postcode, tender.lat, tender.lng),
            desired_start_date=tender.desired_start_date,
            desired_end_date=tender.desired_end_date,
            is_name_hidden=bool(tender.is_name_hidden),
            limited_quotes_enabled=bool(tender.limited_quotes_enabled),
            quote_cap_total=tender.quote_cap_total,
            quote_count_total=tender.quote_count_total or 0,
            requirements=requirements,
            owner=owner,
            created_at=tender.created_at,
        )


@dataclass(frozen=True)
class ViewerProfile:
    """The signed-in professional evaluating or quoting on tenders."""

    id: int
    role: str = 'member'
    primary_trade: Optional[str] = None
    abn: Optional[str] = None
    abn_status: str = 'NONE'
    is_premium: bool = False
    preferred_radius_km: Optional[int] = None
    base_location: Location = field(default_factory=Location)
    search_location: Optional[Location] = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def trade(self) -> Optional[str]:
        return normalize_trade(self.primary_trade)

    @property
    def has_abn(self) -> bool:
        return bool(self.abn and self.abn.strip())

    @property
    def abn_verified(self) -> bool:
        return self.has_abn and self.abn_status == ABN_VERIFIED

    @property
    def billing_mode(self) -> str:
        return BILLING_SUBSCRIPTION if self.is_premium else BILLING_FREE_MONTHLY_TRIAL

    @property
    def search_origin(self) -> Location:
        """Premium viewers may search from a custom location; everyone else uses their base."""
        if self.is_premium and self.search_location is not None and not self.search_location.is_empty:
            return self.search_location
        return self.base_location

    def effective_radius_km(self, settings) -> int:
        if not self.is_premium:
            return settings.default_radius_km
        preferred = self.preferred_radius_km or settings.default_radius_km
        return max(1, min(int(preferred), settings.max_premium_radius_km))

    @classmethod
    def from_user(cls, user, now=None):
        now = now or datetime.utcnow()

        plan = (user.active_plan or 'NONE').upper()
        status = (user.subscription_status or '').upper()
        complimentary = user.complimentary_premium_until
        is_premium = (plan in PAID_PLANS and status == 'ACTIVE') or (
            complimentary is not None and complimentary.replace(tzinfo=None) > now
        )

        abn_status = (user.abn_status or 'NONE').upper()
        if abn_status not in ABN_STATUSES:
            abn_status = 'NONE'

        search_location = None
        if user.search_location or user.search_postcode or user.search_lat is not None:
            search_location = Location(user.search_location, user.search_postcode, user.search_lat, user.search_lng)

        return cls(
            id=user.id,
            role=(user.role or 'member').lower(),
            primary_trade=user.primary_trade,
            abn=user.abn,
            abn_status=abn_status,
            is_premium=is_premium,
            preferred_radius_km=user.preferred_radius_km,
            base_location=Location(user.location, user.postcode, user.location_lat, user.location_lng),
            search_location=search_location,
        )


@dataclass(frozen=True)
class ViewerActivity:
    """What the viewer has already done this billing month."""

    month_key: str = ''
    quoted_tender_ids: FrozenSet[int] = frozenset()
    free_quotes_this_month: int = 0

    def has_quoted(self, tender_id) -> bool:
        return tender_id in self.quoted_tender_ids
