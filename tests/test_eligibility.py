"""
Eligibility evaluator on plain records.

Covers the ordered rules: lifecycle, owner/admin bypass, trade match, radius,
and the write-path rules that only affect can_quote.
"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from tradehub.services import eligibility
from tradehub.services.eligibility import evaluate_eligibility, public_quote_status
from tradehub.services.records import Location, TradeRequirement, ViewerActivity, ViewerProfile

from conftest import BRISBANE, GOLD_COAST, TOWNSVILLE


def _at(point, suburb='Somewhere'):
    return Location(suburb, None, point[0], point[1])


@pytest.mark.unit
class TestExampleScenarios:

    def test_unknown_distance_fails_open(self, build_viewer, build_tender):
        """Basic tier tender without coordinates is visible to a matching electrician."""
        result = evaluate_eligibility(build_viewer(), build_tender())

        assert result.visible is True
        assert result.can_quote is True
        assert result.distance_km is None

    def test_trade_mismatch_hides_tender(self, build_viewer, build_tender):
        result = evaluate_eligibility(build_viewer(primary_trade='Plumber'), build_tender())

        assert result.visible is False
        assert result.reason_code == eligibility.TRADE_MISMATCH
        assert 'trade mismatch' in result.reason.lower()

    @pytest.mark.parametrize('premium', [False, True])
    @pytest.mark.parametrize('abn', ['51824753556', ''])
    def test_full_limited_tender_blocks_every_viewer(self, build_viewer, build_tender, premium, abn):
        tender = build_tender(limited_quotes_enabled=True, quote_cap_total=3, quote_count_total=3)
        result = evaluate_eligibility(build_viewer(is_premium=premium, abn=abn), tender)

        assert result.visible is True
        assert result.can_quote is False
        assert result.reason_code == eligibility.QUOTE_CAP_REACHED
        assert 'quote limit reached' in result.reason.lower()

    def test_empty_abn_can_browse_but_not_quote(self, build_viewer, build_tender):
        result = evaluate_eligibility(build_viewer(abn=''), build_tender())

        assert result.visible is True
        assert result.can_quote is False
        assert result.reason_code == eligibility.ABN_REQUIRED
        assert 'ABN required' in result.reason


@pytest.mark.unit
class TestLifecycle:

    @pytest.mark.parametrize('status,approval', [
        ('DRAFT', 'PENDING'),
        ('PENDING_APPROVAL', 'PENDING'),
        ('LIVE', 'PENDING'),
        ('LIVE', 'REJECTED'),
        ('PUBLISHED', 'REJECTED'),
        ('CLOSED', 'APPROVED'),
        ('CANCELLED', 'APPROVED'),
    ])
    def test_unpublished_hidden_from_others_but_not_owner_or_admin(self, build_viewer, build_tender, status, approval):
        tender = build_tender(status=status, approval_status=approval)

        assert evaluate_eligibility(build_viewer(), tender).visible is False
        assert evaluate_eligibility(None, tender).visible is False
        assert evaluate_eligibility(build_viewer(id=tender.builder_id), tender).visible is True
        assert evaluate_eligibility(build_viewer(id=55, role='admin'), tender).visible is True

    def test_published_status_counts_as_open(self, build_viewer, build_tender):
        assert evaluate_eligibility(build_viewer(), build_tender(status='PUBLISHED')).visible is True

    def test_admin_cannot_quote_on_unpublished_tender(self, build_viewer, build_tender):
        result = evaluate_eligibility(build_viewer(role='admin'), build_tender(status='DRAFT'))

        assert result.visible is True
        assert result.can_quote is False
        assert result.reason_code == eligibility.TENDER_NOT_OPEN


@pytest.mark.unit
class TestOwnership:

    def test_owner_always_sees_but_never_quotes(self, build_viewer, build_tender):
        tender = build_tender()
        result = evaluate_eligibility(build_viewer(id=tender.builder_id, primary_trade='Builder'), tender)

        assert result.visible is True
        assert result.can_quote is False
        assert result.reason_code == eligibility.OWN_TENDER

    def test_owner_sees_data_quality_warnings(self, build_viewer, build_tender):
        bad_budget = TradeRequirement(trade='Tiler', raw_trade='Tiler', min_budget_cents=900, max_budget_cents=100)
        tender = build_tender(trades=(bad_budget,))
        result = evaluate_eligibility(build_viewer(id=tender.builder_id), tender)

        assert any('minimum above its maximum' in w for w in result.warnings)

    def test_inverted_budget_hides_tender_from_professionals(self, build_viewer, build_tender):
        bad_budget = TradeRequirement(trade='Electrician', raw_trade='Electrician',
                                      min_budget_cents=900, max_budget_cents=100)
        tender = build_tender(trades=(bad_budget,))

        for viewer in (build_viewer(), None):
            result = evaluate_eligibility(viewer, tender)
            assert result.visible is False
            assert result.can_quote is False
            assert result.reason_code == eligibility.INVALID_TENDER_CONFIG

    def test_admin_sees_inverted_budget_but_cannot_quote(self, build_viewer, build_tender):
        bad_budget = TradeRequirement(trade='Electrician', raw_trade='Electrician',
                                      min_budget_cents=900, max_budget_cents=100)
        result = evaluate_eligibility(build_viewer(role='admin'), build_tender(trades=(bad_budget,)))

        assert result.visible is True
        assert result.can_quote is False
        assert result.reason_code == eligibility.INVALID_TENDER_CONFIG
        assert result.warnings

    def test_owner_warned_about_missing_trades(self, build_viewer, build_tender):
        tender = build_tender(trades=())
        result = evaluate_eligibility(build_viewer(id=tender.builder_id), tender)

        assert result.visible is True
        assert result.warnings

    def test_admin_sees_without_trade_match_but_cannot_quote(self, build_viewer, build_tender):
        result = evaluate_eligibility(build_viewer(role='admin', primary_trade='Plumber'), build_tender())

        assert result.visible is True
        assert result.can_quote is False
        assert result.reason_code == eligibility.TRADE_MISMATCH


@pytest.mark.unit
class TestTradeMatch:

    def test_no_requirements_matches_nobody(self, build_viewer, build_tender):
        tender = build_tender(trades=())

        assert evaluate_eligibility(build_viewer(), tender).visible is False
        assert evaluate_eligibility(build_viewer(primary_trade='Builder'), tender).visible is False
        assert evaluate_eligibility(None, tender).visible is False

    def test_unrecognised_requirement_matches_nobody(self, build_viewer, build_tender):
        tender = build_tender(trades=('Astronaut',))

        assert evaluate_eligibility(build_viewer(primary_trade='Astronaut'), tender).visible is False

    def test_viewer_trade_normalised(self, build_viewer, build_tender):
        result = evaluate_eligibility(build_viewer(primary_trade='electrical'), build_tender())
        assert result.visible is True

    def test_any_requirement_matches(self, build_viewer, build_tender):
        tender = build_tender(trades=('Plumber', 'Electrician'))
        assert evaluate_eligibility(build_viewer(), tender).visible is True

    def test_viewer_without_trade_sees_nothing(self, build_viewer, build_tender):
        assert evaluate_eligibility(build_viewer(primary_trade=None), build_tender()).visible is False


@pytest.mark.unit
class TestRadius:

    def test_restricted_tier_hides_far_tender(self, build_viewer, build_tender):
        result = evaluate_eligibility(build_viewer(), build_tender(location=_at(GOLD_COAST)))

        assert result.visible is False
        assert result.reason_code == eligibility.OUT_OF_RADIUS
        assert result.distance_km > 15

    def test_nearby_tender_visible(self, build_viewer, build_tender):
        result = evaluate_eligibility(build_viewer(), build_tender(location=_at((-27.48, 153.02))))

        assert result.visible is True
        assert result.distance_km < 15

    def test_premium_tier_ignores_radius(self, build_viewer, build_tender):
        tender = build_tender(tier='PREMIUM_14', location=_at(TOWNSVILLE))
        assert evaluate_eligibility(build_viewer(), tender).visible is True

    @pytest.mark.parametrize('tier', ['FREE_TRIAL', 'BASIC_8', 'GOLD', ''])
    def test_non_premium_and_unknown_tiers_restrict(self, build_viewer, build_tender, tier):
        tender = build_tender(tier=tier, location=_at(GOLD_COAST))
        assert evaluate_eligibility(build_viewer(), tender).visible is False

    def test_premium_viewer_uses_preferred_radius(self, build_viewer, build_tender):
        tender = build_tender(location=_at(GOLD_COAST))

        assert evaluate_eligibility(build_viewer(is_premium=True, preferred_radius_km=80), tender).visible is True
        assert evaluate_eligibility(build_viewer(is_premium=True, preferred_radius_km=15), tender).visible is False

    def test_non_premium_preferred_radius_ignored(self, build_viewer, build_tender):
        tender = build_tender(location=_at(GOLD_COAST))
        assert evaluate_eligibility(build_viewer(preferred_radius_km=80), tender).visible is False

    def test_premium_radius_clamped(self, build_viewer, build_tender, settings):
        viewer = build_viewer(is_premium=True, preferred_radius_km=5000)

        assert viewer.effective_radius_km(settings) == settings.max_premium_radius_km
        assert evaluate_eligibility(viewer, build_tender(location=_at(TOWNSVILLE))).visible is False

    def test_premium_search_origin(self, build_viewer, build_tender):
        tender = build_tender(location=_at(GOLD_COAST))
        search_from = Location('Surfers Paradise', '4217', -28.0, 153.43)

        premium = build_viewer(is_premium=True, search_location=search_from)
        free = build_viewer(search_location=search_from)

        assert evaluate_eligibility(premium, tender).visible is True
        assert evaluate_eligibility(free, tender).visible is False

    def test_withholding_coordinates_never_hides(self, build_viewer, build_tender):
        """Removing geocoding data from either side cannot make a tender disappear."""
        far = build_tender(location=_at(TOWNSVILLE))
        assert evaluate_eligibility(build_viewer(), far).visible is False

        no_tender_coords = build_tender(location=Location('Townsville', '4810'))
        no_viewer_coords = build_viewer(base_location=Location('Brisbane', '4000'))

        assert evaluate_eligibility(build_viewer(), no_tender_coords).visible is True
        assert evaluate_eligibility(no_viewer_coords, far).visible is True


@pytest.mark.unit
class TestWritePath:

    def test_premium_tier_lifts_cap(self, build_viewer, build_tender):
        tender = build_tender(tier='PREMIUM_14', quote_cap_total=3, quote_count_total=3)
        assert evaluate_eligibility(build_viewer(), tender).can_quote is True

    def test_limited_premium_tier_still_capped(self, build_viewer, build_tender):
        tender = build_tender(tier='PREMIUM_14', limited_quotes_enabled=True, quote_cap_total=3, quote_count_total=3)
        assert evaluate_eligibility(build_viewer(), tender).reason_code == eligibility.QUOTE_CAP_REACHED

    def test_basic_tier_cap(self, build_viewer, build_tender):
        tender = build_tender(quote_cap_total=2, quote_count_total=2)
        assert evaluate_eligibility(build_viewer(), tender).reason_code == eligibility.QUOTE_CAP_REACHED

    def test_limited_without_cap_uses_default(self, build_viewer, build_tender, settings):
        tender = build_tender(limited_quotes_enabled=True, quote_count_total=settings.limited_quotes_default_cap)
        assert evaluate_eligibility(build_viewer(), tender).reason_code == eligibility.QUOTE_CAP_REACHED

    def test_monthly_free_quota(self, build_viewer, build_tender):
        tender = build_tender(limited_quotes_enabled=True, quote_cap_total=3)
        used = ViewerActivity(month_key='2024-05', free_quotes_this_month=1)

        free = evaluate_eligibility(build_viewer(), tender, used)
        premium = evaluate_eligibility(build_viewer(is_premium=True), tender, used)

        assert free.visible is True
        assert free.reason_code == eligibility.MONTHLY_QUOTA_REACHED
        assert premium.can_quote is True

    def test_quota_only_applies_to_limited_tenders(self, build_viewer, build_tender):
        used = ViewerActivity(month_key='2024-05', free_quotes_this_month=5)
        assert evaluate_eligibility(build_viewer(), build_tender(), used).can_quote is True

    @pytest.mark.parametrize('status', ['PENDING', 'REJECTED', 'NONE', 'SOMETHING_ELSE'])
    def test_unverified_abn(self, build_viewer, build_tender, status):
        result = evaluate_eligibility(build_viewer(abn_status=status), build_tender())

        assert result.visible is True
        assert result.reason_code == eligibility.ABN_NOT_VERIFIED
        assert result.reason == 'ABN verification required'

    def test_whitespace_abn_is_missing(self, build_viewer, build_tender):
        assert evaluate_eligibility(build_viewer(abn='   '), build_tender()).reason_code == eligibility.ABN_REQUIRED

    def test_already_quoted(self, build_viewer, build_tender):
        tender = build_tender()
        activity = ViewerActivity(quoted_tender_ids=frozenset({tender.id}))
        result = evaluate_eligibility(build_viewer(), tender, activity)

        assert result.visible is True
        assert result.reason_code == eligibility.DUPLICATE_QUOTE


@pytest.mark.unit
class TestAnonymous:

    def test_listed_but_cannot_quote(self, build_tender):
        result = evaluate_eligibility(None, build_tender(location=_at(TOWNSVILLE)))

        assert result.visible is True
        assert result.can_quote is False
        assert result.reason_code == eligibility.SIGN_IN_REQUIRED


@pytest.mark.unit
class TestViewerProfile:

    def _user(self, **overrides):
        values = dict(
            id=3, role='member', primary_trade='plumbing', abn='123', abn_status='verified',
            active_plan='NONE', subscription_status='NONE', complimentary_premium_until=None,
            preferred_radius_km=40, location='Brisbane', postcode='4000',
            location_lat=BRISBANE[0], location_lng=BRISBANE[1],
            search_location=None, search_postcode=None, search_lat=None, search_lng=None,
        )
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_canonical_fields(self):
        viewer = ViewerProfile.from_user(self._user())

        assert viewer.trade == 'Plumber'
        assert viewer.abn_status == 'VERIFIED'
        assert viewer.abn_verified is True
        assert viewer.is_premium is False
        assert viewer.billing_mode == 'FREE_MONTHLY_TRIAL'

    def test_active_paid_plan_is_premium(self):
        viewer = ViewerProfile.from_user(self._user(active_plan='BUSINESS_PRO_20', subscription_status='active'))

        assert viewer.is_premium is True
        assert viewer.billing_mode == 'SUBSCRIPTION'

    def test_lapsed_plan_is_not_premium(self):
        viewer = ViewerProfile.from_user(self._user(active_plan='BUSINESS_PRO_20', subscription_status='CANCELED'))
        assert viewer.is_premium is False

    def test_complimentary_premium_window(self):
        now = datetime(2024, 6, 1)
        current = ViewerProfile.from_user(self._user(complimentary_premium_until=now + timedelta(days=3)), now=now)
        expired = ViewerProfile.from_user(self._user(complimentary_premium_until=now - timedelta(days=3)), now=now)

        assert current.is_premium is True
        assert expired.is_premium is False

    def test_unknown_abn_status_folds_to_none(self):
        viewer = ViewerProfile.from_user(self._user(abn_status='maybe'))

        assert viewer.abn_status == 'NONE'
        assert viewer.abn_verified is False

    def test_search_location_loaded(self):
        viewer = ViewerProfile.from_user(self._user(
            active_plan='ALL_ACCESS_PRO_26', subscription_status='ACTIVE',
            search_location='Gold Coast', search_lat=GOLD_COAST[0], search_lng=GOLD_COAST[1],
        ))
        assert viewer.search_origin.suburb == 'Gold Coast'


@pytest.mark.unit
class TestPublicQuoteStatus:

    @pytest.mark.parametrize('overrides,label', [
        (dict(status='CLOSED'), 'Closed'),
        (dict(status='CANCELLED'), 'Closed'),
        (dict(status='DRAFT'), 'Coming soon'),
        (dict(quote_cap_total=3, quote_count_total=3), 'Quotes full'),
        (dict(quote_cap_total=3, quote_count_total=1), 'Limited quotes'),
        (dict(), 'Open quotes'),
        (dict(tier='PREMIUM_14', quote_cap_total=3, quote_count_total=3), 'Open quotes'),
    ])
    def test_labels(self, build_tender, overrides, label):
        assert public_quote_status(build_tender(**overrides)) == label
