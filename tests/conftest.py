"""Shared fixtures: test application, database factories and plain-record builders."""

import itertools

import pytest

from tradehub.app import create_app
from tradehub.models import Tender, TenderTradeRequirement, User, db
from tradehub.services.records import (
    Location,
    MatchingSettings,
    OwnerSummary,
    TenderRecord,
    TradeRequirement,
    ViewerProfile,
)
from tradehub.services.repository import TenderRepository
from tradehub.services.trades import normalize_trade

# Reference points around south-east Queensland
BRISBANE = (-27.4698, 153.0251)
SOUTH_BRISBANE = (-27.4810, 153.0200)
GOLD_COAST = (-28.0167, 153.4000)      # ~70 km from Brisbane
TOWNSVILLE = (-19.2590, 146.8169)      # ~1100 km from Brisbane

PASSWORD = 'correct-horse'


@pytest.fixture
def settings():
    return MatchingSettings()


# --- Plain records (no database) -------------------------------------------

@pytest.fixture
def build_viewer():
    def _build(**overrides):
        values = dict(
            id=7,
            role='member',
            primary_trade='Electrician',
            abn='51824753556',
            abn_status='VERIFIED',
            is_premium=False,
            preferred_radius_km=None,
            base_location=Location('Brisbane', '4000', *BRISBANE),
        )
        values.update(overrides)
        return ViewerProfile(**values)
    return _build


@pytest.fixture
def build_tender():
    def _build(trades=('Electrician',), owner=None, **overrides):
        requirements = []
        for trade in trades:
            if isinstance(trade, TradeRequirement):
                requirements.append(trade)
            else:
                requirements.append(TradeRequirement(trade=normalize_trade(trade), raw_trade=trade))
        values = dict(
            id=1,
            builder_id=100,
            status='LIVE',
            approval_status='APPROVED',
            tier='BASIC_8',
            project_name='Office fit-out',
            location=Location('Brisbane City', '4000'),
            requirements=tuple(requirements),
            owner=owner or OwnerSummary(id=100, display_name='Acme Builders'),
        )
        values.update(overrides)
        return TenderRecord(**values)
    return _build


# --- Application and database ----------------------------------------------

@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def repository(app):
    return TenderRepository(db.session)


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(**overrides):
        n = next(counter)
        lat, lng = overrides.pop('coords', BRISBANE)
        values = dict(
            username=f'pro{n}',
            email=f'pro{n}@example.com',
            name=f'Pro {n}',
            primary_trade='Electrician',
            abn='51824753556',
            abn_status='VERIFIED',
            location='Brisbane',
            postcode='4000',
            location_lat=lat,
            location_lng=lng,
        )
        values.update(overrides)
        user = User(**values)
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def make_tender(app, make_user):
    def _make(builder=None, trades=('Electrician',), **overrides):
        if builder is None:
            builder = make_user(primary_trade='Builder', business_name='Acme Builders')
        coords = overrides.pop('coords', SOUTH_BRISBANE)
        values = dict(
            project_name='Office fit-out',
            project_description='Two floors of commercial fit-out',
            status='LIVE',
            approval_status='APPROVED',
            tier='BASIC_8',
            suburb='South Brisbane',
            postcode='4101',
            lat=coords[0] if coords else None,
            lng=coords[1] if coords else None,
        )
        values.update(overrides)
        tender = Tender(builder_id=builder.id, **values)
        for trade in trades:
            if isinstance(trade, dict):
                tender.trade_requirements.append(TenderTradeRequirement(**trade))
            else:
                tender.trade_requirements.append(TenderTradeRequirement(trade=trade))
        db.session.add(tender)
        db.session.commit()
        return tender
    return _make


@pytest.fixture
def viewer_of():
    def _profile(user):
        return ViewerProfile.from_user(user)
    return _profile


@pytest.fixture
def login(client):
    def _login(user):
        response = client.post('/api/auth/login', json={'username': user.username, 'password': PASSWORD})
        assert response.status_code == 200, response.get_json()
        return response
    return _login
