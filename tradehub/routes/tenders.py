# tradehub/routes/tenders.py
import logging

from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required

from tradehub.middleware.auth import active_user_required, current_viewer
from tradehub.models.tender import (
    APPROVAL_PENDING,
    STATUS_CANCELLED,
    STATUS_CLOSED,
    STATUS_DRAFT,
    STATUS_PENDING_APPROVAL,
    TENDER_TIERS,
    TIER_FREE_TRIAL,
)
from tradehub.services import eligibility, quote_gate
from tradehub.services.date_utils import parse_iso_date
from tradehub.services.exceptions import ValidationError
from tradehub.services.records import MatchingSettings
from tradehub.services.repository import TenderRepository
from tradehub.services.tender_search import (
    VIEW_MINE,
    TenderFilters,
    get_tender_detail,
    list_eligible_tenders,
)
from tradehub.services.trades import normalize_trade

tenders_bp = Blueprint('tenders', __name__)
logger = logging.getLogger(__name__)

REJECTION_STATUS = {
    quote_gate.INVALID_PRICE: 400,
    quote_gate.NO_ACTIVE_QUOTE: 404,
    quote_gate.CAP_RACE_LOST: 409,
    eligibility.SIGN_IN_REQUIRED: 401,
    eligibility.TENDER_NOT_FOUND: 404,
    eligibility.DUPLICATE_QUOTE: 409,
}


def _settings():
    return MatchingSettings.from_config(current_app.config)


def _rejection_response(rejection):
    status = REJECTION_STATUS.get(rejection.kind, 403)
    return jsonify({'error': rejection.message, 'reason_code': rejection.kind}), status


# --- Payload parsing -------------------------------------------------------

def _optional_int(value, field, minimum=0):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a whole number", field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number", field=field)
    if isinstance(value, float) and number != value:
        raise ValidationError(f"{field} must be a whole number", field=field)
    if number < minimum:
        raise ValidationError(f"{field} cannot be less than {minimum}", field=field)
    return number


def _optional_float(value, field):
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)


def _parse_date(value, field):
    try:
        return parse_iso_date(value)
    except ValueError as e:
        raise ValidationError(str(e), field=field)


def _parse_requirements(entries):
    if not isinstance(entries, list) or not entries:
        raise ValidationError('At least one trade requirement is needed', field='trade_requirements')

    requirements = []
    seen = set()
    for entry in entries:
        if isinstance(entry, str):
            entry = {'trade': entry}
        if not isinstance(entry, dict):
            raise ValidationError('Each trade requirement must be an object', field='trade_requirements')

        trade = normalize_trade(entry.get('trade'))
        if trade is None:
            raise ValidationError(f"Unknown trade '{entry.get('trade')}'", field='trade_requirements')
        if trade in seen:
            raise ValidationError(f"Trade '{trade}' is listed more than once", field='trade_requirements')
        seen.add(trade)

        min_budget = _optional_int(entry.get('min_budget_cents'), 'min_budget_cents')
        max_budget = _optional_int(entry.get('max_budget_cents'), 'max_budget_cents')
        if min_budget is not None and max_budget is not None and min_budget > max_budget:
            raise ValidationError(f"Budget minimum for {trade} exceeds its maximum", field='min_budget_cents')

        requirements.append({
            'trade': trade,
            'sub_description': (entry.get('sub_description') or '').strip() or None,
            'min_budget_cents': min_budget,
            'max_budget_cents': max_budget,
        })
    return requirements


def parse_tender_payload(data):
    """
    Validate a create-tender request body.

    Returns:
        tuple: (tender column values, list of trade requirement dicts)
    """
    if not isinstance(data, dict):
        raise ValidationError('No data provided')

    project_name = (data.get('project_name') or '').strip()
    if not project_name:
        raise ValidationError('project_name is required', field='project_name')

    tier = (data.get('tier') or TIER_FREE_TRIAL).strip().upper()
    if tier not in TENDER_TIERS:
        raise ValidationError(f"Unknown tier '{tier}'", field='tier')

    start = _parse_date(data.get('desired_start_date'), 'desired_start_date')
    end = _parse_date(data.get('desired_end_date'), 'desired_end_date')
    if start and end and end < start:
        raise ValidationError('desired_end_date is before desired_start_date', field='desired_end_date')

    fields = {
        'project_name': project_name,
        'project_description': (data.get('project_description') or '').strip() or None,
        'suburb': (data.get('suburb') or '').strip() or None,
        'postcode': (str(data.get('postcode') or '')).strip() or None,
        'lat': _optional_float(data.get('lat'), 'lat'),
        'lng': _optional_float(data.get('lng'), 'lng'),
        'desired_start_date': start,
        'desired_end_date': end,
        'tier': tier,
        'is_name_hidden': bool(data.get('is_name_hidden', False)),
        'limited_quotes_enabled': bool(data.get('limited_quotes_enabled', False)),
        'quote_cap_total': _optional_int(data.get('quote_cap_total'), 'quote_cap_total'),
        'status': STATUS_PENDING_APPROVAL if data.get('submit') else STATUS_DRAFT,
        'approval_status': APPROVAL_PENDING,
        'quote_count_total': 0,
    }
    return fields, _parse_requirements(data.get('trade_requirements'))


# --- Reads -----------------------------------------------------------------

@tenders_bp.route('', methods=['GET'])
def list_tenders():
    """Tenders visible to the current viewer, filtered and sorted."""
    filters = TenderFilters.from_args(request.args)
    viewer = current_viewer()

    if filters.view == VIEW_MINE and viewer is None:
        return jsonify({'error': 'Authentication required'}), 401

    listing = list_eligible_tenders(TenderRepository(), viewer, filters, settings=_settings())
    if listing.error:
        return jsonify({'items': [], 'error': listing.error, 'retry': True}), 503

    return jsonify(listing.to_dict()), 200


@tenders_bp.route('/<int:tender_id>', methods=['GET'])
def get_tender(tender_id):
    """A single tender with the viewer's quote eligibility."""
    detail = get_tender_detail(TenderRepository(), current_viewer(), tender_id, settings=_settings())
    if detail is None:
        return jsonify({'error': 'Tender not found'}), 404
    return jsonify(detail.to_dict()), 200


# --- Owner actions ---------------------------------------------------------

@tenders_bp.route('', methods=['POST'])
@login_required
@active_user_required
def create_tender():
    """Post a new tender as a draft, or straight into review with submit=true."""
    viewer = current_viewer()
    if not viewer.has_abn:
        return jsonify({'error': eligibility.REASON_MESSAGES[eligibility.ABN_REQUIRED],
                        'reason_code': eligibility.ABN_REQUIRED}), 403
    if not viewer.abn_verified:
        return jsonify({'error': eligibility.REASON_MESSAGES[eligibility.ABN_NOT_VERIFIED],
                        'reason_code': eligibility.ABN_NOT_VERIFIED}), 403

    fields, requirements = parse_tender_payload(request.get_json(silent=True))

    repository = TenderRepository()
    tender = repository.create_tender(viewer.id, requirements, **fields)
    repository.commit()
    logger.info(f"Tender {tender.id} created by user {viewer.id} with status {tender.status}")

    detail = get_tender_detail(repository, viewer, tender.id, settings=_settings())
    return jsonify(detail.to_dict()), 201


def _owned_tender(repository, tender_id, viewer):
    tender = repository.get_tender_model(tender_id)
    if tender is None:
        return None, (jsonify({'error': 'Tender not found'}), 404)
    if tender.builder_id != viewer.id and not viewer.is_admin:
        logger.warning(f"User {viewer.id} attempted to change tender {tender_id} they do not own")
        return None, (jsonify({'error': 'Only the tender owner can do that'}), 403)
    return tender, None


@tenders_bp.route('/<int:tender_id>/submit', methods=['POST'])
@login_required
@active_user_required
def submit_tender(tender_id):
    """Send a draft tender for approval."""
    viewer = current_viewer()
    repository = TenderRepository()
    tender, error = _owned_tender(repository, tender_id, viewer)
    if error:
        return error

    if tender.status != STATUS_DRAFT:
        return jsonify({'error': f'Only draft tenders can be submitted (status is {tender.status})'}), 409

    tender.approval_status = APPROVAL_PENDING
    repository.set_status(tender, STATUS_PENDING_APPROVAL)
    repository.commit()
    logger.info(f"Tender {tender_id} submitted for approval by user {viewer.id}")

    detail = get_tender_detail(repository, viewer, tender_id, settings=_settings())
    return jsonify(detail.to_dict()), 200


@tenders_bp.route('/<int:tender_id>/close', methods=['POST'])
@login_required
@active_user_required
def close_tender(tender_id):
    """Stop accepting quotes on a tender."""
    viewer = current_viewer()
    repository = TenderRepository()
    tender, error = _owned_tender(repository, tender_id, viewer)
    if error:
        return error

    if tender.status in (STATUS_CLOSED, STATUS_CANCELLED):
        return jsonify({'error': f'Tender is already {tender.status.lower()}'}), 409

    repository.set_status(tender, STATUS_CLOSED)
    repository.commit()
    logger.info(f"Tender {tender_id} closed by user {viewer.id}")

    detail = get_tender_detail(repository, viewer, tender_id, settings=_settings())
    return jsonify(detail.to_dict()), 200


# --- Quotes ----------------------------------------------------------------

@tenders_bp.route('/<int:tender_id>/quotes', methods=['POST'])
@login_required
@active_user_required
def submit_quote(tender_id):
    """Submit a priced quote on a tender."""
    data = request.get_json(silent=True) or {}
    notes = data.get('notes')
    if notes is not None:
        notes = str(notes).strip() or None

    result = quote_gate.attempt_submit_quote(
        TenderRepository(),
        current_viewer(),
        tender_id,
        data.get('price_cents'),
        notes,
        settings=_settings(),
    )
    if not result.ok:
        return _rejection_response(result.rejection)

    return jsonify({'message': 'Quote submitted', 'quote': result.quote.to_dict()}), 201


@tenders_bp.route('/<int:tender_id>/quotes/withdraw', methods=['POST'])
@login_required
@active_user_required
def withdraw_quote(tender_id):
    """Withdraw the viewer's quote; the tender's quote count is not reduced."""
    result = quote_gate.withdraw_quote(TenderRepository(), current_viewer(), tender_id)
    if not result.ok:
        return _rejection_response(result.rejection)

    return jsonify({'message': 'Quote withdrawn', 'quote': result.quote.to_dict()}), 200
