# tradehub/services/trades.py
"""
Trade taxonomy: the fixed set of recognised trade categories.

Every trade comparison in the service goes through normalize_trade(). Stored
and user-entered trade strings arrive with mixed casing, underscores
('primary_trade' columns) and discipline-style names ('Electrical' instead of
'Electrician'); anything that does not map to a canonical entry is treated as
"no trade" and matches nothing.
"""

import re

TRADE_CATEGORIES = (
    # Core Construction Trades
    'Electrician',
    'Plumber',
    'Carpenter',
    'Builder',
    'Bricklayer / Blocklayer',
    'Concreter',
    'Roofer',
    'Plasterer',
    'Painter & Decorator',
    'Tiler',
    'Flooring Installer',
    'Cabinet Maker / Joiner',
    'Glazier',
    'Steel Fixer',
    'Welder / Fabricator',
    'Landscaper',
    'Fencer',
    'Renderer',
    'Waterproofer',
    'Insulation Installer',

    # Mechanical / Services Trades
    'HVAC / Air Conditioning',
    'Refrigeration Mechanic',
    'Gas Fitter',
    'Fire Services Technician',
    'Lift / Elevator Technician',
    'Security Systems Installer',
    'Data / Communications Technician',

    # Civil / External Works
    'Earthworks Operator',
    'Excavator / Plant Operator',
    'Asphalt / Bitumen Worker',
    'Roadworks / Civil Labour',
    'Traffic Control',

    # Specialist / Finishing
    'Shopfitter',
    'Sign Installer',
    'Window Furnishings Installer',
    'Stone Mason',
    'Pool Builder',
    'Water Features / Ponds',
    'Facade Installer',
    'Demolition',

    # Labour & Support
    'Skilled Labourer',
    'General Labourer',
    'Trade Assistant',
)

# Discipline-style names used by the discovery pages and older profile rows
TRADE_ALIASES = {
    'electrical': 'Electrician',
    'plumbing': 'Plumber',
    'carpentry': 'Carpenter',
    'building': 'Builder',
    'bricklaying': 'Bricklayer / Blocklayer',
    'concreting': 'Concreter',
    'roofing': 'Roofer',
    'plastering': 'Plasterer',
    'plastering / gyprock': 'Plasterer',
    'painting & decorating': 'Painter & Decorator',
    'painting': 'Painter & Decorator',
    'tiling': 'Tiler',
    'flooring': 'Flooring Installer',
    'cabinet making / joinery': 'Cabinet Maker / Joiner',
    'waterproofing': 'Waterproofer',
    'landscaping': 'Landscaper',
    'air conditioning': 'HVAC / Air Conditioning',
    'hvac': 'HVAC / Air Conditioning',
    'labouring': 'General Labourer',
}

_SEPARATORS = re.compile(r'[_\-\s]+')


def _normalise(text):
    return _SEPARATORS.sub(' ', text.strip().lower()).strip()


_CANONICAL_BY_KEY = {_normalise(trade): trade for trade in TRADE_CATEGORIES}
_CANONICAL_BY_KEY.update({_normalise(alias): trade for alias, trade in TRADE_ALIASES.items()})


def normalize_trade(value):
    """
    Map a free-text trade string to its canonical category.

    Args:
        value (str): Trade as entered or stored, e.g. 'electrician', 'HVAC_/_Air_Conditioning'

    Returns:
        str or None: Canonical trade name, or None when nothing matches
    """
    if not value or not isinstance(value, str):
        return None
    return _CANONICAL_BY_KEY.get(_normalise(value))


def normalize_trades(values):
    """Canonical trades for an iterable of strings, unmatched entries dropped, order kept."""
    result = []
    for value in values or ():
        canonical = normalize_trade(value)
        if canonical and canonical not in result:
            result.append(canonical)
    return result


def trades_match(left, right):
    """True when both strings resolve to the same canonical trade."""
    canonical = normalize_trade(left)
    return canonical is not None and canonical == normalize_trade(right)


def is_known_trade(value):
    return normalize_trade(value) is not None
