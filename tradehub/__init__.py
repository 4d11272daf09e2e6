"""TradeHub tender eligibility and matching service."""

__version__ = '1.0.0'
