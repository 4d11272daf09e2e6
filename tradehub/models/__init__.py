# tradehub/models/__init__.py

from .base import db

# --- Model Import Order ---
# Users first: tenders and quotes both hold foreign keys to 'users'.

# 1. Foundational Models
from .user import User

# 2. Tendering Models
from .tender import Tender, TenderTradeRequirement
from .quote import Quote

__all__ = [
    'db',
    'User',
    'Tender',
    'TenderTradeRequirement',
    'Quote',
]
