"""
Repository classes for data access.
"""

from parcelwatch.db.repositories.base import BaseRepository
from parcelwatch.db.repositories.delivered import DeliveredRepository
from parcelwatch.db.repositories.journey import JourneyRepository
from parcelwatch.db.repositories.order import OrderRepository
from parcelwatch.db.repositories.session import SessionRepository

__all__ = [
    "BaseRepository",
    "DeliveredRepository",
    "JourneyRepository",
    "OrderRepository",
    "SessionRepository",
]
