"""Database module."""

from .base import Base, get_engine, get_session_factory, init_db
from .models import EbayAccount, GuildEbayAccount, GuildSettings, Order, ShipmentTracking

__all__ = [
    "Base",
    "get_engine",
    "get_session_factory",
    "init_db",
    "EbayAccount",
    "GuildEbayAccount",
    "GuildSettings",
    "Order",
    "ShipmentTracking",
]
