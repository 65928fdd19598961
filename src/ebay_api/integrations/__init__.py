"""Integrations module - Tracking providers and Discord notifications."""

from ebay_api.integrations.discord import DiscordTransport
from ebay_api.integrations.tracking_provider import TrackingProvider, create_tracking_provider

__all__ = ["DiscordTransport", "TrackingProvider", "create_tracking_provider"]
