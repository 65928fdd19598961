"""eBay Sell Fulfillment API module."""

from .client import EbayAPIClient, build_orders_filter

__all__ = ["EbayAPIClient", "build_orders_filter"]
