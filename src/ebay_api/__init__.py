"""Shared eBay, tracking provider and Discord clients for the tracking worker."""
