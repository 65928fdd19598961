"""Sync services: credentials, orders, trackings, notifications and scheduling."""
