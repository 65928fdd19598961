"""Configuration module - Settings and business constants."""
