"""Core module - Logging, error taxonomy, secret codec and error monitoring."""

from ebay_api.core.logger import setup_logger
from ebay_api.core.crypto import decrypt_secret, encrypt_secret

__all__ = ["setup_logger", "decrypt_secret", "encrypt_secret"]
