"""
GlitchTip Error Monitoring Utilities

Helper functions for error tracking and context management.
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from ebay_api.core.logger import setup_logger

logger = setup_logger(__name__)


def init_monitoring(settings) -> bool:
    """
    Initialize GlitchTip (Sentry protocol) if a DSN is configured.

    Returns:
        True if monitoring was initialized
    """
    if not settings.glitchtip_dsn:
        logger.info("Error monitoring disabled (no GLITCHTIP_DSN)")
        return False

    try:
        sentry_sdk.init(
            dsn=settings.glitchtip_dsn,
            environment=settings.environment,
            integrations=[
                LoggingIntegration(
                    level=None,  # Capture all log levels as breadcrumbs
                    event_level=logging.ERROR,  # Send ERROR logs as events
                ),
            ],
            traces_sample_rate=0.0,
            send_default_pii=False,
        )
        logger.info("GlitchTip error monitoring initialized")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize GlitchTip: {e}")
        return False


def set_account_context(account_id: str, environment: Optional[str] = None, **extra_tags) -> None:
    """
    Set account-specific context for error tracking.

    Args:
        account_id: Linked eBay account id
        environment: eBay environment (sandbox / production)
        **extra_tags: Additional tags to add
    """
    try:
        sentry_sdk.set_tag("account.id", account_id)
        if environment:
            sentry_sdk.set_tag("account.environment", environment)

        for key, value in extra_tags.items():
            sentry_sdk.set_tag(key, value)

        context_data = {"account_id": account_id, "environment": environment}
        context_data.update(extra_tags)
        sentry_sdk.set_context("account", context_data)
    except Exception as e:
        logger.warning(f"Failed to set account context: {e}")


def capture_exception(
    error: Exception,
    context: Optional[Dict[str, Any]] = None,
    level: str = "error",
) -> None:
    """
    Capture an exception and send to GlitchTip.

    Args:
        error: The exception to capture
        context: Additional context data
        level: Error level (error, warning, info)
    """
    try:
        with sentry_sdk.new_scope() as scope:
            if context:
                scope.set_context("custom", context)
            scope.level = level
            sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.warning(f"Failed to capture exception: {e}")
