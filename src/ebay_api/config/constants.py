"""
Centralized application constants.

This file acts as the single point of truth for business logic constants
shared across the API clients and the sync worker.
"""

# ==============================================================================
# CREDENTIALS
# ==============================================================================

# Refresh the access token when it expires within this many seconds
ACCESS_TOKEN_LEEWAY_SECONDS = 60

# Additional refresh attempts after the first one (transient failures only)
TOKEN_REFRESH_RETRIES = 2

# HTTP statuses meaning the refresh token itself was rejected
INVALID_GRANT_STATUSES = (400, 401)

# ==============================================================================
# ORDER SYNC
# ==============================================================================

# Lookback window for accounts that never completed an order sync
INITIAL_ORDER_LOOKBACK_DAYS = 30

# Orders per page (cursor-less offset pagination)
ORDER_PAGE_SIZE = 50

# Only these fulfillment statuses carry tracking numbers worth syncing
SYNCED_FULFILLMENT_STATUSES = ("FULFILLED", "IN_PROGRESS")

# ==============================================================================
# TRACKING
# ==============================================================================

PROVIDER_SEVENTEEN_TRACK = "seventeen-track"
PROVIDER_AFTERSHIP = "aftership"

# Case-insensitive substrings marking a status tag as a delivery problem
DELAY_TAG_KEYWORDS = ("exception", "failed", "expired", "delay", "alert")

# Separator between checkpoint message and location in summaries
SUMMARY_SEPARATOR = " • "

# ==============================================================================
# NOTIFICATIONS
# ==============================================================================

# Platform limit of structured message units per message
MESSAGES_PER_CHUNK = 10

# ==============================================================================
# SCHEDULING
# ==============================================================================

SCHEDULE_MODE_DAILY = "daily"
SCHEDULE_MODE_INTERVAL = "interval"

# Pause between accounts within one sweep (seconds)
ACCOUNT_DELAY_SECONDS = 0.25

# ==============================================================================
# HTTP
# ==============================================================================

HTTP_TIMEOUT_SECONDS = 20.0
HTTP_RETRIES = 3
HTTP_BACKOFF_SECONDS = 0.5
RETRYABLE_STATUS_CODES = (408, 425, 429, 500, 502, 503, 504)
