"""
Fixed webhook retry constants.

These are part of the contract with operators and the monitoring
dashboard, so they are not configurable through the environment.
"""

# Attempts before an entry is moved to the dead letter queue
MAX_RETRY_ATTEMPTS = 5

# Base delay for exponential backoff (ms)
BASE_RETRY_DELAY_MS = 1000

# Ceiling for the backoff delay (1 hour)
MAX_RETRY_DELAY_MS = 60 * 60 * 1000

# Entries older than this are hard-deleted regardless of status (7 days)
ABANDONED_THRESHOLD_MS = 7 * 24 * 60 * 60 * 1000

# Stored lastError is cut to this many characters
MAX_ERROR_LENGTH = 1000
