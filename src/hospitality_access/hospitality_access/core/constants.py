"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_SEARCH_LIMIT = 100
MAX_SEARCH_LIMIT = 500
MIN_TOKEN_LENGTH = 2
MAX_QUERY_LENGTH = 100

DEFAULT_SUGGEST_LIMIT = 10
MAX_SUGGEST_LIMIT = 50

DEFAULT_HISTORY_LIMIT = 100

SEARCH_SLOW_MS = 100
WRITE_SLOW_MS = 500

DEFAULT_READ_RETRIES = 2
DEFAULT_RETRY_BACKOFF_SECONDS = 0.05

MAX_NOTES_LENGTH = 500
MAX_COMPANIONS = 20

# Check-in stays open until the day after the event.
CHECKIN_GRACE_DAYS = 1

# Upper bound of ids per IN (...) clause in batched presence lookups.
BULK_CHUNK_SIZE = 1000
