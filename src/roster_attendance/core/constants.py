"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_ROSTER_PAGE_SIZE = 50
DEFAULT_CLASS_PAGE_SIZE = 9
DEFAULT_SAVE_SUCCESS_SECONDS = 3
DEFAULT_FETCH_WORKERS = 8
DEFAULT_API_TIMEOUT = 20
DEFAULT_API_BASE_URL = "https://api.omniscience.co.mz"
ERROR_BODY_LOG_LIMIT = 500
DEFAULT_SESSION_IDLE_SECONDS = 30 * 60
