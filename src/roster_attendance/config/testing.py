SECRET_KEY = "test-secret"

API_BASE_URL = "http://api.test"
API_TIMEOUT = 5

ROSTER_PAGE_SIZE = 50
CLASS_PAGE_SIZE = 9
FETCH_WORKERS = 2
SAVE_SUCCESS_SECONDS = 3
SESSION_IDLE_SECONDS = 1800

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"
