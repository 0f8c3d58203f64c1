import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8080")
API_TIMEOUT = float(os.getenv("API_TIMEOUT", "20"))

ROSTER_PAGE_SIZE = int(os.getenv("ROSTER_PAGE_SIZE", "50"))
CLASS_PAGE_SIZE = int(os.getenv("CLASS_PAGE_SIZE", "9"))
FETCH_WORKERS = int(os.getenv("FETCH_WORKERS", "8"))
SAVE_SUCCESS_SECONDS = float(os.getenv("SAVE_SUCCESS_SECONDS", "3"))
SESSION_IDLE_SECONDS = float(os.getenv("SESSION_IDLE_SECONDS", "1800"))

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
