import os

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_CONFIG = {
    "host": os.getenv("DB_HOST", "localhost"),
    "port": int(os.getenv("DB_PORT", "3306")),
    "user": os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "hospitality_db"),
}
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
DB_READ_RETRIES = int(os.getenv("DB_READ_RETRIES", "2"))

# Latency budgets (ms); slower operations are logged, never aborted
SEARCH_SLOW_MS = float(os.getenv("SEARCH_SLOW_MS", "100"))
WRITE_SLOW_MS = float(os.getenv("WRITE_SLOW_MS", "500"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

DEBUG = True

# If enabled, app will apply schema.sql on startup (idempotent: CREATE IF NOT EXISTS)
AUTO_INIT_DB = bool(int(os.getenv("AUTO_INIT_DB", "1")))
