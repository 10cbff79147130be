import os
import dotenv
import logging

dotenv.load_dotenv()

OVERRIDE_LOGGING = logging.getLevelName(os.environ.get("OVERRIDE_LOGGING", "WARNING"))

TELEGRAM_TOKEN = os.environ.get("TELEGRAM_TOKEN")
TELEGRAM_CHAT_ID = os.environ.get("TELEGRAM_CHAT_ID")
NOTIFY_LOG_LEVEL = logging.getLevelName(os.environ.get("NOTIFY_LOG_LEVEL", "WARNING"))

CHECKS_CONFIG = os.environ.get("CHECKS_CONFIG")

# "prod" or "staging", selects the app installation used for fork suites
CHECKS_ENVIRONMENT = os.environ.get("CHECKS_ENVIRONMENT", "prod")

CHECK_DB_PATH = os.environ.get("CHECK_DB_PATH", "data/checks.sqlite3")

DISKCACHE_DIR = os.environ.get("DISKCACHE_DIR", ".cache/wptchecks")

RESULTS_PROCESSING_URL = os.environ.get(
    "RESULTS_PROCESSING_URL", "https://wpt.fyi/api/checks"
)

WORKER_SLEEP = float(os.environ.get("WORKER_SLEEP", 1))

ACCESS_TOKEN_TTL = float(os.environ.get("ACCESS_TOKEN_TTL", 300))

FEATURE_FLAGS = [
    f.strip() for f in os.environ.get("FEATURE_FLAGS", "").split(",") if f.strip()
]

AZURE_BACKEND_URL = os.environ.get("AZURE_BACKEND_URL")
TASKCLUSTER_BACKEND_URL = os.environ.get("TASKCLUSTER_BACKEND_URL")

DRY_RUN = os.environ.get("DRY_RUN", "false") == "true"
