"""
Centralized constants for the re-scoring console.
All magic numbers extracted from codebase.
"""

# ===========================================
# POLLING
# ===========================================
POLL_INTERVAL_SECONDS = 2.0           # delay between two status queries of one job
POLL_TIMEOUT_SECONDS = 300.0          # 5 minutes, measured from the first query

# ===========================================
# PROGRESS DISPLAY
# ===========================================
RUNNING_PLACEHOLDER_PERCENT = 20      # shown for "running" jobs still reporting 0%
HIDE_RESET_DELAY_SECONDS = 0.3        # completed ledger stays visible this long after hide
FIRST_PAINT_DELAY_SECONDS = 0.1       # no render before this much time after construction
PROGRESS_LOG_INTERVAL = 5             # logging listener: log every N updates

PROCESSING_PLACEHOLDER = "processing..."
PREPARING_PLACEHOLDER = "preparing..."
UNKNOWN_ERROR_PLACEHOLDER = "unknown error"
QUESTION_ID_PLACEHOLDER_FORMAT = "q_{index:03d}"

# ===========================================
# API / SERVER
# ===========================================
API_BASE_URL = "http://localhost:8000"
API_TIMEOUT_SECONDS = 30.0            # per request
SUBMIT_SINGLE_PATH = "/api/v1/assessment/reevaluate"
SUBMIT_BATCH_PATH = "/api/v1/assessment/reevaluate/quiz"
TASK_STATUS_PATH = "/api/v1/assessment/task/status/{task_id}"
ERROR_BODY_MAX_CHARS = 500            # response text echoed into HttpStatusError

# ===========================================
# LOGGING
# ===========================================
LOG_LEVEL = 'INFO'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE = 'logs/rescore.log'
LOG_MAX_SIZE_MB = 10
LOG_BACKUP_COUNT = 5
