"""
Runtime configuration read from the environment.

Values are resolved at import time; call ``load_dotenv()`` before importing
this module to pick up a local ``.env`` file.
"""

import os

# Database
DATABASE_URL = os.getenv("DATABASE_URL")
INSTANCE_CONNECTION_NAME = os.getenv("INSTANCE_CONNECTION_NAME")
DB_NAME = os.getenv("DB_NAME", "parcelwatch")
DB_USER = os.getenv("DB_USER")
STORE_QUERY_TIMEOUT_SECONDS = float(os.getenv("STORE_QUERY_TIMEOUT_SECONDS", "10"))

# Marketplace scraping endpoint
MARKETPLACE_API_URL = os.getenv(
    "MARKETPLACE_API_URL", "https://tksieure.top/check_order"
)
MARKETPLACE_TOKEN = os.getenv("MARKETPLACE_TOKEN", "")
MARKETPLACE_BATCH_SIZE = int(os.getenv("MARKETPLACE_BATCH_SIZE", "15"))
MARKETPLACE_BASE_TIMEOUT_SECONDS = float(
    os.getenv("MARKETPLACE_BASE_TIMEOUT_SECONDS", "30")
)
MARKETPLACE_TIMEOUT_PER_CREDENTIAL_SECONDS = float(
    os.getenv("MARKETPLACE_TIMEOUT_PER_CREDENTIAL_SECONDS", "5")
)

# Carrier tracking APIs
SPX_API_URL = os.getenv("SPX_API_URL", "https://tramavandon.com/api/spx.php")
GHN_API_URL = os.getenv(
    "GHN_API_URL",
    "https://fe-online-gateway.ghn.vn/order-tracking/public-api/client/tracking-logs",
)
CARRIER_TIMEOUT_SECONDS = float(os.getenv("CARRIER_TIMEOUT_SECONDS", "15"))

# Notification channel
WEBHOOK_BOT_URL = os.getenv("WEBHOOK_BOT_URL", "http://localhost:3002")
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "")
WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))

# Scheduler
ENABLE_SCHEDULER = os.getenv("ENABLE_SCHEDULER") == "1"
CYCLE_INTERVAL_MINUTES = int(os.getenv("CYCLE_INTERVAL_MINUTES", "5"))
FIRST_CYCLE_DELAY_SECONDS = int(os.getenv("FIRST_CYCLE_DELAY_SECONDS", "5"))
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "Asia/Ho_Chi_Minh")
