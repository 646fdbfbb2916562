import os
from dotenv import load_dotenv

load_dotenv()

# Database
DB_USER = os.getenv("POSTGRES_USER", "postgres")
DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
DB_HOST = os.getenv("POSTGRES_HOST", "localhost")  # In Docker, this will be 'postgres'
DB_PORT = os.getenv("POSTGRES_PORT", "5432")
DB_NAME = os.getenv("POSTGRES_DB", "storefront")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# Public checkout
PLACE_ORDER_RATE_LIMIT = os.getenv("PLACE_ORDER_RATE_LIMIT", "30/minute")

# Notification channels (empty URL disables the channel)
SMS_DISPATCH_URL = os.getenv("SMS_DISPATCH_URL", "http://localhost:54321/functions/v1/send-sms")
EMAIL_DISPATCH_URL = os.getenv("EMAIL_DISPATCH_URL", "http://localhost:54321/functions/v1/send-order-email")
CONVERSIONS_API_BASE = os.getenv("CONVERSIONS_API_BASE", "https://graph.facebook.com/v18.0")
STORE_URL = os.getenv("STORE_URL", "https://naturaltouchbd.net")
NOTIFICATION_TIMEOUT_SECONDS = float(os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "15"))
NOTIFICATION_MAX_ATTEMPTS = int(os.getenv("NOTIFICATION_MAX_ATTEMPTS", "2"))

# Courier reputation network
BDCOURIER_API_URL = os.getenv("BDCOURIER_API_URL", "https://bdcourier.com/api/courier-check")
BDCOURIER_API_KEY = os.getenv("BDCOURIER_API_KEY", "")
COURIER_TIMEOUT_SECONDS = float(os.getenv("COURIER_TIMEOUT_SECONDS", "8"))
RISK_CACHE_TTL_SECONDS = float(os.getenv("RISK_CACHE_TTL_SECONDS", "600"))

# Observability
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT", "http://localhost:4317")

# Admin back-office shared secret
INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY", "")
