import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file)
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./test.db")
    MIGRATION_DB_URI = data.get("MIGRATION_DB_URI", "sqlite:///./test.db")
    API_PREFIX = data.get("API_PREFIX", "/api")
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    AUTH_DISABLED = bool(data.get("AUTH_DISABLED", False))
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    ENVIRONMENT = data.get("ENVIRONMENT", "development")

    # Payment gateway (Stripe)
    STRIPE_SECRET_KEY = data.get("STRIPE_SECRET_KEY", "")
    STRIPE_WEBHOOK_SECRET = data.get("STRIPE_WEBHOOK_SECRET", "")
    STRIPE_API_VERSION = data.get("STRIPE_API_VERSION", "2024-06-20")

    # Shared secret for the scheduled sweep trigger
    CRON_SECRET = data.get("CRON_SECRET", "")

    # Pricing rules
    CARD_PROCESSING_FEE_RATE = data.get("CARD_PROCESSING_FEE_RATE", "0.029")
    CARD_PROCESSING_FEE_FIXED_CENTS = data.get("CARD_PROCESSING_FEE_FIXED_CENTS", 30)
    ACH_AUTO_PAY_DISCOUNT_CENTS = data.get("ACH_AUTO_PAY_DISCOUNT_CENTS", 500)
    SHOW_PROCESSING_FEE_LINE = bool(data.get("SHOW_PROCESSING_FEE_LINE", True))

    # Billing sweep
    BILLING_SWEEP_ENABLED = bool(data.get("BILLING_SWEEP_ENABLED", True))
    BILLING_SWEEP_DUE_DAYS = data.get("BILLING_SWEEP_DUE_DAYS", 7)
    BILLING_SWEEP_INTERVAL_SECONDS = data.get("BILLING_SWEEP_INTERVAL_SECONDS", 86400)  # Daily
    SWEEP_NOTIFICATION_WEBHOOK = data.get("SWEEP_NOTIFICATION_WEBHOOK", None)

    # Proforma header
    COMPANY_NAME = data.get("COMPANY_NAME", "Operations HQ")
    COMPANY_ADDRESS = data.get("COMPANY_ADDRESS", "")
