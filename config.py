import os
from dotenv import load_dotenv
import sentry_sdk

load_dotenv()

# Initialize Sentry early, before anything else imports
_sentry_dsn = os.getenv("SENTRY_DSN")
if _sentry_dsn:
    sentry_sdk.init(
        dsn=_sentry_dsn,
        traces_sample_rate=0.1,
        environment=os.getenv("FLASK_ENV", "production"),
    )


class Config:
    # Flask
    FLASK_SECRET_KEY = os.getenv("FLASK_SECRET_KEY", "calc-engine-secret-key-change-in-production")
    DEBUG = os.getenv("FLASK_DEBUG", "False").lower() == "true"
    PORT = int(os.getenv("FLASK_PORT", "5001"))

    # Locale / units
    DEFAULT_LOCALE = os.getenv("DEFAULT_LOCALE", "en")
    SUPPORTED_LOCALES = [
        loc.strip() for loc in os.getenv("SUPPORTED_LOCALES", "en,es,pt,fr,de").split(",") if loc.strip()
    ]
    DEFAULT_UNIT_SYSTEM = os.getenv("DEFAULT_UNIT_SYSTEM", "metric")

    # Translation bundles: local directory, or a remote host when set
    TRANSLATIONS_DIR = os.getenv(
        "TRANSLATIONS_DIR",
        os.path.join(os.path.dirname(os.path.abspath(__file__)), "translations"),
    )
    TRANSLATIONS_URL = os.getenv("TRANSLATIONS_URL")

    # Exchange rates
    EXCHANGE_RATE_API_URL = os.getenv("EXCHANGE_RATE_API_URL", "https://open.er-api.com/v6/latest/USD")
    EXCHANGE_RATE_API_KEY = os.getenv("EXCHANGE_RATE_API_KEY")
    RATE_CACHE_TTL = int(os.getenv("RATE_CACHE_TTL", "3600"))  # seconds
    RATE_REQUEST_TIMEOUT = float(os.getenv("RATE_REQUEST_TIMEOUT", "5"))  # seconds

    # Background collaborators (rates, translations, history writes)
    ASYNC_WORKERS = int(os.getenv("ASYNC_WORKERS", "4"))

    # Related calculators / share links
    RELATED_DEFAULT_COUNT = int(os.getenv("RELATED_DEFAULT_COUNT", "4"))
    SHARE_TOKEN_MAX_LENGTH = int(os.getenv("SHARE_TOKEN_MAX_LENGTH", "4096"))

    # Observability
    SENTRY_DSN = os.getenv("SENTRY_DSN")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
    LOG_DIR = os.getenv("LOG_DIR", "logs")
