import os
from datetime import timedelta


class ConfigurationError(Exception):
    """
    Raised when an invalid or unsupported configuration is requested.
    """
    pass


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class BaseConfig:
    """
    Base configuration shared by all environments.
    """

    # Flask
    ENVIRONMENT = "base"
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.getenv("SECRET_KEY")
    JSON_SORT_KEYS = False

    # Application
    APP_NAME = "Biblioteca Pagamentos"
    APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///biblioteca.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    CREATE_TABLES_ON_START = _env_bool("CREATE_TABLES_ON_START")

    # JWT (tokens are issued by the auth provider; we only verify them)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_HEADER_TYPE = "Bearer"
    JWT_ALGORITHM = "HS256"
    JWT_DECODE_AUDIENCE = os.getenv("JWT_DECODE_AUDIENCE") or None
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)
    JWT_ERROR_MESSAGE_KEY = "message"

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    CORS_HEADERS = ["Content-Type", "Authorization", "X-Request-ID", "x-client-info", "apikey"]

    # Redis / cache
    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CACHE_TYPE = os.getenv("CACHE_TYPE", "SimpleCache")
    CACHE_REDIS_URL = os.getenv("CACHE_REDIS_URL", REDIS_URL)
    CACHE_DEFAULT_TIMEOUT = 300
    ENTITLEMENT_CACHE_TTL = int(os.getenv("ENTITLEMENT_CACHE_TTL", "300"))

    # Rate limiting
    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_HEADERS_ENABLED = True
    CHARGE_RATE_LIMIT = os.getenv("CHARGE_RATE_LIMIT", "10 per minute")

    # Mercado Pago
    MERCADO_PAGO_ACCESS_TOKEN = os.getenv("MERCADO_PAGO_ACCESS_TOKEN")
    MERCADO_PAGO_API_URL = os.getenv("MERCADO_PAGO_API_URL", "https://api.mercadopago.com")
    MERCADO_PAGO_TIMEOUT = int(os.getenv("MERCADO_PAGO_TIMEOUT", "15"))
    MERCADO_PAGO_WEBHOOK_SECRET = os.getenv("MERCADO_PAGO_WEBHOOK_SECRET")
    PIX_NOTIFICATION_URL = os.getenv("PIX_NOTIFICATION_URL")
    LEGACY_NOTIFICATION_URL = os.getenv("LEGACY_NOTIFICATION_URL")

    # Pricing
    LIFETIME_PRICE = float(os.getenv("LIFETIME_PRICE", "9.00"))
    LIFETIME_CURRENCY = os.getenv("LIFETIME_CURRENCY", "BRL")
    CHARGE_DESCRIPTION = os.getenv("CHARGE_DESCRIPTION", "Licença Vitalícia - Acesso Total")

    # Batch jobs
    RECONCILE_BATCH_SIZE = int(os.getenv("RECONCILE_BATCH_SIZE", "20"))
    RECONCILE_INTERVAL_MINUTES = int(os.getenv("RECONCILE_INTERVAL_MINUTES", "15"))
    BULK_ACTIVATION_PAGE_SIZE = int(os.getenv("BULK_ACTIVATION_PAGE_SIZE", "200"))

    # Celery
    CELERY = {
        "broker_url": os.getenv("CELERY_BROKER_URL", REDIS_URL),
        "result_backend": os.getenv("CELERY_RESULT_BACKEND", REDIS_URL),
        "task_ignore_result": True,
    }

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
    LOG_REQUESTS = _env_bool("LOG_REQUESTS")

    # Monitoring
    SENTRY_DSN = os.getenv("SENTRY_DSN")

    @classmethod
    def validate(cls):
        """Hook for environment specific checks."""
        return None


class DevelopmentConfig(BaseConfig):
    ENVIRONMENT = "development"
    DEBUG = True
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret")
    LOG_FORMAT = os.getenv("LOG_FORMAT", "console")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    CREATE_TABLES_ON_START = True


class ProductionConfig(BaseConfig):
    ENVIRONMENT = "production"
    CACHE_TYPE = os.getenv("CACHE_TYPE", "RedisCache")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", BaseConfig.REDIS_URL)

    REQUIRED = (
        "SECRET_KEY",
        "JWT_SECRET_KEY",
        "MERCADO_PAGO_ACCESS_TOKEN",
    )

    @classmethod
    def validate(cls):
        missing = [name for name in cls.REQUIRED if not getattr(cls, name)]
        if not os.getenv("DATABASE_URL"):
            missing.append("DATABASE_URL")
        if missing:
            raise ConfigurationError(
                f"Missing required production settings: {', '.join(missing)}"
            )
        if cls.SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
            raise ConfigurationError("SQLite is not supported in production")


class TestingConfig(BaseConfig):
    ENVIRONMENT = "testing"
    TESTING = True
    SECRET_KEY = "test-secret-key"
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"
    JWT_DECODE_AUDIENCE = None
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CACHE_TYPE = "SimpleCache"
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    MERCADO_PAGO_ACCESS_TOKEN = "TEST-access-token"
    MERCADO_PAGO_API_URL = "https://api.mercadopago.test"
    MERCADO_PAGO_WEBHOOK_SECRET = None
    PIX_NOTIFICATION_URL = "https://biblioteca.test/webhooks/pix"
    LEGACY_NOTIFICATION_URL = "https://biblioteca.test/webhooks/mercadopago"
    LIFETIME_PRICE = 9.00
    LIFETIME_CURRENCY = "BRL"
    RECONCILE_BATCH_SIZE = 20
    BULK_ACTIVATION_PAGE_SIZE = 50
    LOG_FORMAT = "console"
    LOG_LEVEL = "WARNING"
    SENTRY_DSN = None
    CELERY = {
        "broker_url": "memory://",
        "result_backend": "cache+memory://",
        "task_always_eager": True,
        "task_eager_propagates": True,
        "task_ignore_result": True,
    }


CONFIG_MAP = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def get_config(config_name=None):
    """
    Resolve a configuration class by name, falling back to FLASK_CONFIG.
    """
    name = (config_name or os.getenv("FLASK_CONFIG", "development")).lower()
    try:
        config = CONFIG_MAP[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown configuration '{name}'. Expected one of: {', '.join(CONFIG_MAP)}"
        )
    config.validate()
    return config
