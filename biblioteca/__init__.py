"""
Biblioteca payments service.

Flask application factory and initialization.
"""

import logging
import sys
from typing import Optional

import sentry_sdk
from flask import Flask
from sentry_sdk.integrations.flask import FlaskIntegration

from biblioteca.billing.mercado_pago import MercadoPagoClient
from biblioteca.cli import register_cli
from biblioteca.config import ConfigurationError, get_config
from biblioteca.error_handlers import register_error_handlers
from biblioteca.extensions import db, init_extensions
from biblioteca.logging_config import setup_logging
from biblioteca.middleware.request_id import init_request_id_middleware
from biblioteca.routes import register_routes
from biblioteca.workers.celery_app import celery_init_app

logger = logging.getLogger(__name__)


def setup_sentry(app: Flask) -> None:
    """Initialize Sentry error tracking"""
    sentry_dsn = app.config.get("SENTRY_DSN")

    if sentry_dsn and app.config.get("ENVIRONMENT") == "production":
        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment="production",
            release=app.config.get("APP_VERSION", "1.0.0"),
            send_default_pii=False,
        )
        app.logger.info("Sentry error tracking initialized")


def init_payment_gateway(app: Flask) -> None:
    app.extensions["payment_gateway"] = MercadoPagoClient.from_config(app.config)


def log_startup_summary(app: Flask) -> None:
    summary_lines = [
        "=" * 60,
        "APPLICATION STARTUP SUMMARY",
        "=" * 60,
        f"Environment:      {app.config.get('ENVIRONMENT')}",
        f"Debug Mode:       {app.config.get('DEBUG')}",
        f"App Name:         {app.config.get('APP_NAME')}",
        f"App Version:      {app.config.get('APP_VERSION')}",
        f"Cache:            {app.config.get('CACHE_TYPE')} (ttl {app.config.get('ENTITLEMENT_CACHE_TTL')}s)",
        f"Rate Limiting:    {'Enabled' if app.config.get('RATELIMIT_ENABLED') else 'Disabled'}",
        f"Mercado Pago:     {'Configured' if app.config.get('MERCADO_PAGO_ACCESS_TOKEN') else 'Not configured'}",
        f"Webhook Secret:   {'Configured' if app.config.get('MERCADO_PAGO_WEBHOOK_SECRET') else 'Not configured'}",
        f"Sweep Interval:   every {app.config.get('RECONCILE_INTERVAL_MINUTES')} min",
        f"Sentry:           {'Enabled' if app.config.get('SENTRY_DSN') else 'Disabled'}",
        "=" * 60,
    ]
    app.logger.info("\n".join(summary_lines))


def create_app(config_name: Optional[str] = None) -> Flask:
    """
    Application factory.

    Args:
        config_name: Configuration name (development, production, testing)

    Raises:
        ConfigurationError: If configuration validation fails
    """
    app = Flask(__name__)

    try:
        app.config.from_object(get_config(config_name))
    except ConfigurationError as e:
        print(f"CRITICAL: Configuration error: {str(e)}", file=sys.stderr)
        raise

    setup_logging(app)
    setup_sentry(app)
    init_request_id_middleware(app)
    init_extensions(app)
    init_payment_gateway(app)
    celery_init_app(app)

    # Register the scheduled task with the bound Celery app
    from biblioteca.workers import reconciliation  # noqa: F401

    register_error_handlers(app)
    register_routes(app)
    register_cli(app)

    if app.config.get("CREATE_TABLES_ON_START") or app.testing:
        with app.app_context():
            db.create_all()

    log_startup_summary(app)
    return app
