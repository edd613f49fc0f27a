import time

import redis
from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from biblioteca.extensions import db


def _check_database():
    start = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        latency = round((time.time() - start) * 1000, 2)
        return {"status": "ok", "latency_ms": latency}
    except SQLAlchemyError as e:
        db.session.rollback()
        return {"status": "error", "error": str(e)}


def _check_redis():
    if current_app.config.get("CACHE_TYPE") != "RedisCache":
        return {"status": "skipped", "reason": "Redis cache not configured"}

    url = current_app.config.get("CACHE_REDIS_URL") or current_app.config.get("REDIS_URL")
    start = time.time()
    try:
        client = redis.from_url(url, socket_timeout=2, socket_connect_timeout=2)
        client.ping()
        latency = round((time.time() - start) * 1000, 2)
        return {"status": "ok", "latency_ms": latency}
    except redis.RedisError as e:
        return {"status": "error", "error": str(e)}


def _check_gateway():
    if not current_app.config.get("MERCADO_PAGO_ACCESS_TOKEN"):
        return {"status": "error", "error": "MERCADO_PAGO_ACCESS_TOKEN not set"}
    return {"status": "ok"}


def run_health_checks():
    """
    Master health runner used by route.
    """
    started = time.time()

    checks = {
        "database": _check_database(),
        "redis": _check_redis(),
        "gateway": _check_gateway(),
    }

    overall = "ok"
    for c in checks.values():
        if c["status"] == "error":
            overall = "degraded"

    return {
        "status": overall,
        "timestamp": int(time.time()),
        "checks": checks,
        "duration_ms": round((time.time() - started) * 1000, 2),
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
    }
