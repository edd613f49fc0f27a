import logging

from redis.exceptions import RedisError

from biblioteca.extensions import cache

logger = logging.getLogger(__name__)


def entitlement_key(user_id):
    return f"entitlement:{user_id}"


def invalidate_entitlement(user_id):
    """
    Drop the cached entitlement for ``user_id``.

    The cache only shortens reads; a backend outage is logged and the
    entry expires on its own TTL.
    """
    if not user_id:
        return
    try:
        cache.delete(entitlement_key(user_id))
    except RedisError:
        logger.warning("Could not invalidate entitlement cache", extra={"user_id": user_id}, exc_info=True)
        return
    logger.debug("Entitlement cache invalidated", extra={"user_id": user_id})


def read_entitlement(user_id):
    try:
        return cache.get(entitlement_key(user_id))
    except RedisError:
        logger.warning("Entitlement cache read failed", extra={"user_id": user_id}, exc_info=True)
        return None


def store_entitlement(user_id, entitlement, timeout):
    try:
        cache.set(entitlement_key(user_id), entitlement, timeout=timeout)
    except RedisError:
        logger.warning("Entitlement cache write failed", extra={"user_id": user_id}, exc_info=True)
