"""
Redis connection factory
The API and the relay each build their own client at startup and close it on shutdown
"""

import logging
from typing import Optional

import redis.asyncio as redis

from . import config

logger = logging.getLogger(__name__)


def mask_redis_url(redis_url: str) -> str:
    """Hide credentials in a Redis URL for logging"""
    if "@" in redis_url:
        url_parts = redis_url.split("@")
        protocol = url_parts[0].split(":")[0]
        return f"{protocol}:****@{url_parts[1]}"
    return "****"


def create_redis_client(redis_url: Optional[str] = None) -> redis.Redis:
    """
    Build an asyncio Redis client
    Supports both a connection URL and individual host/port settings
    """
    redis_url = redis_url or config.REDIS_URL

    if redis_url:
        logger.info(f"📡 Using Redis URL connection: {mask_redis_url(redis_url)}")
        return redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=15,
            socket_timeout=30,
            retry_on_timeout=True,
            health_check_interval=30,
            max_connections=50,
        )

    logger.info("📡 Using individual Redis configuration:")
    logger.info(f"   Host: {config.REDIS_HOST}")
    logger.info(f"   Port: {config.REDIS_PORT}")
    logger.info(f"   Database: {config.REDIS_DB}")
    logger.info(f"   SSL: {'Enabled' if config.REDIS_SSL else 'Disabled'}")
    logger.info(f"   Password: {'Set' if config.REDIS_PASSWORD else 'Not set'}")

    return redis.Redis(
        host=config.REDIS_HOST,
        port=config.REDIS_PORT,
        password=config.REDIS_PASSWORD,
        db=config.REDIS_DB,
        ssl=config.REDIS_SSL,
        decode_responses=True,
        socket_connect_timeout=15,
        socket_timeout=30,
        retry_on_timeout=True,
        health_check_interval=30,
        max_connections=50,
    )


async def check_connection(client: redis.Redis) -> bool:
    """Ping Redis, logging instead of raising"""
    try:
        await client.ping()
        logger.info("Redis connected successfully")
        return True
    except Exception as e:
        logger.error(f"❌ Failed to connect to Redis: {str(e)}")
        return False
