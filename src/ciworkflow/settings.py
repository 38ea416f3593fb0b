from __future__ import annotations
import os

from typing import Optional

REDIS_URL = os.environ.get("REDIS_URL")
TRIGGER_KEY_PREFIX = os.environ.get("TRIGGER_KEY_PREFIX", "ciworkflow:triggers:")
TRIGGER_API_URL = os.environ.get("TRIGGER_API_URL")
TRIGGER_API_TOKEN = os.environ.get("TRIGGER_API_TOKEN")
TRIGGER_API_TIMEOUT = float(os.environ.get("TRIGGER_API_TIMEOUT", "10"))


def default_resolver() -> Optional[object]:
    """Trigger resolver configured by the environment: API first, then Redis."""
    if TRIGGER_API_URL:
        from .resolvers.api_client import APITriggerResolver
        return APITriggerResolver(TRIGGER_API_URL, timeout=TRIGGER_API_TIMEOUT, token=TRIGGER_API_TOKEN)
    if REDIS_URL:
        from .resolvers.redis_store import RedisTriggerResolver
        return RedisTriggerResolver(REDIS_URL)
    return None
