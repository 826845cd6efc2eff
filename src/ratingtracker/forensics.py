"""Short-lived storage of raw provider responses for inspecting failed extractions."""

import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

import redis
import structlog

logger = structlog.get_logger(__name__)


def resource_id(provider: str, ticker: str, content_type: str, now: Optional[datetime] = None, index: int = 0) -> str:
    """Name of a snapshot resource, e.g. `error-msci-AAPL-18f2a3b4c5d.html`.

    Text snapshots are named as HTML, everything else as JSON.
    """
    now = now or datetime.now(timezone.utc)
    millis = format(int(now.timestamp() * 1000), "x")
    suffix = f"-{index}" if index else ""
    extension = "html" if content_type.startswith("text/") else "json"
    return f"error-{provider}-{ticker}-{millis}{suffix}.{extension}"


def resource_links(resource_ids: list[str], fqdn: str = "") -> list[str]:
    """Links under which an operator can view stored snapshots."""
    if not fqdn:
        return list(resource_ids)
    return [f"https://{fqdn}/api/resources/{rid}" for rid in resource_ids]


class ForensicsSink(ABC):
    """Interface for storing raw payloads with a limited lifetime."""

    @abstractmethod
    def store(self, blob: str, content_type: str, ttl_seconds: int, name: str) -> str:
        """Store a payload under a name.

        Returns:
            The resource ID under which the payload can be retrieved.
        """
        ...


class RedisForensicsSink(ForensicsSink):
    """Redis-backed snapshot storage.

    Storage structure:
    - Hash per resource: `{prefix}:resource:{name}` containing:
        - content: the raw payload
        - content_type: MIME type of the payload
      expiring after the requested TTL
    """

    def __init__(self, namespace: str = "ratingtracker"):
        self.KEY_PREFIX = namespace

        self._client = redis.Redis(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=int(os.getenv("REDIS_PORT", "6379")),
            password=os.getenv("REDIS_PASSWORD"),
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=30,
        )

    def _key(self, name: str) -> str:
        return f"{self.KEY_PREFIX}:resource:{name}"

    def store(self, blob: str, content_type: str, ttl_seconds: int, name: str) -> str:
        key = self._key(name)
        pipeline = self._client.pipeline()
        pipeline.hset(key, mapping={"content": blob, "content_type": content_type})
        pipeline.expire(key, ttl_seconds)
        pipeline.execute()

        logger.info("forensics.stored", resource=name, bytes=len(blob), ttl_seconds=ttl_seconds)
        return name

    def read(self, name: str) -> Optional[tuple[str, str]]:
        """Read a stored payload and its content type, None if expired or unknown."""
        data = self._client.hgetall(self._key(name))
        if not data:
            return None
        return data["content"], data["content_type"]
