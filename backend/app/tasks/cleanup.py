"""
Periodic housekeeping: drop dead token records and idle rate-limit buckets.
"""

import asyncio
from typing import Callable

from sqlmodel import Session

from ..core.logging import get_logger
from ..core.ratelimit import RateLimiter
from ..tokens.repository import AccessTokenRepository

logger = get_logger(__name__)


def cleanup_expired_tokens(session: Session) -> int:
    logger.info("Starting cleanup of expired tokens")
    deleted = AccessTokenRepository(session).delete_expired_or_revoked()
    logger.info("Cleaned up expired/revoked tokens", count=deleted)
    return deleted


def prune_rate_limit_buckets(limiter: RateLimiter, retention_seconds: float) -> int:
    removed = limiter.prune(retention_seconds)
    logger.info("Cleaned up idle rate limit buckets", count=removed)
    return removed


async def _every(interval: float, job: Callable[[], int], name: str) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(job)
        except Exception:
            # keep the loop alive, the next run retries
            logger.exception("Housekeeping job failed", job=name)


async def run_cleanup_loop(
    session_factory: Callable[[], Session],
    limiter: RateLimiter,
    token_interval: float,
    bucket_interval: float,
    bucket_retention: float,
) -> None:
    """Run both housekeeping jobs until cancelled."""

    def clean_tokens() -> int:
        with session_factory() as session:
            return cleanup_expired_tokens(session)

    await asyncio.gather(
        _every(token_interval, clean_tokens, "tokens"),
        _every(bucket_interval, lambda: prune_rate_limit_buckets(limiter, bucket_retention), "buckets"),
    )
