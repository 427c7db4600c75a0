"""Timed operation logging.

USAGE:
    from museick.infrastructure.observability import log_operation

    logger = logging.getLogger(__name__)

    async with log_operation(logger, "shortlist.promote", slot="2024-07/muse/track"):
        await workflow.promote(item)
"""

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from museick.infrastructure.observability.logging import correlation_scope


# Yo, this times an operation and logs {operation}.started / .completed / .failed with the
# context fields attached, all under one correlation ID (a fresh one unless an enclosing
# action already set it). On exception it logs at WARNING (the workflow turns errors into
# user-facing outcomes, they are expected) and RE-RAISES so the caller still decides.
@asynccontextmanager
async def log_operation(
    logger: logging.Logger,
    operation: str,
    **context: Any,
) -> AsyncIterator[str]:
    """Context manager for logging operation start/end with automatic timing.

    Args:
        logger: Module logger
        operation: Operation name (e.g., "shortlist.promote")
        **context: Additional fields to include in logs (e.g., slot="2024-07/muse/track")

    Yields:
        The correlation ID the operation runs under
    """
    with correlation_scope() as correlation_id:
        start = time.monotonic()
        logger.debug(f"{operation}.started", extra=context)

        try:
            yield correlation_id
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            logger.warning(
                f"{operation}.failed",
                extra={
                    **context,
                    "duration_ms": duration_ms,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            raise

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(f"{operation}.completed", extra={**context, "duration_ms": duration_ms})
