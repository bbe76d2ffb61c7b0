"""Health check utilities for NoteX dependencies."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from notex.broadcast import BroadcastRegistry
from notex.storage import database

logger = logging.getLogger(__name__)


async def check_database() -> dict[str, Any]:
    """Verify the notes database answers a trivial query."""
    try:
        await database.ping()
        return {"status": "ok", "service": "database"}
    except Exception as exc:
        logger.warning("Database health check failed: %s", exc)
        return {"status": "error", "service": "database", "detail": str(exc)}


async def check_broadcast(registry: BroadcastRegistry | None) -> dict[str, Any]:
    """Report whether the change stream registry is up and how busy it is."""
    if registry is None:
        return {"status": "warn", "service": "broadcast", "detail": "registry not started"}
    return {
        "status": "ok",
        "service": "broadcast",
        "subscribers": registry.subscriber_count,
    }


async def check_all_dependencies(registry: BroadcastRegistry | None = None) -> dict[str, Any]:
    """Run all health checks in parallel."""
    results = await asyncio.gather(
        check_database(),
        check_broadcast(registry),
        return_exceptions=True,
    )
    checks = []
    overall_status = "ok"
    for r in results:
        if isinstance(r, Exception):
            checks.append({"status": "error", "detail": str(r)})
            overall_status = "error"
        else:
            checks.append(r)
            if r["status"] == "error":
                overall_status = "error"
            elif r["status"] == "warn" and overall_status == "ok":
                overall_status = "warn"
    return {"status": overall_status, "checks": checks}
