"""Health check endpoints for monitoring and load balancer probes."""

import logging
from datetime import datetime, timezone
from pathlib import Path

from fastapi import APIRouter

from typearena.broadcast import channel
from typearena.storage import STORAGE_MODE, get_store, is_json_mode

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


def _get_storage_usage_mb() -> float:
    """Total size of the JSON storage directory in MB (0 in db mode)."""
    store = get_store()
    base_dir = getattr(store, "base_dir", None)
    if not is_json_mode() or base_dir is None:
        return 0.0
    storage_path = Path(base_dir)
    if not storage_path.exists():
        return 0.0
    try:
        total = sum(f.stat().st_size for f in storage_path.rglob("*") if f.is_file())
    except OSError as exc:
        logger.debug("Storage size probe failed: %s", exc)
        return 0.0
    return total / (1024 * 1024)


@router.get("/health")
async def health_check():
    """Coarse counters only; no secrets."""
    return {
        "status": "ok",
        "storage_mode": STORAGE_MODE,
        "leaderboard_groups": await channel.group_count(),
        "storage_mb": round(_get_storage_usage_mb(), 2),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/live")
async def liveness_check():
    return {"status": "alive"}
