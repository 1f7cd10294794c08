from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check() -> dict:
    """Liveness probe with the server's current UTC time."""
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return {"status": "ok", "time": now.replace("+00:00", "Z")}
