from fastapi import APIRouter

from sona.api.dependencies import Store
from sona.core.errors import StorageError

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict:
    return {"status": "healthy", "service": "sona-api"}


@router.get("/health/ready")
async def readiness_check(store: Store) -> dict:
    try:
        store.ping()
        return {"status": "ready", "database": "connected"}
    except StorageError:
        return {"status": "not_ready", "database": "disconnected"}
