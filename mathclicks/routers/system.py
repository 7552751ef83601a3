from fastapi import APIRouter, Depends

from mathclicks.core.config import get_settings
from mathclicks.core.deps import get_backend_client
from mathclicks.services.backend_client import BackendClient

router = APIRouter(tags=["system"])


@router.get("/health")
def health(backend: BackendClient = Depends(get_backend_client)):
    s = get_settings()
    return {
        "status": "ok",
        "version": s.APP_VERSION,
        "mode": "proxy" if backend.configured else "fallback",
    }


@router.get("/version")
def version():
    s = get_settings()
    return {"name": s.APP_NAME, "version": s.APP_VERSION, "env": s.APP_ENV}


@router.get("/backend/status")
def backend_status(backend: BackendClient = Depends(get_backend_client)):
    return {"configured": backend.configured, "available": backend.is_available()}
