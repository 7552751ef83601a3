import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from mathclicks.core.deps import get_proxy_service
from mathclicks.routers.api import proxy_json, relay, run_proxied
from mathclicks.services.proxy import ProxyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/class", tags=["class"])


@router.post("/create")
async def create_class(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    # corps vide ou invalide accepté (gradeLevel / warmUp optionnels)
    return await proxy_json(request, proxy.class_create, "Failed to create class", lenient=True)


@router.post("/join")
async def join_class(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    return await proxy_json(request, proxy.class_join, "Failed to join class")


@router.post("/update")
async def update_class_session(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    return await proxy_json(request, proxy.class_update, "Failed to update session")


@router.post("/achievement")
async def report_achievement(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    return await proxy_json(request, proxy.class_achievement, "Failed to report achievement")


@router.get("/{class_code}/exists")
def class_exists(class_code: str, proxy: ProxyService = Depends(get_proxy_service)):
    try:
        return relay(proxy.class_exists(class_code))
    except Exception as e:
        logger.exception("Error checking class %s: %s", class_code, e)
        return JSONResponse(content={"exists": False, "error": "Failed to check class"}, status_code=500)


@router.get("/{class_code}/settings")
def get_class_settings(class_code: str, proxy: ProxyService = Depends(get_proxy_service)):
    return run_proxied(lambda: proxy.class_settings(class_code), "Failed to fetch class settings")


@router.patch("/{class_code}/settings")
async def update_class_settings(class_code: str, request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    return await proxy_json(
        request,
        lambda body: proxy.update_class_settings(class_code, body),
        "Failed to update class settings",
    )


@router.get("/{class_code}/warmup")
def get_class_warmup(class_code: str, proxy: ProxyService = Depends(get_proxy_service)):
    return run_proxied(lambda: proxy.class_warmup(class_code), "Failed to fetch warm-up settings")
