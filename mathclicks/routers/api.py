import json
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from mathclicks.core.deps import get_proxy_service
from mathclicks.services.proxy import ProxyResult, ProxyService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])

JsonHandler = Callable[[Dict[str, Any]], ProxyResult]


def relay(result: ProxyResult) -> JSONResponse:
    return JSONResponse(content=result.body, status_code=result.status_code)


def run_proxied(action: Callable[[], ProxyResult], failure: str, expose_error: bool = False) -> JSONResponse:
    """
    Exécute l'appel et mappe toute erreur inattendue vers un 500 JSON.
    """
    try:
        return relay(action())
    except Exception as e:
        logger.exception("%s: %s", failure, e)
        error = str(e) if expose_error else failure
        return JSONResponse(content={"success": False, "error": error}, status_code=500)


async def read_json(request: Request) -> Dict[str, Any]:
    """
    Corps JSON quel que soit le Content-Type ; un tableau ou un scalaire vaut {}.
    Lève ValueError si le corps n'est pas du JSON valide.
    """
    body = json.loads(await request.body())
    return body if isinstance(body, dict) else {}


async def proxy_json(request: Request, handler: JsonHandler, failure: str, lenient: bool = False) -> JSONResponse:
    try:
        body = await read_json(request)
    except ValueError as e:
        if not lenient:
            logger.error("%s: invalid JSON body (%s)", failure, e)
            return JSONResponse(content={"success": False, "error": failure}, status_code=500)
        body = {}
    return await run_in_threadpool(run_proxied, lambda: handler(body), failure)


@router.post("/process-image")
def process_image(
    image: Optional[UploadFile] = File(default=None),
    proxy: ProxyService = Depends(get_proxy_service),
):
    def action() -> ProxyResult:
        if image is None:
            return proxy.process_image(None, "", None)
        return proxy.process_image(image.file.read(), image.filename or "upload", image.content_type)

    return run_proxied(action, "Failed to process image", expose_error=True)


@router.post("/check-answer")
async def check_answer(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    try:
        body = await read_json(request)
        return relay(await run_in_threadpool(proxy.check_answer, body))
    except Exception as e:
        logger.exception("Error checking answer: %s", e)
        return JSONResponse(content={"error": str(e)}, status_code=500)


@router.post("/generate-more")
@router.post("/generate-problems")
async def generate_more(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    return await proxy_json(request, proxy.generate_more, "Failed to generate problems")


@router.post("/generate-from-standard")
async def generate_from_standard(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    return await proxy_json(request, proxy.generate_from_standard, "Failed to generate problems from standard")


@router.post("/analyze-work")
async def analyze_work(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    return await proxy_json(request, proxy.analyze_work, "Failed to analyze work")


@router.post("/analyze-work-photo")
@router.post("/analyze-incorrect-work")
async def analyze_work_photo(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    return await proxy_json(request, proxy.analyze_work_photo, "Failed to analyze work")


@router.post("/evaluate-response")
async def evaluate_response(request: Request, proxy: ProxyService = Depends(get_proxy_service)):
    return await proxy_json(request, proxy.evaluate_response, "Failed to evaluate response")
