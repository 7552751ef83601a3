import logging
from typing import Any, Dict, NamedTuple, Optional

import httpx

logger = logging.getLogger(__name__)

HEALTH_TIMEOUT = 2.0


class BackendResponse(NamedTuple):
    status_code: int
    body: Any


class BackendClient:
    """
    Client HTTP vers le backend MathClicks (BACKEND_URL).
    Statut et corps JSON sont renvoyés tels quels, sans retry.
    """

    def __init__(
        self,
        base_url: Optional[str],
        timeout: float = 300.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        data: Optional[Dict[str, str]] = None,
        files: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> BackendResponse:
        if not self.configured:
            raise RuntimeError("BACKEND_URL non configurée")

        with httpx.Client(
            base_url=self.base_url,
            timeout=timeout or self.timeout,
            transport=self.transport,
        ) as client:
            r = client.request(method, path, json=json, data=data, files=files)

        logger.debug("%s %s -> %s", method, path, r.status_code)
        return BackendResponse(status_code=r.status_code, body=r.json())

    def post_json(self, path: str, body: Any) -> BackendResponse:
        return self.request("POST", path, json=body)

    def get_json(self, path: str) -> BackendResponse:
        return self.request("GET", path)

    def patch_json(self, path: str, body: Any) -> BackendResponse:
        return self.request("PATCH", path, json=body)

    def post_multipart(self, path: str, data: Dict[str, str], files: Dict[str, Any]) -> BackendResponse:
        return self.request("POST", path, data=data, files=files)

    def is_available(self) -> bool:
        if not self.configured:
            return False
        try:
            with httpx.Client(base_url=self.base_url, timeout=HEALTH_TIMEOUT, transport=self.transport) as client:
                return client.get("/health").is_success
        except httpx.HTTPError:
            return False
