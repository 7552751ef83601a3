from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from starlette.status import HTTP_400_BAD_REQUEST

from mathclicks.core.config import get_settings
from mathclicks.services.backend_client import BackendClient
from mathclicks.services.cli_bridge import CliBridge
from mathclicks.services.gamification import ProfileStore
from mathclicks.services.practice_session import PracticeSession
from mathclicks.services.proxy import ProxyService
from mathclicks.services.session_store import SessionStore
from mathclicks.services.storage import DEFAULT_NAMESPACE, KeyValueStore, is_valid_namespace
from mathclicks.services.teacher_sharing import TeacherSharing


def get_client_id(x_client_id: Optional[str] = Header(default=None)) -> str:
    """
    Identifiant du navigateur/élève (en-tête X-Client-Id), sert de namespace de stockage.
    """
    client_id = (x_client_id or DEFAULT_NAMESPACE).strip()
    if not is_valid_namespace(client_id):
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="Invalid X-Client-Id header")
    return client_id


def get_kv_store(client_id: str = Depends(get_client_id)) -> KeyValueStore:
    settings = get_settings()
    return KeyValueStore(base_path=settings.STORAGE_PATH, namespace=client_id)


def get_session_store(store: KeyValueStore = Depends(get_kv_store)) -> SessionStore:
    settings = get_settings()
    return SessionStore(store, expiry_days=settings.SESSION_EXPIRY_DAYS)


def get_profile_store(store: KeyValueStore = Depends(get_kv_store)) -> ProfileStore:
    return ProfileStore(store)


def get_backend_client() -> BackendClient:
    settings = get_settings()
    return BackendClient(settings.BACKEND_URL, timeout=settings.BACKEND_TIMEOUT)


def get_proxy_service(backend: BackendClient = Depends(get_backend_client)) -> ProxyService:
    settings = get_settings()
    bridge = CliBridge(settings.CLI_BRIDGE_COMMAND, cwd=settings.CLI_BRIDGE_DIR)
    return ProxyService(backend, bridge, max_upload_mb=settings.MAX_UPLOAD_MB)


def get_practice_session(
    request: Request,
    client_id: str = Depends(get_client_id),
    sessions: SessionStore = Depends(get_session_store),
    proxy: ProxyService = Depends(get_proxy_service),
) -> PracticeSession:
    return request.app.state.practice.get(
        client_id,
        lambda: PracticeSession(sessions, check_answer=proxy.check_answer),
    )


def get_teacher_sharing(
    request: Request,
    client_id: str = Depends(get_client_id),
    store: KeyValueStore = Depends(get_kv_store),
    proxy: ProxyService = Depends(get_proxy_service),
) -> TeacherSharing:
    settings = get_settings()
    return request.app.state.sharing.get(
        client_id,
        lambda: TeacherSharing(
            store,
            send_update=proxy.class_update,
            send_achievement=proxy.class_achievement,
            sync_interval=settings.TEACHER_SYNC_INTERVAL,
        ),
    )
