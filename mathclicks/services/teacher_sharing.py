import logging
import re
import threading
import time
import uuid
from typing import Any, Callable, Dict, Optional

import httpx
from pydantic import ValidationError

from mathclicks.models.sharing import SessionSnapshot, SharingStatus, TeacherSharingState
from mathclicks.services.proxy import ProxyResult
from mathclicks.services.registry import DEFAULT_MAX_IDLE, ClientRegistry
from mathclicks.services.session_store import to_iso, utcnow
from mathclicks.services.storage import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "mathclicks-teacher-sharing"
RECENT_WORK_LIMIT = 5
DEFAULT_SYNC_INTERVAL = 30.0

SendFn = Callable[[Dict[str, Any]], ProxyResult]


def clean_class_code(code: str) -> str:
    """
    "ab-12 c" -> "AB12C" (majuscules, alphanumérique uniquement).
    """
    return re.sub(r"[^A-Z0-9]", "", (code or "").upper())


class TeacherSharing:
    """
    Partage de la progression d'un élève avec sa classe.
    Tant que le partage est actif, le dernier instantané est renvoyé
    toutes les `sync_interval` secondes (thread daemon).
    """

    def __init__(
        self,
        store: KeyValueStore,
        send_update: SendFn,
        send_achievement: SendFn,
        sync_interval: float = DEFAULT_SYNC_INTERVAL,
    ) -> None:
        self.store = store
        self._send_update = send_update
        self._send_achievement = send_achievement
        self.sync_interval = sync_interval

        self.state = TeacherSharingState()
        self._started_at: Optional[str] = None
        self._last_snapshot: Optional[SessionSnapshot] = None
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._load()
        if self.state.isSharing:
            self._start_periodic_sync()

    # ---------- connexion ----------

    def connect_to_class(self, student_name: str, class_code: str) -> TeacherSharingState:
        with self._lock:
            self.state = TeacherSharingState(
                isSharing=True,
                studentName=student_name,
                classCode=class_code,
                studentId=str(uuid.uuid4()),
            )
            self._started_at = to_iso(utcnow())
            self._save()
        logger.info("Student %s joined class %s", self.state.studentId, class_code)
        self._start_periodic_sync()
        return self.state

    def disconnect_from_class(self) -> None:
        with self._lock:
            self.state = TeacherSharingState()
            self._started_at = None
            self._save()
        self._stop_periodic_sync()

    # ---------- envois ----------

    def sync_session(self, snapshot: SessionSnapshot) -> bool:
        with self._lock:
            state = self.state
            if not state.isSharing or not state.classCode:
                return False
            self._last_snapshot = snapshot
            started_at = self._started_at or to_iso(utcnow())

        now = to_iso(utcnow())
        session = snapshot.model_dump(mode="json")
        session.update(
            {
                "id": state.studentId,
                "studentName": state.studentName,
                "classCode": state.classCode,
                "isActive": True,
                "lastActivityAt": now,
                "startedAt": started_at,
                "recentWork": session["recentWork"][:RECENT_WORK_LIMIT],
            }
        )
        return self._send(self._send_update, {"classCode": state.classCode, "session": session}, "syncing session")

    def report_achievement(self, achievement_name: str, achievement_icon: str = "") -> bool:
        state = self.state
        if not state.isSharing or not state.classCode:
            return False
        payload = {
            "classCode": state.classCode,
            "studentName": state.studentName,
            "achievementName": achievement_name,
            "achievementIcon": achievement_icon,
        }
        return self._send(self._send_achievement, payload, "reporting achievement")

    def request_help(self, needs_help: bool) -> bool:
        return self._resync(needsHelp=needs_help)

    def mark_stuck(self, is_stuck: bool) -> bool:
        """
        Appelé après 3 tentatives ou plus sur le même problème.
        """
        return self._resync(isStuck=is_stuck)

    # ---------- synchro périodique ----------

    @property
    def is_syncing(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def status(self) -> SharingStatus:
        return SharingStatus(
            isSharing=self.state.isSharing,
            studentName=self.state.studentName,
            classCode=self.state.classCode,
            isSyncing=self.is_syncing,
        )

    def close(self) -> None:
        self._stop_periodic_sync()

    def _start_periodic_sync(self) -> None:
        self._stop_periodic_sync()

        if self._last_snapshot is not None:
            self.sync_session(self._last_snapshot)

        if not self.sync_interval or self.sync_interval <= 0:
            return

        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._sync_loop,
            args=(stop_event,),
            daemon=True,
            name=f"teacher-sync-{self.store.namespace}",
        )
        self._thread.start()

    def _stop_periodic_sync(self) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def _sync_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.sync_interval):
            snapshot = self._last_snapshot
            if snapshot is not None:
                self.sync_session(snapshot)

    # ---------- internals ----------

    def _resync(self, **changes: bool) -> bool:
        if not self.state.isSharing or self._last_snapshot is None:
            return False
        return self.sync_session(self._last_snapshot.model_copy(update=changes))

    def _send(self, fn: SendFn, payload: Dict[str, Any], action: str) -> bool:
        try:
            result = fn(payload)
        except (httpx.HTTPError, RuntimeError, ValueError) as e:
            logger.error("Error %s to teacher: %s", action, e)
            return False
        if result.status_code >= 400:
            logger.warning("Error %s to teacher: HTTP %s %s", action, result.status_code, result.body)
            return False
        return True

    def _load(self) -> None:
        saved = self.store.get_item(STORAGE_KEY)
        if saved is None:
            return
        try:
            self.state = TeacherSharingState.model_validate(saved)
        except ValidationError as e:
            logger.error("Error loading teacher sharing state: %s", e)

    def _save(self) -> None:
        self.store.set_item(STORAGE_KEY, self.state.model_dump())


class SharingRegistry(ClientRegistry):
    """
    Un TeacherSharing par client ; la synchro périodique s'arrête à l'éviction.
    """

    def __init__(self, max_idle: float = DEFAULT_MAX_IDLE, clock: Callable[[], float] = time.monotonic) -> None:
        super().__init__(max_idle=max_idle, clock=clock, on_evict=lambda sharing: sharing.close())
