import logging
import random
import string
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from mathclicks.models.problems import ImageExtractionResult, ProblemAttempt, ProblemSet
from mathclicks.models.sessions import Progress, SessionSummary, SessionUpdate, StoredSession
from mathclicks.services.storage import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY = "mathclicks_sessions"
CURRENT_SESSION_KEY = "mathclicks_current_session"
SESSION_EXPIRY_DAYS = 7

_BASE36 = string.digits + string.ascii_lowercase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def generate_session_id() -> str:
    suffix = "".join(random.choice(_BASE36) for _ in range(7))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class SessionStore:
    """
    Persistance des sessions d'entraînement (une entrée par session)
    + pointeur vers la session courante.
    Les sessions non modifiées depuis `expiry_days` sont purgées au listing.
    """

    def __init__(
        self,
        store: KeyValueStore,
        expiry_days: int = SESSION_EXPIRY_DAYS,
        now: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.expiry = timedelta(days=expiry_days)
        self._now = now

    # ---------- sessions ----------

    def create_session(self, extraction: ImageExtractionResult, problem_set: ProblemSet) -> StoredSession:
        now = to_iso(self._now())
        session = StoredSession(
            id=generate_session_id(),
            createdAt=now,
            updatedAt=now,
            topic=extraction.topic,
            extraction=extraction,
            problems=problem_set.problems,
            currentIndex=0,
            attempts={},
            results={},
        )

        sessions = self._get_all_raw()
        sessions[session.id] = session.model_dump(mode="json")
        self._save_all_raw(sessions)

        self.set_current_session_id(session.id)
        return session

    def update_session(self, session_id: str, updates: SessionUpdate) -> Optional[StoredSession]:
        sessions = self._get_all_raw()
        raw = sessions.get(session_id)
        if raw is None:
            return None

        merged = dict(raw)
        merged.update(updates.model_dump(mode="json", exclude_unset=True))
        merged["updatedAt"] = to_iso(self._now())

        session = self._validate(session_id, merged)
        if session is None:
            return None

        sessions[session_id] = session.model_dump(mode="json")
        self._save_all_raw(sessions)
        return session

    def get_session(self, session_id: str) -> Optional[StoredSession]:
        raw = self._get_all_raw().get(session_id)
        if raw is None:
            return None
        return self._validate(session_id, raw)

    def delete_session(self, session_id: str) -> None:
        sessions = self._get_all_raw()
        sessions.pop(session_id, None)
        self._save_all_raw(sessions)

        if self.get_current_session_id() == session_id:
            self.clear_current_session_id()

    # ---------- current session pointer ----------

    def get_current_session_id(self) -> Optional[str]:
        value = self.store.get_item(CURRENT_SESSION_KEY)
        return value if isinstance(value, str) else None

    def set_current_session_id(self, session_id: str) -> None:
        self.store.set_item(CURRENT_SESSION_KEY, session_id)

    def clear_current_session_id(self) -> None:
        self.store.remove_item(CURRENT_SESSION_KEY)

    def get_current_session(self) -> Optional[StoredSession]:
        session_id = self.get_current_session_id()
        if not session_id:
            return None
        return self.get_session(session_id)

    # ---------- listing ----------

    def list_sessions(self) -> List[SessionSummary]:
        """
        Résumés triés du plus récent au plus ancien (purge des sessions expirées d'abord).
        """
        self.cleanup_expired_sessions()

        summaries: List[SessionSummary] = []
        for session_id, raw in self._get_all_raw().items():
            session = self._validate(session_id, raw)
            if session is not None:
                summaries.append(summarize(session))

        summaries.sort(key=lambda s: parse_iso(s.updatedAt), reverse=True)
        return summaries

    def has_saved_sessions(self) -> bool:
        return len(self.list_sessions()) > 0

    def get_incomplete_sessions(self) -> List[SessionSummary]:
        return [s for s in self.list_sessions() if not s.isComplete]

    def cleanup_expired_sessions(self) -> int:
        sessions = self._get_all_raw()
        now = self._now()
        expired = []
        for session_id, raw in sessions.items():
            try:
                updated_at = parse_iso(raw["updatedAt"])
            except (KeyError, TypeError, ValueError):
                continue
            if now - updated_at > self.expiry:
                expired.append(session_id)

        for session_id in expired:
            del sessions[session_id]
        if expired:
            logger.info("Removed %d expired session(s) for %s", len(expired), self.store.namespace)
            self._save_all_raw(sessions)
        return len(expired)

    # ---------- attempts (brouillons) ----------

    def save_problem_attempt(self, session_id: str, problem_id: str, attempt: ProblemAttempt) -> None:
        session = self.get_session(session_id)
        if session is None:
            return

        problem_attempts = session.problemAttempts or {}
        problem_attempts.setdefault(problem_id, []).append(attempt)
        self.update_session(session_id, SessionUpdate(problemAttempts=problem_attempts))

    def get_problem_attempts(self, session_id: str, problem_id: str) -> List[ProblemAttempt]:
        session = self.get_session(session_id)
        if session is None or not session.problemAttempts:
            return []
        return session.problemAttempts.get(problem_id, [])

    def get_latest_canvas_image(self, session_id: str, problem_id: str) -> Optional[str]:
        for attempt in reversed(self.get_problem_attempts(session_id, problem_id)):
            if attempt.canvasImage:
                return attempt.canvasImage
        return None

    # ---------- internals ----------

    def _get_all_raw(self) -> Dict[str, dict]:
        data = self.store.get_item(STORAGE_KEY)
        return data if isinstance(data, dict) else {}

    def _save_all_raw(self, sessions: Dict[str, dict]) -> None:
        self.store.set_item(STORAGE_KEY, sessions)

    def _validate(self, session_id: str, raw: dict) -> Optional[StoredSession]:
        try:
            return StoredSession.model_validate(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed session %s: %s", session_id, e)
            return None


def summarize(session: StoredSession) -> SessionSummary:
    total = len(session.problems)
    current = session.currentIndex + 1
    correct = sum(1 for ok in session.results.values() if ok)

    last_correct = False
    if 0 <= session.currentIndex < total:
        last_correct = bool(session.results.get(session.problems[session.currentIndex].id))

    return SessionSummary(
        id=session.id,
        topic=session.topic,
        createdAt=session.createdAt,
        updatedAt=session.updatedAt,
        progress=Progress(current=current, total=total, correct=correct),
        isComplete=current >= total and last_correct,
    )
