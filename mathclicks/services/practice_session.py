import logging
import threading
from typing import Any, Callable, Dict, List, Optional

import httpx

from mathclicks.models.problems import CheckAnswerResponse, ImageExtractionResult, Problem, ProblemSet
from mathclicks.models.sessions import PracticeState, Progress, SessionUpdate, StoredSession
from mathclicks.services import math_facts
from mathclicks.services.proxy import ProxyResult
from mathclicks.services.registry import ClientRegistry
from mathclicks.services.session_store import SessionStore

logger = logging.getLogger(__name__)

CHECK_FAILED = "Failed to check answer"

CheckAnswerFn = Callable[[Dict[str, Any]], ProxyResult]


class PracticeSession:
    """
    Session d'entraînement d'un client : problème courant, tentatives, résultats.
    États : loading (rien de chargé ou vérification en cours), active, complete.
    Chaque changement est sauvegardé dans le SessionStore.
    """

    def __init__(self, store: SessionStore, check_answer: CheckAnswerFn) -> None:
        self.store = store
        self._check_answer = check_answer
        self._lock = threading.RLock()
        self._initialized = False
        self._reset()

    # ---------- lifecycle ----------

    def restore(self) -> None:
        """
        Recharge la session courante au premier accès (une seule fois).
        """
        with self._lock:
            if self._initialized:
                return
            self._initialized = True

            saved = self.store.get_current_session()
            if saved is not None:
                self._load(saved)

    def start_session(
        self,
        extraction: ImageExtractionResult,
        problem_set: ProblemSet,
        interleave_facts: bool = False,
    ) -> StoredSession:
        """
        Crée et active une session. Avec `interleave_facts`, un fait de calcul
        est inséré tous les 3 problèmes (niveaux 4 à 8 uniquement).
        """
        if interleave_facts and math_facts.should_interleave_facts(extraction.grade_level):
            problems = math_facts.interleave_math_facts(problem_set.problems, extraction.grade_level)
            problem_set = problem_set.model_copy(update={"problems": problems})

        with self._lock:
            self._initialized = True
            session = self.store.create_session(extraction, problem_set)
            self._reset()
            self.session_id = session.id
            self.extraction = extraction
            self.problems = list(problem_set.problems)
            return session

    def resume_session(self, session_id: str) -> bool:
        with self._lock:
            self._initialized = True
            session = self.store.get_session(session_id)
            if session is None:
                logger.error("Session not found: %s", session_id)
                return False

            self.store.set_current_session_id(session_id)
            self._load(session)
            return True

    def end_session(self) -> None:
        """
        Quitte la session (elle reste stockée, seul le pointeur courant est effacé).
        """
        with self._lock:
            self.store.clear_current_session_id()
            self._reset()

    # ---------- answering ----------

    def current_problem(self) -> Optional[Problem]:
        if 0 <= self.current_index < len(self.problems):
            return self.problems[self.current_index]
        return None

    def submit_answer(self, answer: str) -> Optional[CheckAnswerResponse]:
        with self._lock:
            problem = self.current_problem()
            if problem is None:
                return None

            session_id = self.session_id
            attempt_number = self.attempts.get(problem.id, 0) + 1
            self.attempts = {**self.attempts, problem.id: attempt_number}
            self.is_loading = True
            self.error = None
            self._autosave()

        # vérification hors verrou
        try:
            result = self._check_answer(
                {
                    "problem": problem.model_dump(mode="json", exclude_none=True),
                    "studentAnswer": answer,
                    "attemptNumber": attempt_number,
                }
            )
            if result.status_code >= 400:
                raise ValueError(f"check-answer returned {result.status_code}: {result.body}")
            feedback = CheckAnswerResponse.model_validate(result.body)
        except (httpx.HTTPError, RuntimeError, ValueError) as e:
            logger.error("Error checking answer for %s: %s", problem.id, e)
            with self._lock:
                if self.session_id == session_id:
                    self.is_loading = False
                    self.error = CHECK_FAILED
            return None

        with self._lock:
            if self.session_id != session_id:
                # session quittée ou remplacée pendant la vérification
                return feedback
            self.is_loading = False
            self.last_feedback = feedback
            if feedback.correct:
                self.results = {**self.results, problem.id: True}
            self._autosave()
            return feedback

    def next_problem(self) -> None:
        with self._lock:
            self.current_index = max(0, min(self.current_index + 1, len(self.problems) - 1))
            self.last_feedback = None
            self._autosave()

    def clear_feedback(self) -> None:
        with self._lock:
            self.last_feedback = None

    # ---------- read-only views ----------

    def progress(self) -> Progress:
        return Progress(
            current=self.current_index + 1,
            total=len(self.problems),
            correct=sum(1 for ok in self.results.values() if ok),
        )

    @property
    def is_complete(self) -> bool:
        problem = self.current_problem()
        if problem is None:
            return False
        return self.current_index >= len(self.problems) - 1 and bool(self.results.get(problem.id))

    @property
    def status(self) -> str:
        if self.is_loading or not self.session_id or not self.problems:
            return "loading"
        if self.is_complete:
            return "complete"
        return "active"

    def to_state(self) -> PracticeState:
        return PracticeState(
            sessionId=self.session_id,
            extraction=self.extraction,
            problems=self.problems,
            currentIndex=self.current_index,
            attempts=self.attempts,
            results=self.results,
            isLoading=self.is_loading,
            error=self.error,
            lastFeedback=self.last_feedback,
            isRestored=self.is_restored,
            status=self.status,
            isComplete=self.is_complete,
            progress=self.progress(),
            currentProblem=self.current_problem(),
        )

    # ---------- internals ----------

    def _reset(self) -> None:
        self.session_id: Optional[str] = None
        self.extraction: Optional[ImageExtractionResult] = None
        self.problems: List[Problem] = []
        self.current_index = 0
        self.attempts: Dict[str, int] = {}
        self.results: Dict[str, bool] = {}
        self.is_loading = False
        self.error: Optional[str] = None
        self.last_feedback: Optional[CheckAnswerResponse] = None
        self.is_restored = False

    def _load(self, session: StoredSession) -> None:
        self._reset()
        self.session_id = session.id
        self.extraction = session.extraction
        self.problems = list(session.problems)
        self.current_index = session.currentIndex
        self.attempts = dict(session.attempts)
        self.results = dict(session.results)
        self.is_restored = True

    def _autosave(self) -> None:
        if not self.session_id or not self.problems:
            return
        self.store.update_session(
            self.session_id,
            SessionUpdate(
                currentIndex=self.current_index,
                attempts=self.attempts,
                results=self.results,
            ),
        )


class PracticeRegistry(ClientRegistry):
    """
    Une PracticeSession par client (namespace de stockage), restaurée au premier accès.
    """

    def get(self, namespace: str, factory: Callable[[], PracticeSession]) -> PracticeSession:
        session = super().get(namespace, factory)
        session.restore()
        return session
