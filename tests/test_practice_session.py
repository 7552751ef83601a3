import threading

import httpx
import pytest

from conftest import sample_extraction, sample_problem_set
from mathclicks.models.problems import ImageExtractionResult, ProblemCategory, ProblemSet
from mathclicks.services.practice_session import CHECK_FAILED, PracticeRegistry, PracticeSession
from mathclicks.services.proxy import ProxyResult


class FakeChecker:
    """
    Remplace /api/check-answer : correct si la réponse égale `answer`.
    """

    def __init__(self):
        self.calls = []
        self.error = None
        self.status_code = 200

    def __call__(self, body):
        self.calls.append(body)
        if self.error is not None:
            raise self.error
        if self.status_code >= 400:
            return ProxyResult(self.status_code, {"error": "Missing required fields"})
        correct = body["studentAnswer"].strip() == body["problem"]["answer"]
        return ProxyResult(
            200,
            {
                "correct": correct,
                "feedback": "Great job!" if correct else "Not quite.",
                "hint_to_show": None if correct else 0,
            },
        )


@pytest.fixture
def checker():
    return FakeChecker()


@pytest.fixture
def practice(session_store, checker):
    return PracticeSession(session_store, check_answer=checker)


def _start(practice, count=3, **kwargs):
    return practice.start_session(
        ImageExtractionResult.model_validate(sample_extraction()),
        ProblemSet.model_validate(sample_problem_set(count=count)),
        **kwargs,
    )


def test_initial_state_is_loading(practice):
    state = practice.to_state()
    assert state.status == "loading"
    assert state.sessionId is None
    assert state.currentProblem is None
    assert practice.submit_answer("1") is None


def test_wrong_then_right_answer(practice, checker, session_store):
    session = _start(practice)
    assert practice.status == "active"
    assert practice.current_problem().id == "p1"

    feedback = practice.submit_answer("9")
    assert feedback.correct is False
    assert practice.attempts == {"p1": 1}
    assert practice.results == {}
    assert checker.calls[0]["attemptNumber"] == 1
    assert checker.calls[0]["problem"]["id"] == "p1"

    feedback = practice.submit_answer("1")
    assert feedback.correct is True
    assert practice.attempts == {"p1": 2}
    assert practice.results == {"p1": True}
    assert practice.to_state().lastFeedback.feedback == "Great job!"

    saved = session_store.get_session(session.id)
    assert saved.attempts == {"p1": 2}
    assert saved.results == {"p1": True}


def test_next_problem_clears_feedback_and_stays_in_bounds(practice, session_store):
    session = _start(practice, count=2)
    practice.submit_answer("1")
    practice.next_problem()
    assert practice.current_index == 1
    assert practice.last_feedback is None
    assert session_store.get_session(session.id).currentIndex == 1

    practice.next_problem()
    assert practice.current_index == 1


def test_completion(practice):
    _start(practice, count=2)
    practice.submit_answer("1")
    practice.next_problem()
    assert not practice.is_complete

    practice.submit_answer("2")
    assert practice.is_complete
    state = practice.to_state()
    assert state.status == "complete"
    assert state.progress.current == 2
    assert state.progress.correct == 2


def test_check_failure_sets_error(practice, checker):
    _start(practice)
    checker.error = httpx.ConnectError("backend down")

    assert practice.submit_answer("1") is None
    state = practice.to_state()
    assert state.error == CHECK_FAILED
    assert state.isLoading is False
    assert state.attempts == {"p1": 1}
    assert state.results == {}


def test_error_status_is_a_failure(practice, checker):
    _start(practice)
    checker.status_code = 400
    assert practice.submit_answer("1") is None
    assert practice.error == CHECK_FAILED


def test_restore_current_session(practice, session_store, checker):
    session = _start(practice)
    practice.submit_answer("1")
    practice.next_problem()

    restored = PracticeSession(session_store, check_answer=checker)
    restored.restore()
    state = restored.to_state()
    assert state.sessionId == session.id
    assert state.isRestored is True
    assert state.currentIndex == 1
    assert state.results == {"p1": True}


def test_resume_and_end(practice, session_store, checker):
    session = _start(practice)
    practice.end_session()
    assert session_store.get_current_session_id() is None
    assert session_store.get_session(session.id) is not None
    assert practice.status == "loading"

    assert practice.resume_session("session_unknown") is False
    assert practice.resume_session(session.id) is True
    assert practice.session_id == session.id
    assert session_store.get_current_session_id() == session.id


def test_registry_returns_one_session_per_client(session_store, checker):
    registry = PracticeRegistry()
    created = []

    def factory():
        created.append(PracticeSession(session_store, check_answer=checker))
        return created[-1]

    first = registry.get("alice", factory)
    assert registry.get("alice", factory) is first
    assert registry.get("bob", factory) is not first
    assert len(created) == 2


def test_lock_released_while_checking(session_store):
    seen = {}

    def slow_checker(body):
        # un autre thread doit pouvoir agir sur la session pendant la vérification
        worker = threading.Thread(target=practice.clear_feedback)
        worker.start()
        worker.join(timeout=2)
        seen["blocked"] = worker.is_alive()
        seen["loading"] = practice.to_state().isLoading
        return ProxyResult(200, {"correct": True, "feedback": "Great job!"})

    practice = PracticeSession(session_store, check_answer=slow_checker)
    _start(practice)

    feedback = practice.submit_answer("1")
    assert feedback.correct is True
    assert seen == {"blocked": False, "loading": True}
    assert practice.is_loading is False
    assert practice.results == {"p1": True}


def test_end_during_check_discards_feedback(session_store):
    def checker(body):
        practice.end_session()
        return ProxyResult(200, {"correct": True, "feedback": "Great job!"})

    practice = PracticeSession(session_store, check_answer=checker)
    session = _start(practice)

    assert practice.submit_answer("1").correct is True
    assert practice.session_id is None
    assert practice.last_feedback is None
    assert practice.results == {}
    assert session_store.get_session(session.id).results == {}


def test_start_with_interleaved_facts(practice, session_store):
    session = _start(practice, count=6, interleave_facts=True)

    categories = [p.category for p in practice.problems]
    assert len(practice.problems) == 7
    assert categories[3] == ProblemCategory.math_fact
    assert categories.count(ProblemCategory.lesson) == 6
    assert len(session_store.get_session(session.id).problems) == 7


def test_start_without_interleave_keeps_problems(practice):
    _start(practice, count=6)
    assert [p.id for p in practice.problems] == ["p1", "p2", "p3", "p4", "p5", "p6"]


def test_registry_evicts_idle_sessions(session_store, checker):
    now = [0.0]
    registry = PracticeRegistry(max_idle=60, clock=lambda: now[0])

    def factory():
        return PracticeSession(session_store, check_answer=checker)

    first = registry.get("alice", factory)
    now[0] = 61
    registry.get("bob", factory)
    assert "alice" not in registry
    assert registry.get("alice", factory) is not first
