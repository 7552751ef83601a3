import threading
import time

import httpx
import pytest

from mathclicks.models.sharing import RecentWork, SessionSnapshot
from mathclicks.services.proxy import ProxyResult
from mathclicks.services.teacher_sharing import STORAGE_KEY, TeacherSharing, clean_class_code


class Recorder:
    def __init__(self, status_code=200, expected=None):
        self.payloads = []
        self.status_code = status_code
        self.error = None
        self.expected = expected
        self.done = threading.Event()

    def __call__(self, payload):
        if self.error is not None:
            raise self.error
        self.payloads.append(payload)
        if self.expected and len(self.payloads) >= self.expected:
            self.done.set()
        return ProxyResult(self.status_code, {"success": self.status_code < 400})


def _snapshot(recent=0, **kwargs):
    work = [
        RecentWork(problemId=f"p{i}", problemText=f"Problem {i}", attempts=1, timestamp="2026-10-16T09:00:00.000Z")
        for i in range(recent)
    ]
    return SessionSnapshot(topic="Fractions", gradeLevel=5, totalProblems=3, recentWork=work, **kwargs)


@pytest.fixture
def updates():
    return Recorder()


@pytest.fixture
def achievements():
    return Recorder()


@pytest.fixture
def sharing(kv_store, updates, achievements):
    s = TeacherSharing(kv_store, send_update=updates, send_achievement=achievements, sync_interval=0)
    yield s
    s.close()


def test_clean_class_code():
    assert clean_class_code("ab-12 c") == "AB12C"
    assert clean_class_code(" xyz789 ") == "XYZ789"
    assert clean_class_code("--") == ""


def test_no_sync_when_not_sharing(sharing, updates):
    assert sharing.sync_session(_snapshot()) is False
    assert sharing.report_achievement("First steps") is False
    assert updates.payloads == []


def test_connect_persists_state(sharing, kv_store, updates, achievements):
    state = sharing.connect_to_class("Ada", "ABC123")
    assert state.isSharing is True
    assert state.studentId

    saved = kv_store.get_item(STORAGE_KEY)
    assert saved["classCode"] == "ABC123"
    assert saved["studentName"] == "Ada"

    reloaded = TeacherSharing(kv_store, send_update=updates, send_achievement=achievements, sync_interval=0)
    assert reloaded.state == state
    assert reloaded.status().isSharing is True


def test_sync_payload(sharing, updates):
    state = sharing.connect_to_class("Ada", "ABC123")
    assert sharing.sync_session(_snapshot(recent=7, problemsCompleted=2)) is True
    assert sharing.sync_session(_snapshot(recent=1)) is True

    first, second = updates.payloads
    assert first["classCode"] == "ABC123"
    session = first["session"]
    assert session["id"] == state.studentId
    assert session["studentName"] == "Ada"
    assert session["isActive"] is True
    assert session["problemsCompleted"] == 2
    assert [w["problemId"] for w in session["recentWork"]] == ["p0", "p1", "p2", "p3", "p4"]
    # startedAt = heure de connexion, identique d'une synchro à l'autre
    assert session["startedAt"] == second["session"]["startedAt"]


def test_help_and_stuck_resync_last_snapshot(sharing, updates):
    sharing.connect_to_class("Ada", "ABC123")
    assert sharing.request_help(True) is False

    sharing.sync_session(_snapshot())
    assert sharing.request_help(True) is True
    assert updates.payloads[-1]["session"]["needsHelp"] is True

    assert sharing.mark_stuck(True) is True
    assert updates.payloads[-1]["session"]["isStuck"] is True


def test_report_achievement(sharing, achievements):
    sharing.connect_to_class("Ada", "ABC123")
    assert sharing.report_achievement("Streak 5", "🔥") is True
    assert achievements.payloads == [
        {"classCode": "ABC123", "studentName": "Ada", "achievementName": "Streak 5", "achievementIcon": "🔥"}
    ]


def test_send_failures_are_swallowed(sharing, updates):
    sharing.connect_to_class("Ada", "ABC123")
    updates.status_code = 404
    assert sharing.sync_session(_snapshot()) is False

    updates.error = httpx.ConnectError("backend down")
    assert sharing.sync_session(_snapshot()) is False


def test_disconnect_resets_state(sharing, kv_store, updates):
    sharing.connect_to_class("Ada", "ABC123")
    sharing.disconnect_from_class()

    assert sharing.state.isSharing is False
    assert kv_store.get_item(STORAGE_KEY)["classCode"] == ""
    assert sharing.sync_session(_snapshot()) is False
    assert updates.payloads == []


def test_periodic_sync(kv_store, achievements):
    updates = Recorder(expected=3)
    sharing = TeacherSharing(kv_store, send_update=updates, send_achievement=achievements, sync_interval=0.02)
    try:
        sharing.connect_to_class("Ada", "ABC123")
        assert sharing.is_syncing
        sharing.sync_session(_snapshot())
        assert updates.done.wait(timeout=5)
    finally:
        sharing.close()
    assert not sharing.is_syncing


def test_no_thread_without_interval(sharing):
    sharing.connect_to_class("Ada", "ABC123")
    assert sharing.is_syncing is False


def test_disconnect_stops_periodic_sync(kv_store, achievements):
    updates = Recorder(expected=2)
    sharing = TeacherSharing(kv_store, send_update=updates, send_achievement=achievements, sync_interval=0.02)
    try:
        sharing.connect_to_class("Ada", "ABC123")
        sharing.sync_session(_snapshot())
        assert updates.done.wait(timeout=5)

        sharing.disconnect_from_class()
        assert not sharing.is_syncing
        sent = len(updates.payloads)
        time.sleep(0.1)
        assert len(updates.payloads) == sent
    finally:
        sharing.close()
