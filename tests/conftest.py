import json
import sys
import textwrap

import httpx
import pytest
from fastapi.testclient import TestClient

from mathclicks.core.config import get_settings
from mathclicks.core.deps import get_backend_client
from mathclicks.main import create_app
from mathclicks.services.backend_client import BackendClient
from mathclicks.services.session_store import SessionStore
from mathclicks.services.storage import KeyValueStore

BACKEND_URL = "http://backend.test"

# Faux bridge : répond selon la commande reçue sur stdin
FAKE_BRIDGE = textwrap.dedent(
    """
    import json, sys
    cmd = json.loads(sys.stdin.read())
    print("compiling...")
    if cmd["command"] == "processImage":
        out = {"success": True, "extraction": {"topic": "Fractions"}, "problems": {"topic": "Fractions", "problems": []},
               "imagePath": cmd["args"]["imagePath"], "options": cmd["args"]["options"]}
    elif cmd["command"] == "checkAnswerWithHints":
        ok = cmd["args"]["studentAnswer"].strip() == cmd["args"]["problem"]["answer"]
        out = {"correct": ok, "feedback": "Nice!" if ok else "Not quite.", "hint_to_show": None if ok else 0}
    else:
        sys.stderr.write("Unknown command: " + cmd["command"])
        sys.exit(1)
    print("___RESULT___" + json.dumps(out))
    """
)


def sample_extraction(topic="Adding fractions"):
    return {
        "topic": topic,
        "subtopics": ["like denominators"],
        "grade_level": 5,
        "standards": ["5.NF.A.1"],
        "extracted_content": {"equations": ["1/4 + 2/4 = 3/4"]},
        "difficulty_baseline": 2,
    }


def sample_problem(pid, answer="7", answer_type="integer", tier=2):
    return {
        "id": pid,
        "tier": tier,
        "problem_text": f"Problem {pid}",
        "answer": answer,
        "answer_type": answer_type,
        "solution_steps": ["Add the numerators"],
        "hints": ["Look at the denominators", "Add the top numbers"],
    }


def sample_problem_set(topic="Adding fractions", count=3):
    return {
        "topic": topic,
        "problems": [sample_problem(f"p{i + 1}", answer=str(i + 1)) for i in range(count)],
        "generated_at": "2026-10-16T09:00:00.000Z",
    }


@pytest.fixture
def storage_path(tmp_path):
    return tmp_path / "storage"


@pytest.fixture
def bridge_script(tmp_path):
    path = tmp_path / "fake_bridge.py"
    path.write_text(FAKE_BRIDGE, encoding="utf-8")
    return path


@pytest.fixture
def app(storage_path, bridge_script, tmp_path, monkeypatch):
    """
    Application avec un STORAGE_PATH temporaire, sans BACKEND_URL
    et sans synchro périodique.
    """
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("APP_NAME", "MathClicks API (tests)")
    monkeypatch.setenv("STORAGE_PATH", str(storage_path))
    monkeypatch.setenv("MAX_UPLOAD_MB", "1")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost")
    monkeypatch.setenv("TEACHER_SYNC_INTERVAL", "0")
    monkeypatch.setenv("CLI_BRIDGE_COMMAND", f"{sys.executable} {bridge_script}")
    monkeypatch.setenv("CLI_BRIDGE_DIR", str(tmp_path))
    monkeypatch.delenv("BACKEND_URL", raising=False)

    # IMPORTANT: vider le cache des settings pour prendre en compte les env
    get_settings.cache_clear()
    application = create_app()
    yield application
    application.state.sharing.close_all()
    get_settings.cache_clear()


@pytest.fixture
def test_client(app):
    return TestClient(app)


class FakeBackend:
    """
    Backend simulé via httpx.MockTransport : enregistre les appels,
    répond {"success": true} sauf réponse programmée.
    """

    def __init__(self):
        self.calls = []
        self.responses = {}
        self.error = None

    def respond(self, method, path, status_code, payload):
        self.responses[(method, path)] = (status_code, payload)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.error is not None:
            raise self.error
        content_type = request.headers.get("content-type", "")
        body = json.loads(request.content) if content_type.startswith("application/json") else request.content
        self.calls.append({"method": request.method, "path": request.url.path, "body": body, "headers": request.headers})
        status_code, payload = self.responses.get((request.method, request.url.path), (200, {"success": True}))
        return httpx.Response(status_code, json=payload)

    def client(self) -> BackendClient:
        return BackendClient(BACKEND_URL, timeout=5.0, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_backend(app):
    backend = FakeBackend()
    app.dependency_overrides[get_backend_client] = backend.client
    yield backend
    app.dependency_overrides.pop(get_backend_client, None)


@pytest.fixture
def kv_store(storage_path):
    return KeyValueStore(base_path=str(storage_path), namespace="student1")


@pytest.fixture
def session_store(kv_store):
    return SessionStore(kv_store)
