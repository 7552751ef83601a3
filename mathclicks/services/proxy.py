import logging
from typing import Any, Dict, Iterable, NamedTuple, Optional

from mathclicks.services.backend_client import BackendClient
from mathclicks.services.cli_bridge import CliBridge, cleanup_file, save_uploaded_file

logger = logging.getLogger(__name__)

VALID_IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
INITIAL_PROBLEM_COUNT = 3
NOT_CONFIGURED = (501, "Backend URL not configured")

DEFAULT_WARM_UP = {
    "enabled": False,
    "duration": 2,
    "focus": "mixed",
    "required": False,
}
DEFAULT_GRADE_LEVEL = 6

WORK_PHOTO_FALLBACK = {
    "success": True,
    "feedback": "Your work shows good effort! Let me help you find where things went a bit off track.",
    "errorIdentified": "I noticed a calculation step that needs review.",
    "suggestion": "Try double-checking your arithmetic in each step.",
    "encouragement": "You're on the right track - keep going!",
}


class ProxyResult(NamedTuple):
    status_code: int
    body: Any


def _fail(status_code: int, error: str) -> ProxyResult:
    return ProxyResult(status_code, {"success": False, "error": error})


def is_blank(value: Any) -> bool:
    """
    Valeur absente au sens du client web : None, "", 0 ou False.
    Les objets et listes vides comptent comme présents.
    """
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    return False


def missing_fields(body: Dict[str, Any], fields: Iterable[str]) -> bool:
    return any(is_blank(body.get(f)) for f in fields)


class ProxyService:
    """
    Routes /api/* : relaie vers BACKEND_URL si configurée, sinon
    CLI bridge (image, réponse), réponse par défaut ou 501.
    """

    def __init__(self, backend: BackendClient, bridge: CliBridge, max_upload_mb: int = 10) -> None:
        self.backend = backend
        self.bridge = bridge
        self.max_upload_bytes = max_upload_mb * 1024 * 1024

    # ---------- image / problèmes ----------

    def process_image(self, contents: Optional[bytes], filename: str, content_type: Optional[str]) -> ProxyResult:
        if contents is None:
            return _fail(400, "No image file provided")
        if content_type not in VALID_IMAGE_TYPES:
            return _fail(400, "Invalid file type. Please upload a JPEG, PNG, GIF, or WebP image.")
        if len(contents) > self.max_upload_bytes:
            return _fail(
                413,
                f"Image is too large. Please select an image under {self.max_upload_bytes // (1024 * 1024)}MB.",
            )

        if self.backend.configured:
            r = self.backend.post_multipart(
                "/api/process-image",
                data={"count": str(INITIAL_PROBLEM_COUNT)},
                files={"image": (filename, contents, content_type)},
            )
            return ProxyResult(r.status_code, r.body)

        logger.info("No BACKEND_URL, processing %s through the CLI bridge", filename)
        tmp_path = save_uploaded_file(contents, filename)
        try:
            result = self.bridge.process_image(tmp_path, {"count": INITIAL_PROBLEM_COUNT})
        finally:
            cleanup_file(tmp_path)

        if not result.get("success"):
            return _fail(500, result.get("error") or "Failed to process image")

        return ProxyResult(
            200,
            {
                "success": True,
                "data": {"extraction": result.get("extraction"), "problems": result.get("problems")},
            },
        )

    def check_answer(self, body: Dict[str, Any]) -> ProxyResult:
        problem = body.get("problem")
        student_answer = body.get("studentAnswer")
        attempt_number = body.get("attemptNumber")

        if is_blank(problem) or student_answer is None or attempt_number is None:
            return ProxyResult(400, {"error": "Missing required fields: problem, studentAnswer, attemptNumber"})

        if self.backend.configured:
            r = self.backend.post_json("/api/check-answer", body)
            return ProxyResult(r.status_code, r.body)

        result = self.bridge.check_answer_with_hints(problem, student_answer, attempt_number)

        hint_text = None
        hint_index = result.get("hint_to_show")
        hints = problem.get("hints") or []
        if isinstance(hint_index, int) and 0 <= hint_index < len(hints) and hints[hint_index]:
            hint_text = hints[hint_index]

        return ProxyResult(
            200,
            {
                "correct": result.get("correct", False),
                "feedback": result.get("feedback", ""),
                "error_type": result.get("error_type"),
                "hint_to_show": hint_index,
                "hint_text": hint_text,
            },
        )

    def generate_more(self, body: Dict[str, Any]) -> ProxyResult:
        if is_blank(body.get("extraction")):
            return _fail(400, "Missing extraction data")
        if not self.backend.configured:
            return _fail(*NOT_CONFIGURED)

        payload = {
            "extraction": body["extraction"],
            "options": {"tier": body.get("tier"), "count": body.get("count", INITIAL_PROBLEM_COUNT)},
        }
        r = self.backend.post_json("/api/generate-problems", payload)
        return ProxyResult(r.status_code, r.body)

    def generate_from_standard(self, body: Dict[str, Any]) -> ProxyResult:
        return self._forward("/api/generate-from-standard", body)

    # ---------- analyse IA ----------

    def analyze_work(self, body: Dict[str, Any]) -> ProxyResult:
        if missing_fields(body, ("problem", "canvasImage")):
            return _fail(400, "Missing required fields: problem, canvasImage")
        payload = {
            "problem": body["problem"],
            "canvasImage": body["canvasImage"],
            "previousQuestions": body.get("previousQuestions"),
        }
        return self._forward("/api/analyze-work", payload)

    def analyze_work_photo(self, body: Dict[str, Any]) -> ProxyResult:
        if missing_fields(body, ("problem", "workImage", "studentAnswer")):
            return _fail(400, "Missing required fields")

        if not self.backend.configured:
            return ProxyResult(200, dict(WORK_PHOTO_FALLBACK))

        payload = {
            "problem": body["problem"],
            "workImage": body["workImage"],
            "studentAnswer": body["studentAnswer"],
            "attemptNumber": body.get("attemptNumber") or 1,
        }
        r = self.backend.post_json("/api/analyze-incorrect-work", payload)
        return ProxyResult(r.status_code, r.body)

    def evaluate_response(self, body: Dict[str, Any]) -> ProxyResult:
        fields = ("problem", "canvasImage", "aiQuestion", "studentResponse")
        if missing_fields(body, fields):
            return _fail(400, "Missing required fields")
        return self._forward("/api/evaluate-response", {f: body[f] for f in fields})

    # ---------- classes ----------

    def class_create(self, body: Optional[Dict[str, Any]]) -> ProxyResult:
        return self._forward("/api/class/create", body or {})

    def class_join(self, body: Dict[str, Any]) -> ProxyResult:
        if missing_fields(body, ("classCode", "session")):
            return _fail(400, "Missing classCode or session")
        return self._forward("/api/class/join", {"classCode": body["classCode"], "session": body["session"]})

    def class_update(self, body: Dict[str, Any]) -> ProxyResult:
        if missing_fields(body, ("classCode", "session")):
            return _fail(400, "Missing classCode or session")
        return self._forward("/api/class/update", {"classCode": body["classCode"], "session": body["session"]})

    def class_achievement(self, body: Dict[str, Any]) -> ProxyResult:
        if missing_fields(body, ("classCode", "studentName", "achievementName")):
            return _fail(400, "Missing required fields")
        fields = ("classCode", "studentName", "achievementName", "achievementIcon")
        return self._forward("/api/class/achievement", {f: body.get(f) for f in fields})

    def class_exists(self, class_code: str) -> ProxyResult:
        if not self.backend.configured:
            return ProxyResult(200, {"exists": False})
        r = self.backend.get_json(f"/api/class/{class_code}/exists")
        return ProxyResult(r.status_code, r.body)

    def class_settings(self, class_code: str) -> ProxyResult:
        if not self.backend.configured:
            return ProxyResult(
                200,
                {
                    "success": True,
                    "data": {
                        "classCode": class_code,
                        "gradeLevel": DEFAULT_GRADE_LEVEL,
                        "warmUp": dict(DEFAULT_WARM_UP),
                    },
                },
            )
        r = self.backend.get_json(f"/api/class/{class_code}/settings")
        return ProxyResult(r.status_code, r.body)

    def update_class_settings(self, class_code: str, body: Dict[str, Any]) -> ProxyResult:
        if not self.backend.configured:
            return _fail(*NOT_CONFIGURED)
        r = self.backend.patch_json(f"/api/class/{class_code}/settings", body)
        return ProxyResult(r.status_code, r.body)

    def class_warmup(self, class_code: str) -> ProxyResult:
        if not self.backend.configured:
            return ProxyResult(200, {"success": True, "data": dict(DEFAULT_WARM_UP)})
        r = self.backend.get_json(f"/api/class/{class_code}/warmup")
        return ProxyResult(r.status_code, r.body)

    # ---------- internals ----------

    def _forward(self, path: str, payload: Any) -> ProxyResult:
        if not self.backend.configured:
            return _fail(*NOT_CONFIGURED)
        r = self.backend.post_json(path, payload)
        return ProxyResult(r.status_code, r.body)
