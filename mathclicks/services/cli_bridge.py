import json
import logging
import os
import shlex
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

RESULT_MARKER = "___RESULT___"
MAX_OUTPUT_BYTES = 50 * 1024 * 1024


class CliBridgeError(RuntimeError):
    pass


def parse_bridge_output(stdout: str) -> Any:
    """
    Le bridge écrit ses logs puis `___RESULT___<json>` : on ne garde que le JSON.
    """
    idx = stdout.find(RESULT_MARKER)
    if idx == -1:
        raise CliBridgeError(f"No result marker found in output: {stdout[:500]}")
    payload = stdout[idx + len(RESULT_MARKER):].strip()
    try:
        return json.loads(payload)
    except ValueError as e:
        raise CliBridgeError(f"Invalid JSON after result marker: {e}") from e


class CliBridge:
    """
    Appel du pipeline local (mode dev sans BACKEND_URL) via un sous-processus.
    La commande reçoit {"command", "args"} sur stdin.
    """

    def __init__(self, command: str, cwd: str = "..", timeout: Optional[float] = None) -> None:
        self.command = command
        self.cwd = str(Path(cwd).resolve())
        self.timeout = timeout

    def call(self, command: str, args: Dict[str, Any]) -> Any:
        fd, tmp_path = tempfile.mkstemp(prefix=f"mathclicks-cmd-{int(time.time() * 1000)}-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"command": command, "args": args}, f)

            env = dict(os.environ)
            env["NODE_PATH"] = os.path.join(self.cwd, "node_modules")

            with open(tmp_path, "rb") as stdin:
                try:
                    proc = subprocess.run(
                        shlex.split(self.command),
                        stdin=stdin,
                        cwd=self.cwd,
                        env=env,
                        capture_output=True,
                        timeout=self.timeout,
                    )
                except (OSError, subprocess.TimeoutExpired) as e:
                    raise CliBridgeError(f"CLI bridge failed to run: {e}") from e

            stdout = proc.stdout[:MAX_OUTPUT_BYTES].decode("utf-8", errors="replace")
            if proc.returncode != 0:
                stderr = proc.stderr.decode("utf-8", errors="replace").strip()
                raise CliBridgeError(stderr or f"CLI bridge exited with code {proc.returncode}")

            return parse_bridge_output(stdout)
        finally:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass

    # ---------- commandes ----------

    def process_image(self, image_path: str, options: Optional[Dict[str, Any]] = None) -> Any:
        return self.call("processImage", {"imagePath": image_path, "options": options or {}})

    def check_answer(self, problem: Dict[str, Any], student_answer: str) -> Any:
        return self.call("checkAnswer", {"problem": problem, "studentAnswer": student_answer})

    def check_answer_with_hints(self, problem: Dict[str, Any], student_answer: str, attempt_number: int) -> Any:
        return self.call(
            "checkAnswerWithHints",
            {"problem": problem, "studentAnswer": student_answer, "attemptNumber": attempt_number},
        )


def save_uploaded_file(contents: bytes, filename: str) -> str:
    """
    Copie temporaire de l'image envoyée (le bridge lit un chemin disque).
    """
    safe_name = os.path.basename(filename or "upload")
    path = Path(tempfile.gettempdir()) / f"mathclicks-{int(time.time() * 1000)}-{safe_name}"
    path.write_bytes(contents)
    return str(path)


def cleanup_file(path: str) -> None:
    try:
        if os.path.exists(path):
            os.unlink(path)
    except OSError as e:
        logger.error("Failed to cleanup temp file %s: %s", path, e)
