import fcntl
import json
import logging
import os
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

NAMESPACE_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
DEFAULT_NAMESPACE = "default"


def is_valid_namespace(namespace: str) -> bool:
    return bool(NAMESPACE_RE.match(namespace or ""))


class KeyValueStore:
    """
    Stockage clé/valeur JSON, un fichier par client (équivalent du localStorage).
    Chaque écriture relit puis réécrit le document entier.
    Si le dossier est inutilisable, lectures -> None et écritures ignorées.
    """

    def __init__(self, base_path: str = "./storage", namespace: str = DEFAULT_NAMESPACE):
        if not is_valid_namespace(namespace):
            raise ValueError(f"Namespace invalide : {namespace!r}")
        self.base_path = Path(base_path)
        self.namespace = namespace
        self.path = self.base_path / f"{namespace}.json"

    def is_available(self) -> bool:
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        return os.access(self.base_path, os.W_OK)

    # ---------- public API ----------

    def get_item(self, key: str) -> Optional[Any]:
        if not self.is_available():
            return None
        return self._load().get(key)

    def set_item(self, key: str, value: Any) -> None:
        if not self.is_available():
            return
        try:
            with self._locked():
                data = self._load()
                data[key] = value
                self._save(data)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save %s (%s): %s", key, self.namespace, e)

    def remove_item(self, key: str) -> None:
        if not self.is_available():
            return
        try:
            with self._locked():
                data = self._load()
                if key in data:
                    del data[key]
                    self._save(data)
        except OSError as e:
            logger.error("Failed to remove %s (%s): %s", key, self.namespace, e)

    def clear(self) -> None:
        """
        Supprime tout le document du client (utile pour les tests).
        """
        if self.path.exists():
            self.path.unlink()

    # ---------- internals ----------

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
        except (OSError, ValueError) as e:
            logger.warning("Unreadable storage file %s: %s", self.path, e)
            return {}

    def _save(self, data: Dict[str, Any]) -> None:
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)  # atomic on POSIX

    @contextmanager
    def _locked(self):
        lock_file = self.path.with_suffix(".lock")
        with open(lock_file, "a") as lf:
            fcntl.flock(lf, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lf, fcntl.LOCK_UN)
