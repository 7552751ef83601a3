import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_MAX_IDLE = 3600.0


class ClientRegistry:
    """
    Un objet d'état par client (namespace de stockage), en mémoire.
    Les entrées non consultées depuis `max_idle` secondes sont évincées
    (0 = jamais) ; l'état persistant reste dans le stockage et sera relu.
    """

    def __init__(
        self,
        max_idle: float = DEFAULT_MAX_IDLE,
        clock: Callable[[], float] = time.monotonic,
        on_evict: Optional[Callable[[Any], None]] = None,
    ) -> None:
        self.max_idle = max_idle
        self._clock = clock
        self._on_evict = on_evict
        self._items: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, namespace: str, factory: Callable[[], Any]) -> Any:
        with self._lock:
            now = self._clock()
            evicted = self._pop_idle(now, keep=namespace)
            entry = self._items.get(namespace)
            item = entry[0] if entry is not None else factory()
            self._items[namespace] = (item, now)

        self._release(evicted)
        return item

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, namespace: str) -> bool:
        return namespace in self._items

    def close_all(self) -> None:
        with self._lock:
            items = [item for item, _ in self._items.values()]
            self._items.clear()
        self._release(items)

    def _pop_idle(self, now: float, keep: str) -> List[Any]:
        if not self.max_idle or self.max_idle <= 0:
            return []
        idle = [ns for ns, (_, seen) in self._items.items() if ns != keep and now - seen > self.max_idle]
        if idle:
            logger.info("Evicting %d idle client(s)", len(idle))
        return [self._items.pop(ns)[0] for ns in idle]

    def _release(self, items: List[Any]) -> None:
        if self._on_evict is None:
            return
        for item in items:
            self._on_evict(item)
