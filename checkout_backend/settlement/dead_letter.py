"""
Canal d'échecs des effets de bord webhook (dead-letter).
Le webhook est toujours acquitté: chaque échec avalé est journalisé ici
(JSON lines) pour que l'exploitation puisse le détecter et le rejouer.
"""
import json
import logging
import threading
import time
from collections import deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

# Entrées gardées en mémoire (les plus récentes); le fichier garde tout
MEMORY_LIMIT = 1000

# module checkout_backend.settlement.dead_letter
class DeadLetterLog:
    def __init__(self, path: Optional[Path] = None, memory_limit: int = MEMORY_LIMIT):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=memory_limit)

    def record(
        self,
        *,
        stage: str,
        error: Any,
        session_id: Optional[str] = None,
        event_id: Optional[str] = None,
        event_type: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Enregistre un échec.
        - stage: étape en échec (line_items, stock, order, email, transition)
        - error: exception ou message
        Ne lève jamais: un échec d'écriture est seulement journalisé.
        """
        entry = {
            "stage": stage,
            "session_id": session_id,
            "event_id": event_id,
            "event_type": event_type,
            "error": f"{type(error).__name__}: {error}" if isinstance(error, BaseException) else str(error),
            "extra": extra or {},
            "recorded_at": int(time.time() * 1000),
        }
        logger.error(
            "settlement.dead_letter stage=%s session_id=%s event_id=%s error=%s",
            stage, session_id, event_id, entry["error"],
        )
        with self._lock:
            self._entries.append(entry)
            if self.path is not None:
                try:
                    self.path.parent.mkdir(parents=True, exist_ok=True)
                    with open(self.path, "a", encoding="utf-8") as f:
                        f.write(json.dumps(entry, default=str) + "\n")
                except OSError:
                    logger.exception("settlement.dead_letter écriture impossible path=%s", self.path)
        return entry

    def entries(self) -> List[Dict[str, Any]]:
        """Entrées récentes de ce processus (le fichier garde l'historique complet)."""
        with self._lock:
            return list(self._entries)
