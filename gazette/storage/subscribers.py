"""Newsletter subscriber list persisted as a JSON file."""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from .files import atomic_write_text

logger = logging.getLogger(__name__)


class SubscriberList:
    """Email -> subscribed_at map. Adding an existing email is a no-op."""

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt subscriber file {self.path}, starting fresh: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def add(self, email: str) -> bool:
        """Returns False when the address was already subscribed."""
        email = email.strip().lower()
        with self._lock:
            subscribers = self._load()
            if email in subscribers:
                return False
            subscribers[email] = datetime.now(timezone.utc).isoformat()
            atomic_write_text(self.path, json.dumps(subscribers, indent=2))
        logger.info(f"New subscriber ({len(subscribers)} total)")
        return True

    def __contains__(self, email: str) -> bool:
        with self._lock:
            return email.strip().lower() in self._load()
