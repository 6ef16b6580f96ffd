"""In-process schema cache with optional time-to-live."""
import copy
import logging
import time
from typing import Any, Dict, Optional, Tuple

from crud6.config import get_settings

logger = logging.getLogger(__name__)


def cache_key(model: str, connection: Optional[str] = None) -> str:
    return f"{model}:{connection or 'default'}"


class SchemaCache:
    """Caches processed schemas per model and connection.

    Entries never expire unless ``cache_enabled`` is set, in which case they
    live for ``cache_ttl`` seconds. Callers receive deep copies so request
    handlers can mutate what they get.
    """

    def __init__(self, ttl: Optional[int] = None, expiring: Optional[bool] = None):
        settings = get_settings()
        self.ttl = settings.cache_ttl if ttl is None else ttl
        self.expiring = settings.cache_enabled if expiring is None else expiring
        self._entries: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    def get(self, model: str, connection: Optional[str] = None) -> Optional[Dict[str, Any]]:
        key = cache_key(model, connection)
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, schema = entry
        if self.expiring and time.monotonic() - stored_at > self.ttl:
            logger.debug("schema_cache_expired: key=%s", key)
            del self._entries[key]
            return None
        return copy.deepcopy(schema)

    def set(self, schema: Dict[str, Any], model: str, connection: Optional[str] = None) -> None:
        self._entries[cache_key(model, connection)] = (time.monotonic(), copy.deepcopy(schema))

    def clear(self, model: str, connection: Optional[str] = None) -> None:
        self._entries.pop(cache_key(model, connection), None)

    def clear_all(self) -> None:
        count = len(self._entries)
        self._entries.clear()
        logger.debug("schema_cache_cleared: entries=%d", count)

    def __len__(self) -> int:
        return len(self._entries)
