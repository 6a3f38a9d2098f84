# ai_providers/pool.py
import logging
import threading
from enum import Enum
from typing import Callable, Iterable, List, Sequence

from .base import ProviderClient
from .errors import ProviderUnavailableError

logger = logging.getLogger(__name__)


class SelectionPolicy(str, Enum):
    ROUND_ROBIN = "round_robin"
    # upload and everything that must reach the same account as the upload
    PRIMARY_ONLY = "primary_only"


class ProviderPool:
    """
    Fixed set of provider clients handed out one per request.
    The rotation cursor is the only mutable state and is guarded by a lock,
    so concurrent callers see selections in arrival order.
    """

    def __init__(self, clients: Sequence[ProviderClient]):
        self._clients: List[ProviderClient] = list(clients)
        self._cursor = 0
        self._lock = threading.Lock()

    @classmethod
    def from_credentials(cls, credentials: Iterable[str],
                         factory: Callable[[str, int], ProviderClient]) -> "ProviderPool":
        """factory(credential, slot_index) -> client"""
        clients = [factory(cred, i) for i, cred in enumerate(credentials)]
        logger.info("ProviderPool: %d client(s) configured", len(clients))
        return cls(clients)

    def __len__(self):
        return len(self._clients)

    def names(self) -> List[str]:
        return [c.name for c in self._clients]

    def acquire(self, policy: SelectionPolicy = SelectionPolicy.ROUND_ROBIN) -> ProviderClient:
        if not self._clients:
            raise ProviderUnavailableError("No provider client configured")

        if policy == SelectionPolicy.PRIMARY_ONLY:
            return self._clients[0]

        with self._lock:
            idx = self._cursor
            self._cursor = (idx + 1) % len(self._clients)
        return self._clients[idx]
