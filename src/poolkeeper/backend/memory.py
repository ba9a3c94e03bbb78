"""In-process snapshot source, fed by `publish`."""

import threading
from typing import Optional

from poolkeeper.backend.backend_base import AbstractSnapshotSource
from poolkeeper.dataclasses.events import PoolSnapshot
from poolkeeper.dataclasses.models import PoolIdentity


class MemorySnapshotSource(AbstractSnapshotSource):
    """Keeps every published snapshot in memory, ordered by slot per pool."""

    def __init__(self, snapshots: Optional[list[PoolSnapshot]] = None) -> None:
        self._lock = threading.Lock()
        self._history: dict[PoolIdentity, list[PoolSnapshot]] = {}
        for snapshot in snapshots or []:
            self.publish(snapshot)

    def publish(self, snapshot: PoolSnapshot) -> None:
        """Record a snapshot delivered by an indexer."""
        with self._lock:
            history = self._history.setdefault(snapshot.pool_identity, [])
            history.append(snapshot)
            history.sort(key=lambda s: s.slot)

    def pool_identities(self) -> list[PoolIdentity]:
        with self._lock:
            return list(self._history)

    def latest(self, pool_identity: PoolIdentity) -> Optional[PoolSnapshot]:
        with self._lock:
            history = self._history.get(pool_identity)
            return history[-1] if history else None

    def snapshots_since(
        self,
        pool_identity: PoolIdentity,
        slot: Optional[int] = None,
    ) -> list[PoolSnapshot]:
        with self._lock:
            history = self._history.get(pool_identity, [])
            if slot is None:
                return list(history)
            return [s for s in history if s.slot >= slot]
