"""Composition root: the last known snapshot of every pool and the event stream.

`PoolSession` is the only stateful part of the package. Each pool has its own lock,
so snapshots of one pool are processed and delivered in order while different
pools proceed in parallel. The stored snapshot of a pool only advances after its
transition has been reconciled, so re-delivering a snapshot yields `Unchanged`.
"""

import logging
import threading
from collections import deque
from typing import Callable
from typing import Iterable
from typing import Optional

from poolkeeper.backend.backend_base import AbstractSnapshotSource
from poolkeeper.config import EngineSettings
from poolkeeper.dataclasses.datums import PoolDatum
from poolkeeper.dataclasses.events import EventKind
from poolkeeper.dataclasses.events import PoolSnapshot
from poolkeeper.dataclasses.events import ReconciledEvent
from poolkeeper.dataclasses.models import PoolIdentity
from poolkeeper.engine.errors import CorruptPoolStateError
from poolkeeper.engine.errors import InvalidInputError
from poolkeeper.engine.errors import Outcome
from poolkeeper.engine.errors import PoolEngineError
from poolkeeper.engine.errors import StaleSnapshotError
from poolkeeper.engine.pool_datum import check_datum
from poolkeeper.engine.reconciler import reconcile
from poolkeeper.utility import identity_of

logger = logging.getLogger(__name__)

Listener = Callable[[ReconciledEvent], None]
CorruptPoolAlert = Callable[[PoolIdentity, CorruptPoolStateError], None]


class PoolSession:
    """Tracks pools from indexer snapshots and emits the reconstructed events.

    Args:
        settings: Engine settings. Defaults to `EngineSettings()`.
        source: Optional snapshot source used by `sync`.
        on_corrupt: Called when a pool is halted because its state is corrupt.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        source: Optional[AbstractSnapshotSource] = None,
        on_corrupt: Optional[CorruptPoolAlert] = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.source = source
        self.on_corrupt = on_corrupt

        self._registry_lock = threading.Lock()
        self._locks: dict[PoolIdentity, threading.RLock] = {}
        self._snapshots: dict[PoolIdentity, PoolSnapshot] = {}
        self._seen_at_slot: dict[PoolIdentity, set[str]] = {}
        self._pending: dict[PoolIdentity, deque[ReconciledEvent]] = {}
        self._draining: set[PoolIdentity] = set()
        self._halted: dict[PoolIdentity, CorruptPoolStateError] = {}
        self._listeners: list[tuple[Optional[EventKind], Listener]] = []

    def _lock_for(self, pool_identity: PoolIdentity) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(pool_identity)
            if lock is None:
                lock = threading.RLock()
                self._locks[pool_identity] = lock
            return lock

    def subscribe(self, listener: Listener, kind: Optional[EventKind] = None) -> None:
        """Register a listener for every event, or only for events of `kind`.

        Listeners are called synchronously, in registration order, while the pool's
        lock is held. A listener may ingest further snapshots of the same pool; their
        events are queued and delivered once the current event has reached every
        listener.
        """
        with self._registry_lock:
            self._listeners.append((kind, listener))

    def unsubscribe(self, listener: Listener) -> None:
        """Remove every registration of `listener`."""
        with self._registry_lock:
            self._listeners = [(k, l) for k, l in self._listeners if l != listener]

    def _publish(self, event: ReconciledEvent) -> None:
        pool_identity = event.pool_identity
        self._pending.setdefault(pool_identity, deque()).append(event)
        if pool_identity in self._draining:
            return

        self._draining.add(pool_identity)
        try:
            pending = self._pending[pool_identity]
            while pending:
                self._deliver(pending.popleft())
        finally:
            self._draining.discard(pool_identity)
            self._pending.pop(pool_identity, None)

    def _deliver(self, event: ReconciledEvent) -> None:
        with self._registry_lock:
            listeners = list(self._listeners)

        for kind, listener in listeners:
            if kind is not None and event.kind != kind:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Listener %r failed on %s for pool %s",
                    listener,
                    event.kind,
                    event.pool_identity,
                )

    def current(self, pool_identity: PoolIdentity) -> Optional[PoolSnapshot]:
        """The last accepted snapshot of a pool."""
        with self._registry_lock:
            return self._snapshots.get(pool_identity)

    def current_datum(self, pool_identity: PoolIdentity) -> Optional[PoolDatum]:
        """The last accepted datum of a pool, to pass to the `propose_*` functions."""
        snapshot = self.current(pool_identity)
        return None if snapshot is None else snapshot.pool_datum

    def pools(self) -> list[PoolIdentity]:
        """Identities of every tracked pool."""
        with self._registry_lock:
            return list(self._snapshots)

    def is_halted(self, pool_identity: PoolIdentity) -> bool:
        with self._registry_lock:
            return pool_identity in self._halted

    def reset_pool(self, pool_identity: PoolIdentity) -> None:
        """Forget a pool, clearing a halt. The next snapshot creates it again."""
        with self._lock_for(pool_identity):
            with self._registry_lock:
                self._halted.pop(pool_identity, None)
                self._snapshots.pop(pool_identity, None)
                self._seen_at_slot.pop(pool_identity, None)
        logger.info("Reset pool %s", pool_identity)

    def _check_snapshot(self, snapshot: PoolSnapshot) -> None:
        check_datum(snapshot.pool_datum, self.settings.supported_datum_version)
        if identity_of(snapshot.pool_datum) != snapshot.pool_identity:
            msg = (
                f"Snapshot for pool {snapshot.pool_identity} carries the datum of "
                f"pool {identity_of(snapshot.pool_datum)}"
            )
            raise InvalidInputError(msg)

    def _halt(self, pool_identity: PoolIdentity, error: CorruptPoolStateError) -> None:
        with self._registry_lock:
            self._halted[pool_identity] = error
        logger.critical("Halting pool %s: %s", pool_identity, error)
        if self.on_corrupt is not None:
            try:
                self.on_corrupt(pool_identity, error)
            except Exception:
                logger.exception("Corrupt pool alert failed for %s", pool_identity)

    def _process(
        self,
        snapshot: PoolSnapshot,
        baseline: bool,
    ) -> Outcome[ReconciledEvent]:
        pool_identity = snapshot.pool_identity

        with self._registry_lock:
            halted = self._halted.get(pool_identity)
            old = self._snapshots.get(pool_identity)
        if halted is not None:
            logger.error(
                "Dropping snapshot %s for halted pool %s",
                snapshot.tx_hash,
                pool_identity,
            )
            return Outcome.failure(halted)

        try:
            self._check_snapshot(snapshot)
        except PoolEngineError as e:
            logger.error(
                "Rejected snapshot %s for pool %s: %s",
                snapshot.tx_hash,
                pool_identity,
                e,
            )
            return Outcome.failure(e)

        if old is not None and snapshot.slot < old.slot:
            error = StaleSnapshotError(
                f"Snapshot at slot {snapshot.slot} is older than slot {old.slot}",
            )
            logger.warning(
                "Dropping stale snapshot %s for pool %s: slot %s < %s",
                snapshot.tx_hash,
                pool_identity,
                snapshot.slot,
                old.slot,
            )
            return Outcome.failure(error)

        previous = old.pool_datum if old is not None else None
        if baseline:
            previous = snapshot.pool_datum

        outcome = reconcile(
            previous,
            snapshot.pool_datum,
            pool_identity=pool_identity,
            tx_hash=snapshot.tx_hash,
            slot=snapshot.slot,
            block_height=snapshot.block_height,
        )
        if not outcome.ok:
            if isinstance(outcome.error, CorruptPoolStateError):
                self._halt(pool_identity, outcome.error)
            else:
                logger.error(
                    "Failed to reconcile %s for pool %s: %s",
                    snapshot.tx_hash,
                    pool_identity,
                    outcome.error,
                )
            return outcome

        if (
            outcome.value.kind == EventKind.unchanged
            and old is not None
            and not baseline
            and snapshot.pool_datum != old.pool_datum
        ):
            logger.warning(
                "Pool %s changed in %s without any reserve or config change",
                pool_identity,
                snapshot.tx_hash,
            )

        with self._registry_lock:
            seen = self._seen_at_slot.get(pool_identity)
            if old is None or old.slot != snapshot.slot or seen is None:
                seen = set()
                self._seen_at_slot[pool_identity] = seen
            seen.add(snapshot.tx_hash)
            self._snapshots[pool_identity] = snapshot

        logger.debug(
            "Pool %s at slot %s: %s",
            pool_identity,
            snapshot.slot,
            outcome.value.kind,
        )
        self._publish(outcome.value)
        return outcome

    def _already_ingested(self, snapshot: PoolSnapshot) -> bool:
        with self._registry_lock:
            current = self._snapshots.get(snapshot.pool_identity)
            if current is None or current.slot != snapshot.slot:
                return False
            seen = self._seen_at_slot.get(snapshot.pool_identity, set())
            return snapshot.tx_hash in seen

    def ingest(self, snapshot: PoolSnapshot) -> Outcome[ReconciledEvent]:
        """Reconcile a snapshot against the pool's last known state.

        The first snapshot of a pool yields `PoolCreated`. Snapshots older than the
        stored one fail with `StaleSnapshot` and leave the session untouched.

        Args:
            snapshot: The pool datum after a transaction.

        Returns:
            Outcome[ReconciledEvent]: The event delivered to listeners, or the error
                the snapshot was rejected with.
        """
        with self._lock_for(snapshot.pool_identity):
            return self._process(snapshot, baseline=False)

    def load_initial(
        self,
        snapshots: Iterable[PoolSnapshot],
    ) -> list[Outcome[ReconciledEvent]]:
        """Prime pools with a known starting state, emitting `Unchanged` for each."""
        outcomes = []
        for snapshot in snapshots:
            with self._lock_for(snapshot.pool_identity):
                outcomes.append(self._process(snapshot, baseline=True))
        return outcomes

    def sync(
        self,
        pool_identities: Optional[Iterable[PoolIdentity]] = None,
    ) -> list[Outcome[ReconciledEvent]]:
        """Pull new snapshots from the source and ingest them in slot order.

        Snapshots are requested from the slot of the last ingested one, so later
        transactions in that same slot are not missed. Transactions already ingested
        at that slot are skipped.

        Args:
            pool_identities: Pools to sync. Defaults to every pool of the source.

        Returns:
            list[Outcome[ReconciledEvent]]: One outcome per ingested snapshot.
        """
        if self.source is None:
            msg = "PoolSession has no snapshot source to sync from."
            raise ValueError(msg)

        if pool_identities is None:
            pool_identities = self.source.pool_identities()

        outcomes = []
        for pool_identity in pool_identities:
            if self.is_halted(pool_identity):
                logger.warning("Skipping sync of halted pool %s", pool_identity)
                continue
            current = self.current(pool_identity)
            since = None if current is None else current.slot
            for snapshot in self.source.snapshots_since(pool_identity, since):
                if self._already_ingested(snapshot):
                    continue
                outcomes.append(self.ingest(snapshot))
        return outcomes
