"""Abstract base class for pool snapshot sources."""

from abc import ABC
from abc import abstractmethod
from typing import Optional

from poolkeeper.dataclasses.events import PoolSnapshot
from poolkeeper.dataclasses.models import PoolIdentity


class AbstractSnapshotSource(ABC):
    """Abstract base class for indexers that deliver pool datum snapshots.

    Implementations decode the pool UTXO's inline datum into a `PoolDatum` and wrap
    it with the transaction it was produced by. Transport and decoding are up to the
    implementation; the session only relies on the methods below.
    """

    @abstractmethod
    def pool_identities(self) -> list[PoolIdentity]:
        """Get every pool the source tracks.

        Returns:
            list[PoolIdentity]: Identities of the known pools.
        """
        pass

    @abstractmethod
    def latest(self, pool_identity: PoolIdentity) -> Optional[PoolSnapshot]:
        """Get the most recent snapshot of a pool.

        Args:
            pool_identity (PoolIdentity): The pool to look up.

        Returns:
            Optional[PoolSnapshot]: The latest snapshot, or None for an unknown pool.
        """
        pass

    @abstractmethod
    def snapshots_since(
        self,
        pool_identity: PoolIdentity,
        slot: Optional[int] = None,
    ) -> list[PoolSnapshot]:
        """Get the snapshots of a pool from a slot on, oldest first.

        Args:
            pool_identity (PoolIdentity): The pool to look up.
            slot (Optional[int]): Only return snapshots at this slot or later. The
                slot is inclusive because one block can hold several transactions
                of the same pool. None returns the full history.

        Returns:
            list[PoolSnapshot]: Snapshots ordered by slot.
        """
        pass
