"""Snapshot sources the pool session can pull from.

A source is always passed to `PoolSession` explicitly:

    from poolkeeper.backend import MemorySnapshotSource
    from poolkeeper.session import PoolSession

    source = MemorySnapshotSource()
    session = PoolSession(source=source)
    source.publish(snapshot)
    session.sync()
"""

from poolkeeper.backend.backend_base import AbstractSnapshotSource
from poolkeeper.backend.memory import MemorySnapshotSource

__all__ = ["AbstractSnapshotSource", "MemorySnapshotSource"]
