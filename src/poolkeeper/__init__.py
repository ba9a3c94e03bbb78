"""State-transition engine for CIP-68 ADA/token AMM pools."""

from poolkeeper.backend import AbstractSnapshotSource
from poolkeeper.backend import MemorySnapshotSource
from poolkeeper.config import EngineSettings
from poolkeeper.config import MinAdaParameters
from poolkeeper.config import configure_logging
from poolkeeper.dataclasses.events import EventKind
from poolkeeper.dataclasses.events import PoolSnapshot
from poolkeeper.dataclasses.events import event_adapter
from poolkeeper.dataclasses.models import Assets
from poolkeeper.dataclasses.models import PoolIdentity
from poolkeeper.engine.errors import ErrorKind
from poolkeeper.engine.errors import Outcome
from poolkeeper.engine.errors import PoolEngineError
from poolkeeper.engine.liquidity import add_liquidity
from poolkeeper.engine.liquidity import create_pool
from poolkeeper.engine.liquidity import propose_add_liquidity
from poolkeeper.engine.liquidity import propose_config_update
from poolkeeper.engine.liquidity import propose_remove_liquidity
from poolkeeper.engine.liquidity import remove_liquidity
from poolkeeper.engine.reconciler import reconcile
from poolkeeper.engine.swap import propose_swap
from poolkeeper.engine.swap import quote
from poolkeeper.session import PoolSession

__all__ = [
    "AbstractSnapshotSource",
    "Assets",
    "EngineSettings",
    "ErrorKind",
    "EventKind",
    "MemorySnapshotSource",
    "MinAdaParameters",
    "Outcome",
    "PoolEngineError",
    "PoolIdentity",
    "PoolSession",
    "PoolSnapshot",
    "add_liquidity",
    "configure_logging",
    "create_pool",
    "event_adapter",
    "propose_add_liquidity",
    "propose_config_update",
    "propose_remove_liquidity",
    "propose_swap",
    "quote",
    "reconcile",
    "remove_liquidity",
]
