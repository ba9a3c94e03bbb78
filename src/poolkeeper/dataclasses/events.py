"""Snapshots delivered by indexers and the events reconstructed from them."""
from enum import Enum
from typing import Annotated
from typing import Literal
from typing import Union

from pydantic import ConfigDict
from pydantic import Field
from pydantic import TypeAdapter

from poolkeeper.dataclasses.datums import PoolDatum
from poolkeeper.dataclasses.models import PoolIdentity
from poolkeeper.dataclasses.models import PoolKeeperBaseModel


class EventKind(str, Enum):
    """Kinds of pool transition."""

    pool_created = "PoolCreated"
    swap = "Swap"
    add_liquidity = "AddLiquidity"
    remove_liquidity = "RemoveLiquidity"
    config_updated = "ConfigUpdated"
    unchanged = "Unchanged"


class PoolSnapshot(PoolKeeperBaseModel):
    """A decoded pool datum as seen on chain after a transaction."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    pool_identity: PoolIdentity
    pool_datum: PoolDatum
    tx_hash: str
    slot: int = Field(ge=0)
    block_height: int = Field(ge=0)


class PoolEvent(PoolKeeperBaseModel):
    """Fields shared by every event: the pool and where the transition happened."""

    model_config = ConfigDict(frozen=True)

    pool_identity: PoolIdentity
    tx_hash: str
    slot: int
    block_height: int


class PoolCreated(PoolEvent):
    kind: Literal["PoolCreated"] = EventKind.pool_created.value
    ada_reserve: int
    token_reserve: int
    total_lp_supply: int
    fee_bps: int
    protocol_fee_bps: int
    price: int


class Swap(PoolEvent):
    """A swap. `swap_in_token` is True when tokens were sold for ADA."""

    kind: Literal["Swap"] = EventKind.swap.value
    swap_in_token: bool
    amount_in: int
    amount_out: int
    fee: int
    price_impact_bps: int
    new_price: int


class AddLiquidity(PoolEvent):
    """A deposit.

    `lp_amount` is read from the datum's LP supply when it changed. Otherwise it is
    estimated from the reserve deltas and `lp_amount_exact` is False.
    """

    kind: Literal["AddLiquidity"] = EventKind.add_liquidity.value
    ada_amount: int
    token_amount: int
    lp_amount: int
    lp_amount_exact: bool
    lp_share: int
    new_price: int


class RemoveLiquidity(PoolEvent):
    """A withdrawal, with the same LP amount caveat as `AddLiquidity`."""

    kind: Literal["RemoveLiquidity"] = EventKind.remove_liquidity.value
    ada_amount: int
    token_amount: int
    lp_amount: int
    lp_amount_exact: bool
    lp_share: int
    new_price: int


class ConfigChange(PoolKeeperBaseModel):
    """One changed config field. Bytes and addresses are hex encoded."""

    model_config = ConfigDict(frozen=True)

    field: str
    old: Union[bool, int, str]
    new: Union[bool, int, str]


class ConfigUpdated(PoolEvent):
    kind: Literal["ConfigUpdated"] = EventKind.config_updated.value
    changes: tuple[ConfigChange, ...]


class Unchanged(PoolEvent):
    kind: Literal["Unchanged"] = EventKind.unchanged.value


ReconciledEvent = Annotated[
    Union[PoolCreated, Swap, AddLiquidity, RemoveLiquidity, ConfigUpdated, Unchanged],
    Field(discriminator="kind"),
]

event_adapter: TypeAdapter[ReconciledEvent] = TypeAdapter(ReconciledEvent)
