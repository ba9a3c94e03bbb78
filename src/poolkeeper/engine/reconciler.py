"""Reconstruct the action behind a pair of pool datum snapshots.

Indexers deliver UTXO snapshots, not actions. Classification uses only the two
datums, first match wins:

1. no previous datum: the pool was created;
2. reserves moved in opposite directions: a swap;
3. reserves moved in the same direction: a deposit or a withdrawal;
4. reserves unchanged but the config differs: a config update;
5. anything else: nothing happened, which is also what a re-delivered snapshot
   looks like. LP tokens minted or burned without reserves moving is corrupt.

Limits of the heuristics: a swap and a deposit in the same transaction cannot be
told apart from either alone, and the swap fee is recomputed rather than read.
It uses the fee config the pool had before the transaction, since that is the
config the swap was priced against; a transaction that both swaps and changes
the fee reports the old fee. The fee is `amount_in` minus its after-fee part,
the same rounding the quote uses, so it matches the increment of
`total_fees_collected`. LP amounts come from the datum's LP supply when it
changed; otherwise they are estimated from the reserve ratios and flagged as such.
"""

from typing import Optional

from pycardano import PlutusData

from poolkeeper.dataclasses.datums import PoolConfig
from poolkeeper.dataclasses.datums import PoolDatum
from poolkeeper.dataclasses.datums import PoolState
from poolkeeper.dataclasses.events import AddLiquidity
from poolkeeper.dataclasses.events import ConfigChange
from poolkeeper.dataclasses.events import ConfigUpdated
from poolkeeper.dataclasses.events import PoolCreated
from poolkeeper.dataclasses.events import ReconciledEvent
from poolkeeper.dataclasses.events import RemoveLiquidity
from poolkeeper.dataclasses.events import Swap
from poolkeeper.dataclasses.events import Unchanged
from poolkeeper.dataclasses.models import PoolIdentity
from poolkeeper.engine.errors import CorruptPoolStateError
from poolkeeper.engine.errors import engine_operation
from poolkeeper.engine.fixed_point import BPS_DENOMINATOR
from poolkeeper.engine.fixed_point import ceil_div
from poolkeeper.engine.fixed_point import isqrt
from poolkeeper.engine.fixed_point import ratio_div
from poolkeeper.engine.fixed_point import scaled_price
from poolkeeper.engine.pool_datum import check_state
from poolkeeper.engine.pool_datum import lp_share
from poolkeeper.engine.swap import price_impact_bps

STATS_COUNTERS = (
    "total_volume_ada",
    "total_volume_token",
    "total_fees_collected",
    "swap_count",
    "liquidity_providers_count",
)

CONFIG_FIELDS = (
    "token_policy",
    "token_name",
    "lp_token_policy",
    "lp_token_name",
    "fee_bps",
    "protocol_fee_bps",
    "creator",
    "admin",
    "is_paused",
)


def _check_transition(old: Optional[PoolDatum], new: PoolDatum) -> None:
    check_state(new.pool_state)
    if old is None:
        return
    for counter in STATS_COUNTERS:
        before = getattr(old.pool_stats, counter)
        after = getattr(new.pool_stats, counter)
        if after < before:
            msg = f"Pool stats counter {counter} decreased from {before} to {after}"
            raise CorruptPoolStateError(msg)


def _config_value(config: PoolConfig, name: str) -> bool | int | str:
    if name == "is_paused":
        return config.paused
    value = getattr(config, name)
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, PlutusData):
        return value.to_cbor_hex()
    return value


def config_changes(old: PoolConfig, new: PoolConfig) -> tuple[ConfigChange, ...]:
    """Fields that differ between two configs, in declaration order."""
    changes = []
    for name in CONFIG_FIELDS:
        before = _config_value(old, name)
        after = _config_value(new, name)
        if before != after:
            changes.append(ConfigChange(field=name, old=before, new=after))
    return tuple(changes)


def _estimate_lp(old: PoolState, ada_delta: int, token_delta: int) -> int:
    if old.total_lp_supply == 0:
        return isqrt(ada_delta * token_delta)

    shares = []
    if old.ada_reserve > 0:
        shares.append(ratio_div(ada_delta, old.total_lp_supply, old.ada_reserve))
    if old.token_reserve > 0:
        shares.append(ratio_div(token_delta, old.total_lp_supply, old.token_reserve))
    return min(shares) if shares else 0


def _swap(
    old: PoolDatum,
    new: PoolDatum,
    ada_delta: int,
    token_delta: int,
    provenance: dict,
) -> Swap:
    swap_in_token = token_delta > 0
    if swap_in_token:
        amount_in, amount_out = token_delta, -ada_delta
        reserve_in, reserve_out = old.pool_state.token_reserve, old.pool_state.ada_reserve
    else:
        amount_in, amount_out = ada_delta, -token_delta
        reserve_in, reserve_out = old.pool_state.ada_reserve, old.pool_state.token_reserve

    return Swap(
        swap_in_token=swap_in_token,
        amount_in=amount_in,
        amount_out=amount_out,
        fee=ceil_div(amount_in * old.pool_config.total_fee_bps, BPS_DENOMINATOR),
        price_impact_bps=price_impact_bps(amount_in, amount_out, reserve_in, reserve_out),
        new_price=scaled_price(new.pool_state.ada_reserve, new.pool_state.token_reserve),
        **provenance,
    )


def _liquidity(
    old: PoolDatum,
    new: PoolDatum,
    ada_delta: int,
    token_delta: int,
    provenance: dict,
) -> AddLiquidity | RemoveLiquidity:
    old_state, new_state = old.pool_state, new.pool_state
    deposit = ada_delta >= 0 and token_delta >= 0
    ada_amount, token_amount = abs(ada_delta), abs(token_delta)

    lp_delta = new_state.total_lp_supply - old_state.total_lp_supply
    if lp_delta != 0:
        lp_amount, exact = abs(lp_delta), True
    elif deposit:
        lp_amount, exact = _estimate_lp(old_state, ada_amount, token_amount), False
    else:
        lp_amount = max(
            ratio_div(ada_amount, old_state.total_lp_supply, old_state.ada_reserve)
            if old_state.ada_reserve > 0
            else 0,
            ratio_div(token_amount, old_state.total_lp_supply, old_state.token_reserve)
            if old_state.token_reserve > 0
            else 0,
        )
        exact = False

    event = AddLiquidity if deposit else RemoveLiquidity
    share_base = new_state.total_lp_supply if deposit else old_state.total_lp_supply
    return event(
        ada_amount=ada_amount,
        token_amount=token_amount,
        lp_amount=lp_amount,
        lp_amount_exact=exact,
        lp_share=lp_share(lp_amount, share_base),
        new_price=scaled_price(new_state.ada_reserve, new_state.token_reserve),
        **provenance,
    )


def _reconcile(
    old: Optional[PoolDatum],
    new: PoolDatum,
    pool_identity: PoolIdentity,
    tx_hash: str,
    slot: int,
    block_height: int,
) -> ReconciledEvent:
    _check_transition(old, new)
    provenance = {
        "pool_identity": pool_identity,
        "tx_hash": tx_hash,
        "slot": slot,
        "block_height": block_height,
    }

    if old is None:
        state, config = new.pool_state, new.pool_config
        return PoolCreated(
            ada_reserve=state.ada_reserve,
            token_reserve=state.token_reserve,
            total_lp_supply=state.total_lp_supply,
            fee_bps=config.fee_bps,
            protocol_fee_bps=config.protocol_fee_bps,
            price=scaled_price(state.ada_reserve, state.token_reserve),
            **provenance,
        )

    ada_delta = new.pool_state.ada_reserve - old.pool_state.ada_reserve
    token_delta = new.pool_state.token_reserve - old.pool_state.token_reserve

    if (ada_delta > 0 and token_delta < 0) or (ada_delta < 0 and token_delta > 0):
        return _swap(old, new, ada_delta, token_delta, provenance)

    if ada_delta != 0 or token_delta != 0:
        return _liquidity(old, new, ada_delta, token_delta, provenance)

    if new.pool_state.total_lp_supply != old.pool_state.total_lp_supply:
        msg = (
            "LP supply changed from "
            f"{old.pool_state.total_lp_supply} to {new.pool_state.total_lp_supply} "
            "without any reserve movement"
        )
        raise CorruptPoolStateError(msg)

    changes = config_changes(old.pool_config, new.pool_config)
    if changes:
        return ConfigUpdated(changes=changes, **provenance)

    return Unchanged(**provenance)


@engine_operation
def reconcile(
    old: Optional[PoolDatum],
    new: PoolDatum,
    *,
    pool_identity: PoolIdentity,
    tx_hash: str,
    slot: int,
    block_height: int,
) -> ReconciledEvent:
    """Classify the transition from `old` to `new` and reconstruct its economics.

    Args:
        old: The last known datum of the pool, or None for a pool not seen before.
        new: The datum after the transaction.
        pool_identity: The pool both datums belong to.
        tx_hash: Transaction that produced `new`.
        slot: Slot of that transaction.
        block_height: Block of that transaction.

    Returns:
        Outcome[ReconciledEvent]: `CorruptPoolState` when `new` has LP tokens but a
            zero reserve, when a stats counter went backwards, or when the LP
            supply changed while both reserves stayed put.
    """
    return _reconcile(old, new, pool_identity, tx_hash, slot, block_height)
