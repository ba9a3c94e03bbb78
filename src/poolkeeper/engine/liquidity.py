"""Liquidity deposits, withdrawals, pool creation and config updates.

LP tokens are minted against the geometric mean of the first deposit and pro rata
afterwards. Every division floors, so depositors are never over-credited and
withdrawals never pay out a fractional unit.
"""

from dataclasses import replace
from typing import Optional

from pycardano import Address
from pydantic import ConfigDict

from poolkeeper.config import EngineSettings
from poolkeeper.dataclasses.datums import PlutusFullAddress
from poolkeeper.dataclasses.datums import PoolConfig
from poolkeeper.dataclasses.datums import PoolDatum
from poolkeeper.dataclasses.datums import PoolState
from poolkeeper.dataclasses.datums import plutus_bool
from poolkeeper.dataclasses.models import Assets
from poolkeeper.dataclasses.models import PoolIdentity
from poolkeeper.dataclasses.models import PoolKeeperBaseModel
from poolkeeper.dataclasses.models import PoolOperation
from poolkeeper.dataclasses.models import PoolOperationCheck
from poolkeeper.engine.errors import InsufficientLPError
from poolkeeper.engine.errors import InvalidInputError
from poolkeeper.engine.errors import PoolDrainedError
from poolkeeper.engine.errors import PoolPausedError
from poolkeeper.engine.errors import SlippageExceededError
from poolkeeper.engine.errors import engine_operation
from poolkeeper.engine.fixed_point import isqrt
from poolkeeper.engine.fixed_point import ratio_div
from poolkeeper.engine.fixed_point import scaled_price
from poolkeeper.engine.min_ada import check_pool_operation
from poolkeeper.engine.min_ada import datum_size
from poolkeeper.engine.pool_datum import DatumDelta
from poolkeeper.engine.pool_datum import MetadataValue
from poolkeeper.engine.pool_datum import apply_update
from poolkeeper.engine.pool_datum import build
from poolkeeper.engine.pool_datum import check_config
from poolkeeper.engine.pool_datum import check_datum
from poolkeeper.engine.pool_datum import check_state
from poolkeeper.engine.pool_datum import empty_stats
from poolkeeper.engine.pool_datum import next_stats
from poolkeeper.utility import pool_assets


class LiquidityResult(PoolKeeperBaseModel):
    """LP tokens minted by a deposit and the resulting pool state."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    ada_amount: int
    token_amount: int
    lp_minted: int
    new_state: PoolState


class WithdrawalResult(PoolKeeperBaseModel):
    """Reserves paid out for burned LP tokens and the resulting pool state."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    lp_amount: int
    ada_out: int
    token_out: int
    new_state: PoolState


class LiquidityProposal(PoolKeeperBaseModel):
    """A deposit or withdrawal together with the datum the pool would carry."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    result: LiquidityResult | WithdrawalResult
    datum: PoolDatum
    min_ada: PoolOperationCheck


class PoolCreation(PoolKeeperBaseModel):
    """The datum of a new pool and the LP tokens minted to its creator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    datum: PoolDatum
    lp_minted: int
    min_ada: PoolOperationCheck


def _add_liquidity(state: PoolState, ada_amount: int, token_amount: int) -> LiquidityResult:
    if ada_amount <= 0 or token_amount <= 0:
        msg = (
            "Deposit amounts must be positive: "
            f"ada={ada_amount}, token={token_amount}"
        )
        raise InvalidInputError(msg)
    check_state(state)

    if state.total_lp_supply == 0:
        lp_minted = isqrt(ada_amount * token_amount)
    else:
        lp_minted = min(
            ratio_div(ada_amount, state.total_lp_supply, state.ada_reserve),
            ratio_div(token_amount, state.total_lp_supply, state.token_reserve),
        )

    if lp_minted <= 0:
        msg = f"Deposit of ada={ada_amount}, token={token_amount} mints no LP tokens"
        raise InvalidInputError(msg)

    new_state = replace(
        state,
        ada_reserve=state.ada_reserve + ada_amount,
        token_reserve=state.token_reserve + token_amount,
        total_lp_supply=state.total_lp_supply + lp_minted,
    )
    return LiquidityResult(
        ada_amount=ada_amount,
        token_amount=token_amount,
        lp_minted=lp_minted,
        new_state=new_state,
    )


@engine_operation
def add_liquidity(state: PoolState, ada_amount: int, token_amount: int) -> LiquidityResult:
    """Deposit both sides of the pool and mint LP tokens.

    The first deposit mints `isqrt(ada * token)`. Later deposits mint the smaller of
    the two pro rata amounts, so the excess of an unbalanced deposit is donated to
    the pool. Use `optimal_deposit` to avoid that.

    Args:
        state: Current pool state.
        ada_amount: Lovelace deposited.
        token_amount: Tokens deposited.

    Returns:
        Outcome[LiquidityResult]: `InvalidInput` for non-positive amounts or a
            deposit too small to mint, `CorruptPoolState` for a pool with LP tokens
            and a zero reserve.
    """
    return _add_liquidity(state, ada_amount, token_amount)


def _remove_liquidity(state: PoolState, lp_amount: int) -> WithdrawalResult:
    if lp_amount <= 0:
        msg = f"lp_amount must be positive: {lp_amount}"
        raise InvalidInputError(msg)
    check_state(state)
    if lp_amount > state.total_lp_supply:
        msg = f"Cannot burn {lp_amount} LP tokens, only {state.total_lp_supply} exist"
        raise InsufficientLPError(msg)

    ada_out = ratio_div(lp_amount, state.ada_reserve, state.total_lp_supply)
    token_out = ratio_div(lp_amount, state.token_reserve, state.total_lp_supply)
    if ada_out == 0 and token_out == 0:
        msg = f"Burning {lp_amount} LP tokens would pay out nothing"
        raise InvalidInputError(msg)

    new_state = replace(
        state,
        ada_reserve=state.ada_reserve - ada_out,
        token_reserve=state.token_reserve - token_out,
        total_lp_supply=state.total_lp_supply - lp_amount,
    )
    if new_state.ada_reserve <= 0 or new_state.token_reserve <= 0:
        msg = (
            f"Withdrawal would drain the pool: ada={new_state.ada_reserve}, "
            f"token={new_state.token_reserve}"
        )
        raise PoolDrainedError(msg)

    return WithdrawalResult(
        lp_amount=lp_amount,
        ada_out=ada_out,
        token_out=token_out,
        new_state=new_state,
    )


@engine_operation
def remove_liquidity(state: PoolState, lp_amount: int) -> WithdrawalResult:
    """Burn LP tokens for a pro rata share of both reserves.

    Args:
        state: Current pool state.
        lp_amount: LP tokens burned.

    Returns:
        Outcome[WithdrawalResult]: `InsufficientLP` when burning more than the
            supply, `PoolDrained` when a reserve would reach zero.
    """
    return _remove_liquidity(state, lp_amount)


@engine_operation
def optimal_deposit(
    state: PoolState,
    ada_desired: int,
    token_desired: int,
) -> tuple[int, int]:
    """Largest deposit within the desired amounts that matches the pool ratio.

    Returns:
        Outcome[tuple[int, int]]: The ADA and token amounts to deposit. An empty pool
            accepts the desired amounts as they are.
    """
    if ada_desired <= 0 or token_desired <= 0:
        msg = (
            "Desired amounts must be positive: "
            f"ada={ada_desired}, token={token_desired}"
        )
        raise InvalidInputError(msg)
    check_state(state)

    if state.total_lp_supply == 0 or not state.is_initialized:
        return ada_desired, token_desired

    token_optimal = ratio_div(ada_desired, state.token_reserve, state.ada_reserve)
    if token_optimal <= token_desired:
        return ada_desired, token_optimal

    ada_optimal = ratio_div(token_desired, state.ada_reserve, state.token_reserve)
    return ada_optimal, token_desired


@engine_operation
def create_pool(
    identity: PoolIdentity,
    ada_amount: int,
    token_amount: int,
    *,
    lp_token_policy: bytes,
    lp_token_name: bytes,
    pool_nft_name: bytes,
    fee_bps: int,
    protocol_fee_bps: int,
    creator: Address,
    admin: Address,
    slot: int,
    metadata: Optional[dict[str, MetadataValue]] = None,
    settings: Optional[EngineSettings] = None,
) -> PoolCreation:
    """Build the datum of a new pool funded with an initial deposit.

    Args:
        identity: The token side of the pool.
        ada_amount: Initial lovelace reserve, including the pool's minimum ADA.
        token_amount: Initial token reserve.
        lp_token_policy: Policy the LP tokens and the pool NFT are minted under.
        lp_token_name: Asset name of the LP token.
        pool_nft_name: Asset name of the pool NFT.
        fee_bps: Trading fee in basis points.
        protocol_fee_bps: Protocol fee in basis points.
        creator: Address of the pool creator.
        admin: Address allowed to update the config.
        slot: Slot the pool is created in.
        metadata: Optional CIP-68 metadata, defaults are derived from the config.
        settings: Engine settings, for min ADA.

    Returns:
        Outcome[PoolCreation]: The datum, the LP tokens minted and the min ADA check.
    """
    settings = settings or EngineSettings()

    config = PoolConfig(
        token_policy=bytes.fromhex(identity.token_policy),
        token_name=bytes.fromhex(identity.token_name),
        lp_token_policy=lp_token_policy,
        lp_token_name=lp_token_name,
        fee_bps=fee_bps,
        protocol_fee_bps=protocol_fee_bps,
        creator=PlutusFullAddress.from_address(creator),
        admin=PlutusFullAddress.from_address(admin),
        is_paused=plutus_bool(False),
    )
    check_config(config)

    empty = PoolState(
        ada_reserve=0,
        token_reserve=0,
        total_lp_supply=0,
        last_interaction_slot=slot,
        pool_nft_name=pool_nft_name,
    )
    deposit = _add_liquidity(empty, ada_amount, token_amount)
    state = deposit.new_state

    stats = next_stats(
        empty_stats(slot),
        0,
        0,
        0,
        scaled_price(state.ada_reserve, state.token_reserve),
        slot,
        swaps=0,
        new_providers=1,
    )
    datum = build(state, config, stats, metadata=metadata)

    check = check_pool_operation(
        Assets(root={}),
        pool_assets(datum),
        datum_size(datum),
        PoolOperation.create_pool,
        settings.min_ada,
    )
    return PoolCreation(datum=datum, lp_minted=deposit.lp_minted, min_ada=check)


def _liquidity_datum(
    datum: PoolDatum,
    new_state: PoolState,
    slot: int,
    new_providers: int,
) -> PoolDatum:
    new_state = replace(new_state, last_interaction_slot=slot)
    new_stats = next_stats(
        datum.pool_stats,
        0,
        0,
        0,
        scaled_price(new_state.ada_reserve, new_state.token_reserve),
        slot,
        swaps=0,
        new_providers=new_providers,
    )
    return apply_update(datum, DatumDelta(pool_state=new_state, pool_stats=new_stats))


def _check_min_ada(
    old: PoolDatum,
    new: PoolDatum,
    operation: PoolOperation,
    settings: EngineSettings,
) -> PoolOperationCheck:
    return check_pool_operation(
        pool_assets(old),
        pool_assets(new),
        datum_size(new),
        operation,
        settings.min_ada,
    )


@engine_operation
def propose_add_liquidity(
    datum: PoolDatum,
    ada_amount: int,
    token_amount: int,
    slot: int,
    min_lp: Optional[int] = None,
    settings: Optional[EngineSettings] = None,
) -> LiquidityProposal:
    """Deposit into a pool and build the datum it would carry afterwards.

    Deposits are refused while the pool is paused.

    Returns:
        Outcome[LiquidityProposal]: `SlippageExceeded` when fewer than `min_lp`
            tokens would be minted.
    """
    settings = settings or EngineSettings()
    check_datum(datum, settings.supported_datum_version)
    if datum.pool_config.paused:
        msg = "Pool is paused, deposits are not accepted"
        raise PoolPausedError(msg)

    result = _add_liquidity(datum.pool_state, ada_amount, token_amount)
    if min_lp is not None and result.lp_minted < min_lp:
        msg = f"Deposit mints {result.lp_minted} LP tokens, below the minimum {min_lp}"
        raise SlippageExceededError(msg)

    new_datum = _liquidity_datum(datum, result.new_state, slot, new_providers=1)
    check = _check_min_ada(datum, new_datum, PoolOperation.add_liquidity, settings)

    return LiquidityProposal(result=result, datum=new_datum, min_ada=check)


@engine_operation
def propose_remove_liquidity(
    datum: PoolDatum,
    lp_amount: int,
    slot: int,
    min_ada_out: Optional[int] = None,
    min_token_out: Optional[int] = None,
    settings: Optional[EngineSettings] = None,
) -> LiquidityProposal:
    """Withdraw from a pool and build the datum it would carry afterwards.

    Withdrawals are allowed while the pool is paused.

    Returns:
        Outcome[LiquidityProposal]: `SlippageExceeded` when either payout is below
            its minimum.
    """
    settings = settings or EngineSettings()
    check_datum(datum, settings.supported_datum_version)

    result = _remove_liquidity(datum.pool_state, lp_amount)
    if min_ada_out is not None and result.ada_out < min_ada_out:
        msg = f"Withdrawal pays {result.ada_out} lovelace, below the minimum {min_ada_out}"
        raise SlippageExceededError(msg)
    if min_token_out is not None and result.token_out < min_token_out:
        msg = f"Withdrawal pays {result.token_out} tokens, below the minimum {min_token_out}"
        raise SlippageExceededError(msg)

    new_datum = _liquidity_datum(datum, result.new_state, slot, new_providers=0)
    check = _check_min_ada(datum, new_datum, PoolOperation.remove_liquidity, settings)

    return LiquidityProposal(result=result, datum=new_datum, min_ada=check)


@engine_operation
def propose_config_update(
    datum: PoolDatum,
    *,
    fee_bps: Optional[int] = None,
    protocol_fee_bps: Optional[int] = None,
    admin: Optional[Address] = None,
    is_paused: Optional[bool] = None,
    settings: Optional[EngineSettings] = None,
) -> PoolDatum:
    """Build the datum of a governance config update.

    Only the named fields change. Reserves and stats are shared with `datum`. A fee
    change also rewrites the `pool_fee` metadata entry.

    Returns:
        Outcome[PoolDatum]: `InvalidInput` when the new fees are out of bounds or
            nothing would change.
    """
    settings = settings or EngineSettings()
    check_datum(datum, settings.supported_datum_version)

    changes = {}
    if fee_bps is not None:
        changes["fee_bps"] = fee_bps
    if protocol_fee_bps is not None:
        changes["protocol_fee_bps"] = protocol_fee_bps
    if admin is not None:
        changes["admin"] = PlutusFullAddress.from_address(admin)
    if is_paused is not None:
        changes["is_paused"] = plutus_bool(is_paused)
    if not changes:
        msg = "Config update does not change anything"
        raise InvalidInputError(msg)

    config = replace(datum.pool_config, **changes)
    check_config(config)

    return apply_update(datum, DatumDelta(pool_config=config))
